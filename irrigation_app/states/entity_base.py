"""
Entity list state mixin
- One mixin for every list page; concrete states only name their entity
- The live view (mirror + subscription + coordinator) stays in the runtime registry,
  this state only carries its display copy
- Background streaming loop wakes on mirror changes and notifications
"""
import reflex as rx
import asyncio
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pytz
from reflex.utils import console

from irrigation_app.auth import may_write
from irrigation_app.models.entities import get_entity
from irrigation_app.models.tables import coerce_payload
from irrigation_app.runtime import runtime
from irrigation_app.services import filters
from irrigation_app.states.session import SessionState
from irrigation_app.sync.notifications import Notification, Notifier, denied_message

DISPLAY_TZ = pytz.timezone(filters.DEFAULT_TZ)

# Seconds between checks that the view is still mounted
WAKE_INTERVAL = 5.0


def display_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(DISPLAY_TZ).strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return ""
    return value


def display_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Mirror record -> JSON-safe row for the frontend"""
    return {k: display_value(v) for k, v in record.items()}


def toast_for(notification: Notification):
    if notification.kind == "success":
        return rx.toast.success(notification.message)
    return rx.toast.error(notification.message)


class EntityStateMixin(rx.State, mixin=True):
    """Shared list-page behaviour over an EntityView"""

    # Display copy of the mirror
    records: List[Dict] = []
    loading: bool = True
    error_message: str = ""
    last_update: str = ""
    live: bool = False

    # UI control
    search_query: str = ""
    is_saving: bool = False
    dialog_open: bool = False
    editing_id: str = ""
    editing: Dict[str, Any] = {}

    def _entity_name(self) -> str:
        raise NotImplementedError

    async def _prepare(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for states that add fields the form does not carry"""
        return form_data

    def _sync_from(self, view):
        self.records = [display_record(r) for r in view.records]
        self.loading = view.loading
        self.error_message = view.error
        self.live = view.live
        self.last_update = datetime.now(DISPLAY_TZ).strftime("%H:%M:%S")

    @rx.var
    def filtered_records(self) -> List[Dict]:
        spec = get_entity(self._entity_name())
        return filters.search(self.records, self.search_query, spec.search_fields)

    @rx.var
    def record_count(self) -> int:
        return len(self.records)

    # Lifecycle
    # =========================================================================

    @rx.event(background=True)
    async def on_mount(self):
        """Open the view, subscribe then load, and stream changes until unmount"""
        async with self:
            token = self.router.session.client_token
            self.loading = True

        entity = self._entity_name()
        queue: asyncio.Queue = asyncio.Queue()
        notifier = Notifier()
        notifier.add_sink(queue.put_nowait)

        view = await runtime.require().open(token, entity, notifier)
        view.mirror.add_listener(lambda _mirror: queue.put_nowait(None))
        console.info(f"{entity} view mounted for {token[:8]}")

        await view.mount()
        async with self:
            self._sync_from(view)

        while view.mounted:
            try:
                item = await asyncio.wait_for(queue.get(), timeout=WAKE_INTERVAL)
            except asyncio.TimeoutError:
                continue

            pending = [item]
            while not queue.empty():
                pending.append(queue.get_nowait())

            if not view.mounted:
                break

            async with self:
                self._sync_from(view)

            for notification in pending:
                if isinstance(notification, Notification):
                    yield toast_for(notification)

        console.info(f"{entity} view stream ended for {token[:8]}")

    @rx.event(background=True)
    async def on_unmount(self):
        async with self:
            token = self.router.session.client_token
        registry = runtime.require()
        await registry.close(token, self._entity_name())

    @rx.event(background=True)
    async def reload(self):
        async with self:
            token = self.router.session.client_token
        view = runtime.require().get(token, self._entity_name())
        if view is None:
            return
        await view.reload()
        async with self:
            self._sync_from(view)

    # Dialog / search
    # =========================================================================

    @rx.event
    def set_search_query(self, value: str):
        self.search_query = value

    @rx.event
    def open_create(self):
        self.editing_id = ""
        self.editing = {}
        self.dialog_open = True

    @rx.event
    def open_edit(self, record: Dict[str, Any]):
        self.editing_id = str(record.get("id", ""))
        self.editing = record
        self.dialog_open = True

    @rx.event
    def set_dialog_open(self, value: bool):
        self.dialog_open = value
        if not value:
            self.editing_id = ""
            self.editing = {}

    # Mutations
    # =========================================================================

    async def _view(self):
        async with self:
            token = self.router.session.client_token
        return runtime.require().get(token, self._entity_name())

    async def _rejection(self, operation: str):
        """None when the signed-in actor may perform this write, else the toast to show"""
        async with self:
            session = await self.get_state(SessionState)
            if may_write(session.actor(), self._entity_name(), operation):
                return None
            token = self.router.session.client_token
        entity = self._entity_name()
        console.warn(f"Rejected {operation} {entity} from {token[:8]}")
        return rx.toast.error(denied_message(get_entity(entity).label, operation))

    @rx.event(background=True)
    async def save_record(self, form_data: Dict[str, Any]):
        """Create, or update when a record is being edited"""
        async with self:
            if self.is_saving:
                return
            self.is_saving = True
            editing_id = self.editing_id

        operation = "update" if editing_id else "create"
        record: Optional[Dict[str, Any]] = None
        try:
            denial = await self._rejection(operation)
            if denial is not None:
                yield denial
                return
            async with self:
                payload = await self._prepare(dict(form_data))

            view = await self._view()
            if view is None:
                console.warn(f"save_record without a mounted {self._entity_name()} view")
                return
            payload = coerce_payload(view.spec.table, payload)
            if editing_id:
                record = await view.update(editing_id, payload)
            else:
                record = await view.create(payload)
        finally:
            async with self:
                self.is_saving = False
                if record is not None:
                    self.dialog_open = False
                    self.editing_id = ""
                    self.editing = {}

    @rx.event(background=True)
    async def delete_record(self, record_id: str):
        denial = await self._rejection("delete")
        if denial is not None:
            yield denial
            return
        view = await self._view()
        if view is not None:
            await view.delete(record_id)

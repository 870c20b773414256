"""
Concrete list-page states
- Each names its entity; the mixin carries mount, stream and mutation handling
- Canals and gates also load parent options for their form selects
"""
import reflex as rx
from typing import Any, Dict, List

from reflex.utils import console

from irrigation_app.models.entities import get_entity
from irrigation_app.runtime import runtime
from irrigation_app.services import filters
from irrigation_app.states.entity_base import EntityStateMixin, display_record
from irrigation_app.states.session import SessionState
from irrigation_app.sync.errors import StoreError


async def _parent_options(entity_name: str) -> List[Dict[str, str]]:
    """id/name pairs for a form select"""
    spec = get_entity(entity_name)
    store = runtime.require().context.store
    try:
        rows = await store.select(spec.table, order_by="name")
    except StoreError as e:
        console.error(f"Loading {entity_name} options failed: {e}")
        return []
    return [{"id": str(r["id"]), "name": r.get("name") or ""} for r in rows]


class AreasState(EntityStateMixin, rx.State):
    """Daerah irigasi"""

    def _entity_name(self) -> str:
        return "areas"


class CanalsState(EntityStateMixin, rx.State):
    """Saluran"""

    area_options: List[Dict[str, str]] = []
    area_filter: str = "all"

    def _entity_name(self) -> str:
        return "canals"

    @rx.var
    def visible_canals(self) -> List[Dict]:
        return filters.filter_by_category(self.filtered_records, "area_id", self.area_filter)

    @rx.event
    def set_area_filter(self, value: str):
        self.area_filter = value

    @rx.event(background=True)
    async def load_options(self):
        options = await _parent_options("areas")
        async with self:
            self.area_options = options


class GatesState(EntityStateMixin, rx.State):
    """Pintu air"""

    canal_options: List[Dict[str, str]] = []
    status_filter: str = "all"

    def _entity_name(self) -> str:
        return "gates"

    @rx.var
    def visible_gates(self) -> List[Dict]:
        return filters.filter_by_category(self.filtered_records, "status", self.status_filter)

    @rx.var
    def status_summary(self) -> Dict[str, int]:
        return filters.status_counts(self.records)

    @rx.event
    def set_status_filter(self, value: str):
        self.status_filter = value

    @rx.event(background=True)
    async def load_options(self):
        options = await _parent_options("canals")
        async with self:
            self.canal_options = options


class MonitoringState(EntityStateMixin, rx.State):
    """Data monitoring: latest 100 readings"""

    gate_options: List[Dict[str, str]] = []
    condition_filter: str = "all"
    summary: Dict[str, int] = {"today": 0, "warning": 0, "critical": 0, "total": 0}
    videos: List[Dict] = []

    def _entity_name(self) -> str:
        return "monitoring"

    async def _prepare(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Stamp the reading with the signed-in actor"""
        session = await self.get_state(SessionState)
        if session.user_id:
            form_data["recorded_by"] = session.user_id
        return form_data

    def _sync_from(self, view):
        super()._sync_from(view)
        raw = view.records
        self.summary = filters.monitoring_summary(raw)
        self.videos = [display_record(r) for r in filters.recent_videos(raw)]

    @rx.var
    def visible_readings(self) -> List[Dict]:
        return filters.filter_by_category(self.filtered_records, "condition", self.condition_filter)

    @rx.event
    def set_condition_filter(self, value: str):
        self.condition_filter = value

    @rx.event(background=True)
    async def load_options(self):
        options = await _parent_options("gates")
        async with self:
            self.gate_options = options


class AlertsState(EntityStateMixin, rx.State):
    """Notifikasi: latest 10 alerts"""

    def _entity_name(self) -> str:
        return "alerts"

    @rx.var
    def unread(self) -> List[Dict]:
        return filters.unread_alerts(self.records)

    @rx.var
    def unread_count(self) -> int:
        return len(filters.unread_alerts(self.records))

    @rx.event(background=True)
    async def mark_read(self, alert_id: str):
        denial = await self._rejection("update")
        if denial is not None:
            yield denial
            return
        view = await self._view()
        if view is not None:
            await view.update(alert_id, {"is_read": True})

    @rx.event(background=True)
    async def mark_all_read(self):
        """One batched write, so a single toast for all unread alerts"""
        denial = await self._rejection("update")
        if denial is not None:
            yield denial
            return
        view = await self._view()
        if view is None:
            return
        unread = [alert["id"] for alert in filters.unread_alerts(view.records)]
        await view.update_many(unread, {"is_read": True})

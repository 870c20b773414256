"""
Bootstrap wiring
- SyncContext is built once at application start with an explicit store
- Each mounted page gets a fresh view (mirror + subscription + coordinator)
"""
from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Set, Union

from irrigation_app.config import Settings
from irrigation_app.models.entities import get_entity
from irrigation_app.services import filters
from irrigation_app.store import PostgresStore, RemoteStore
from irrigation_app.sync.coordinator import MutationCoordinator
from irrigation_app.sync.dashboard import DashboardStatsMirror
from irrigation_app.sync.errors import SubscriptionError
from irrigation_app.sync.mirror import EntityMirror, Record
from irrigation_app.sync.notifications import Notifier
from irrigation_app.sync.subscriptions import ChangeSubscriptionManager, Subscription
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)


class EntityView:
    """Everything one mounted list page needs for a single entity type"""

    def __init__(self, entity_name: str, store: RemoteStore, notifier: Notifier):
        self.spec = get_entity(entity_name)
        self.notifier = notifier
        self.mirror = EntityMirror(self.spec, store, notifier)
        self.subscriptions = ChangeSubscriptionManager(store, notifier)
        self.coordinator = MutationCoordinator(store, notifier)
        self.coordinator.register(self.mirror)
        self.subscription: Optional[Subscription] = None
        self.mounted = False
        self._on_unmount = None

    @property
    def records(self) -> List[Record]:
        return self.mirror.snapshot()

    @property
    def loading(self) -> bool:
        return self.mirror.loading

    @property
    def error(self) -> str:
        return self.mirror.error

    @property
    def live(self) -> bool:
        """True when push updates are flowing"""
        return self.subscription is not None and not self.subscription.closed

    @property
    def saving(self) -> bool:
        return self.coordinator.in_flight(self.spec.name)

    async def mount(self) -> bool:
        """Subscribe, then run the initial load. Returns False if the load failed."""
        if self.mounted:
            return True
        self.mounted = True
        # subscribe before loading so no change between the two is missed
        self.subscription = await self.subscriptions.watch(self.mirror)
        return await self.mirror.refresh()

    async def unmount(self):
        if not self.mounted:
            return
        self.mounted = False
        await self.subscriptions.close()
        self.subscription = None
        self.coordinator.unregister(self.mirror)
        self.mirror.detach()
        if self._on_unmount is not None:
            self._on_unmount(self)

    async def reload(self) -> bool:
        return await self.mirror.refresh()

    async def create(self, payload: Dict[str, Any]) -> Optional[Record]:
        return await self.coordinator.create(self.spec.name, payload)

    async def update(self, id: str, partial: Dict[str, Any]) -> Optional[Record]:
        return await self.coordinator.update(self.spec.name, id, partial)

    async def update_many(self, ids, partial: Dict[str, Any]) -> List[Record]:
        return await self.coordinator.update_many(self.spec.name, ids, partial)

    async def delete(self, id: str) -> bool:
        return await self.coordinator.delete(self.spec.name, id)

    def __repr__(self):
        return f"<EntityView {self.spec.name} mounted={self.mounted} live={self.live}>"


class DashboardView:
    """Mounted dashboard summary: one handler per dependency table"""

    def __init__(self, store: RemoteStore, notifier: Notifier, water_volume: float):
        self.notifier = notifier
        self.mirror = DashboardStatsMirror(store, notifier, water_volume)
        self.subscriptions = ChangeSubscriptionManager(store, notifier)
        self.subscription: Optional[Subscription] = None
        self.mounted = False
        self._on_unmount = None

    @property
    def live(self) -> bool:
        return self.subscription is not None and not self.subscription.closed

    async def mount(self) -> bool:
        if self.mounted:
            return True
        self.mounted = True
        try:
            self.subscription = await self.subscriptions.subscribe_many(
                self.mirror.entity_names, self.mirror.refresh
            )
        except SubscriptionError as exc:
            logger.warning(str(exc))
            self.notifier.error(self.mirror.label, "subscribe", "dashboard", detail="live updates unavailable")
        return await self.mirror.refresh()

    async def unmount(self):
        if not self.mounted:
            return
        self.mounted = False
        await self.subscriptions.close()
        self.subscription = None
        self.mirror.detach()
        if self._on_unmount is not None:
            self._on_unmount(self)


class ReportView:
    """Reports page: every reading plus the gate, canal and area lists.

    Read-only. The readings mirror drops the list page's row limit so a
    period filter sees the whole table. Rows are filtered locally.
    """

    SOURCES = ("monitoring", "gates", "canals", "areas")

    def __init__(self, store: RemoteStore, notifier: Notifier, tz_name: str = filters.DEFAULT_TZ):
        self.notifier = notifier
        self.tz_name = tz_name
        self.mirrors: Dict[str, EntityMirror] = {
            name: EntityMirror(replace(get_entity(name), limit=None), store, notifier)
            for name in self.SOURCES
        }
        self.subscriptions = ChangeSubscriptionManager(store, notifier)
        self.mounted = False
        self._on_unmount = None

    @property
    def live(self) -> bool:
        active = self.subscriptions.active
        return len(active) == len(self.SOURCES) and not any(s.closed for s in active)

    @property
    def loading(self) -> bool:
        return any(m.loading for m in self.mirrors.values())

    @property
    def error(self) -> str:
        return next((m.error for m in self.mirrors.values() if m.error), "")

    def add_listener(self, listener):
        for mirror in self.mirrors.values():
            mirror.add_listener(listener)

    async def mount(self) -> bool:
        """Subscribe every source, then load them together"""
        if self.mounted:
            return True
        self.mounted = True
        for mirror in self.mirrors.values():
            await self.subscriptions.watch(mirror)
        results = await asyncio.gather(*(m.refresh() for m in self.mirrors.values()))
        return all(results)

    async def unmount(self):
        if not self.mounted:
            return
        self.mounted = False
        await self.subscriptions.close()
        for mirror in self.mirrors.values():
            mirror.detach()
        if self._on_unmount is not None:
            self._on_unmount(self)

    def area_options(self) -> List[Dict[str, str]]:
        areas = filters.sort_records(self.mirrors["areas"].snapshot(), "name")
        return [{"id": str(a["id"]), "name": a.get("name") or ""} for a in areas]

    def rows(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        area_id: str = "all",
        condition: str = "all",
    ) -> List[Record]:
        """Readings in [start, end], optionally under one area and of one condition, newest first"""
        gate_ids = None
        if area_id and area_id != "all":
            gate_ids = filters.gates_in_area(
                self.mirrors["gates"].snapshot(), self.mirrors["canals"].snapshot(), area_id
            )
        rows = filters.report_rows(
            self.mirrors["monitoring"].snapshot(), start, end, gate_ids, condition, self.tz_name
        )
        return filters.sort_records(rows, "recorded_at", descending=True)

    def __repr__(self):
        return f"<ReportView mounted={self.mounted} live={self.live}>"


View = Union[EntityView, DashboardView, ReportView]


class SyncContext:
    """Application-wide owner of the store and the notifier"""

    def __init__(self, store: RemoteStore, notifier: Optional[Notifier] = None, settings: Optional[Settings] = None):
        self.store = store
        self.notifier = notifier or Notifier()
        self.settings = settings or Settings()
        self._views: Set[View] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncContext":
        return cls(PostgresStore(settings), Notifier(), settings)

    @property
    def views(self) -> List[View]:
        return list(self._views)

    def _track(self, view: View) -> View:
        self._views.add(view)
        view._on_unmount = self._views.discard
        return view

    def open_view(self, entity_name: str, notifier: Optional[Notifier] = None) -> EntityView:
        """Fresh, not yet mounted view for one entity.

        A per-client notifier keeps toasts in the session that caused them.
        """
        return self._track(EntityView(entity_name, self.store, notifier or self.notifier))

    def open_dashboard(self, notifier: Optional[Notifier] = None) -> DashboardView:
        return self._track(DashboardView(self.store, notifier or self.notifier, self.settings.water_volume))

    def open_report(self, notifier: Optional[Notifier] = None) -> ReportView:
        return self._track(ReportView(self.store, notifier or self.notifier, self.settings.display_tz))

    async def close(self):
        for view in list(self._views):
            await view.unmount()
        self._views.clear()
        await self.store.close()
        logger.info("Sync context closed")

"""Dashboard summary: row counts across every mirrored table, recomputed on any change."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from irrigation_app.models.entities import get_entity
from irrigation_app.store import RemoteStore
from irrigation_app.sync.errors import FetchError, StoreError
from irrigation_app.sync.notifications import Notifier
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

DEPENDENCIES = ("areas", "canals", "gates", "monitoring", "alerts")


@dataclass(frozen=True)
class DashboardStats:
    total_areas: int = 0
    total_canals: int = 0
    total_gates: int = 0
    active_monitoring: int = 0
    critical_alerts: int = 0
    water_volume: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class DashboardStatsMirror:
    """Aggregate mirror fed by five tables"""

    label = "Dashboard summary"
    entity_names = DEPENDENCIES

    def __init__(self, store: RemoteStore, notifier: Optional[Notifier] = None, water_volume: float = 2_500_000.0):
        self.store = store
        self.notifier = notifier
        self.water_volume = water_volume
        self.stats = DashboardStats(water_volume=water_volume)
        self.loading = False
        self.error = ""
        self.last_update: Optional[datetime] = None
        self._detached = False
        self._generation = 0
        self._listeners: List[Callable[["DashboardStatsMirror"], None]] = []

    def snapshot(self) -> DashboardStats:
        return self.stats

    def add_listener(self, listener: Callable[["DashboardStatsMirror"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Dashboard listener failed: {e}", exc_info=True)

    async def load(self) -> DashboardStats:
        """Recount all tables concurrently; keeps previous stats on failure"""
        if self._detached:
            return self.stats

        self._generation += 1
        generation = self._generation
        self.loading = True
        self._changed()

        try:
            areas, canals, gates, monitoring, critical = await asyncio.gather(
                self.store.count(get_entity("areas").table),
                self.store.count(get_entity("canals").table),
                self.store.count(get_entity("gates").table),
                self.store.count(get_entity("monitoring").table),
                self.store.count(get_entity("alerts").table, {"type": "critical", "is_read": False}),
            )
        except StoreError as exc:
            if self._detached or generation != self._generation:
                return self.stats
            self.loading = False
            self.error = str(exc)
            self._changed()
            raise FetchError(f"Failed to load dashboard summary: {exc}", "dashboard") from exc

        if self._detached or generation != self._generation:
            return self.stats

        self.stats = DashboardStats(
            total_areas=areas,
            total_canals=canals,
            total_gates=gates,
            active_monitoring=monitoring,
            critical_alerts=critical,
            water_volume=self.water_volume,
        )
        self.loading = False
        self.error = ""
        self.last_update = datetime.now(timezone.utc)
        self._changed()
        return self.stats

    async def refresh(self) -> bool:
        try:
            await self.load()
            return True
        except FetchError as exc:
            if self.notifier is not None and not self._detached:
                self.notifier.error(self.label, "load", "dashboard", detail=str(exc.__cause__ or exc))
            return False

    def detach(self):
        self._detached = True
        self._listeners.clear()
        self.loading = False

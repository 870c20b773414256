"""
Dashboard State
- Summary counters recomputed whenever any mirrored table changes
- Same queue-driven streaming loop as the list pages
"""
import reflex as rx
import asyncio
from datetime import datetime
from typing import Any, Dict

from reflex.utils import console

from irrigation_app.runtime import runtime
from irrigation_app.states.entity_base import DISPLAY_TZ, WAKE_INTERVAL, toast_for
from irrigation_app.sync.notifications import Notification, Notifier


class DashboardState(rx.State):
    """Dashboard summary counters"""

    stats: Dict[str, Any] = {
        "total_areas": 0,
        "total_canals": 0,
        "total_gates": 0,
        "active_monitoring": 0,
        "critical_alerts": 0,
        "water_volume": 0.0,
    }

    loading: bool = True
    error_message: str = ""
    last_update: str = ""
    live: bool = False

    @rx.var
    def water_volume_label(self) -> str:
        volume = float(self.stats.get("water_volume", 0) or 0)
        return f"{volume / 1_000_000:.1f} juta m³"

    def _sync_from(self, view):
        self.stats = view.mirror.snapshot().to_dict()
        self.loading = view.mirror.loading
        self.error_message = view.mirror.error
        self.live = view.live
        self.last_update = datetime.now(DISPLAY_TZ).strftime("%H:%M:%S")

    @rx.event(background=True)
    async def on_mount(self):
        async with self:
            token = self.router.session.client_token
            self.loading = True

        queue: asyncio.Queue = asyncio.Queue()
        notifier = Notifier()
        notifier.add_sink(queue.put_nowait)

        view = await runtime.require().open_dashboard(token, notifier)
        view.mirror.add_listener(lambda _mirror: queue.put_nowait(None))
        console.info(f"Dashboard mounted for {token[:8]}")

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

    @rx.event(background=True)
    async def on_unmount(self):
        async with self:
            token = self.router.session.client_token
        await runtime.require().close(token, "dashboard")

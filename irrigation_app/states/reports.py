"""
Reports State
- Period, area and condition filters over the mirrored readings
- Rows recomputed locally whenever a filter or any source table changes
"""
import reflex as rx
import asyncio
from datetime import datetime
from typing import Any, Dict, List

from reflex.utils import console

from irrigation_app.runtime import runtime
from irrigation_app.services import filters
from irrigation_app.states.entity_base import DISPLAY_TZ, WAKE_INTERVAL, display_record, toast_for
from irrigation_app.sync.notifications import Notification, Notifier


def month_to_date() -> tuple:
    """Default period: first of the current month through today (display timezone)"""
    today = datetime.now(DISPLAY_TZ).date()
    return today.replace(day=1).isoformat(), today.isoformat()


class ReportsState(rx.State):
    """Laporan monitoring"""

    start_date: str = ""
    end_date: str = ""
    area_filter: str = "all"
    condition_filter: str = "all"

    rows: List[Dict] = []
    summary: Dict[str, Any] = filters.report_summary([])
    area_options: List[Dict[str, str]] = []

    loading: bool = True
    error_message: str = ""
    last_update: str = ""
    live: bool = False

    @rx.var
    def record_count(self) -> int:
        return len(self.rows)

    @rx.var
    def period_label(self) -> str:
        return f"{self.start_date or '...'} s/d {self.end_date or '...'}"

    def _sync_from(self, view):
        rows = view.rows(
            filters.parse_day(self.start_date),
            filters.parse_day(self.end_date),
            self.area_filter,
            self.condition_filter,
        )
        self.rows = [display_record(r) for r in rows]
        self.summary = filters.report_summary(rows)
        self.area_options = view.area_options()
        self.loading = view.loading
        self.error_message = view.error
        self.live = view.live
        self.last_update = datetime.now(DISPLAY_TZ).strftime("%H:%M:%S")

    def _apply_filters(self):
        view = runtime.require().get(self.router.session.client_token, "reports")
        if view is not None:
            self._sync_from(view)

    @rx.event
    def set_start_date(self, value: str):
        self.start_date = value
        self._apply_filters()

    @rx.event
    def set_end_date(self, value: str):
        self.end_date = value
        self._apply_filters()

    @rx.event
    def set_area_filter(self, value: str):
        self.area_filter = value
        self._apply_filters()

    @rx.event
    def set_condition_filter(self, value: str):
        self.condition_filter = value
        self._apply_filters()

    @rx.event
    def reset_filters(self):
        self.start_date, self.end_date = month_to_date()
        self.area_filter = "all"
        self.condition_filter = "all"
        self._apply_filters()

    @rx.event(background=True)
    async def on_mount(self):
        async with self:
            token = self.router.session.client_token
            self.loading = True
            if not self.start_date and not self.end_date:
                self.start_date, self.end_date = month_to_date()

        queue: asyncio.Queue = asyncio.Queue()
        notifier = Notifier()
        notifier.add_sink(queue.put_nowait)

        view = await runtime.require().open_report(token, notifier)
        view.add_listener(lambda _mirror: queue.put_nowait(None))
        console.info(f"Reports mounted for {token[:8]}")

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
        await runtime.require().close(token, "reports")

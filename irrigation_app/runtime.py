"""
App runtime
- Owns the SyncContext between app startup and shutdown (Reflex lifespan task)
- Tracks the views each browser session has mounted
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, Optional, Tuple

from reflex.utils import console

from irrigation_app.config import Settings
from irrigation_app.sync.context import DashboardView, EntityView, ReportView, SyncContext, View
from irrigation_app.sync.notifications import Notifier
from irrigation_app.utils.secure_config import SecureConfig, mask_secret

ViewKey = Tuple[str, str]


class ViewRegistry:
    """(client token, page key) -> mounted view"""

    def __init__(self, context: SyncContext):
        self.context = context
        self._views: Dict[ViewKey, View] = {}

    async def open(self, token: str, entity_name: str, notifier: Notifier) -> EntityView:
        """Replace any view this client still has for the entity"""
        await self.close(token, entity_name)
        view = self.context.open_view(entity_name, notifier)
        self._views[(token, entity_name)] = view
        return view

    async def open_dashboard(self, token: str, notifier: Notifier) -> DashboardView:
        await self.close(token, "dashboard")
        view = self.context.open_dashboard(notifier)
        self._views[(token, "dashboard")] = view
        return view

    async def open_report(self, token: str, notifier: Notifier) -> ReportView:
        await self.close(token, "reports")
        view = self.context.open_report(notifier)
        self._views[(token, "reports")] = view
        return view

    def get(self, token: str, key: str) -> Optional[View]:
        return self._views.get((token, key))

    async def close(self, token: str, key: str):
        view = self._views.pop((token, key), None)
        if view is not None:
            await view.unmount()


class Runtime:
    def __init__(self):
        self.context: Optional[SyncContext] = None
        self.registry: Optional[ViewRegistry] = None

    def require(self) -> ViewRegistry:
        if self.registry is None:
            raise RuntimeError("Sync runtime is not started")
        return self.registry

    async def start(self, settings: Optional[Settings] = None):
        settings = settings or Settings.from_env(SecureConfig())
        console.info(f"Starting sync runtime ({mask_secret(settings.dsn)})")
        self.context = SyncContext.from_settings(settings)
        self.registry = ViewRegistry(self.context)

    async def stop(self):
        if self.context is not None:
            await self.context.close()
            console.info("Sync runtime stopped")
        self.context = None
        self.registry = None


runtime = Runtime()


@asynccontextmanager
async def sync_lifespan():
    """Reflex lifespan task: store up at startup, torn down at exit"""
    await runtime.start()
    try:
        yield
    finally:
        await runtime.stop()

"""
Change Subscription Manager
- One push channel per entity table for a mounted view
- Change events carry no trusted payload; handlers refetch
"""
from __future__ import annotations

import inspect
import itertools
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

from irrigation_app.models.entities import get_entity
from irrigation_app.store import Channel, RemoteStore
from irrigation_app.sync.errors import StoreError, SubscriptionError
from irrigation_app.sync.mirror import EntityMirror
from irrigation_app.sync.notifications import Notifier
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

OnChange = Callable[[], Union[None, Awaitable[None]]]

# shared by every manager; the store keys channels by name process-wide
_channel_ids = itertools.count(1)


class Subscription:
    """Handle for one open channel; unsubscribe() is idempotent"""

    def __init__(self, manager: "ChangeSubscriptionManager", channel: Channel, entity_names: tuple):
        self._manager = manager
        self.channel = channel
        self.entity_names = entity_names
        self.closed = False

    @property
    def name(self) -> str:
        return self.channel.name

    async def unsubscribe(self):
        """Close the channel; on_change is never called after this returns"""
        if self.closed:
            return
        self.closed = True
        # deactivate first so queued deliveries are dropped even if removal fails
        self.channel.active = False
        await self._manager._release(self)

    def __repr__(self):
        return f"<Subscription {self.name} closed={self.closed}>"


class ChangeSubscriptionManager:
    """Opens/closes push channels and routes change events to handlers"""

    def __init__(self, store: RemoteStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def active(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    @staticmethod
    def _channel_name(entity_names: tuple) -> str:
        tables = "+".join(get_entity(name).table for name in entity_names)
        return f"{tables}_realtime_{next(_channel_ids)}"

    async def subscribe(self, entity_name: str, on_change: OnChange) -> Subscription:
        """Open exactly one channel for the entity's table.

        Raises SubscriptionError if the channel cannot be opened.
        """
        return await self.subscribe_many((entity_name,), on_change)

    async def subscribe_many(self, entity_names: Iterable[str], on_change: OnChange) -> Subscription:
        """One channel with a binding per dependency table, all feeding on_change"""
        names = tuple(entity_names)
        if not names:
            raise ValueError("subscribe_many needs at least one entity")

        channel = self.store.channel(self._channel_name(names))
        subscription = Subscription(self, channel, names)

        async def handler(_change: dict):
            if subscription.closed:
                return
            result = on_change()
            if inspect.isawaitable(result):
                await result

        for name in names:
            channel.on("*", get_entity(name).table, handler)

        try:
            await channel.subscribe()
        except StoreError as exc:
            logger.warning(f"Channel {channel.name} failed to open: {exc}")
            raise SubscriptionError(f"Live updates unavailable for {', '.join(names)}: {exc}", names[0]) from exc

        self._subscriptions[channel.name] = subscription
        logger.info(f"Subscribed {channel.name}")
        return subscription

    async def watch(self, mirror: EntityMirror) -> Optional[Subscription]:
        """Subscribe a mirror so every change triggers mirror.refresh().

        A channel failure is reported as an error notification and None is
        returned; the mirror still works with fetch-on-mount only.
        """
        try:
            return await self.subscribe(mirror.spec.name, mirror.refresh)
        except SubscriptionError as exc:
            if self.notifier is not None:
                self.notifier.error(mirror.spec.label, "subscribe", mirror.spec.name, detail="live updates unavailable")
            logger.warning(str(exc))
            return None

    async def _release(self, subscription: Subscription):
        self._subscriptions.pop(subscription.name, None)
        try:
            await self.store.remove_channel(subscription.channel)
        except StoreError as exc:
            logger.warning(f"remove_channel {subscription.name} failed: {exc}")
        logger.info(f"Unsubscribed {subscription.name}")

    async def close(self):
        """Tear down every subscription this manager opened"""
        for subscription in list(self._subscriptions.values()):
            await subscription.unsubscribe()

import pytest

from conftest import area_row
from irrigation_app.models.entities import get_entity
from irrigation_app.sync.errors import StoreError, SubscriptionError
from irrigation_app.sync.mirror import EntityMirror
from irrigation_app.sync.subscriptions import ChangeSubscriptionManager


async def test_subscribe_opens_one_channel_for_the_table(store):
    manager = ChangeSubscriptionManager(store)
    calls = []

    subscription = await manager.subscribe("canals", lambda: calls.append(1))

    assert list(store.channels) == [subscription.name]
    assert subscription.name.startswith("canals_realtime_")
    bindings = store.channels[subscription.name].bindings
    assert [(event, table) for event, table, _ in bindings] == [("*", "canals")]


async def test_change_on_table_invokes_handler(store):
    manager = ChangeSubscriptionManager(store)
    calls = []
    await manager.subscribe("gates", lambda: calls.append("gates"))

    await store.emit("gates", "UPDATE")
    await store.emit("canals", "INSERT")

    assert calls == ["gates"]


async def test_async_handler_is_awaited(store):
    manager = ChangeSubscriptionManager(store)
    calls = []

    async def on_change():
        calls.append("done")

    await manager.subscribe("alerts", on_change)
    await store.emit("alerts", "DELETE")

    assert calls == ["done"]


async def test_unsubscribe_is_idempotent_and_stops_delivery(store):
    manager = ChangeSubscriptionManager(store)
    calls = []
    subscription = await manager.subscribe("areas", lambda: calls.append(1))
    channel = subscription.channel

    await subscription.unsubscribe()
    await subscription.unsubscribe()

    assert store.channels == {}
    assert store.ops().count("remove_channel") == 1
    # a delivery already queued before removal must not reach the handler
    await channel.deliver({"table": "irrigation_areas", "event": "INSERT"})
    assert calls == []


async def test_remove_failure_still_closes_subscription(store):
    manager = ChangeSubscriptionManager(store)
    calls = []
    subscription = await manager.subscribe("areas", lambda: calls.append(1))
    store.failures["remove_channel"] = StoreError("socket closed")

    await subscription.unsubscribe()
    await store.emit("irrigation_areas")

    assert subscription.closed
    assert manager.active == []
    assert calls == []


async def test_open_failure_raises_subscription_error(store):
    manager = ChangeSubscriptionManager(store)
    store.failures["open_channel"] = StoreError("LISTEN failed")

    with pytest.raises(SubscriptionError):
        await manager.subscribe("areas", lambda: None)

    assert manager.active == []


async def test_watch_failure_notifies_and_returns_none(store, notifier, messages):
    manager = ChangeSubscriptionManager(store, notifier)
    mirror = EntityMirror(get_entity("areas"), store, notifier)
    store.failures["open_channel"] = StoreError("LISTEN failed")

    assert await manager.watch(mirror) is None
    assert messages == ["Failed to subscribe to area updates: live updates unavailable"]


async def test_watch_refetches_on_change(store):
    manager = ChangeSubscriptionManager(store)
    mirror = EntityMirror(get_entity("areas"), store)
    await manager.watch(mirror)
    area_row(store, "Daerah Baru")

    await store.emit("irrigation_areas", "INSERT")

    assert [r["name"] for r in mirror.snapshot()] == ["Daerah Baru"]


async def test_subscribe_many_binds_every_dependency(store):
    manager = ChangeSubscriptionManager(store)
    calls = []

    subscription = await manager.subscribe_many(("areas", "alerts"), lambda: calls.append(1))
    await store.emit("alerts")
    await store.emit("irrigation_areas")

    assert len(store.channels) == 1
    tables = [table for _, table, _ in subscription.channel.bindings]
    assert tables == ["irrigation_areas", "alerts"]
    assert calls == [1, 1]


async def test_channel_names_are_unique_per_subscription(store):
    manager = ChangeSubscriptionManager(store)

    first = await manager.subscribe("areas", lambda: None)
    second = await manager.subscribe("areas", lambda: None)

    assert first.name != second.name
    assert len(store.channels) == 2


async def test_close_tears_down_everything(store):
    manager = ChangeSubscriptionManager(store)
    await manager.subscribe("areas", lambda: None)
    await manager.subscribe("gates", lambda: None)

    await manager.close()

    assert store.channels == {}
    assert manager.active == []

import asyncio

from conftest import alert_row, area_row, settle
from irrigation_app.config import Settings
from irrigation_app.sync.context import SyncContext
from irrigation_app.sync.errors import StoreError
from irrigation_app.sync.notifications import Notifier


def context_for(store, notifier=None):
    return SyncContext(store, notifier, Settings(water_volume=42.0))


async def test_mount_subscribes_before_loading(store):
    view = context_for(store).open_view("areas")

    assert await view.mount() is True

    ops = store.ops()
    assert ops.index("open_channel") < ops.index("select")
    assert view.live


async def test_mount_twice_is_a_noop(store):
    view = context_for(store).open_view("areas")
    await view.mount()
    await view.mount()

    assert store.ops().count("open_channel") == 1


async def test_change_event_refreshes_view(store):
    view = context_for(store).open_view("areas")
    await view.mount()

    area_row(store, "Daerah Baru")
    await store.emit("irrigation_areas", "INSERT")

    assert [r["name"] for r in view.records] == ["Daerah Baru"]


async def test_subscription_failure_still_loads(store, notifier, messages):
    area_row(store)
    store.failures["open_channel"] = StoreError("LISTEN failed")
    view = context_for(store, notifier).open_view("areas")

    assert await view.mount() is True

    assert len(view.records) == 1
    assert not view.live
    assert messages == ["Failed to subscribe to area updates: live updates unavailable"]


async def test_unmount_releases_everything(store):
    context = context_for(store)
    view = context.open_view("areas")
    await view.mount()

    await view.unmount()

    assert store.channels == {}
    assert view.mirror.detached
    assert context.views == []
    # events after unmount reach nobody
    await store.emit("irrigation_areas")
    assert store.ops().count("select") == 1


async def test_writes_through_view_patch_its_records(store, notifier, messages):
    view = context_for(store, notifier).open_view("alerts")
    await view.mount()

    record = await view.create({"type": "info", "title": "Jadwal pemeliharaan", "location": "BK-1"})
    assert view.records == [record]

    await view.update(record["id"], {"is_read": True})
    assert view.records[0]["is_read"] is True

    await view.delete(record["id"])
    assert view.records == []
    assert messages == ["Alert created", "Alert updated", "Alert deleted"]


async def test_views_use_their_own_notifier(store):
    shared, personal = Notifier(), Notifier()
    context = context_for(store, shared)
    personal_messages = []
    personal.add_sink(lambda n: personal_messages.append(n.message))
    shared_messages = []
    shared.add_sink(lambda n: shared_messages.append(n.message))

    view = context.open_view("alerts", personal)
    await view.mount()
    await view.create({"type": "info", "title": "x", "location": "y"})

    assert personal_messages == ["Alert created"]
    assert shared_messages == []


async def test_two_views_of_one_entity_are_independent(store):
    context = context_for(store)
    first = context.open_view("alerts")
    second = context.open_view("alerts")
    await first.mount()
    await second.mount()

    await first.unmount()
    alert_row(store, "Banjir", type="critical")
    await store.emit("alerts")

    assert first.records == []
    assert [r["title"] for r in second.records] == ["Banjir"]


async def test_dashboard_view_uses_configured_volume(store):
    view = context_for(store).open_dashboard()

    assert await view.mount() is True
    assert view.mirror.snapshot().water_volume == 42.0
    assert view.live

    area_row(store)
    await store.emit("irrigation_areas")
    assert view.mirror.snapshot().total_areas == 1


async def test_close_unmounts_views_and_store(store):
    context = context_for(store)
    view = context.open_view("gates")
    await view.mount()

    await context.close()

    assert not view.mounted
    assert store.closed
    assert context.views == []


async def test_push_during_create_yields_one_record(store, notifier):
    view = context_for(store, notifier).open_view("alerts")
    await view.mount()
    release = store.hold("insert")

    task = asyncio.create_task(view.create({"type": "warning", "title": "Debit naik", "location": "BK-3"}))
    await settle()
    # the change feed announces the row before the insert call returns
    await store.emit("alerts", "INSERT")
    release.set()
    record = await task

    assert [r["id"] for r in view.records] == [record["id"]]

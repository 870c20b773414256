import asyncio

import pytest

from conftest import alert_row, area_row, canal_row, settle
from irrigation_app.models.entities import get_entity
from irrigation_app.sync.coordinator import MutationCoordinator
from irrigation_app.sync.errors import StoreError, WriteError
from irrigation_app.sync.mirror import EntityMirror


@pytest.fixture
def area(store):
    return area_row(store, "Daerah Cikarang")


async def mounted(name, store, notifier):
    mirror = EntityMirror(get_entity(name), store, notifier)
    await mirror.load()
    coordinator = MutationCoordinator(store, notifier)
    coordinator.register(mirror)
    return mirror, coordinator


def canal_payload(area_id, **extra):
    payload = {
        "area_id": area_id,
        "name": "Saluran Sekunder",
        "length": 1200.0,
        "width": 2.0,
        "capacity": 3.5,
        "status": "good",
    }
    payload.update(extra)
    return payload


async def test_create_patches_mirror_with_joined_record(store, notifier, messages, area):
    mirror, coordinator = await mounted("canals", store, notifier)

    record = await coordinator.create("canals", canal_payload(area["id"]))

    assert record is not None
    assert record["area_name"] == "Daerah Cikarang"
    assert mirror.snapshot() == [record]
    assert messages == ["Canal created"]


async def test_create_missing_required_field_never_reaches_store(store, notifier, messages, area):
    mirror, coordinator = await mounted("canals", store, notifier)

    record = await coordinator.create("canals", canal_payload(area["id"], name="  "))

    assert record is None
    assert "insert" not in store.ops()
    assert mirror.snapshot() == []
    assert coordinator.last_error.validation
    assert coordinator.last_error.missing_fields == ("name",)
    assert messages == ["Failed to create canal: missing name"]


async def test_create_unknown_field_is_rejected(store, notifier, messages, area):
    _, coordinator = await mounted("canals", store, notifier)

    record = await coordinator.create("canals", canal_payload(area["id"], colour="blue"))

    assert record is None
    assert "insert" not in store.ops()
    assert coordinator.last_error.unknown_fields == ("colour",)


async def test_store_failure_leaves_mirror_untouched(store, notifier, messages, area):
    mirror, coordinator = await mounted("canals", store, notifier)
    store.failures["insert"] = StoreError("duplicate key")

    record = await coordinator.create("canals", canal_payload(area["id"]))

    assert record is None
    assert mirror.snapshot() == []
    assert isinstance(coordinator.last_error, WriteError)
    assert not coordinator.last_error.validation
    assert messages == ["Failed to create canal"]


async def test_update_replaces_with_store_record(store, notifier, messages, area):
    canal = canal_row(store, area["id"], "Saluran Lama")
    mirror, coordinator = await mounted("canals", store, notifier)

    record = await coordinator.update("canals", canal["id"], {"status": "needs_repair"})

    assert record["status"] == "needs_repair"
    # fields not in the partial come from the store
    assert record["name"] == "Saluran Lama"
    assert mirror.get(canal["id"]) == record
    assert messages == ["Canal updated"]


async def test_update_blanking_required_field_is_rejected(store, notifier, messages, area):
    canal = canal_row(store, area["id"])
    _, coordinator = await mounted("canals", store, notifier)

    assert await coordinator.update("canals", canal["id"], {"name": ""}) is None
    assert "update" not in store.ops()


async def test_update_unknown_id_reports_error(store, notifier, messages):
    mirror, coordinator = await mounted("areas", store, notifier)

    assert await coordinator.update("areas", "missing", {"status": "inactive"}) is None
    assert messages == ["Failed to update area"]
    assert mirror.snapshot() == []


async def test_delete_removes_record(store, notifier, messages, area):
    mirror, coordinator = await mounted("areas", store, notifier)

    assert await coordinator.delete("areas", area["id"]) is True
    assert mirror.snapshot() == []
    assert messages == ["Area deleted"]


async def test_delete_failure_keeps_record(store, notifier, messages, area):
    mirror, coordinator = await mounted("areas", store, notifier)
    store.failures["delete"] = StoreError("foreign key violation")

    assert await coordinator.delete("areas", area["id"]) is False
    assert [r["id"] for r in mirror.snapshot()] == [area["id"]]
    assert messages == ["Failed to delete area"]


async def test_in_flight_while_store_call_pending(store, notifier, area):
    _, coordinator = await mounted("canals", store, notifier)
    release = store.hold("insert")

    task = asyncio.create_task(coordinator.create("canals", canal_payload(area["id"])))
    await settle()
    assert coordinator.in_flight("canals")

    release.set()
    await task
    assert not coordinator.in_flight("canals")


async def test_concurrent_creates_both_land(store, notifier, area):
    mirror, coordinator = await mounted("canals", store, notifier)

    first, second = await asyncio.gather(
        coordinator.create("canals", canal_payload(area["id"], name="Saluran 1")),
        coordinator.create("canals", canal_payload(area["id"], name="Saluran 2")),
    )

    assert {r["name"] for r in mirror.snapshot()} == {"Saluran 1", "Saluran 2"}
    assert not coordinator.in_flight("canals")


async def test_write_without_registered_mirror(store, notifier, messages):
    coordinator = MutationCoordinator(store, notifier)

    record = await coordinator.create("alerts", {"type": "critical", "title": "Banjir", "location": "BK-2"})

    assert record["is_read"] is False
    assert messages == ["Alert created"]


async def test_unregistered_mirror_is_not_patched(store, notifier, area):
    mirror, coordinator = await mounted("canals", store, notifier)
    coordinator.unregister(mirror)

    await coordinator.create("canals", canal_payload(area["id"]))

    assert mirror.snapshot() == []


def test_validate_reports_all_problems():
    spec = get_entity("alerts")

    with pytest.raises(WriteError) as info:
        MutationCoordinator.validate(spec, {"title": "x", "severity": "high"})

    assert info.value.missing_fields == ("location", "type")
    assert info.value.unknown_fields == ("severity",)
    assert info.value.operation == "create"


async def test_update_many_notifies_once(store, notifier, messages):
    first = alert_row(store, "Debit tinggi")
    second = alert_row(store, "Pintu macet", type="critical")
    mirror, coordinator = await mounted("alerts", store, notifier)

    records = await coordinator.update_many("alerts", [first["id"], second["id"]], {"is_read": True})

    assert len(records) == 2
    assert all(r["is_read"] for r in mirror.snapshot())
    assert messages == ["2 alerts updated"]


async def test_update_many_with_no_ids_does_nothing(store, notifier, messages):
    _, coordinator = await mounted("alerts", store, notifier)

    assert await coordinator.update_many("alerts", [], {"is_read": True}) == []
    assert "update" not in store.ops()
    assert messages == []


async def test_update_many_failure_reports_once(store, notifier, messages):
    alert = alert_row(store)
    mirror, coordinator = await mounted("alerts", store, notifier)
    store.failures["update"] = StoreError("permission denied")

    assert await coordinator.update_many("alerts", [alert["id"]], {"is_read": True}) == []
    assert mirror.snapshot()[0]["is_read"] is False
    assert messages == ["Failed to update alert"]

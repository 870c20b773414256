from datetime import date

import pytest

from conftest import area_row, canal_row, gate_row, reading_row
from irrigation_app.config import Settings
from irrigation_app.sync.context import SyncContext


@pytest.fixture
def network(store):
    north = area_row(store, "Daerah Utara")
    south = area_row(store, "Daerah Selatan")
    north_gate = gate_row(store, canal_row(store, north["id"], "Saluran Utara")["id"], "Pintu U-1")
    south_gate = gate_row(store, canal_row(store, south["id"], "Saluran Selatan")["id"], "Pintu S-1")
    return north, south, north_gate, south_gate


async def mounted_report(store):
    view = SyncContext(store, None, Settings()).open_report()
    assert await view.mount() is True
    return view


async def test_report_reads_whole_table_beyond_list_limit(store, network):
    _, _, gate, _ = network
    for _ in range(105):
        reading_row(store, gate["id"])

    view = await mounted_report(store)

    assert len(view.rows()) == 105


async def test_area_filter_resolves_gates_through_canals(store, network):
    north, _, north_gate, south_gate = network
    reading_row(store, north_gate["id"])
    reading_row(store, south_gate["id"], condition="critical")

    view = await mounted_report(store)

    assert [r["gate_name"] for r in view.rows(area_id=north["id"])] == ["Pintu U-1"]
    assert [r["gate_name"] for r in view.rows(condition="critical")] == ["Pintu S-1"]
    assert [a["name"] for a in view.area_options()] == ["Daerah Selatan", "Daerah Utara"]


async def test_rows_are_newest_first_and_follow_changes(store, network):
    _, _, gate, _ = network
    first = reading_row(store, gate["id"])
    view = await mounted_report(store)
    assert view.live

    second = reading_row(store, gate["id"], condition="warning")
    await store.emit("monitoring_data", "INSERT")

    assert [r["id"] for r in view.rows()] == [second["id"], first["id"]]


async def test_period_uses_local_calendar_days(store, network):
    _, _, gate, _ = network
    reading_row(store, gate["id"])
    view = await mounted_report(store)

    # readings are stamped 2026-01-01 around 08:00 UTC, 15:00 in Jakarta
    assert len(view.rows(date(2026, 1, 1), date(2026, 1, 1))) == 1
    assert view.rows(start=date(2026, 2, 1)) == []
    assert view.rows(end=date(2025, 12, 31)) == []


async def test_unmount_closes_every_source(store, network):
    view = await mounted_report(store)

    await view.unmount()

    assert store.channels == {}
    assert all(m.detached for m in view.mirrors.values())

from datetime import date, datetime, timezone

from irrigation_app.services import filters

READINGS = [
    # 23:30 UTC on the 1st is already the 2nd in Jakarta (UTC+7)
    {"id": "r1", "gate_id": "g1", "condition": "critical", "video_url": "https://v/1",
     "recorded_at": datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)},
    {"id": "r2", "gate_id": "g2", "condition": "warning", "video_url": None,
     "recorded_at": datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)},
    {"id": "r3", "gate_id": "g1", "condition": "normal", "video_url": "https://v/3",
     "recorded_at": datetime(2026, 2, 27, 2, 0, tzinfo=timezone.utc)},
]


def test_search_is_case_insensitive_across_fields():
    records = [
        {"name": "Saluran Induk", "area_name": "Cikarang"},
        {"name": "Saluran Sekunder", "area_name": "Bekasi"},
    ]

    assert filters.search(records, "cikar", ("name", "area_name")) == records[:1]
    assert filters.search(records, "  ", ("name",)) == records


def test_search_tolerates_missing_fields():
    assert filters.search([{"name": None}], "x", ("name", "other")) == []


def test_date_range_uses_local_calendar():
    rows = filters.filter_by_date_range(READINGS, date(2026, 3, 2), date(2026, 3, 2))

    assert [r["id"] for r in rows] == ["r1"]


def test_date_range_open_ends():
    assert len(filters.filter_by_date_range(READINGS, None, None)) == 3
    assert [r["id"] for r in filters.filter_by_date_range(READINGS, None, date(2026, 2, 28))] == ["r3"]


def test_date_range_accepts_iso_strings():
    rows = [{"recorded_at": "2026-03-01T10:00:00+00:00"}, {"recorded_at": "not a date"}]

    assert filters.filter_by_date_range(rows, date(2026, 3, 1), None) == rows[:1]


def test_category_filter_all_keeps_everything():
    assert filters.filter_by_category(READINGS, "condition", "all") == READINGS
    assert [r["id"] for r in filters.filter_by_category(READINGS, "condition", "warning")] == ["r2"]


def test_sort_puts_missing_keys_last():
    records = [{"n": 2}, {"n": None}, {"n": 1}]

    assert filters.sort_records(records, "n") == [{"n": 1}, {"n": 2}, {"n": None}]
    assert filters.sort_records(records, "n", descending=True)[0] == {"n": 2}


def test_monitoring_summary():
    summary = filters.monitoring_summary(READINGS, today=date(2026, 3, 1))

    assert summary == {"today": 1, "warning": 1, "critical": 1, "total": 3}


def test_recent_videos_and_unread_alerts():
    assert [r["id"] for r in filters.recent_videos(READINGS, limit=1)] == ["r1"]
    alerts = [{"id": 1, "is_read": True}, {"id": 2, "is_read": False}, {"id": 3}]
    assert [a["id"] for a in filters.unread_alerts(alerts)] == [2, 3]


def test_report_rows_for_an_area():
    gates = [{"id": "g1", "canal_id": "c1"}, {"id": "g2", "canal_id": "c2"}]
    canals = [{"id": "c1", "area_id": "a1"}, {"id": "c2", "area_id": "a2"}]
    gate_ids = filters.gates_in_area(gates, canals, "a1")

    rows = filters.report_rows(READINGS, date(2026, 2, 1), date(2026, 3, 31), gate_ids=gate_ids)

    assert gate_ids == ["g1"]
    assert [r["id"] for r in rows] == ["r1", "r3"]


def test_status_counts():
    assert filters.status_counts([{"status": "open"}, {"status": "open"}, {"status": "closed"}, {}]) == {
        "open": 2,
        "closed": 1,
    }


def test_parse_day():
    assert filters.parse_day("2026-03-01") == date(2026, 3, 1)
    assert filters.parse_day("") is None
    assert filters.parse_day("01/03/2026") is None


def test_report_summary():
    rows = [
        {"water_level": 1.0, "discharge": 2.0, "condition": "normal"},
        {"water_level": 2.0, "discharge": None, "condition": "critical"},
    ]

    summary = filters.report_summary(rows)

    assert summary["total"] == 2
    assert summary["critical"] == 1 and summary["warning"] == 0
    assert summary["avg_water_level"] == 1.5
    assert summary["avg_discharge"] == 2.0
    assert filters.report_summary([])["avg_water_level"] == 0.0

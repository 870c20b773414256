"""
Client-side filtering over mirror snapshots
- Search, date range and category filters used by list pages and the reports page
- Pure functions: nothing here touches the store
"""
from typing import List, Dict, Any, Optional, Iterable
from datetime import date, datetime
from collections import Counter

import pytz

DEFAULT_TZ = "Asia/Jakarta"


def _as_date(value: Any, tz) -> Optional[date]:
    """Record field -> local calendar date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(tz).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return _as_date(datetime.fromisoformat(value), tz)
        except ValueError:
            return None
    return None


def search(records: List[Dict], query: str, fields: Iterable[str]) -> List[Dict]:
    """Case-insensitive substring match on any of the fields"""
    needle = (query or "").strip().lower()
    if not needle:
        return list(records)
    fields = tuple(fields)
    return [
        r for r in records
        if any(needle in str(r.get(f) or "").lower() for f in fields)
    ]


def filter_by_date_range(
    records: List[Dict],
    start: Optional[date],
    end: Optional[date],
    field: str = "recorded_at",
    tz_name: str = DEFAULT_TZ,
) -> List[Dict]:
    """Keep records whose local date falls in [start, end]; open ends allowed"""
    tz = pytz.timezone(tz_name)
    result = []
    for r in records:
        day = _as_date(r.get(field), tz)
        if day is None:
            continue
        if start and day < start:
            continue
        if end and day > end:
            continue
        result.append(r)
    return result


def filter_by_category(records: List[Dict], field: str, value: Optional[str]) -> List[Dict]:
    """Exact match on field; empty or 'all' keeps everything"""
    if not value or value == "all":
        return list(records)
    return [r for r in records if str(r.get(field)) == str(value)]


def sort_records(records: List[Dict], key: str, descending: bool = False) -> List[Dict]:
    """Sort by key, records missing the key last"""
    present = [r for r in records if r.get(key) is not None]
    missing = [r for r in records if r.get(key) is None]
    return sorted(present, key=lambda r: r[key], reverse=descending) + missing


def status_counts(records: List[Dict], field: str = "status") -> Dict[str, int]:
    return dict(Counter(str(r.get(field)) for r in records if r.get(field) is not None))


def monitoring_summary(
    readings: List[Dict],
    today: Optional[date] = None,
    tz_name: str = DEFAULT_TZ,
) -> Dict[str, int]:
    """Counts for the monitoring page header: today / warning / critical"""
    tz = pytz.timezone(tz_name)
    today = today or datetime.now(tz).date()
    return {
        "today": sum(1 for r in readings if _as_date(r.get("recorded_at"), tz) == today),
        "warning": sum(1 for r in readings if r.get("condition") == "warning"),
        "critical": sum(1 for r in readings if r.get("condition") == "critical"),
        "total": len(readings),
    }


def recent_videos(readings: List[Dict], limit: int = 5) -> List[Dict]:
    """Newest readings that carry a video link"""
    return [r for r in readings if r.get("video_url")][:limit]


def unread_alerts(alerts: List[Dict]) -> List[Dict]:
    return [a for a in alerts if not a.get("is_read", False)]


def report_rows(
    readings: List[Dict],
    start: Optional[date] = None,
    end: Optional[date] = None,
    gate_ids: Optional[Iterable[str]] = None,
    condition: Optional[str] = None,
    tz_name: str = DEFAULT_TZ,
) -> List[Dict]:
    """Report period filter: date range, optional gate set (an area's gates) and condition"""
    rows = filter_by_date_range(readings, start, end, "recorded_at", tz_name)
    if gate_ids is not None:
        allowed = set(gate_ids)
        rows = [r for r in rows if r.get("gate_id") in allowed]
    return filter_by_category(rows, "condition", condition)


def gates_in_area(gates: List[Dict], canals: List[Dict], area_id: str) -> List[str]:
    """Gate ids under an area, resolved through the canal list"""
    canal_ids = {c["id"] for c in canals if c.get("area_id") == area_id}
    return [g["id"] for g in gates if g.get("canal_id") in canal_ids]


def parse_day(value: Optional[str]) -> Optional[date]:
    """'YYYY-MM-DD' from a date input; blank or malformed means an open end"""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def report_summary(rows: List[Dict]) -> Dict[str, Any]:
    """Totals shown above the report table"""
    levels = [float(r["water_level"]) for r in rows if r.get("water_level") is not None]
    discharges = [float(r["discharge"]) for r in rows if r.get("discharge") is not None]
    conditions = status_counts(rows, "condition")
    return {
        "total": len(rows),
        "normal": conditions.get("normal", 0),
        "warning": conditions.get("warning", 0),
        "critical": conditions.get("critical", 0),
        "avg_water_level": round(sum(levels) / len(levels), 2) if levels else 0.0,
        "avg_discharge": round(sum(discharges) / len(discharges), 2) if discharges else 0.0,
    }

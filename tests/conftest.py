"""
Shared fixtures
- FakeStore: in-memory RemoteStore with scripted failures, held calls and change emission
- Row builders producing rows shaped like the PostgreSQL tables
"""
import asyncio
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from irrigation_app.store import Channel
from irrigation_app.sync.errors import StoreError
from irrigation_app.sync.notifications import Notifier

BASE_TIME = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


class FakeStore:
    """In-memory stand-in for PostgresStore.

    - ``failures[op] = exc`` makes the next ``op`` call raise ``exc``
    - ``hold(op)`` returns an Event; the next ``op`` call computes its result,
      then waits for the event before returning it
    - ``emit(table, event)`` delivers a change to the open channels
    """

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.channels: Dict[str, Channel] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self._holds: Dict[str, List[asyncio.Event]] = {}
        self._clock = itertools.count(1)
        self.closed = False

    # ---- scripting ------------------------------------------------------

    def hold(self, op: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds.setdefault(op, []).append(event)
        return event

    async def _enter(self, op: str, *args):
        self.calls.append((op,) + args)
        if op in self.failures:
            raise self.failures.pop(op)

    async def _release(self, op: str):
        holds = self._holds.get(op)
        if holds:
            await holds.pop(0).wait()

    def ops(self) -> List[str]:
        return [call[0] for call in self.calls]

    def next_time(self) -> datetime:
        return BASE_TIME + timedelta(minutes=next(self._clock))

    def seed(self, table: str, row: dict) -> dict:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        self.tables.setdefault(table, []).append(row)
        return row

    # ---- queries --------------------------------------------------------

    def _joined(self, row: dict, join) -> dict:
        row = dict(row)
        if join is not None:
            parent = next(
                (p for p in self.tables.get(join.parent_table, []) if p["id"] == row.get(join.foreign_key)),
                None,
            )
            row[join.alias] = parent.get(join.parent_field) if parent else None
        return row

    @staticmethod
    def _matches(row: dict, filters: Optional[Dict[str, Any]]) -> bool:
        return all(row.get(k) == v for k, v in (filters or {}).items())

    async def select(self, table, *, join=None, order_by=None, descending=True, limit=None, filters=None):
        await self._enter("select", table)
        rows = [self._joined(r, join) for r in self.tables.get(table, []) if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        await self._release("select")
        return rows

    async def insert(self, table, payload, *, join=None):
        await self._enter("insert", table, dict(payload))
        row = dict(payload)
        row["id"] = str(uuid.uuid4())
        stamp = self.next_time()
        row.setdefault("recorded_at" if table == "monitoring_data" else "created_at", stamp)
        self.tables.setdefault(table, []).append(row)
        await self._release("insert")
        return self._joined(row, join)

    async def update(self, table, id, payload, *, join=None):
        await self._enter("update", table, id, dict(payload))
        for row in self.tables.get(table, []):
            if row["id"] == id:
                row.update(payload)
                await self._release("update")
                return self._joined(row, join)
        raise StoreError(f"update {table}: no row with id {id}")

    async def delete(self, table, id):
        await self._enter("delete", table, id)
        self.tables[table] = [r for r in self.tables.get(table, []) if r["id"] != id]
        await self._release("delete")

    async def count(self, table, filters=None):
        await self._enter("count", table, filters)
        await self._release("count")
        return sum(1 for r in self.tables.get(table, []) if self._matches(r, filters))

    # ---- channels -------------------------------------------------------

    def channel(self, name):
        return Channel(name).bind(self)

    async def open_channel(self, channel):
        await self._enter("open_channel", channel.name)
        if channel.name in self.channels:
            raise StoreError(f"Channel {channel.name} is already subscribed")
        channel.active = True
        self.channels[channel.name] = channel

    async def remove_channel(self, channel):
        await self._enter("remove_channel", channel.name)
        channel.active = False
        self.channels.pop(channel.name, None)

    async def emit(self, table: str, event: str = "INSERT"):
        change = {"table": table, "event": event}
        for channel in list(self.channels.values()):
            await channel.deliver(change)

    async def close(self):
        self.closed = True


# ---- row builders -----------------------------------------------------------

def area_row(store: FakeStore, name: str = "Daerah Cikarang", **extra) -> dict:
    row = {
        "name": name,
        "location": "Bekasi",
        "total_area": 1200.0,
        "status": "active",
        "lat": 0.0,
        "lng": 0.0,
        "created_at": store.next_time(),
        "updated_at": None,
    }
    row.update(extra)
    return store.seed("irrigation_areas", row)


def canal_row(store: FakeStore, area_id: str, name: str = "Saluran Induk", **extra) -> dict:
    row = {
        "area_id": area_id,
        "name": name,
        "length": 5000.0,
        "width": 4.5,
        "capacity": 12.0,
        "status": "good",
        "last_inspection": None,
        "created_at": store.next_time(),
        "updated_at": None,
    }
    row.update(extra)
    return store.seed("canals", row)


def gate_row(store: FakeStore, canal_id: str, name: str = "Pintu BK-1", **extra) -> dict:
    row = {
        "canal_id": canal_id,
        "name": name,
        "type": "distribution",
        "status": "open",
        "condition": "good",
        "last_maintenance": None,
        "created_at": store.next_time(),
        "updated_at": None,
    }
    row.update(extra)
    return store.seed("gates", row)


def reading_row(store: FakeStore, gate_id: str, condition: str = "normal", **extra) -> dict:
    row = {
        "gate_id": gate_id,
        "water_level": 1.25,
        "discharge": 3.4,
        "condition": condition,
        "recorded_by": None,
        "notes": None,
        "video_url": None,
        "recorded_at": store.next_time(),
    }
    row.update(extra)
    return store.seed("monitoring_data", row)


def alert_row(store: FakeStore, title: str = "Debit tinggi", type: str = "warning", **extra) -> dict:
    row = {
        "type": type,
        "title": title,
        "location": "Pintu BK-1",
        "is_read": False,
        "created_at": store.next_time(),
    }
    row.update(extra)
    return store.seed("alerts", row)


async def settle(rounds: int = 5):
    """Let pending tasks run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def messages(notifier):
    """Notification messages in emission order"""
    received: List[str] = []
    notifier.add_sink(lambda n: received.append(n.message))
    return received

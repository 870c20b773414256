"""
Remote store client
- RemoteStore protocol consumed by the sync layer
- PostgresStore: psycopg pool for queries, LISTEN/NOTIFY for row-change channels
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

import psycopg
import psycopg_pool
from psycopg import sql

from irrigation_app.config import Settings
from irrigation_app.db import Database
from irrigation_app.models.entities import JoinSpec
from irrigation_app.models.tables import table_columns
from irrigation_app.sync.errors import StoreError
from irrigation_app.utils.db_events import DatabaseEventListener
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

ChangeCallback = Callable[[dict], Union[None, Awaitable[None]]]

EVENTS = ("INSERT", "UPDATE", "DELETE", "*")


class Channel:
    """Named set of (event, table) bindings; inactive until subscribed"""

    def __init__(self, name: str):
        self.name = name
        self.bindings: List[Tuple[str, str, ChangeCallback]] = []
        self.active = False
        self._store: Optional["RemoteStore"] = None

    def on(self, event: str, table: str, callback: ChangeCallback) -> "Channel":
        event = event.upper()
        if event not in EVENTS:
            raise ValueError(f"Unknown change event: {event}")
        self.bindings.append((event, table, callback))
        return self

    def bind(self, store: "RemoteStore") -> "Channel":
        self._store = store
        return self

    async def subscribe(self) -> "Channel":
        if self._store is None:
            raise StoreError(f"Channel {self.name} is not bound to a store")
        await self._store.open_channel(self)
        return self

    def matches(self, event: str, table: str) -> List[ChangeCallback]:
        return [
            callback for bound_event, bound_table, callback in self.bindings
            if bound_table == table and bound_event in ("*", event)
        ]

    async def deliver(self, change: dict):
        """Invoke matching callbacks; a closed channel delivers nothing"""
        for callback in self.matches(change.get("event", ""), change.get("table", "")):
            if not self.active:
                return
            result = callback(change)
            if inspect.isawaitable(result):
                await result

    async def resync(self):
        """Invoke each bound callback once with a wildcard change for its table"""
        called = []
        for _, table, callback in self.bindings:
            if not self.active:
                return
            if any(callback is seen for seen in called):
                continue
            called.append(callback)
            result = callback({"table": table, "event": "*"})
            if inspect.isawaitable(result):
                await result

    def __repr__(self):
        return f"<Channel {self.name} active={self.active} bindings={len(self.bindings)}>"


class RemoteStore(Protocol):
    async def select(
        self,
        table: str,
        *,
        join: Optional[JoinSpec] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[dict]: ...

    async def insert(self, table: str, payload: Dict[str, Any], *, join: Optional[JoinSpec] = None) -> dict: ...

    async def update(self, table: str, id: str, payload: Dict[str, Any], *, join: Optional[JoinSpec] = None) -> dict: ...

    async def delete(self, table: str, id: str) -> None: ...

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int: ...

    def channel(self, name: str) -> Channel: ...

    async def open_channel(self, channel: Channel) -> None: ...

    async def remove_channel(self, channel: Channel) -> None: ...

    async def close(self) -> None: ...


# =========================================================================
# SQL builders
# =========================================================================

def _where(filters: Optional[Dict[str, Any]], alias: Optional[str] = "t") -> Tuple[sql.Composable, Dict[str, Any]]:
    if not filters:
        return sql.SQL(""), {}
    clauses = []
    params = {}
    for i, (column, value) in enumerate(sorted(filters.items())):
        key = f"f{i}"
        col = sql.Identifier(alias, column) if alias is not None else sql.Identifier(column)
        if value is None:
            clauses.append(sql.SQL("{} IS NULL").format(col))
        else:
            clauses.append(sql.SQL("{} = {}").format(col, sql.Placeholder(key)))
            params[key] = value
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


def _joined_projection(source: sql.Composable, join: Optional[JoinSpec]) -> sql.Composed:
    """SELECT t.* [, p.<field> AS <alias>] FROM <source> t [LEFT JOIN parent p ON p.id = t.fk]"""
    if join is None:
        return sql.SQL("SELECT t.* FROM {} AS t").format(source)
    return sql.SQL(
        "SELECT t.*, {parent_field} AS {alias} FROM {source} AS t "
        "LEFT JOIN {parent} AS p ON {parent_id} = {fk}"
    ).format(
        parent_field=sql.Identifier("p", join.parent_field),
        alias=sql.Identifier(join.alias),
        source=source,
        parent=sql.Identifier(join.parent_table),
        parent_id=sql.Identifier("p", "id"),
        fk=sql.Identifier("t", join.foreign_key),
    )


def build_select(
    table: str,
    join: Optional[JoinSpec] = None,
    order_by: Optional[str] = None,
    descending: bool = True,
    limit: Optional[int] = None,
    filters: Optional[Dict[str, Any]] = None,
) -> Tuple[sql.Composed, Dict[str, Any]]:
    query = _joined_projection(sql.Identifier(table), join)
    where, params = _where(filters)
    query = query + where
    if order_by:
        query += sql.SQL(" ORDER BY {} {}").format(
            sql.Identifier("t", order_by), sql.SQL("DESC" if descending else "ASC")
        )
    if limit is not None:
        query += sql.SQL(" LIMIT {}").format(sql.Literal(int(limit)))
    return query, params


def build_insert(table: str, payload: Dict[str, Any], join: Optional[JoinSpec] = None) -> Tuple[sql.Composed, Dict[str, Any]]:
    columns = sorted(payload)
    params = {f"v{i}": payload[c] for i, c in enumerate(columns)}
    if columns:
        insert = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder(f"v{i}") for i in range(len(columns))),
        )
    else:
        insert = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(sql.Identifier(table))
    query = sql.SQL("WITH written AS ({}) ").format(insert) + _joined_projection(sql.Identifier("written"), join)
    return query, params


def build_update(
    table: str,
    id: str,
    payload: Dict[str, Any],
    join: Optional[JoinSpec] = None,
    touch_updated_at: bool = True,
) -> Tuple[sql.Composed, Dict[str, Any]]:
    columns = sorted(payload)
    params = {f"v{i}": payload[c] for i, c in enumerate(columns)}
    params["id"] = id
    assignments = [
        sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder(f"v{i}"))
        for i, c in enumerate(columns)
    ]
    if touch_updated_at and "updated_at" not in payload:
        assignments.append(sql.SQL("updated_at = now()"))
    if not assignments:
        raise ValueError("update needs at least one column")
    update = sql.SQL("UPDATE {} SET {} WHERE id = {} RETURNING *").format(
        sql.Identifier(table), sql.SQL(", ").join(assignments), sql.Placeholder("id"),
    )
    query = sql.SQL("WITH written AS ({}) ").format(update) + _joined_projection(sql.Identifier("written"), join)
    return query, params


def build_delete(table: str, id: str) -> Tuple[sql.Composed, Dict[str, Any]]:
    query = sql.SQL("DELETE FROM {} WHERE id = {}").format(sql.Identifier(table), sql.Placeholder("id"))
    return query, {"id": id}


def build_count(table: str, filters: Optional[Dict[str, Any]] = None) -> Tuple[sql.Composed, Dict[str, Any]]:
    where, params = _where(filters)
    query = sql.SQL("SELECT count(*) AS n FROM {} AS t").format(sql.Identifier(table)) + where
    return query, params


# =========================================================================
# PostgreSQL implementation
# =========================================================================

_DB_ERRORS = (psycopg.Error, psycopg_pool.PoolTimeout, asyncio.TimeoutError, OSError)


class PostgresStore:
    """RemoteStore over a psycopg pool, with channels fed by one LISTEN connection"""

    def __init__(self, settings: Settings, database: Optional[Database] = None):
        self.settings = settings
        self.db = database or Database(settings)
        self._channels: Dict[str, Channel] = {}
        self._listener: Optional[DatabaseEventListener] = None
        self._listener_lock = asyncio.Lock()
        self._tasks: set = set()

    def _has_updated_at(self, table: str) -> bool:
        return "updated_at" in table_columns(table)

    async def _fetch(self, what: str, query, params) -> List[dict]:
        try:
            return await self.db.fetch(query, params)
        except _DB_ERRORS as exc:
            raise StoreError(f"{what} failed: {exc}") from exc

    async def select(self, table, *, join=None, order_by=None, descending=True, limit=None, filters=None):
        query, params = build_select(table, join, order_by, descending, limit, filters)
        return await self._fetch(f"select {table}", query, params)

    async def insert(self, table, payload, *, join=None):
        query, params = build_insert(table, payload, join)
        rows = await self._fetch(f"insert {table}", query, params)
        if not rows:
            raise StoreError(f"insert {table} returned no row")
        return rows[0]

    async def update(self, table, id, payload, *, join=None):
        query, params = build_update(table, id, payload, join, self._has_updated_at(table))
        rows = await self._fetch(f"update {table}", query, params)
        if not rows:
            raise StoreError(f"update {table}: no row with id {id}")
        return rows[0]

    async def delete(self, table, id):
        query, params = build_delete(table, id)
        try:
            await self.db.execute(query, params)
        except _DB_ERRORS as exc:
            raise StoreError(f"delete {table} failed: {exc}") from exc

    async def count(self, table, filters=None):
        query, params = build_count(table, filters)
        rows = await self._fetch(f"count {table}", query, params)
        return int(rows[0]["n"]) if rows else 0

    # ---------------------------------------------------------------------
    # Channels
    # ---------------------------------------------------------------------

    def channel(self, name: str) -> Channel:
        return Channel(name).bind(self)

    async def _ensure_listener(self):
        async with self._listener_lock:
            if self._listener is not None and self._listener.listening:
                return
            listener = DatabaseEventListener(self.db.connect_direct, self.settings.notify_channel)
            try:
                await listener.start(self._on_notify, on_reconnect=self._on_reconnect)
            except _DB_ERRORS as exc:
                raise StoreError(f"LISTEN {self.settings.notify_channel} failed: {exc}") from exc
            self._listener = listener

    async def open_channel(self, channel: Channel):
        if channel.name in self._channels:
            raise StoreError(f"Channel {channel.name} is already subscribed")
        await self._ensure_listener()
        channel.active = True
        self._channels[channel.name] = channel
        logger.info(f"Channel opened: {channel.name}")

    async def remove_channel(self, channel: Channel):
        channel.active = False
        if self._channels.get(channel.name) is channel:
            del self._channels[channel.name]
            logger.info(f"Channel removed: {channel.name}")

    async def _on_notify(self, payload: dict):
        """Fan a row-change notification out to matching channels"""
        change = {
            "table": payload.get("table", ""),
            "event": str(payload.get("event", "")).upper(),
        }
        for channel in list(self._channels.values()):
            if channel.matches(change["event"], change["table"]):
                self._spawn(channel.deliver(change), channel)

    async def _on_reconnect(self):
        """Changes may have been missed while LISTEN was down; every open channel refetches"""
        logger.info(f"Resyncing {len(self._channels)} channels after reconnect")
        for channel in list(self._channels.values()):
            self._spawn(channel.resync(), channel)

    def _spawn(self, coro, channel: Channel):
        # callbacks may refetch; don't block the receive loop on them
        task = asyncio.create_task(self._guarded(coro, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, coro, channel: Channel):
        try:
            await coro
        except Exception as e:
            logger.error(f"Change handler on {channel.name} failed: {e}", exc_info=True)

    async def close(self):
        for channel in list(self._channels.values()):
            await self.remove_channel(channel)
        if self._listener is not None:
            await self._listener.stop()
            self._listener = None
        for task in list(self._tasks):
            task.cancel()
        await self.db.close()

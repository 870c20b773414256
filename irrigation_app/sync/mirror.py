"""
Entity Mirror
- Local, ordered copy of one remote table as the UI should render it
- Full refetch via load(); id-keyed local patches via apply_*()
- Patches landing while a load is in flight are replayed onto its result
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from irrigation_app.models.entities import EntitySpec
from irrigation_app.store import RemoteStore
from irrigation_app.sync.errors import FetchError, StoreError
from irrigation_app.sync.notifications import Notifier
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

Record = Dict[str, Any]
Listener = Callable[["EntityMirror"], None]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class EntityMirror:
    """Mirror of one entity type, owned by a single mounted view"""

    def __init__(self, spec: EntitySpec, store: RemoteStore, notifier: Optional[Notifier] = None):
        self.spec = spec
        self.store = store
        self.notifier = notifier

        self._records: List[Record] = []
        self.loading: bool = False
        self.loaded: bool = False
        self.error: str = ""
        self.last_update: Optional[datetime] = None

        self._detached = False
        self._generation = 0
        # (op, args) journal of patches applied while a load is in flight
        self._journal: List[Tuple[str, tuple]] = []
        self._inflight = 0
        self._listeners: List[Listener] = []

    # =========================================================================
    # Read side
    # =========================================================================

    def snapshot(self) -> List[Record]:
        """Current ordered records (copy, no I/O)"""
        return list(self._records)

    def __len__(self):
        return len(self._records)

    def get(self, id: str) -> Optional[Record]:
        for record in self._records:
            if record["id"] == id:
                return record
        return None

    @property
    def detached(self) -> bool:
        return self._detached

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call listener after every snapshot change; returns a remover"""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self):
        self.last_update = datetime.now(timezone.utc)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Mirror listener failed ({self.spec.name}): {e}", exc_info=True)

    # =========================================================================
    # Full load
    # =========================================================================

    async def load(self) -> List[Record]:
        """Replace the snapshot with a fresh ordered query.

        Raises FetchError on failure; the previous snapshot is kept. A result
        that arrives after detach() or after a newer load started is dropped.
        """
        if self._detached:
            return self.snapshot()

        self._generation += 1
        generation = self._generation
        if self._inflight == 0:
            self._journal.clear()
        self._inflight += 1
        self.loading = True
        self._changed()

        try:
            rows = await self.store.select(
                self.spec.table,
                join=self.spec.join,
                order_by=self.spec.order_by,
                descending=True,
                limit=self.spec.limit,
            )
            records = [self.spec.normalize(row) for row in rows]

        except (StoreError, ValidationError) as exc:
            self._inflight -= 1
            if self._detached:
                logger.debug(f"Ignoring {self.spec.name} load failure after unmount: {exc}")
                return []
            if generation != self._generation:
                logger.debug(f"Ignoring superseded {self.spec.name} load failure: {exc}")
                return self._superseded()
            self.loading = self._inflight > 0
            self.error = str(exc)
            self._changed()
            logger.error(f"Load {self.spec.table} failed: {exc}")
            raise FetchError(f"Failed to load {self.spec.name}: {exc}", self.spec.name) from exc

        self._inflight -= 1

        if self._detached:
            logger.debug(f"Discarding {self.spec.name} load result after unmount")
            return []

        if generation != self._generation:
            return self._superseded()

        self._records = self._dedupe(records)
        # replay patches that landed while this load was in flight
        for op, args in self._journal:
            getattr(self, f"_{op}")(*args)
        if self._inflight == 0:
            self._journal.clear()

        self.loading = self._inflight > 0
        self.loaded = True
        self.error = ""
        self._changed()
        logger.debug(f"Loaded {len(self._records)} {self.spec.name}")
        return self.snapshot()

    def _superseded(self) -> List[Record]:
        """A newer load owns the result; only settle the loading flag"""
        if self._inflight == 0:
            self._journal.clear()
            if self.loading:
                self.loading = False
                self._changed()
        return self.snapshot()

    async def refresh(self) -> bool:
        """load() for handlers: failures become an error notification instead of raising"""
        try:
            await self.load()
            return True
        except FetchError as exc:
            if self.notifier is not None and not self._detached:
                self.notifier.error(self.spec.label, "load", self.spec.name, detail=str(exc.__cause__ or exc))
            return False

    # =========================================================================
    # Local patches
    # =========================================================================

    def apply_created(self, record: Record):
        """Insert at its order position, or replace in place if the id exists"""
        if self._detached:
            return
        self._record_patch("created", (record,))
        self._created(record)
        self._changed()

    def apply_updated(self, id: str, record: Record):
        """Replace the record with this id; no-op if absent"""
        if self._detached:
            return
        self._record_patch("updated", (id, record))
        if self._updated(id, record):
            self._changed()

    def apply_deleted(self, id: str):
        """Remove the record with this id; idempotent"""
        if self._detached:
            return
        self._record_patch("deleted", (id,))
        if self._deleted(id):
            self._changed()

    def _record_patch(self, op: str, args: tuple):
        if self._inflight:
            self._journal.append((op, args))

    def _created(self, record: Record):
        if self._updated(record["id"], record):
            return
        key = self._order_key(record)
        index = 0
        while index < len(self._records) and self._order_key(self._records[index]) >= key:
            index += 1
        self._records.insert(index, record)
        if self.spec.limit is not None and len(self._records) > self.spec.limit:
            del self._records[self.spec.limit:]

    def _updated(self, id: str, record: Record) -> bool:
        for index, existing in enumerate(self._records):
            if existing["id"] == id:
                self._records[index] = record
                return True
        return False

    def _deleted(self, id: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r["id"] != id]
        return len(self._records) != before

    def _order_key(self, record: Record):
        value = record.get(self.spec.order_by)
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value)
            except ValueError:
                return _EPOCH
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return _EPOCH

    @staticmethod
    def _dedupe(records: List[Record]) -> List[Record]:
        seen = set()
        unique = []
        for record in records:
            if record["id"] in seen:
                continue
            seen.add(record["id"])
            unique.append(record)
        return unique

    # =========================================================================
    # Teardown
    # =========================================================================

    def detach(self):
        """Owning view unmounted: drop state and ignore every later result"""
        self._detached = True
        self._listeners.clear()
        self._journal.clear()
        self._records = []
        self.loading = False

    def __repr__(self):
        return f"<EntityMirror {self.spec.name} records={len(self._records)} detached={self._detached}>"

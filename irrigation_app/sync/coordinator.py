"""
Mutation Coordinator
- create/update/delete against the store, then patch the owning mirror
- The patch is applied only after the store acknowledges (no speculative writes)
- Every outcome produces one success or error notification
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from irrigation_app.models.entities import EntitySpec, get_entity
from irrigation_app.store import RemoteStore
from irrigation_app.sync.errors import StoreError, WriteError
from irrigation_app.sync.mirror import EntityMirror, Record
from irrigation_app.sync.notifications import Notifier
from irrigation_app.utils.logger import get_logger, LogOperation

logger = get_logger(__name__)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class MutationCoordinator:
    """Writes for the mirrors registered with it"""

    def __init__(self, store: RemoteStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self._mirrors: Dict[str, EntityMirror] = {}
        self._in_flight: Counter = Counter()
        self.last_error: Optional[WriteError] = None

    def register(self, mirror: EntityMirror):
        self._mirrors[mirror.spec.name] = mirror

    def unregister(self, mirror: EntityMirror):
        if self._mirrors.get(mirror.spec.name) is mirror:
            del self._mirrors[mirror.spec.name]

    def in_flight(self, entity_name: str) -> bool:
        """True while a write for this entity awaits the store"""
        return self._in_flight[entity_name] > 0

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate(spec: EntitySpec, payload: Dict[str, Any], partial: bool = False):
        """Reject missing required fields and unknown columns before any remote call"""
        unknown = sorted(set(payload) - spec.writable_fields)
        if partial:
            missing = sorted(f for f in spec.required_fields if f in payload and _blank(payload[f]))
        else:
            missing = sorted(f for f in spec.required_fields if _blank(payload.get(f)))

        if missing or unknown:
            parts = []
            if missing:
                parts.append(f"missing {', '.join(missing)}")
            if unknown:
                parts.append(f"unknown {', '.join(unknown)}")
            raise WriteError(
                f"{spec.label}: {'; '.join(parts)}",
                entity=spec.name,
                operation="update" if partial else "create",
                missing_fields=missing,
                unknown_fields=unknown,
            )

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(self, entity_name: str, payload: Dict[str, Any]) -> Optional[Record]:
        """Insert and return the joined record, or None on failure"""
        spec = get_entity(entity_name)
        try:
            self.validate(spec, payload)
            with LogOperation(f"create {spec.table}", logger):
                row = await self._write(spec, "create", self.store.insert(spec.table, payload, join=spec.join))
                record = spec.normalize(row)
        except (WriteError, ValidationError) as exc:
            return self._failed(spec, "create", exc)

        mirror = self._mirrors.get(entity_name)
        if mirror is not None:
            mirror.apply_created(record)
        self.notifier.success(spec.label, "create", spec.name)
        return record

    async def update(self, entity_name: str, id: str, partial: Dict[str, Any]) -> Optional[Record]:
        """Partial update; the mirror receives the store's authoritative record"""
        spec = get_entity(entity_name)
        try:
            self.validate(spec, partial, partial=True)
            with LogOperation(f"update {spec.table} {id}", logger):
                row = await self._write(spec, "update", self.store.update(spec.table, id, partial, join=spec.join))
                record = spec.normalize(row)
        except (WriteError, ValidationError) as exc:
            return self._failed(spec, "update", exc)

        mirror = self._mirrors.get(entity_name)
        if mirror is not None:
            mirror.apply_updated(id, record)
        self.notifier.success(spec.label, "update", spec.name)
        return record

    async def update_many(self, entity_name: str, ids: Iterable[str], partial: Dict[str, Any]) -> List[Record]:
        """Apply one partial update to several records with a single notification.

        Stops at the first failure; records written before it stay patched.
        """
        spec = get_entity(entity_name)
        ids = list(ids)
        records: List[Record] = []
        if not ids:
            return records
        try:
            self.validate(spec, partial, partial=True)
            with LogOperation(f"update {len(ids)} {spec.table}", logger):
                for id in ids:
                    row = await self._write(spec, "update", self.store.update(spec.table, id, partial, join=spec.join))
                    record = spec.normalize(row)
                    records.append(record)
                    mirror = self._mirrors.get(entity_name)
                    if mirror is not None:
                        mirror.apply_updated(id, record)
        except (WriteError, ValidationError) as exc:
            self._failed(spec, "update", exc)
            return records

        self.notifier.success(spec.label, "update", spec.name, count=len(records))
        return records

    async def delete(self, entity_name: str, id: str) -> bool:
        spec = get_entity(entity_name)
        try:
            with LogOperation(f"delete {spec.table} {id}", logger):
                await self._write(spec, "delete", self.store.delete(spec.table, id))
        except WriteError as exc:
            self._failed(spec, "delete", exc)
            return False

        mirror = self._mirrors.get(entity_name)
        if mirror is not None:
            mirror.apply_deleted(id)
        self.notifier.success(spec.label, "delete", spec.name)
        return True

    async def _write(self, spec: EntitySpec, operation: str, call):
        self._in_flight[spec.name] += 1
        try:
            return await call
        except StoreError as exc:
            raise WriteError(str(exc), entity=spec.name, operation=operation) from exc
        finally:
            self._in_flight[spec.name] -= 1

    def _failed(self, spec: EntitySpec, operation: str, exc: Exception) -> None:
        if not isinstance(exc, WriteError):
            exc = WriteError(f"{spec.label}: invalid record returned ({exc})", entity=spec.name, operation=operation)
        self.last_error = exc
        logger.error(f"{operation} {spec.table} failed: {exc}")
        detail = str(exc).split(": ", 1)[-1] if exc.validation else ""
        self.notifier.error(spec.label, operation, spec.name, detail=detail)
        return None

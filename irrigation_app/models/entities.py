"""Entity catalogue for the mirrored collections.

Two layers live here:
- Row DTOs (Pydantic) that validate/normalize rows returned by the store.
- ``EntitySpec`` entries describing, per entity, its table, join, ordering and
  required fields. Mirrors, coordinators and subscriptions are parameterized by
  these entries instead of carrying per-entity code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, field_validator

from irrigation_app.models import tables

__all__ = [
    "AreaRow",
    "CanalRow",
    "GateRow",
    "MonitoringRow",
    "AlertRow",
    "JoinSpec",
    "EntitySpec",
    "ENTITIES",
    "get_entity",
    "entity_for_table",
]


# ========= Row DTOs (Pydantic) =========

class _Row(BaseModel):
    """Base with tz-aware datetime normalization to UTC when missing."""

    model_config = ConfigDict(extra="ignore")

    id: str

    @staticmethod
    def _ensure_tz(dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt

    @field_validator("id", mode="before")
    @classmethod
    def _str_id(cls, v: Any) -> str:  # noqa: N805
        return str(v)


class AreaRow(_Row):
    name: str
    location: str
    total_area: float
    status: Literal["active", "maintenance", "inactive"]
    lat: float = 0.0
    lng: float = 0.0
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _tz(cls, v: Optional[datetime]) -> Optional[datetime]:  # noqa: N805
        return cls._ensure_tz(v) if v else v


class CanalRow(_Row):
    area_id: str
    name: str
    length: float
    width: float
    capacity: float
    status: Literal["good", "needs_repair", "critical"]
    last_inspection: Optional[date] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    area_name: str = ""

    @field_validator("area_id", mode="before")
    @classmethod
    def _str_fk(cls, v: Any) -> str:  # noqa: N805
        return str(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _tz(cls, v: Optional[datetime]) -> Optional[datetime]:  # noqa: N805
        return cls._ensure_tz(v) if v else v


class GateRow(_Row):
    canal_id: str
    name: str
    type: Literal["intake", "distribution", "drainage"]
    status: Literal["open", "closed", "partial"]
    condition: Literal["good", "fair", "poor"]
    last_maintenance: Optional[date] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    canal_name: str = ""

    @field_validator("canal_id", mode="before")
    @classmethod
    def _str_fk(cls, v: Any) -> str:  # noqa: N805
        return str(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _tz(cls, v: Optional[datetime]) -> Optional[datetime]:  # noqa: N805
        return cls._ensure_tz(v) if v else v


class MonitoringRow(_Row):
    gate_id: str
    water_level: float
    discharge: float
    condition: Literal["normal", "warning", "critical"]
    recorded_by: Optional[str] = None
    notes: Optional[str] = None
    video_url: Optional[str] = None
    recorded_at: datetime
    gate_name: str = ""

    @field_validator("gate_id", mode="before")
    @classmethod
    def _str_fk(cls, v: Any) -> str:  # noqa: N805
        return str(v)

    @field_validator("recorded_by", mode="before")
    @classmethod
    def _str_actor(cls, v: Any) -> Optional[str]:  # noqa: N805
        return str(v) if v is not None else None

    @field_validator("recorded_at")
    @classmethod
    def _tz(cls, v: datetime) -> datetime:  # noqa: N805
        return cls._ensure_tz(v)


class AlertRow(_Row):
    type: Literal["critical", "warning", "info"]
    title: str
    location: str
    is_read: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _tz(cls, v: datetime) -> datetime:  # noqa: N805
        return cls._ensure_tz(v)


# ========= Entity specs =========

@dataclass(frozen=True)
class JoinSpec:
    """Parent lookup that produces a denormalized display field.

    ``canals.area_id -> irrigation_areas.name AS area_name``
    """

    foreign_key: str
    parent_table: str
    parent_field: str
    alias: str


@dataclass(frozen=True)
class EntitySpec:
    name: str
    table: str
    model: Type[_Row]
    label: str
    required_fields: Tuple[str, ...]
    order_by: str = "created_at"
    limit: Optional[int] = None
    join: Optional[JoinSpec] = None
    search_fields: Tuple[str, ...] = field(default=("name",))

    @property
    def writable_fields(self) -> frozenset:
        return tables.writable_columns(self.table)

    def normalize(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a store row and return it as a plain dict.

        A row without its join alias gets an empty display field, the same
        fallback the list views show for a missing parent.
        """
        if self.join and row.get(self.join.alias) is None:
            row = {**row, self.join.alias: ""}
        return self.model.model_validate(row).model_dump()


ENTITIES: Dict[str, EntitySpec] = {
    "areas": EntitySpec(
        name="areas",
        table="irrigation_areas",
        model=AreaRow,
        label="Area",
        required_fields=("name", "location", "total_area", "status"),
        search_fields=("name", "location"),
    ),
    "canals": EntitySpec(
        name="canals",
        table="canals",
        model=CanalRow,
        label="Canal",
        required_fields=("area_id", "name", "length", "width", "capacity", "status"),
        join=JoinSpec("area_id", "irrigation_areas", "name", "area_name"),
        search_fields=("name", "area_name"),
    ),
    "gates": EntitySpec(
        name="gates",
        table="gates",
        model=GateRow,
        label="Gate",
        required_fields=("canal_id", "name", "type", "status", "condition"),
        join=JoinSpec("canal_id", "canals", "name", "canal_name"),
        search_fields=("name", "canal_name"),
    ),
    "monitoring": EntitySpec(
        name="monitoring",
        table="monitoring_data",
        model=MonitoringRow,
        label="Monitoring reading",
        required_fields=("gate_id", "water_level", "discharge", "condition"),
        order_by="recorded_at",
        limit=100,
        join=JoinSpec("gate_id", "gates", "name", "gate_name"),
        search_fields=("gate_name", "recorded_by"),
    ),
    "alerts": EntitySpec(
        name="alerts",
        table="alerts",
        model=AlertRow,
        label="Alert",
        required_fields=("type", "title", "location"),
        limit=10,
        search_fields=("title", "location"),
    ),
}


def get_entity(name: str) -> EntitySpec:
    try:
        return ENTITIES[name]
    except KeyError:
        raise KeyError(f"Unknown entity: {name}") from None


def entity_for_table(table: str) -> Optional[EntitySpec]:
    for spec in ENTITIES.values():
        if spec.table == table:
            return spec
    return None

"""Irrigation schema - SQLAlchemy ORM models (DDL source and column catalogue)"""
from sqlalchemy import (
    Column, String, Float, DateTime, Date, Boolean, Text, ForeignKey, Index, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()

_UUID_DEFAULT = text("gen_random_uuid()")
_NOW = text("now()")


def _id_column():
    return Column(UUID(as_uuid=False), primary_key=True, server_default=_UUID_DEFAULT)


class IrrigationArea(Base):
    """Daerah irigasi"""
    __tablename__ = 'irrigation_areas'

    id = _id_column()
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    total_area = Column(Float, nullable=False, server_default=text("0"))
    status = Column(String, nullable=False, server_default=text("'active'"))
    lat = Column(Float, nullable=False, server_default=text("0"))
    lng = Column(Float, nullable=False, server_default=text("0"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)


class Canal(Base):
    """Saluran"""
    __tablename__ = 'canals'

    id = _id_column()
    area_id = Column(UUID(as_uuid=False), ForeignKey('irrigation_areas.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    length = Column(Float, nullable=False, server_default=text("0"))
    width = Column(Float, nullable=False, server_default=text("0"))
    capacity = Column(Float, nullable=False, server_default=text("0"))
    status = Column(String, nullable=False, server_default=text("'good'"))
    last_inspection = Column(Date)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)

    __table_args__ = (Index('ix_canals_area_id', 'area_id'),)


class Gate(Base):
    """Pintu air"""
    __tablename__ = 'gates'

    id = _id_column()
    canal_id = Column(UUID(as_uuid=False), ForeignKey('canals.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, server_default=text("'distribution'"))
    status = Column(String, nullable=False, server_default=text("'closed'"))
    condition = Column(String, nullable=False, server_default=text("'good'"))
    last_maintenance = Column(Date)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)

    __table_args__ = (Index('ix_gates_canal_id', 'canal_id'),)


class MonitoringData(Base):
    """Data monitoring tinggi muka air dan debit"""
    __tablename__ = 'monitoring_data'

    id = _id_column()
    gate_id = Column(UUID(as_uuid=False), ForeignKey('gates.id', ondelete='CASCADE'), nullable=False)
    water_level = Column(Float, nullable=False)
    discharge = Column(Float, nullable=False)
    condition = Column(String, nullable=False, server_default=text("'normal'"))
    recorded_by = Column(UUID(as_uuid=False))
    notes = Column(Text)
    video_url = Column(Text)
    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)

    __table_args__ = (Index('ix_monitoring_data_recorded_at', 'recorded_at'),)


class Alert(Base):
    """Notifikasi"""
    __tablename__ = 'alerts'

    id = _id_column()
    type = Column(String, nullable=False, server_default=text("'info'"))
    title = Column(String, nullable=False)
    location = Column(String, nullable=False)
    is_read = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)


class Profile(Base):
    """Profil pengguna"""
    __tablename__ = 'profiles'

    id = _id_column()
    user_id = Column(UUID(as_uuid=False), nullable=False, unique=True)
    name = Column(String, nullable=False)
    username = Column(String, nullable=False, unique=True)
    avatar_url = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)


class UserRole(Base):
    """Peran pengguna (admin / petugas / kadis)"""
    __tablename__ = 'user_roles'

    id = _id_column()
    user_id = Column(UUID(as_uuid=False), nullable=False, unique=True)
    role = Column(String, nullable=False, server_default=text("'petugas'"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=_NOW)


# Tables whose row changes are announced on the notify channel
MIRRORED_TABLES = (
    IrrigationArea.__tablename__,
    Canal.__tablename__,
    Gate.__tablename__,
    MonitoringData.__tablename__,
    Alert.__tablename__,
)

# Filled by the database
GENERATED_COLUMNS = frozenset({"id", "created_at", "updated_at"})


def table_columns(table_name: str) -> frozenset:
    """Column names of a table in the metadata"""
    return frozenset(Base.metadata.tables[table_name].columns.keys())


def writable_columns(table_name: str) -> frozenset:
    """Columns a client payload may set"""
    return table_columns(table_name) - GENERATED_COLUMNS


def coerce_payload(table_name: str, form: dict) -> dict:
    """Form strings -> column-typed values (numbers, booleans, NULL for blank nullable fields)"""
    table = Base.metadata.tables[table_name]
    payload = {}
    for key, value in form.items():
        if isinstance(value, str):
            value = value.strip()
        if key not in table.columns:
            payload[key] = value
            continue

        column = table.columns[key]
        if value == "" or value is None:
            payload[key] = None if column.nullable else ""
        elif isinstance(column.type, Float) and isinstance(value, str):
            try:
                payload[key] = float(value)
            except ValueError:
                payload[key] = value
        elif isinstance(column.type, Boolean) and isinstance(value, str):
            payload[key] = value.lower() in ("1", "true", "on", "yes")
        else:
            payload[key] = value
    return payload

"""
Schema bootstrap
================
Creates the irrigation tables from the ORM metadata and installs the
row-change trigger that feeds the LISTEN/NOTIFY channel.

Usage:
    IRRIGATION_DSN=postgresql://... python -m irrigation_app.schema
"""
from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urlparse, urlunparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.pool import NullPool

from irrigation_app.config import Settings
from irrigation_app.models.tables import Base, MIRRORED_TABLES
from irrigation_app.utils.logger import get_logger, setup_logging, LogOperation
from irrigation_app.utils.secure_config import SecureConfig

logger = get_logger(__name__)

TRIGGER_FUNCTION = "irrigation_notify_change"


def normalize_async_url(raw: str) -> str:
    """postgresql://... -> postgresql+psycopg://... (psycopg 3 async driver)"""
    parsed = urlparse(raw)
    if parsed.scheme in ("postgresql", "postgres") or parsed.scheme.startswith("postgresql+"):
        scheme = "postgresql+psycopg"
    else:
        raise ValueError(f"Unsupported database URL scheme: {parsed.scheme}")
    return urlunparse((scheme, parsed.netloc, parsed.path, parsed.params, parsed.query, parsed.fragment))


def notify_function_sql(channel: str) -> str:
    return f"""
        CREATE OR REPLACE FUNCTION {TRIGGER_FUNCTION}() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify(
                '{channel}',
                json_build_object('table', TG_TABLE_NAME, 'event', TG_OP)::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql
    """


def trigger_sql(table: str) -> list[str]:
    name = f"{table}_notify_change"
    return [
        f'DROP TRIGGER IF EXISTS "{name}" ON "{table}"',
        f'CREATE TRIGGER "{name}" AFTER INSERT OR UPDATE OR DELETE ON "{table}" '
        f'FOR EACH ROW EXECUTE FUNCTION {TRIGGER_FUNCTION}()',
    ]


def create_engine(settings: Settings) -> AsyncEngine:
    # one-shot migration task, no pooling needed
    return create_async_engine(
        normalize_async_url(settings.require_dsn()),
        echo=False,
        poolclass=NullPool,
    )


async def create_schema(settings: Settings, engine: Optional[AsyncEngine] = None):
    """Create tables (idempotent) and (re)install change triggers"""
    engine = engine or create_engine(settings)
    try:
        with LogOperation("create irrigation schema", logger):
            async with engine.begin() as conn:
                await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
                await conn.run_sync(Base.metadata.create_all)
                await conn.execute(text(notify_function_sql(settings.notify_channel)))
                for table in MIRRORED_TABLES:
                    for statement in trigger_sql(table):
                        await conn.execute(text(statement))
        logger.info(f"Change triggers installed on {len(MIRRORED_TABLES)} tables -> {settings.notify_channel}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging(log_to_files=False)
    asyncio.run(create_schema(Settings.from_env(SecureConfig())))

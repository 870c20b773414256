from __future__ import annotations

import os
import sys
import asyncio
import logging
from typing import Any, Optional

import psycopg
import psycopg_pool
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from irrigation_app.config import Settings
from irrigation_app.utils.logger import get_logger, log_function
from irrigation_app.utils.secure_config import mask_secret

logger = get_logger(__name__)

# psycopg async needs a selector loop on Windows (local development only)
if sys.platform == 'win32' and not os.environ.get('DOCKER_CONTAINER'):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class Database:
    """Connection pool owner, created once at application bootstrap"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._pool: Optional[AsyncConnectionPool] = None
        self._lock = asyncio.Lock()

    @property
    def dsn(self) -> str:
        return self.settings.require_dsn()

    @log_function
    async def get_pool(self) -> AsyncConnectionPool:
        """Open the pool on first access"""
        if self._pool is None:
            async with self._lock:
                # double-check after acquiring the lock
                if self._pool is None:
                    logger.info(f"Creating pool for {mask_secret(self.dsn)} (PID: {os.getpid()})")
                    pool = AsyncConnectionPool(
                        self.dsn,
                        min_size=self.settings.pool_min_size,
                        max_size=self.settings.pool_max_size,
                        max_waiting=100,
                        timeout=self.settings.pool_timeout,
                        kwargs={"autocommit": True},
                        open=False,
                    )
                    try:
                        await pool.open()
                    except Exception as e:
                        logger.error(f"Failed to open pool: {e}")
                        raise
                    self._pool = pool
                    logger.info("Pool opened")

        return self._pool

    async def connect_direct(self) -> psycopg.AsyncConnection:
        """Dedicated autocommit connection outside the pool (LISTEN, pool-timeout fallback)"""
        return await psycopg.AsyncConnection.connect(self.dsn, autocommit=True)

    async def _run(self, conn: psycopg.AsyncConnection, query, params, fetch: str):
        async with conn.transaction():
            await conn.execute(
                sql.SQL("SET LOCAL statement_timeout = {}").format(
                    sql.Literal(self.settings.statement_timeout)
                )
            )
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                if fetch == "all":
                    return await cur.fetchall()
                return cur.rowcount

    async def _call(self, query, params: Any, fetch: str, timeout: float = 30.0):
        start_time = asyncio.get_running_loop().time()

        try:
            pool = await self.get_pool()
            async with pool.connection(timeout=timeout) as conn:
                result = await self._run(conn, query, params, fetch)

        except (psycopg_pool.PoolTimeout, asyncio.TimeoutError) as e:
            logger.warning(f"Pool timeout, using direct connection: {str(e)}")
            async with await self.connect_direct() as conn:
                result = await self._run(conn, query, params, fetch)

        except Exception as e:
            logger.error(f"Query execution failed: {str(e)}")
            logger.error(f"SQL: {_sql_text(query)}")
            logger.error(f"Params: {params}")
            raise

        elapsed = asyncio.get_running_loop().time() - start_time
        if elapsed > 1.0:
            logger.warning(f"Slow query ({elapsed:.2f}s): {_sql_text(query)[:100]}...")
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Query completed in {elapsed:.3f}s")
        return result

    async def fetch(self, query, params: Any = None, timeout: float = 30.0) -> list[dict]:
        """Run a query and return all rows as dicts"""
        return await self._call(query, params, "all", timeout)

    async def execute(self, query, params: Any = None, timeout: float = 30.0) -> int:
        """Run a statement without result rows, return the affected row count"""
        return await self._call(query, params, "none", timeout)

    async def close(self):
        if self._pool is not None:
            try:
                await self._pool.close()
                logger.info("Pool closed")
            except Exception as e:
                logger.error(f"Error closing pool: {e}")
            finally:
                self._pool = None


def _sql_text(query) -> str:
    if isinstance(query, str):
        return query
    try:
        return query.as_string(None)
    except Exception:
        return repr(query)

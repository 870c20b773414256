"""
Database event listener for row-change notifications
Uses PostgreSQL LISTEN/NOTIFY on a dedicated connection
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional

import psycopg
from psycopg import sql

from .logger import get_logger

logger = get_logger(__name__)

NotifyCallback = Callable[[dict], Awaitable[None]]
ReconnectCallback = Callable[[], Awaitable[None]]


class DatabaseEventListener:
    """PostgreSQL NOTIFY listener feeding one callback"""

    def __init__(
        self,
        connect: Callable[[], Awaitable[psycopg.AsyncConnection]],
        channel: str = "irrigation_changes",
        reconnect_delay: float = 1.0,
    ):
        self.channel = channel
        self._connect = connect
        self.reconnect_delay = reconnect_delay
        self.connection: Optional[psycopg.AsyncConnection] = None
        self.callback: Optional[NotifyCallback] = None
        self.on_reconnect: Optional[ReconnectCallback] = None
        self._task: Optional[asyncio.Task] = None
        self._listening = False

    @property
    def listening(self) -> bool:
        return self._listening

    async def start(self, callback: NotifyCallback, on_reconnect: Optional[ReconnectCallback] = None):
        """Open the LISTEN connection and run the receive loop in the background.

        Raises if the first connection cannot be opened so the caller can report it.
        on_reconnect is awaited each time the connection is re-established, since
        notifications sent while it was down are lost.
        """
        self.callback = callback
        self.on_reconnect = on_reconnect
        await self._open()
        self._listening = True
        self._task = asyncio.create_task(self._listen_loop(), name=f"listen:{self.channel}")

    async def _open(self):
        conn = await self._connect()
        try:
            await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.channel)))
        except psycopg.Error:
            await conn.close()
            raise
        self.connection = conn
        logger.info(f"Listening on channel: {self.channel}")

    async def _listen_loop(self):
        """Wait for NOTIFY events, reconnecting after connection errors"""
        while self._listening:
            if self.connection is None:
                await asyncio.sleep(self.reconnect_delay)
                await self._reconnect()
                continue

            try:
                async for notify in self.connection.notifies(timeout=5.0):
                    logger.debug(f"Received NOTIFY: {notify.channel} - {notify.payload}")
                    await self._dispatch(notify.payload)

            except asyncio.TimeoutError:
                # idle wake-up to re-check _listening
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._listening:
                    break
                logger.error(f"Listen loop error: {e}")
                await self._close_connection()

    async def _reconnect(self):
        try:
            await self._open()
        except Exception as e:
            logger.error(f"Reconnect to {self.channel} failed: {e}")
            return

        logger.info(f"Reconnected to channel: {self.channel}")
        if self.on_reconnect is not None:
            await self.on_reconnect()

    async def _dispatch(self, raw_payload: str):
        if not self.callback:
            return
        try:
            payload = json.loads(raw_payload) if raw_payload else {}
        except json.JSONDecodeError:
            payload = {"raw": raw_payload}
        await self.callback(payload)

    async def _close_connection(self):
        if self.connection is None:
            return
        try:
            await self.connection.close()
        except psycopg.Error as e:
            logger.warning(f"Error closing listen connection: {e}")
        self.connection = None

    async def stop(self):
        """Stop listening and close the connection"""
        self._listening = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self._close_connection()
        logger.info(f"Stopped listening on channel: {self.channel}")

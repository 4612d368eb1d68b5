"""PostgreSQL LISTEN helper with auto-reconnect.

Game events are sent with ``pg_notify`` inside the settlement transaction, so
listeners only ever see committed changes, in commit order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)

NotifyHandler = Callable[..., Coroutine[Any, Any, None] | None]


async def _close_listener(
    pool: asyncpg.Pool, connection: asyncpg.Connection, channel: str, handler: NotifyHandler
) -> None:
    """Detach the handler and hand the connection back (or kill it)."""
    if connection.is_closed():
        return
    try:
        await connection.remove_listener(channel, handler)
        await pool.release(connection)
    except (asyncpg.InterfaceError, asyncpg.PostgresError, OSError) as e:
        logger.debug(f"Dropping LISTEN connection for '{channel}': {type(e).__name__}: {e}")
        connection.terminate()


async def pg_listen(
    pool: asyncpg.Pool,
    channel: str,
    handler: NotifyHandler,
    *,
    keepalive_interval: int = 30,
    reconnect_delay: int = 10,
) -> None:
    """Listen on a NOTIFY channel until cancelled, reconnecting on errors.

    Args:
        pool: asyncpg connection pool. One connection is held for the
            lifetime of the listener.
        channel: PostgreSQL NOTIFY channel name.
        handler: Callback ``(connection, pid, channel, payload)``.
        keepalive_interval: Seconds between keepalive pings so poolers do
            not mark the idle LISTEN connection as dead.
        reconnect_delay: Seconds to wait before reconnecting after an error.
    """
    while True:
        connection: asyncpg.Connection | None = None
        try:
            connection = await pool.acquire()
            await connection.add_listener(channel, handler)
            logger.info(f"PostgreSQL LISTEN active on '{channel}' channel")
            while True:
                await asyncio.sleep(keepalive_interval)
                await connection.execute("SELECT 1")
        except asyncio.CancelledError:
            logger.info(f"PostgreSQL LISTEN '{channel}' shutting down...")
            if connection is not None:
                await _close_listener(pool, connection, channel, handler)
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error in pg_listen('{channel}'): {type(e).__name__}: {e}")
            logger.warning(
                f"Reconnecting to PostgreSQL LISTEN '{channel}' in {reconnect_delay}s..."
            )
            if connection is not None:
                await _close_listener(pool, connection, channel, handler)
            await asyncio.sleep(reconnect_delay)

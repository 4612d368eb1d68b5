"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.config import get_settings
from core.database import get_database_manager, init_database_manager
from core.dependencies import get_connection_manager, reset_roulette_service
from core.logging import setup_logging
from routers import roulette_router, ws_router
from shared.database import DatabaseManager
from shared.migrations.runner import MigrationRunner
from shared.pg_listener import pg_listen

logger = logging.getLogger(__name__)

SERVICE_NAME = "pozo-roulette-api"
VERSION = "1.0.0"

_start_time: float = 0.0
_background_tasks: set[asyncio.Task] = set()


def _spawn(coro, name: str) -> None:
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def _heartbeat(interval: int = 300) -> None:
    """Periodic heartbeat: log uptime, DB status and open sockets"""
    while True:
        await asyncio.sleep(interval)
        uptime = int(time.time() - _start_time)
        db_ok = await get_database_manager().check_health()
        sockets = get_connection_manager().connection_count
        logger.info(f"Heartbeat: uptime={uptime}s, db={db_ok}, sockets={sockets}")


async def _start_database(db_manager: DatabaseManager) -> None:
    """Connect, migrate if enabled, then start relaying game events."""
    settings = get_settings()
    await db_manager.connect()
    logger.info("Database connected")

    if settings.run_migrations:
        await MigrationRunner(db_manager.pool).run_pending()

    _spawn(
        pg_listen(
            db_manager.pool,
            settings.events_channel,
            get_connection_manager().handle_notification,
        ),
        name="roulette-events",
    )


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Retry the database startup in the background after a failed start."""
    delay = 5
    max_delay = 60
    while not db_manager.is_connected:
        await asyncio.sleep(delay)
        try:
            await _start_database(db_manager)
            return
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time
    _start_time = time.time()

    settings = get_settings()
    logger.info(f"Starting {SERVICE_NAME} ({settings.environment})")
    logger.info(f"Game config: {settings.game_config()}")

    db_manager = init_database_manager(settings.database_url, ssl=settings.database_ssl)
    try:
        await asyncio.wait_for(_start_database(db_manager), timeout=30)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        logger.error(
            f"DB startup failed: {type(e).__name__}: {e}, retrying in background"
        )
        _spawn(_db_retry_loop(db_manager), name="db-retry")

    if settings.enable_keep_alive:
        _spawn(_heartbeat(settings.keep_alive_interval), name="heartbeat")
        logger.info(f"Heartbeat started (interval={settings.keep_alive_interval}s)")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    for task in list(_background_tasks):
        task.cancel()
    await asyncio.gather(*_background_tasks, return_exceptions=True)
    reset_roulette_service()
    await db_manager.disconnect()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Pozo Roulette API",
        description="Pooled roulette: seats, queue, weighted draws and settlement",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(roulette_router.router)
    app.include_router(ws_router.router)

    @app.get("/")
    async def root():
        return {"service": SERVICE_NAME, "status": "running"}

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.get("/status")
    async def status():
        """Readiness / status endpoint, includes an actual DB health check"""
        db_ok = await get_database_manager().check_health()
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "websocket_clients": get_connection_manager().connection_count,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")
    return app

"""Versioned SQL migrations with a tracking table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Held while migrating so concurrently starting API workers apply each file once
MIGRATION_LOCK_KEY = 0x4D494752  # "MIGR"


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` files in filename order.

    Applied versions are recorded in ``schema_migrations`` and never re-applied.
    Each file runs in its own transaction together with its tracking row.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, migrations_dir: Path | None = None) -> None:
        self.pool = pool
        self.migrations_dir = migrations_dir or VERSIONS_DIR

    async def ensure_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                version    TEXT PRIMARY KEY,
                name       TEXT NOT NULL,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
            """
        )

    async def get_applied(self, conn: asyncpg.Connection) -> set[str]:
        rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
        return {row["version"] for row in rows}

    def discover(self) -> list[Path]:
        return sorted(self.migrations_dir.glob("*.sql"))

    async def pending(self) -> list[str]:
        """Versions that exist on disk but are not applied yet."""
        async with self.pool.acquire() as conn:
            await self.ensure_table(conn)
            applied = await self.get_applied(conn)
        return [path.stem for path in self.discover() if path.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration. Returns the newly applied versions."""
        sql_files = self.discover()
        if not sql_files:
            logger.info(f"No migration files found in {self.migrations_dir}")
            return []

        newly_applied: list[str] = []
        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", MIGRATION_LOCK_KEY)
            try:
                await self.ensure_table(conn)
                applied = await self.get_applied(conn)
                for sql_path in sql_files:
                    version = sql_path.stem
                    if version in applied:
                        logger.debug(f"Migration {version} already applied, skipping")
                        continue
                    await self._apply_one(conn, version, sql_path)
                    newly_applied.append(version)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", MIGRATION_LOCK_KEY)

        if newly_applied:
            logger.info(f"Applied {len(newly_applied)} migration(s): {', '.join(newly_applied)}")
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply_one(self, conn: asyncpg.Connection, version: str, sql_path: Path) -> None:
        logger.info(f"Applying migration: {version}")
        sql = sql_path.read_text(encoding="utf-8")
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                version,
                sql_path.name,
            )

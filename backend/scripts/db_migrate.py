"""Apply the roulette schema migrations.

Usage:
    python db_migrate.py          # Run all pending migrations
    python db_migrate.py --dry    # Show pending migrations without applying
"""

import asyncio
import logging
import sys
from pathlib import Path

# backend/ and backend/api/ on sys.path, as when the API runs
_BACKEND = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_BACKEND))
sys.path.insert(0, str(_BACKEND / "api"))

from core.config import get_settings  # noqa: E402
from core.logging import setup_logging  # noqa: E402
from shared.database import DatabaseManager, PoolConfig  # noqa: E402
from shared.migrations.runner import MigrationRunner  # noqa: E402

logger = logging.getLogger("db_migrate")


async def main() -> int:
    settings = get_settings()
    setup_logging(settings)

    db = DatabaseManager(
        settings.database_url,
        PoolConfig.for_service("scripts", ssl="require" if settings.database_ssl else False),
    )
    await db.connect()
    try:
        runner = MigrationRunner(db.pool)
        if "--dry" in sys.argv:
            pending = await runner.pending()
            logger.info(f"Pending: {len(pending)}")
            for version in pending:
                logger.info(f"  -> {version}")
        else:
            await runner.run_pending()
    finally:
        await db.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

"""Database connection and migration management."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import asyncpg
import structlog

from ikiraha.config import Settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Errors that mean the store itself failed rather than the request
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


async def create_pool(settings: Settings) -> asyncpg.Pool:
    """Create the database connection pool.

    Args:
        settings: Application settings with the Postgres URL and pool sizes

    Returns:
        asyncpg connection pool
    """
    try:
        pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return pool


async def close_pool(pool: Optional[asyncpg.Pool]) -> None:
    """Close the database connection pool."""
    if pool is not None:
        await pool.close()
        logger.info("database_pool_closed")


async def run_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """Run all SQL migrations in order.

    Migrations are idempotent (IF NOT EXISTS) and can be re-run safely.
    """
    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return

    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.info("no_migrations_found")
        return

    async with pool.acquire() as conn:
        for migration_file in migration_files:
            try:
                await conn.execute(migration_file.read_text())
                logger.info("migration_applied", file=migration_file.name)
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise


@asynccontextmanager
async def connection(
    pool: asyncpg.Pool, conn: Optional[asyncpg.Connection] = None
) -> AsyncIterator[asyncpg.Connection]:
    """Yield ``conn`` when the caller already holds one, else acquire from the pool."""
    if conn is not None:
        yield conn
        return
    async with pool.acquire() as acquired:
        yield acquired


@asynccontextmanager
async def transaction(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a connection and run the block inside a single transaction."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def health_check(pool: Optional[asyncpg.Pool]) -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise
    """
    if pool is None:
        return False
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False

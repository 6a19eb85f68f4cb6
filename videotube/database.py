"""asyncpg pool and schema migrations for the users store."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from videotube.config import get_settings

logger = structlog.get_logger(__name__)

_pool: Optional[asyncpg.Pool] = None

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

SCHEMA_MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


async def _init_connection(conn: asyncpg.Connection) -> None:
    # created_at / updated_at come back as aware UTC datetimes
    await conn.execute("SET TIME ZONE 'UTC'")


async def get_pool() -> asyncpg.Pool:
    """Return the shared pool.

    Raises:
        RuntimeError: If ``init_database()`` has not run
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the shared pool from ``POSTGRES_URL`` (no-op if it exists)."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()
    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            init=_init_connection,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending ``*.sql`` files in filename order.

    Each file runs in its own transaction together with its row in
    ``schema_migrations``, so an applied file is never executed again and a
    failed one is retried on the next boot.

    Returns:
        Filenames applied by this call
    """
    if not migrations_dir.is_dir():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return []

    migration_files = sorted(migrations_dir.glob("*.sql"))
    pool = await get_pool()
    applied_now = []

    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_MIGRATIONS_DDL)
        rows = await conn.fetch("SELECT filename FROM schema_migrations")
        already_applied = {row["filename"] for row in rows}

        for migration_file in migration_files:
            if migration_file.name in already_applied:
                continue
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise
            applied_now.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

    logger.info(
        "migrations_complete",
        applied=len(applied_now),
        skipped=len(already_applied),
    )
    return applied_now


async def health_check() -> bool:
    """Ping the database.

    Returns:
        True if ``SELECT 1`` succeeds, False if the query fails

    Raises:
        RuntimeError: If the pool was never initialized
    """
    pool = await get_pool()
    try:
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False

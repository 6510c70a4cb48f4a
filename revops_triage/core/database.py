"""
Async PostgreSQL connection pool for the record store.

A process-wide asyncpg pool singleton. The Postgres record store acquires
connections from here; the pure evaluators never touch it.

Connection Pool Configuration:
- min_size: 2
- max_size: 10
- command_timeout: 60 seconds

Usage:
    await init_db()

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT id FROM crm_deal")

    await close_db()
"""

from typing import Optional

import asyncpg
from asyncpg import Pool

from revops_triage.core.config import get_settings


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connecting to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the connection pool, initializing it lazily on first use.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"
    return _pool


async def close_db() -> None:
    """Close the pool. Safe to call when it was never opened."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


__all__ = [
    "init_db",
    "get_db_pool",
    "close_db",
]

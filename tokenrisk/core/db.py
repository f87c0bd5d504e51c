"""
Shared async PostgreSQL pool. Opened once by the app lifespan (or a CLI),
borrowed per operation by the Store.
"""
from contextlib import asynccontextmanager
from typing import Optional

from psycopg_pool import AsyncConnectionPool

from tokenrisk.core.config import DATABASE_URL, DB_POOL_MAX_SIZE, DB_POOL_TIMEOUT
from tokenrisk.core.logger import get_logger

logger = get_logger("core.db")

pool: Optional[AsyncConnectionPool] = None


async def init_db(conninfo: Optional[str] = None):
    global pool
    if pool is not None:
        return
    conninfo = conninfo or DATABASE_URL
    if not conninfo:
        raise RuntimeError("DATABASE_URL is not set")

    pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=1,
        max_size=DB_POOL_MAX_SIZE,
        timeout=DB_POOL_TIMEOUT,
        name="tokenrisk",
        open=False,
    )
    await pool.open()
    logger.info(f"Database pool open (max {DB_POOL_MAX_SIZE} connections)")


async def close_db():
    global pool
    if pool is None:
        return
    await pool.close()
    pool = None
    logger.info("Database pool closed")


@asynccontextmanager
async def get_db_connection():
    if pool is None:
        raise RuntimeError("Database pool not initialized; call init_db() first")
    async with pool.connection() as conn:
        yield conn

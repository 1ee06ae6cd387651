"""Async connection pool behind the Postgres record store."""

from __future__ import annotations

from dotenv import load_dotenv
from psycopg_pool import AsyncConnectionPool

from shopledger.db.connection import ensure_utc, require_database_url

APPLICATION_NAME = "shopledger"


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create the ledger's pool without opening it.

    The caller owns the lifecycle: `await pool.open()` at startup and `await pool.close()` on
    shutdown. Without `database_url`, `.env` is loaded and `DATABASE_URL` is used.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        kwargs={"application_name": APPLICATION_NAME},
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        name=APPLICATION_NAME,
        open=False,
        configure=ensure_utc,
    )

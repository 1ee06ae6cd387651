"""Postgres connection helpers.

Sale and expense timestamps come from `NOW()` and are read back as aware datetimes, so every
session the ledger touches, pooled or not, runs with its timezone locked to UTC.
"""

from __future__ import annotations

import os

import psycopg
from psycopg import AsyncConnection

_SET_UTC = "SET TIME ZONE 'UTC'"


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(conninfo: str, **kwargs: object) -> psycopg.Connection:
    """Open a blocking UTC session (migrations and other CLI tools)."""

    conn = psycopg.connect(conninfo, **kwargs)
    conn.execute(_SET_UTC, prepare=False)
    return conn


async def ensure_utc(conn: AsyncConnection) -> None:
    """Pool `configure` hook: lock a freshly opened async session to UTC."""

    await conn.execute(_SET_UTC, prepare=False)
    # Outside autocommit the SET leaves the session INTRANS, which the pool rejects.
    await conn.commit()

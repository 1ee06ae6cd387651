"""Apply SQL migrations to the configured PostgreSQL database.

Migrations are plain `.sql` files under `shopledger/db/migrations/`, applied in lexicographic order.
Applied filenames are tracked in the `schema_migrations` table, so re-running is a no-op.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import LiteralString, cast

import psycopg
from dotenv import load_dotenv

from shopledger.db.connection import connect_utc, require_database_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# Dependents first.
LEDGER_TABLES: tuple[str, ...] = ("sale_lines", "sales", "expenses", "catalog_items")


def _ensure_schema_migrations(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations
        (
            filename   TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        prepare=False,
    )


def _list_migration_files() -> list[Path]:
    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(f"Migrations directory does not exist: {MIGRATIONS_DIR}")

    files = sorted(p for p in MIGRATIONS_DIR.iterdir() if p.is_file() and p.suffix == ".sql")
    if not files:
        raise RuntimeError(f"No .sql migration files found in {MIGRATIONS_DIR}")
    return files


def _get_applied_migrations(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM schema_migrations", prepare=False).fetchall()
    return {r[0] for r in rows}


def _apply_migration(conn: psycopg.Connection, filename: str, sql_text: str) -> None:
    with conn.transaction():
        conn.execute(cast(LiteralString, sql_text), prepare=False)
        conn.execute(
            "INSERT INTO schema_migrations(filename) VALUES (%s)",
            (filename,),
            prepare=False,
        )


def drop_ledger_tables(conn: psycopg.Connection) -> None:
    """Drop every ledger table and the migration log (destructive)."""

    with conn.transaction():
        for table in (*LEDGER_TABLES, "schema_migrations"):
            conn.execute(cast(LiteralString, f"DROP TABLE IF EXISTS {table}"), prepare=False)


def pending_migrations(conn: psycopg.Connection) -> list[Path]:
    """Return migration files not yet recorded in `schema_migrations`."""

    _ensure_schema_migrations(conn)
    applied = _get_applied_migrations(conn)
    return [p for p in _list_migration_files() if p.name not in applied]


def apply_migrations(conn: psycopg.Connection, *, recreate: bool = False) -> list[str]:
    """Apply pending migrations on an open connection and return the applied filenames."""

    if recreate:
        drop_ledger_tables(conn)

    applied: list[str] = []
    for file_path in pending_migrations(conn):
        _apply_migration(conn, file_path.name, file_path.read_text(encoding="utf-8"))
        logger.info("migration applied filename=%s", file_path.name)
        applied.append(file_path.name)
    return applied


def migrate(*, recreate: bool, database_url: str | None = None) -> list[str]:
    """Run migrations against `database_url` (default: `DATABASE_URL`)."""

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    with connect_utc(database_url) as conn:
        return apply_migrations(conn, recreate=recreate)


def main() -> None:
    """CLI entry point for applying migrations."""

    parser = argparse.ArgumentParser(description="Apply ledger SQL migrations to Postgres.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop the ledger tables and re-apply all migrations (destructive).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Connection string to use instead of DATABASE_URL.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    applied = migrate(recreate=args.recreate, database_url=args.database_url)
    if not applied:
        logger.info("schema is up to date")


if __name__ == "__main__":
    main()

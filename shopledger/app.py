"""Application composition root.

This module wires together configuration, the record store, the pending action store, the action
engine and its expiry sweeper for the bot runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from shopledger.actions.engine import ActionEngine
from shopledger.actions.pending import InMemoryPendingStore, PendingActionStore
from shopledger.actions.sweeper import ExpirySweeper
from shopledger.config.settings import Settings
from shopledger.db.pool import create_pool
from shopledger.db.records import PostgresRecordStore
from shopledger.intent.parser import ConfiguredClassifier
from shopledger.ledger.base import RecordStore
from shopledger.ledger.memory import InMemoryRecordStore


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    records: RecordStore
    pending: PendingActionStore
    engine: ActionEngine
    sweeper: ExpirySweeper
    pool: AsyncConnectionPool | None = None

    async def start(self) -> None:
        """Open the DB pool (if any) and start sweeping expired actions."""

        if self.pool is not None:
            await self.pool.open(wait=True)
        self.sweeper.start()

    async def close(self) -> None:
        await self.sweeper.stop()
        if self.pool is not None:
            await self.pool.close()


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        Nothing is started here. Call `await app.start()` at startup and `await app.close()` on
        shutdown. Without `DATABASE_URL` the ledger lives in process memory.
    """

    pool: AsyncConnectionPool | None = None
    records: RecordStore
    if settings.database_url:
        pool = create_pool(settings.database_url, max_size=10)
        records = PostgresRecordStore(pool)
    else:
        records = InMemoryRecordStore()

    pending = InMemoryPendingStore(ttl_s=settings.pending_action_ttl_s)
    engine = ActionEngine(
        classifier=ConfiguredClassifier(
            llm_enabled=settings.llm_enabled,
            llm_api_key=settings.llm_api_key,
        ),
        records=records,
        pending=pending,
        default_locale=settings.default_locale,
    )
    sweeper = ExpirySweeper(
        pending,
        max_age_s=settings.pending_action_ttl_s,
        interval_s=settings.pending_sweep_interval_s,
    )
    return App(
        settings=settings,
        records=records,
        pending=pending,
        engine=engine,
        sweeper=sweeper,
        pool=pool,
    )

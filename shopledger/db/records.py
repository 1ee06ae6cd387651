"""PostgreSQL-backed record store.

All statements are parameterized. Stock changes are applied with a guarded `UPDATE ... WHERE
stock_qty >= requested` so concurrent writers can never drive an item negative or lose an update,
and a sale (header, lines and every deduction) commits in a single transaction.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

import psycopg
from psycopg import AsyncConnection
from psycopg.errors import UniqueViolation
from psycopg_pool import AsyncConnectionPool

from shopledger.actions.amounts import round_amount
from shopledger.ledger.base import (
    CatalogItem,
    DuplicateItemError,
    ExpenseRecord,
    InsufficientStockError,
    ItemNotFoundError,
    RecordStoreError,
    SaleLine,
    SaleRecord,
)

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = "id, owner_id, item_name, stock_qty, cost_per_unit, price_per_unit, category"


def _item_from_row(row: Sequence[Any]) -> CatalogItem:
    return CatalogItem(
        item_id=str(row[0]),
        owner=row[1],
        name=row[2],
        stock_qty=Decimal(row[3]),
        unit_cost=Decimal(row[4]),
        unit_price=Decimal(row[5]),
        category=row[6],
    )


class PostgresRecordStore:
    """`RecordStore` on top of an async psycopg pool."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        """Acquire a pooled connection; driver errors surface as `RecordStoreError`."""

        try:
            async with self._pool.connection() as conn:
                yield conn
        except psycopg.Error as exc:
            logger.warning("record store failure error=%s", type(exc).__name__)
            raise RecordStoreError(f"record store failure: {type(exc).__name__}") from exc

    async def list_items(self, owner: str) -> list[CatalogItem]:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM catalog_items "
                "WHERE owner_id = %s ORDER BY lower(item_name)",
                (owner,),
            )
            rows = await cur.fetchall()
        return [_item_from_row(row) for row in rows]

    async def find_item(self, owner: str, name: str) -> CatalogItem | None:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM catalog_items "
                "WHERE owner_id = %s AND lower(item_name) = lower(%s)",
                (owner, name.strip()),
            )
            row = await cur.fetchone()
        return _item_from_row(row) if row else None

    async def create_item(
            self,
            owner: str,
            *,
            name: str,
            stock_qty: Decimal,
            unit_cost: Decimal,
            unit_price: Decimal,
            category: str,
    ) -> CatalogItem:
        async with self._connection() as conn:
            try:
                async with conn.transaction():
                    cur = await conn.execute(
                        "INSERT INTO catalog_items "
                        "(owner_id, item_name, stock_qty, cost_per_unit, price_per_unit, category) "
                        f"VALUES (%s, %s, %s, %s, %s, %s) RETURNING {_ITEM_COLUMNS}",
                        (owner, name.strip(), stock_qty, unit_cost, unit_price, category),
                    )
                    row = await cur.fetchone()
            except UniqueViolation as exc:
                raise DuplicateItemError(name) from exc

        assert row is not None
        return _item_from_row(row)

    async def _current_item(self, conn: AsyncConnection, owner: str, item_id: str) -> CatalogItem | None:
        cur = await conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM catalog_items WHERE id = %s::uuid AND owner_id = %s",
            (item_id, owner),
        )
        row = await cur.fetchone()
        return _item_from_row(row) if row else None

    async def adjust_item(
            self,
            owner: str,
            item_id: str,
            *,
            delta: Decimal,
            unit_price: Decimal | None = None,
    ) -> CatalogItem:
        async with self._connection() as conn:
            async with conn.transaction():
                cur = await conn.execute(
                    "UPDATE catalog_items "
                    "SET stock_qty = stock_qty + %s, "
                    "    price_per_unit = COALESCE(%s::numeric, price_per_unit), "
                    "    updated_at = NOW() "
                    "WHERE id = %s::uuid AND owner_id = %s AND stock_qty + %s >= 0 "
                    f"RETURNING {_ITEM_COLUMNS}",
                    (delta, unit_price, item_id, owner, delta),
                )
                row = await cur.fetchone()
                if row is None:
                    current = await self._current_item(conn, owner, item_id)
                    if current is None:
                        raise ItemNotFoundError(item_id)
                    raise InsufficientStockError(
                        current.name,
                        available=current.stock_qty,
                        requested=-delta,
                    )

        return _item_from_row(row)

    async def commit_sale(
            self,
            owner: str,
            lines: Sequence[SaleLine],
            *,
            payment_method: str,
            customer_name: str,
    ) -> SaleRecord:
        requested: dict[str, Decimal] = {}
        names: dict[str, str] = {}
        for line in lines:
            requested[line.item_id] = requested.get(line.item_id, Decimal(0)) + line.quantity
            names[line.item_id] = line.item_name

        total = round_amount(sum((line.amount for line in lines), Decimal(0)))

        async with self._connection() as conn:
            async with conn.transaction():
                # Fixed lock order keeps two concurrent multi-item sales from deadlocking.
                for item_id in sorted(requested):
                    quantity = requested[item_id]
                    cur = await conn.execute(
                        "UPDATE catalog_items "
                        "SET stock_qty = stock_qty - %s, updated_at = NOW() "
                        "WHERE id = %s::uuid AND owner_id = %s AND stock_qty >= %s "
                        "RETURNING id",
                        (quantity, item_id, owner, quantity),
                    )
                    if await cur.fetchone() is None:
                        current = await self._current_item(conn, owner, item_id)
                        if current is None:
                            raise ItemNotFoundError(names[item_id])
                        raise InsufficientStockError(
                            current.name,
                            available=current.stock_qty,
                            requested=quantity,
                        )

                cur = await conn.execute(
                    "INSERT INTO sales (owner_id, payment_method, customer_name, total_amount) "
                    "VALUES (%s, %s, %s, %s) RETURNING id, created_at",
                    (owner, payment_method, customer_name, total),
                )
                header = await cur.fetchone()
                assert header is not None
                sale_id, created_at = header

                async with conn.cursor() as line_cur:
                    await line_cur.executemany(
                        "INSERT INTO sale_lines "
                        "(sale_id, line_no, item_id, item_name, quantity, price_per_unit, cost_per_unit) "
                        "VALUES (%s, %s, %s::uuid, %s, %s, %s, %s)",
                        [
                            (
                                sale_id,
                                line_no,
                                line.item_id,
                                line.item_name,
                                line.quantity,
                                line.price_per_unit,
                                line.cost_per_unit,
                            )
                            for line_no, line in enumerate(lines, start=1)
                        ],
                    )

        return SaleRecord(
            sale_id=str(sale_id),
            owner=owner,
            lines=tuple(lines),
            payment_method=payment_method,
            customer_name=customer_name,
            created_at=created_at,
        )

    async def create_expense(
            self,
            owner: str,
            *,
            amount: Decimal,
            description: str,
            category: str,
    ) -> ExpenseRecord:
        async with self._connection() as conn:
            async with conn.transaction():
                cur = await conn.execute(
                    "INSERT INTO expenses (owner_id, amount, description, category) "
                    "VALUES (%s, %s, %s, %s) RETURNING id, created_at",
                    (owner, amount, description, category),
                )
                row = await cur.fetchone()

        assert row is not None
        expense_id, created_at = row
        return ExpenseRecord(
            expense_id=str(expense_id),
            owner=owner,
            amount=amount,
            description=description,
            category=category,
            created_at=created_at,
        )

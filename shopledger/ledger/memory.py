"""In-memory record store for tests and local runs.

None of the methods await between reading and writing, so under a single event loop every call is
atomic with respect to other coroutines.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal

from shopledger.ledger.base import (
    CatalogItem,
    DuplicateItemError,
    ExpenseRecord,
    InsufficientStockError,
    ItemNotFoundError,
    SaleLine,
    SaleRecord,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryRecordStore:
    """Dictionary-backed `RecordStore`."""

    def __init__(self) -> None:
        self.items: dict[str, CatalogItem] = {}
        self.sales: list[SaleRecord] = []
        self.expenses: list[ExpenseRecord] = []

    def seed_item(
            self,
            owner: str,
            name: str,
            *,
            stock_qty: Decimal | int = 0,
            unit_cost: Decimal | int = 0,
            unit_price: Decimal | int = 0,
            category: str = "Other",
    ) -> CatalogItem:
        """Synchronously add a catalog item (test/setup helper)."""

        item = CatalogItem(
            item_id=_new_id(),
            owner=owner,
            name=name,
            stock_qty=Decimal(stock_qty),
            unit_cost=Decimal(unit_cost),
            unit_price=Decimal(unit_price),
            category=category,
        )
        self.items[item.item_id] = item
        return item

    def item_named(self, owner: str, name: str) -> CatalogItem | None:
        wanted = name.strip().casefold()
        for item in self.items.values():
            if item.owner == owner and item.name.casefold() == wanted:
                return item
        return None

    async def list_items(self, owner: str) -> list[CatalogItem]:
        return sorted(
            (item for item in self.items.values() if item.owner == owner),
            key=lambda item: item.name.casefold(),
        )

    async def find_item(self, owner: str, name: str) -> CatalogItem | None:
        return self.item_named(owner, name)

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
        if self.item_named(owner, name) is not None:
            raise DuplicateItemError(name)
        return self.seed_item(
            owner,
            name,
            stock_qty=stock_qty,
            unit_cost=unit_cost,
            unit_price=unit_price,
            category=category,
        )

    def _owned(self, owner: str, item_id: str, name: str | None = None) -> CatalogItem:
        item = self.items.get(item_id)
        if item is None or item.owner != owner:
            raise ItemNotFoundError(name or item_id)
        return item

    async def adjust_item(
            self,
            owner: str,
            item_id: str,
            *,
            delta: Decimal,
            unit_price: Decimal | None = None,
    ) -> CatalogItem:
        item = self._owned(owner, item_id)
        new_stock = item.stock_qty + delta
        if new_stock < 0:
            raise InsufficientStockError(item.name, available=item.stock_qty, requested=-delta)
        updated = replace(
            item,
            stock_qty=new_stock,
            unit_price=unit_price if unit_price is not None else item.unit_price,
        )
        self.items[item_id] = updated
        return updated

    async def commit_sale(
            self,
            owner: str,
            lines: Sequence[SaleLine],
            *,
            payment_method: str,
            customer_name: str,
    ) -> SaleRecord:
        requested: dict[str, Decimal] = {}
        for line in lines:
            requested[line.item_id] = requested.get(line.item_id, Decimal(0)) + line.quantity

        # Check every line before touching any item.
        for line in lines:
            item = self._owned(owner, line.item_id, line.item_name)
            if item.stock_qty < requested[line.item_id]:
                raise InsufficientStockError(
                    item.name,
                    available=item.stock_qty,
                    requested=requested[line.item_id],
                )

        for item_id, quantity in requested.items():
            item = self.items[item_id]
            self.items[item_id] = replace(item, stock_qty=item.stock_qty - quantity)

        sale = SaleRecord(
            sale_id=_new_id(),
            owner=owner,
            lines=tuple(lines),
            payment_method=payment_method,
            customer_name=customer_name,
            created_at=datetime.now(UTC),
        )
        self.sales.append(sale)
        return sale

    async def create_expense(
            self,
            owner: str,
            *,
            amount: Decimal,
            description: str,
            category: str,
    ) -> ExpenseRecord:
        expense = ExpenseRecord(
            expense_id=_new_id(),
            owner=owner,
            amount=amount,
            description=description,
            category=category,
            created_at=datetime.now(UTC),
        )
        self.expenses.append(expense)
        return expense

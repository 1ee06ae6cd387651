"""Record store contract: catalog items, sales and expenses.

The store owns the business ledger. Implementations must serialize writes to a single catalog item
(no lost stock updates) and must apply `commit_sale` as one all-or-nothing unit.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from shopledger.actions.amounts import round_amount


class LedgerError(RuntimeError):
    """Base class for record store failures."""


class ItemNotFoundError(LedgerError):
    """Raised when a named catalog item does not exist for the owner."""

    def __init__(self, item_name: str) -> None:
        super().__init__(f'Item "{item_name}" not found in inventory')
        self.item_name = item_name


class InsufficientStockError(LedgerError):
    """Raised when a catalog item cannot cover the requested quantity."""

    def __init__(self, item_name: str, *, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            f'Insufficient stock for "{item_name}". Available: {available}, Requested: {requested}'
        )
        self.item_name = item_name
        self.available = available
        self.requested = requested


class DuplicateItemError(LedgerError):
    """Raised when creating a catalog item whose name the owner already uses."""

    def __init__(self, item_name: str) -> None:
        super().__init__(f'Item "{item_name}" already exists in inventory')
        self.item_name = item_name


class RecordStoreError(LedgerError):
    """Raised when the underlying storage fails unexpectedly."""


@dataclass(frozen=True)
class CatalogItem:
    item_id: str
    owner: str
    name: str
    stock_qty: Decimal
    unit_cost: Decimal
    unit_price: Decimal
    category: str


@dataclass(frozen=True)
class SaleLine:
    """A sold quantity bound to its selling price and the catalog cost basis."""

    item_id: str
    item_name: str
    quantity: Decimal
    price_per_unit: Decimal
    cost_per_unit: Decimal

    @property
    def amount(self) -> Decimal:
        return round_amount(self.quantity * self.price_per_unit)


@dataclass(frozen=True)
class SaleRecord:
    sale_id: str
    owner: str
    lines: tuple[SaleLine, ...]
    payment_method: str
    customer_name: str
    created_at: datetime

    @property
    def total_amount(self) -> Decimal:
        return round_amount(sum((line.amount for line in self.lines), Decimal(0)))


@dataclass(frozen=True)
class ExpenseRecord:
    expense_id: str
    owner: str
    amount: Decimal
    description: str
    category: str
    created_at: datetime


class RecordStore(Protocol):
    """Async access to one deployment's business ledger, always scoped by owner."""

    async def list_items(self, owner: str) -> list[CatalogItem]:
        """Return the owner's catalog."""

    async def find_item(self, owner: str, name: str) -> CatalogItem | None:
        """Find a catalog item by case-insensitive exact name."""

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
        """Create a catalog item. Raises `DuplicateItemError` if the name is taken."""

    async def adjust_item(
            self,
            owner: str,
            item_id: str,
            *,
            delta: Decimal,
            unit_price: Decimal | None = None,
    ) -> CatalogItem:
        """Apply a signed stock delta (and optional new price) and return the updated item.

        Raises `InsufficientStockError` if the delta would make the stock negative.
        """

    async def commit_sale(
            self,
            owner: str,
            lines: Sequence[SaleLine],
            *,
            payment_method: str,
            customer_name: str,
    ) -> SaleRecord:
        """Persist a sale and deduct every line's quantity, all or nothing.

        Raises `InsufficientStockError` (and leaves the ledger untouched) if any line cannot be
        covered at commit time.
        """

    async def create_expense(
            self,
            owner: str,
            *,
            amount: Decimal,
            description: str,
            category: str,
    ) -> ExpenseRecord:
        """Persist an expense."""

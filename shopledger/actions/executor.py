"""Execution of confirmed actions against the record store.

Validation has already checked the payload shape and staging has bound item names to the catalog;
here every action is checked for feasibility against the owner's current catalog. Items are looked
up by exact name only, so execution touches exactly the items the operator confirmed.

Mutations for one owner are serialized by an in-process lock, and a sale is committed through a
single `commit_sale` call so that either every line is recorded and deducted or nothing is.
"""

from __future__ import annotations

import asyncio
import difflib
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import assert_never

from shopledger.actions.models import (
    ActionPayload,
    AddExpense,
    AddInventory,
    AddSale,
    UpdateInventory,
)
from shopledger.ledger.base import (
    CatalogItem,
    DuplicateItemError,
    InsufficientStockError,
    ItemNotFoundError,
    RecordStore,
    SaleLine,
)

logger = logging.getLogger(__name__)

FUZZY_MATCH_CUTOFF = 0.8
_DIGITS_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class SaleOutcome:
    sale_id: str
    total_amount: Decimal


@dataclass(frozen=True)
class ExpenseOutcome:
    expense_id: str
    amount: Decimal


@dataclass(frozen=True)
class InventoryUpdateOutcome:
    item_name: str
    new_stock: Decimal


@dataclass(frozen=True)
class InventoryAddOutcome:
    item_name: str
    stock: Decimal


ExecutionOutcome = SaleOutcome | ExpenseOutcome | InventoryUpdateOutcome | InventoryAddOutcome


def _digits(name: str) -> list[str]:
    return _DIGITS_RE.findall(name)


def match_catalog_item(name: str, catalog: Sequence[CatalogItem]) -> CatalogItem | None:
    """Find `name` in the catalog: case-insensitive exact match first, then a close match.

    A close match must carry the same numbers as `name` ("Rice 5kg" never matches "Rice 1kg").
    """

    wanted = name.strip().casefold()
    by_name = {item.name.casefold(): item for item in catalog}
    if wanted in by_name:
        return by_name[wanted]

    for candidate in difflib.get_close_matches(wanted, list(by_name), n=3, cutoff=FUZZY_MATCH_CUTOFF):
        if _digits(candidate) == _digits(wanted):
            return by_name[candidate]
    return None


def find_catalog_item(name: str, catalog: Sequence[CatalogItem]) -> CatalogItem | None:
    """Case-insensitive exact lookup."""

    wanted = name.strip().casefold()
    for item in catalog:
        if item.name.casefold() == wanted:
            return item
    return None


def bind_to_catalog(payload: ActionPayload, catalog: Sequence[CatalogItem]) -> ActionPayload:
    """Rewrite item names to the catalog's spelling of their closest match.

    Runs before the preview is composed, so the operator confirms the exact catalog item that
    execution will touch. Names without a match are left as written and fail at execution.
    """

    def _bound(name: str) -> str:
        item = match_catalog_item(name, catalog)
        return item.name if item is not None else name

    match payload:
        case AddSale():
            items = [
                entry.model_copy(update={"item_name": _bound(entry.item_name)})
                for entry in payload.items
            ]
            return payload.model_copy(update={"items": items})
        case UpdateInventory():
            return payload.model_copy(update={"item_name": _bound(payload.item_name)})
        case AddExpense() | AddInventory():
            return payload
        case _:
            assert_never(payload)


class TransactionExecutor:
    """Applies confirmed actions to a `RecordStore`."""

    def __init__(self, records: RecordStore) -> None:
        self._records = records
        self._owner_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, owner: str) -> asyncio.Lock:
        lock = self._owner_locks.get(owner)
        if lock is None:
            lock = self._owner_locks[owner] = asyncio.Lock()
        return lock

    async def execute(self, owner: str, payload: ActionPayload) -> ExecutionOutcome:
        """Dispatch to the handler for the payload's kind."""

        match payload:
            case AddSale():
                return await self.execute_sale(owner, payload)
            case AddExpense():
                return await self.execute_expense(owner, payload)
            case UpdateInventory():
                return await self.execute_inventory_update(owner, payload)
            case AddInventory():
                return await self.execute_inventory_add(owner, payload)
            case _:
                assert_never(payload)

    async def execute_sale(self, owner: str, payload: AddSale) -> SaleOutcome:
        """Record a sale and deduct stock for every line.

        Raises:
            ItemNotFoundError: If any line names an item missing from the catalog.
            InsufficientStockError: If any item cannot cover its (summed) requested quantity.
        """

        async with self._lock_for(owner):
            catalog = await self._records.list_items(owner)

            lines: list[SaleLine] = []
            matched: dict[str, CatalogItem] = {}
            requested: dict[str, Decimal] = {}
            for entry in payload.items:
                item = find_catalog_item(entry.item_name, catalog)
                if item is None:
                    raise ItemNotFoundError(entry.item_name)
                matched[item.item_id] = item
                requested[item.item_id] = requested.get(item.item_id, Decimal(0)) + entry.quantity
                lines.append(
                    SaleLine(
                        item_id=item.item_id,
                        item_name=item.name,
                        quantity=entry.quantity,
                        price_per_unit=entry.price_per_unit,
                        cost_per_unit=item.unit_cost,
                    )
                )

            for item_id, quantity in requested.items():
                item = matched[item_id]
                if item.stock_qty < quantity:
                    raise InsufficientStockError(
                        item.name,
                        available=item.stock_qty,
                        requested=quantity,
                    )

            sale = await self._records.commit_sale(
                owner,
                lines,
                payment_method=payload.payment_method,
                customer_name=payload.customer_name,
            )

        logger.info("sale committed owner=%s lines=%d total=%s", owner, len(lines), sale.total_amount)
        return SaleOutcome(sale_id=sale.sale_id, total_amount=sale.total_amount)

    async def execute_expense(self, owner: str, payload: AddExpense) -> ExpenseOutcome:
        expense = await self._records.create_expense(
            owner,
            amount=payload.amount,
            description=payload.description,
            category=payload.category,
        )
        return ExpenseOutcome(expense_id=expense.expense_id, amount=expense.amount)

    async def execute_inventory_update(
            self,
            owner: str,
            payload: UpdateInventory,
    ) -> InventoryUpdateOutcome:
        """Apply a signed stock delta and an optional new price to an existing item."""

        async with self._lock_for(owner):
            item = await self._records.find_item(owner, payload.item_name)
            if item is None:
                raise ItemNotFoundError(payload.item_name)

            updated = await self._records.adjust_item(
                owner,
                item.item_id,
                delta=payload.stock_qty,
                unit_price=payload.price_per_unit,
            )

        return InventoryUpdateOutcome(item_name=updated.name, new_stock=updated.stock_qty)

    async def execute_inventory_add(self, owner: str, payload: AddInventory) -> InventoryAddOutcome:
        """Create a catalog item; unspecified quantity and price default to zero."""

        async with self._lock_for(owner):
            if await self._records.find_item(owner, payload.item_name) is not None:
                raise DuplicateItemError(payload.item_name)

            item = await self._records.create_item(
                owner,
                name=payload.item_name,
                stock_qty=payload.stock_qty,
                unit_cost=payload.unit_cost,
                unit_price=payload.price_per_unit,
                category=payload.category,
            )

        return InventoryAddOutcome(item_name=item.name, stock=item.stock_qty)

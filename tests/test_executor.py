from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from conftest import OTHER_OWNER, OWNER
from shopledger.actions.executor import (
    InventoryAddOutcome,
    InventoryUpdateOutcome,
    SaleOutcome,
    TransactionExecutor,
    bind_to_catalog,
    match_catalog_item,
)
from shopledger.actions.models import AddExpense, AddInventory, AddSale, UpdateInventory
from shopledger.ledger.base import DuplicateItemError, InsufficientStockError, ItemNotFoundError
from shopledger.ledger.memory import InMemoryRecordStore


def _sale(*items: tuple[str, int, int], **extra: object) -> AddSale:
    return AddSale.model_validate(
        {
            "items": [
                {"item_name": name, "quantity": qty, "price_per_unit": price}
                for name, qty, price in items
            ],
            **extra,
        }
    )


def test_match_catalog_item_exact_then_fuzzy(records: InMemoryRecordStore) -> None:
    rice = records.seed_item(OWNER, "Basmati Rice")
    milk = records.seed_item(OWNER, "Milk")
    catalog = [rice, milk]

    assert match_catalog_item("MILK", catalog) is milk
    assert match_catalog_item("basmati rice ", catalog) is rice
    assert match_catalog_item("basmati ryce", catalog) is rice
    assert match_catalog_item("bread", catalog) is None


def test_match_catalog_item_keeps_numbers_apart(records: InMemoryRecordStore) -> None:
    catalog = [records.seed_item(OWNER, "Rice 1kg")]

    assert match_catalog_item("Rice 5kg", catalog) is None
    assert match_catalog_item("rice 1 kg", catalog) is catalog[0]


def test_bind_to_catalog_uses_catalog_spelling(records: InMemoryRecordStore) -> None:
    catalog = [records.seed_item(OWNER, "Basmati Rice"), records.seed_item(OWNER, "Biscuits")]

    sale = bind_to_catalog(_sale(("basmati ryce", 2, 60), ("Chocolate", 1, 20)), catalog)
    update = bind_to_catalog(UpdateInventory(item_name="Biscuit", stock_qty=10), catalog)
    expense = AddExpense(amount=100, description="tea", category="Other")

    assert isinstance(sale, AddSale)
    assert [entry.item_name for entry in sale.items] == ["Basmati Rice", "Chocolate"]
    assert sale.items[0].quantity == Decimal("2.000")
    assert update == UpdateInventory(item_name="Biscuits", stock_qty=10)
    assert bind_to_catalog(expense, catalog) is expense


@pytest.mark.asyncio
async def test_sale_records_lines_and_deducts_stock(records: InMemoryRecordStore) -> None:
    rice = records.seed_item(OWNER, "Rice", stock_qty=10, unit_cost=22, unit_price=30)
    executor = TransactionExecutor(records)

    outcome = await executor.execute(OWNER, _sale(("rice", 5, 30), payment_method="UPI"))

    assert isinstance(outcome, SaleOutcome)
    assert outcome.total_amount == Decimal("150.00")
    assert records.items[rice.item_id].stock_qty == Decimal("5")

    [sale] = records.sales
    assert sale.sale_id == outcome.sale_id
    assert sale.payment_method == "UPI"
    assert sale.customer_name == "Walk-in Customer"
    [line] = sale.lines
    assert line.item_name == "Rice"
    assert line.price_per_unit == Decimal("30.00")
    assert line.cost_per_unit == Decimal("22")


@pytest.mark.asyncio
async def test_sale_with_insufficient_stock_changes_nothing(records: InMemoryRecordStore) -> None:
    rice = records.seed_item(OWNER, "Rice", stock_qty=3)
    executor = TransactionExecutor(records)

    with pytest.raises(InsufficientStockError) as exc_info:
        await executor.execute(OWNER, _sale(("Rice", 5, 30)))

    assert exc_info.value.item_name == "Rice"
    assert exc_info.value.available == Decimal("3")
    assert exc_info.value.requested == Decimal("5")
    assert records.items[rice.item_id].stock_qty == Decimal("3")
    assert records.sales == []


@pytest.mark.asyncio
async def test_multi_item_sale_is_all_or_nothing(records: InMemoryRecordStore) -> None:
    rice = records.seed_item(OWNER, "Rice", stock_qty=10)
    milk = records.seed_item(OWNER, "Milk", stock_qty=1)
    executor = TransactionExecutor(records)

    with pytest.raises(InsufficientStockError):
        await executor.execute(OWNER, _sale(("Rice", 5, 30), ("Milk", 2, 25)))

    with pytest.raises(ItemNotFoundError) as exc_info:
        await executor.execute(OWNER, _sale(("Rice", 5, 30), ("Sugar", 1, 40)))

    assert exc_info.value.item_name == "Sugar"
    assert records.items[rice.item_id].stock_qty == Decimal("10")
    assert records.items[milk.item_id].stock_qty == Decimal("1")
    assert records.sales == []


@pytest.mark.asyncio
async def test_repeated_item_lines_are_checked_together(records: InMemoryRecordStore) -> None:
    records.seed_item(OWNER, "Rice", stock_qty=6)
    executor = TransactionExecutor(records)

    with pytest.raises(InsufficientStockError) as exc_info:
        await executor.execute(OWNER, _sale(("Rice", 4, 30), ("rice", 4, 28)))

    assert exc_info.value.requested == Decimal("8")


@pytest.mark.asyncio
async def test_catalog_is_scoped_by_owner(records: InMemoryRecordStore) -> None:
    records.seed_item(OTHER_OWNER, "Rice", stock_qty=10)
    executor = TransactionExecutor(records)

    with pytest.raises(ItemNotFoundError):
        await executor.execute(OWNER, _sale(("Rice", 1, 30)))


@pytest.mark.asyncio
async def test_concurrent_sales_never_oversell(records: InMemoryRecordStore) -> None:
    rice = records.seed_item(OWNER, "Rice", stock_qty=5)
    executor = TransactionExecutor(records)

    results = await asyncio.gather(
        *(executor.execute(OWNER, _sale(("Rice", 2, 30))) for _ in range(4)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, SaleOutcome) for r in results) == 2
    assert sum(isinstance(r, InsufficientStockError) for r in results) == 2
    assert records.items[rice.item_id].stock_qty == Decimal("1")


@pytest.mark.asyncio
async def test_expense_is_recorded(records: InMemoryRecordStore) -> None:
    executor = TransactionExecutor(records)

    await executor.execute(OWNER, AddExpense(amount=1200, description="electricity bill", category="Electricity"))

    [expense] = records.expenses
    assert expense.owner == OWNER
    assert expense.amount == Decimal("1200.00")
    assert expense.category == "Electricity"


@pytest.mark.asyncio
async def test_inventory_update_applies_delta_and_price(records: InMemoryRecordStore) -> None:
    milk = records.seed_item(OWNER, "Milk", stock_qty=20, unit_price=25)
    executor = TransactionExecutor(records)

    outcome = await executor.execute(OWNER, UpdateInventory(item_name="milk", stock_qty=-5))
    assert outcome == InventoryUpdateOutcome(item_name="Milk", new_stock=Decimal("15"))

    await executor.execute(OWNER, UpdateInventory(item_name="Milk", price_per_unit=27))
    assert records.items[milk.item_id].stock_qty == Decimal("15")
    assert records.items[milk.item_id].unit_price == Decimal("27.00")


@pytest.mark.asyncio
async def test_inventory_update_needs_exact_name(records: InMemoryRecordStore) -> None:
    biscuits = records.seed_item(OWNER, "Biscuits", stock_qty=2)
    executor = TransactionExecutor(records)

    with pytest.raises(ItemNotFoundError):
        await executor.execute(OWNER, UpdateInventory(item_name="Biscuit", stock_qty=10))
    assert records.items[biscuits.item_id].stock_qty == Decimal("2")

    outcome = await executor.execute(OWNER, UpdateInventory(item_name="biscuits", stock_qty=10))
    assert outcome == InventoryUpdateOutcome(item_name="Biscuits", new_stock=Decimal("12"))


@pytest.mark.asyncio
async def test_inventory_update_failures(records: InMemoryRecordStore) -> None:
    records.seed_item(OWNER, "Milk", stock_qty=3)
    executor = TransactionExecutor(records)

    with pytest.raises(ItemNotFoundError):
        await executor.execute(OWNER, UpdateInventory(item_name="Bread", stock_qty=5))
    with pytest.raises(InsufficientStockError):
        await executor.execute(OWNER, UpdateInventory(item_name="Milk", stock_qty=-5))


@pytest.mark.asyncio
async def test_inventory_add_creates_item_with_defaults(records: InMemoryRecordStore) -> None:
    executor = TransactionExecutor(records)

    outcome = await executor.execute(OWNER, AddInventory(item_name="Chocolate"))

    assert outcome == InventoryAddOutcome(item_name="Chocolate", stock=Decimal("0"))
    item = records.item_named(OWNER, "chocolate")
    assert item is not None
    assert item.unit_price == Decimal("0")
    assert item.category == "Other"


@pytest.mark.asyncio
async def test_inventory_add_rejects_duplicate_name(records: InMemoryRecordStore) -> None:
    records.seed_item(OWNER, "Soap")
    executor = TransactionExecutor(records)

    with pytest.raises(DuplicateItemError):
        await executor.execute(OWNER, AddInventory(item_name="soap", stock_qty=10))

"""Action payload models and the staged action record.

The four action kinds form a closed set. Each kind has exactly one payload model; code that needs
to branch on the kind matches on the payload class and ends with `assert_never`, so adding a kind
is caught by the type checker in the validator, the composer and the executor at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shopledger.actions.amounts import (
    MAX_AMOUNT,
    AmountError,
    positive_amount,
    positive_quantity,
    round_amount,
    round_quantity,
)


class ActionKind(StrEnum):
    """Supported ledger mutations (wire names as produced by the classifier)."""

    add_sale = "add_sale"
    add_expense = "add_expense"
    update_inventory = "update_inventory"
    add_inventory = "add_inventory"


PaymentMethod = Literal["Cash", "Card", "UPI", "Bank Transfer", "Credit"]

PAYMENT_METHODS: tuple[str, ...] = ("Cash", "Card", "UPI", "Bank Transfer", "Credit")
DEFAULT_PAYMENT_METHOD = "Cash"
DEFAULT_CUSTOMER_NAME = "Walk-in Customer"

CATALOG_CATEGORIES: tuple[str, ...] = (
    "Electronics",
    "Clothing",
    "Food & Beverages",
    "Books",
    "Home & Garden",
    "Sports",
    "Beauty & Health",
    "Automotive",
    "Office Supplies",
    "Other",
)
DEFAULT_CATALOG_CATEGORY = "Other"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)


class SaleItem(_Payload):
    """One line of a sale as requested by the operator."""

    item_name: str = Field(min_length=1)
    quantity: Decimal
    price_per_unit: Decimal

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, value: Any) -> Decimal:
        return positive_quantity(value)

    @field_validator("price_per_unit", mode="before")
    @classmethod
    def validate_price(cls, value: Any) -> Decimal:
        return positive_amount(value)

    @model_validator(mode="after")
    def check_line_total(self) -> SaleItem:
        if self.quantity * self.price_per_unit > MAX_AMOUNT:
            raise AmountError(f"line total must not exceed {MAX_AMOUNT}")
        return self

    @property
    def line_total(self) -> Decimal:
        return round_amount(self.quantity * self.price_per_unit)


class AddSale(_Payload):
    kind: ClassVar[ActionKind] = ActionKind.add_sale

    items: list[SaleItem] = Field(min_length=1)
    payment_method: PaymentMethod = DEFAULT_PAYMENT_METHOD
    customer_name: str = DEFAULT_CUSTOMER_NAME

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, value: Any) -> Any:
        """Accept payment methods case-insensitively; a missing value means cash."""

        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PAYMENT_METHOD
        if isinstance(value, str):
            for method in PAYMENT_METHODS:
                if method.lower() == value.strip().lower():
                    return method
        return value

    @field_validator("customer_name", mode="before")
    @classmethod
    def default_customer(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_CUSTOMER_NAME
        return value

    @model_validator(mode="after")
    def check_total(self) -> AddSale:
        if sum((item.line_total for item in self.items), Decimal(0)) > MAX_AMOUNT:
            raise AmountError(f"sale total must not exceed {MAX_AMOUNT}")
        return self

    @property
    def total_amount(self) -> Decimal:
        return round_amount(sum((item.line_total for item in self.items), Decimal(0)))


class AddExpense(_Payload):
    kind: ClassVar[ActionKind] = ActionKind.add_expense

    amount: Decimal
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> Decimal:
        return positive_amount(value)


class UpdateInventory(_Payload):
    """Stock adjustment of an existing catalog item.

    `stock_qty` is a signed delta: positive restocks, negative records consumption.
    """

    kind: ClassVar[ActionKind] = ActionKind.update_inventory

    item_name: str = Field(min_length=1)
    stock_qty: Decimal = Decimal(0)
    price_per_unit: Decimal | None = None

    @field_validator("stock_qty", mode="before")
    @classmethod
    def validate_delta(cls, value: Any) -> Decimal:
        if value is None:
            return Decimal(0)
        return round_quantity(value)

    @field_validator("price_per_unit", mode="before")
    @classmethod
    def validate_price(cls, value: Any) -> Decimal | None:
        if value is None:
            return None
        return positive_amount(value)


class AddInventory(_Payload):
    kind: ClassVar[ActionKind] = ActionKind.add_inventory

    item_name: str = Field(min_length=1)
    stock_qty: Decimal = Decimal(0)
    price_per_unit: Decimal = Decimal(0)
    cost_per_unit: Decimal | None = None
    category: str = DEFAULT_CATALOG_CATEGORY

    @field_validator("stock_qty", mode="before")
    @classmethod
    def validate_quantity(cls, value: Any) -> Decimal:
        if value is None:
            return Decimal(0)
        return positive_quantity(value)

    @field_validator("price_per_unit", mode="before")
    @classmethod
    def validate_price(cls, value: Any) -> Decimal:
        if value is None:
            return Decimal(0)
        return positive_amount(value)

    @field_validator("cost_per_unit", mode="before")
    @classmethod
    def validate_cost(cls, value: Any) -> Decimal | None:
        if value is None:
            return None
        return positive_amount(value)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value: Any) -> str:
        """Map the category onto the catalog's fixed list (unknown -> generic bucket)."""

        if not isinstance(value, str):
            return DEFAULT_CATALOG_CATEGORY
        for category in CATALOG_CATEGORIES:
            if category.lower() == value.strip().lower():
                return category
        return DEFAULT_CATALOG_CATEGORY

    @property
    def unit_cost(self) -> Decimal:
        return self.cost_per_unit if self.cost_per_unit is not None else self.price_per_unit


ActionPayload = AddSale | AddExpense | UpdateInventory | AddInventory

PAYLOAD_MODELS: dict[ActionKind, type[_Payload]] = {
    ActionKind.add_sale: AddSale,
    ActionKind.add_expense: AddExpense,
    ActionKind.update_inventory: UpdateInventory,
    ActionKind.add_inventory: AddInventory,
}


@dataclass(frozen=True)
class StagedAction:
    """A validated, not-yet-committed mutation awaiting explicit confirmation."""

    id: str
    owner: str
    payload: ActionPayload
    locale: str
    issued_at: datetime
    source_text: str

    @property
    def kind(self) -> ActionKind:
        return self.payload.kind

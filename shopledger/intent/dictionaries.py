"""English keyword dictionaries for the rules-based classifier.

These mappings should remain small and deterministic; anything they do not cover is left to the
LLM classifier (or rejected as unsupported).
"""

from __future__ import annotations

QUESTION_WORDS: frozenset[str] = frozenset(
    {
        "what",
        "whats",
        "how",
        "which",
        "who",
        "when",
        "where",
        "why",
        "show",
        "list",
        "tell",
        "is",
        "are",
        "do",
        "does",
        "did",
        "can",
        "could",
    }
)

SALE_TERMS: frozenset[str] = frozenset({"sold", "sell", "sale", "sales", "selling"})

EXPENSE_TERMS: frozenset[str] = frozenset(
    {"expense", "expenses", "paid", "pay", "spent", "spend", "bill"}
)

NEW_ITEM_PHRASES: tuple[str, ...] = ("new item", "new product", "add item", "add product")

RESTOCK_TERMS: frozenset[str] = frozenset(
    {"restock", "restocked", "received", "receive", "added", "add", "bought", "purchased", "stock"}
)

REDUCE_TERMS: frozenset[str] = frozenset(
    {"reduce", "decrease", "remove", "removed", "deduct", "used", "consumed", "damaged", "wasted"}
)

# Filler words stripped from item names ("5 bottles of pepsi" -> "pepsi").
UNIT_WORDS: frozenset[str] = frozenset(
    {
        "x",
        "pc",
        "pcs",
        "piece",
        "pieces",
        "unit",
        "units",
        "bottle",
        "bottles",
        "packet",
        "packets",
        "pack",
        "packs",
        "box",
        "boxes",
        "kg",
        "kgs",
        "g",
        "litre",
        "litres",
        "liter",
        "liters",
        "l",
        "dozen",
        "of",
        "the",
        "a",
        "an",
    }
)

# Ordered: the first matching keyword decides the category.
EXPENSE_CATEGORY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("electricity", "Electricity"),
    ("electric", "Electricity"),
    ("power", "Electricity"),
    ("rent", "Rent"),
    ("marketing", "Marketing"),
    ("advertis", "Marketing"),
    ("office supplies", "Office Supplies"),
    ("stationery", "Office Supplies"),
    ("salary", "Salaries"),
    ("salaries", "Salaries"),
    ("wages", "Salaries"),
    ("transport", "Transport"),
    ("delivery", "Transport"),
    ("fuel", "Transport"),
    ("petrol", "Transport"),
    ("internet", "Internet"),
    ("wifi", "Internet"),
    ("phone", "Internet"),
    ("water", "Water"),
    ("repair", "Maintenance"),
    ("maintenance", "Maintenance"),
)
DEFAULT_EXPENSE_CATEGORY = "Other"

PAYMENT_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("bank transfer", "Bank Transfer"),
    ("upi", "UPI"),
    ("gpay", "UPI"),
    ("phonepe", "UPI"),
    ("paytm", "UPI"),
    ("card", "Card"),
    ("credit", "Credit"),
    ("udhaar", "Credit"),
    ("cash", "Cash"),
)

# Words that never start an item name in a sale/stock phrase.
COMMAND_WORDS: frozenset[str] = frozenset(
    {
        "record",
        "log",
        "add",
        "added",
        "update",
        "stock",
        "sold",
        "sell",
        "sale",
        "please",
        "i",
        "we",
        "have",
        "today",
        "just",
    }
)


def detect_expense_category(text: str) -> str:
    """Return the expense category for the first known keyword in `text`."""

    padded = f" {text} "
    for keyword, category in EXPENSE_CATEGORY_KEYWORDS:
        if f" {keyword}" in padded:
            return category
    return DEFAULT_EXPENSE_CATEGORY


def has_expense_category_keyword(text: str) -> bool:
    return detect_expense_category(text) != DEFAULT_EXPENSE_CATEGORY


def detect_payment_method(text: str) -> str | None:
    """Return the payment method explicitly mentioned in `text`, if any."""

    padded = f" {text} "
    for keyword, method in PAYMENT_KEYWORDS:
        if f" {keyword} " in padded:
            return method
    return None

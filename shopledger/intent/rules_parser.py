"""Rules-based English action classifier (baseline).

This classifier is intentionally strict and deterministic:
    - it only recognizes a limited set of phrasings for the four action kinds,
    - questions are reported as non-actions,
    - anything else is rejected as unsupported rather than guessed.

Payload values are emitted as `Decimal`/`str`; the action validator decides whether they are
acceptable.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from shopledger.intent.dictionaries import (
    COMMAND_WORDS,
    EXPENSE_TERMS,
    NEW_ITEM_PHRASES,
    QUESTION_WORDS,
    REDUCE_TERMS,
    RESTOCK_TERMS,
    SALE_TERMS,
    UNIT_WORDS,
    detect_expense_category,
    detect_payment_method,
    has_expense_category_keyword,
)
from shopledger.intent.normalize import normalize_text
from shopledger.intent.schema import Classification

RULES_CONFIDENCE = 0.8

_NUMBER = r"\d+(?:\.\d+)?"
_NUMBER_RE = re.compile(rf"(?<![\d.]){_NUMBER}(?![\d.])")
_NUMBER_TOKEN_RE = re.compile(rf"{_NUMBER}x?")

_SALE_ITEM_RE = re.compile(
    rf"(?<![\d.])(?P<qty>{_NUMBER})\s*x?\s+"
    r"(?P<name>[a-z&]+(?:\s+[a-z&]+){0,4}?)\s+"
    r"(?:sold\s+|sale\s+)?"
    r"(?:(?P<conn>at|@|for|price)\s+)?"
    rf"(?P<price>{_NUMBER})"
    r"(?:\s+(?P<each>each|apiece|per\s+[a-z]+))?"
)

_CUSTOMER_RE = re.compile(r"\bto\s+(?P<name>[a-z]+)\b")

_PRICE_CHANGE_RES: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\bprice\s+of\s+(?P<name>[a-z& ]+?)\s+(?:to\s+|as\s+|is\s+)?(?P<price>{_NUMBER})"),
    re.compile(rf"\b(?P<name>[a-z& ]+?)\s+price\s+(?:to\s+|as\s+|is\s+|at\s+)?(?P<price>{_NUMBER})"),
)

_UNIT_PRICE_RE = re.compile(rf"\b(?:at|@|price)\s+(?P<price>{_NUMBER})")
_CATEGORY_RE = re.compile(r"\bcategory\s+(?P<category>[a-z& ]+)$")

_EXPENSE_FILLER: frozenset[str] = frozenset(
    {
        "add",
        "added",
        "record",
        "log",
        "paid",
        "pay",
        "spent",
        "spend",
        "expense",
        "expenses",
        "bought",
        "a",
        "an",
        "the",
        "of",
        "for",
        "on",
        "to",
        "towards",
        "new",
        "my",
        "i",
        "we",
    }
)

_STOCK_FILLER: frozenset[str] = (
        COMMAND_WORDS
        | RESTOCK_TERMS
        | REDUCE_TERMS
        | UNIT_WORDS
        | {"by", "to", "in", "into", "from", "more", "inventory", "new", "qty", "quantity"}
)

_CUSTOMER_STOPWORDS: frozenset[str] = frozenset(
    {"stock", "inventory", "customer", "the", "a", "an", "my"}
)


class RulesParserError(ValueError):
    """Raised when the rules classifier cannot produce a classification."""


def _is_question(raw_text: str, normalized: str) -> bool:
    if raw_text.strip().endswith("?"):
        return True
    tokens = normalized.split()
    return bool(tokens) and tokens[0] in QUESTION_WORDS


def _has_any(tokens: Iterable[str], terms: frozenset[str]) -> bool:
    return any(t in terms for t in tokens)


def _numbers(text: str) -> list[Decimal]:
    return [Decimal(m.group(0)) for m in _NUMBER_RE.finditer(text)]


def _clean_name(text: str, *, drop: frozenset[str]) -> str:
    words = [
        w
        for w in text.split()
        if w not in drop and not _NUMBER_TOKEN_RE.fullmatch(w)
    ]
    return " ".join(words)


def _snap_to_catalog(name: str, catalog: Sequence[str]) -> str:
    """Prefer the owner's own spelling of an item (`rice` -> `Rice`, `books` -> `Book`)."""

    wanted = name.casefold()
    for known in catalog:
        if known.casefold() == wanted:
            return known
    for known in catalog:
        if known.casefold().removesuffix("s") == wanted.removesuffix("s"):
            return known
    return name.title()


def _mentions_catalog_item(normalized: str, catalog: Sequence[str]) -> bool:
    padded = f" {normalized} "
    return any(
        f" {normalize_text(known)} " in padded
        for known in catalog
        if normalize_text(known)
    )


def _action(action_type: str, data: dict[str, Any]) -> Classification:
    return Classification(
        is_action=True,
        action_type=action_type,
        data=data,
        confidence=RULES_CONFIDENCE,
    )


def _parse_new_item(normalized: str, catalog: Sequence[str]) -> Classification:
    body = normalized
    for phrase in NEW_ITEM_PHRASES:
        idx = body.find(phrase)
        if idx >= 0:
            body = body[idx + len(phrase):].strip()
            break

    category = None
    cat_match = _CATEGORY_RE.search(body)
    if cat_match:
        category = cat_match.group("category").strip().title()
        body = body[: cat_match.start()].strip()

    first_number = _NUMBER_RE.search(body)
    name_part = body[: first_number.start()] if first_number else body
    name = _clean_name(name_part, drop=_STOCK_FILLER)
    if not name:
        raise RulesParserError("new item name is missing")

    numbers = _numbers(body)
    data: dict[str, Any] = {"item_name": _snap_to_catalog(name, catalog)}
    if numbers:
        data["stock_qty"] = numbers[0]
    if len(numbers) > 1:
        data["price_per_unit"] = numbers[1]
    if category:
        data["category"] = category
    return _action("add_inventory", data)


def _parse_expense(normalized: str) -> Classification:
    numbers = _numbers(normalized)
    if not numbers:
        raise RulesParserError("expense amount is missing")

    category = detect_expense_category(normalized)
    description = _clean_name(normalized, drop=_EXPENSE_FILLER)
    if not description:
        description = category.lower()

    return _action(
        "add_expense",
        {"amount": numbers[0], "description": description, "category": category},
    )


def _extract_customer(text: str) -> tuple[str, str | None]:
    match = _CUSTOMER_RE.search(text)
    if not match or match.group("name") in _CUSTOMER_STOPWORDS:
        return text, None
    remaining = (text[: match.start()] + " " + text[match.end():]).strip()
    return remaining, match.group("name").title()


def _parse_sale(normalized: str, catalog: Sequence[str]) -> Classification:
    text, customer = _extract_customer(normalized)

    items: list[dict[str, Any]] = []
    for match in _SALE_ITEM_RE.finditer(text):
        name = _clean_name(match.group("name"), drop=COMMAND_WORDS | UNIT_WORDS)
        if not name:
            continue

        quantity = Decimal(match.group("qty"))
        price = Decimal(match.group("price"))
        # "5 pepsi for 150" is a line total; "at 30" / "30 each" is a unit price. The validator rounds.
        if match.group("conn") == "for" and not match.group("each") and quantity > 0:
            price = price / quantity

        items.append(
            {
                "item_name": _snap_to_catalog(name, catalog),
                "quantity": quantity,
                "price_per_unit": price,
            }
        )

    if not items:
        raise RulesParserError("could not find sale items (expected e.g. '5 rice at 30 each')")

    data: dict[str, Any] = {"items": items}
    payment = detect_payment_method(text)
    if payment:
        data["payment_method"] = payment
    if customer:
        data["customer_name"] = customer
    return _action("add_sale", data)


def _parse_price_change(normalized: str, catalog: Sequence[str]) -> Classification | None:
    for pattern in _PRICE_CHANGE_RES:
        match = pattern.search(normalized)
        if not match:
            continue
        name = _clean_name(match.group("name"), drop=_STOCK_FILLER | {"change", "set", "price"})
        if name:
            return _action(
                "update_inventory",
                {
                    "item_name": _snap_to_catalog(name, catalog),
                    "price_per_unit": Decimal(match.group("price")),
                },
            )
    return None


def _parse_stock_change(normalized: str, catalog: Sequence[str], *, reduce: bool) -> Classification:
    text = normalized
    price = None
    price_match = _UNIT_PRICE_RE.search(text)
    if price_match:
        price = Decimal(price_match.group("price"))
        text = (text[: price_match.start()] + " " + text[price_match.end():]).strip()

    numbers = _numbers(text)
    if not numbers:
        raise RulesParserError("stock quantity is missing")

    name = _clean_name(text, drop=_STOCK_FILLER)
    if not name:
        raise RulesParserError("item name is missing")

    quantity = numbers[0]
    data: dict[str, Any] = {
        "item_name": _snap_to_catalog(name, catalog),
        "stock_qty": -quantity if reduce else quantity,
    }
    if price is not None:
        data["price_per_unit"] = price
    return _action("update_inventory", data)


def parse_action(text: str, *, catalog: Sequence[str] = ()) -> Classification:
    """Classify an operator message into an action (or a non-action).

    Raises:
        RulesParserError: If the message is empty or matches no supported phrasing.
    """

    normalized = normalize_text(text)
    if not normalized:
        raise RulesParserError("empty input")

    if _is_question(text, normalized):
        return Classification(
            is_action=False,
            reason="This is a query/question, not a database action",
        )

    tokens = normalized.split()
    padded = f" {normalized} "

    if any(f" {phrase} " in padded for phrase in NEW_ITEM_PHRASES):
        return _parse_new_item(normalized, catalog)

    if _has_any(tokens, SALE_TERMS):
        return _parse_sale(normalized, catalog)

    if _has_any(tokens, EXPENSE_TERMS) or (
            has_expense_category_keyword(normalized)
            and not _mentions_catalog_item(normalized, catalog)
    ):
        return _parse_expense(normalized)

    price_change = _parse_price_change(normalized, catalog)
    if price_change is not None:
        return price_change

    if _has_any(tokens, REDUCE_TERMS):
        return _parse_stock_change(normalized, catalog, reduce=True)

    if _has_any(tokens, RESTOCK_TERMS):
        return _parse_stock_change(normalized, catalog, reduce=False)

    raise RulesParserError("unsupported request")

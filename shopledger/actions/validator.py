"""Structural validation of classifier-proposed actions.

Validation only checks the *shape* of a payload (required fields, positive amounts). Whether a sale
can actually be fulfilled is decided at execution time against the current catalog state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from shopledger.actions.models import PAYLOAD_MODELS, ActionKind, ActionPayload


@dataclass(frozen=True)
class Validation:
    """Outcome of `validate`: either a parsed payload or a human-readable reason."""

    payload: ActionPayload | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def _missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _presence_reason(kind: ActionKind, data: Mapping[str, Any]) -> str | None:
    """Return the reason for missing required fields, worded for the operator."""

    if kind is ActionKind.add_sale:
        items = data.get("items")
        if not isinstance(items, list) or not items:
            return "Sale must have at least one item"
        for item in items:
            if not isinstance(item, Mapping) or any(
                    _missing(item.get(key)) for key in ("item_name", "quantity", "price_per_unit")
            ):
                return "Each item must have name, quantity, and price"
        return None

    if kind is ActionKind.add_expense:
        if any(_missing(data.get(key)) for key in ("amount", "description", "category")):
            return "Expense must have amount, description, and category"
        return None

    if _missing(data.get("item_name")):
        return "Item name is required"
    return None


def _format_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def validate(kind: str | None, payload: Any) -> Validation:
    """Validate a classifier-proposed action.

    Never raises for bad input: every problem is reported through `Validation.reason`.
    """

    if _missing(kind) or payload is None:
        return Validation(reason="Missing action type or data")

    try:
        action_kind = ActionKind(str(kind).strip())
    except ValueError:
        return Validation(reason="Unknown action type")

    if not isinstance(payload, Mapping):
        return Validation(reason="Action data must be an object")

    reason = _presence_reason(action_kind, payload)
    if reason is not None:
        return Validation(reason=reason)

    try:
        parsed = PAYLOAD_MODELS[action_kind].model_validate(dict(payload))
    except ValidationError as exc:
        return Validation(reason=_format_error(exc))

    return Validation(payload=parsed)  # type: ignore[arg-type]

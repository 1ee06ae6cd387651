"""Classifier output schema (Pydantic model).

This is the contract between the intent classifiers (rules/LLM) and the action engine. The model
only checks the envelope; the action payload in `data` is validated separately per action kind.
Output that does not fit this model is treated as a classification failure.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class Classification(BaseModel):
    """A classifier's guess about what the operator asked for."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    is_action: bool = Field(validation_alias=AliasChoices("isAction", "is_action"))
    action_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("actionType", "action_type"),
    )
    data: dict[str, Any] | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reason: str | None = None

    @model_validator(mode="after")
    def drop_payload_of_non_actions(self) -> Classification:
        """Questions and other non-actions never carry an action payload."""

        if not self.is_action:
            self.action_type = None
            self.data = None
        return self


def classification_from_obj(obj: Any) -> Classification:
    """Validate and parse a Classification from an arbitrary decoded JSON object."""

    return Classification.model_validate(obj)

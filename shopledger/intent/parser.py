"""Action classifier orchestration (LLM optional; rules-based fallback)."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from shopledger.intent.llm_parser import LLMParserError, classify_via_llm, llm_config_from_env
from shopledger.intent.rules_parser import RulesParserError
from shopledger.intent.rules_parser import parse_action as parse_rules_action
from shopledger.intent.schema import Classification, classification_from_obj


class IntentParserError(ValueError):
    """Raised when no classifier can produce a valid classification."""


ParseSource = Literal["llm", "rules"]


@dataclass(frozen=True)
class ParseResult:
    """Validated classification plus information about which classifier produced it."""

    classification: Classification
    source: ParseSource


def parse_action_with_source(
        text: str,
        *,
        catalog: Sequence[str] = (),
        locale: str = "en",
        llm_enabled: bool,
        llm_api_key: str | None = None,
) -> ParseResult:
    """Classify text into a `Classification`.

    Strategy:
        1) If LLM mode is enabled, ask the LLM for classification JSON and validate the envelope.
        2) On any failure/invalid JSON, fallback to the deterministic rules' classifier.
        3) If rules classification fails too, raise `IntentParserError`.
    """

    if llm_enabled:
        try:
            cfg = llm_config_from_env(api_key=llm_api_key)
            obj: dict[str, Any] = classify_via_llm(text, config=cfg, catalog=catalog, locale=locale)
            return ParseResult(classification=classification_from_obj(obj), source="llm")
        except (LLMParserError, ValueError):
            # Invalid LLM output must never crash the pipeline; fall back to rules.
            pass

    try:
        classification = parse_rules_action(text, catalog=catalog)
        return ParseResult(classification=classification, source="rules")
    except RulesParserError as exc:
        raise IntentParserError(str(exc)) from exc


class IntentClassifier(Protocol):
    """Anything the action engine can ask to classify a message."""

    async def classify(self, text: str, *, catalog: Sequence[str], locale: str) -> ParseResult:
        ...


@dataclass(frozen=True)
class ConfiguredClassifier:
    """`IntentClassifier` backed by `parse_action_with_source`.

    The LLM call is blocking, so classification runs in a worker thread.
    """

    llm_enabled: bool = False
    llm_api_key: str | None = None

    async def classify(self, text: str, *, catalog: Sequence[str], locale: str) -> ParseResult:
        return await asyncio.to_thread(
            parse_action_with_source,
            text,
            catalog=tuple(catalog),
            locale=locale,
            llm_enabled=self.llm_enabled,
            llm_api_key=self.llm_api_key,
        )

"""Pytest configuration and shared fixtures.

The conftest puts the repository root on `sys.path` so tests can import `shopledger.*` without
installing the package, and provides an engine wired to in-memory stores and a stub classifier.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

# Ensure `import shopledger...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from shopledger.actions.engine import ActionEngine  # noqa: E402
from shopledger.actions.pending import InMemoryPendingStore  # noqa: E402
from shopledger.intent.parser import IntentParserError, ParseResult  # noqa: E402
from shopledger.intent.schema import Classification  # noqa: E402
from shopledger.ledger.memory import InMemoryRecordStore  # noqa: E402

OWNER = "1001"
OTHER_OWNER = "2002"
TTL_S = 300.0


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubClassifier:
    """Returns a preset classification (or raises) and records what it was asked."""

    def __init__(self) -> None:
        self.result: dict[str, Any] | None = None
        self.error: str | None = None
        self.calls: list[tuple[str, tuple[str, ...], str]] = []

    def returns(self, **obj: Any) -> None:
        self.result = obj
        self.error = None

    def fails(self, reason: str) -> None:
        self.error = reason

    async def classify(self, text: str, *, catalog: Sequence[str], locale: str) -> ParseResult:
        self.calls.append((text, tuple(catalog), locale))
        if self.error is not None:
            raise IntentParserError(self.error)
        assert self.result is not None, "StubClassifier.returns() was not called"
        return ParseResult(classification=Classification.model_validate(self.result), source="rules")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def pending(clock: FakeClock) -> InMemoryPendingStore:
    return InMemoryPendingStore(ttl_s=TTL_S, clock=clock)


@pytest.fixture
def classifier() -> StubClassifier:
    return StubClassifier()


@pytest.fixture
def engine(
        classifier: StubClassifier,
        records: InMemoryRecordStore,
        pending: InMemoryPendingStore,
        clock: FakeClock,
) -> ActionEngine:
    return ActionEngine(classifier=classifier, records=records, pending=pending, clock=clock)

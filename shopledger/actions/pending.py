"""Pending action storage.

Staged actions live in a keyed store with TTL eviction. The engine only depends on the
`PendingActionStore` protocol, so the in-process implementation below can be swapped for an
external key/value store as long as `take` stays a single atomic read-and-remove.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from shopledger.actions.models import StagedAction

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class PendingActionStore(Protocol):
    """Keyed, time-bounded storage of staged actions."""

    def put(self, action: StagedAction) -> bool:
        """Store `action` under its id. Returns `False` if the id is already live."""

    def get(self, action_id: str) -> StagedAction | None:
        """Return the live action for `action_id` without removing it."""

    def take(self, action_id: str) -> StagedAction | None:
        """Atomically return and remove the live action for `action_id`."""

    def delete(self, action_id: str) -> None:
        """Remove `action_id` if present."""

    def sweep(self, max_age_s: float) -> list[str]:
        """Remove every action older than `max_age_s` seconds and return the removed ids."""


class InMemoryPendingStore:
    """Process-local pending store.

    Entries older than `ttl_s` are treated as absent by `get`/`take` even before the sweeper runs,
    so an expired action can never be resolved. A lock guards the map so `take` stays atomic if the
    store is shared with worker threads.
    """

    def __init__(self, *, ttl_s: float, clock: Clock = utc_now) -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive")
        self._ttl = timedelta(seconds=ttl_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._actions: dict[str, StagedAction] = {}

    @property
    def ttl_s(self) -> float:
        return self._ttl.total_seconds()

    def _expired(self, action: StagedAction, now: datetime) -> bool:
        return now - action.issued_at >= self._ttl

    def put(self, action: StagedAction) -> bool:
        now = self._clock()
        with self._lock:
            existing = self._actions.get(action.id)
            if existing is not None and not self._expired(existing, now):
                return False
            self._actions[action.id] = action
            return True

    def get(self, action_id: str) -> StagedAction | None:
        now = self._clock()
        with self._lock:
            action = self._actions.get(action_id)
            if action is None:
                return None
            if self._expired(action, now):
                del self._actions[action_id]
                return None
            return action

    def take(self, action_id: str) -> StagedAction | None:
        now = self._clock()
        with self._lock:
            action = self._actions.pop(action_id, None)
        if action is None or self._expired(action, now):
            return None
        return action

    def delete(self, action_id: str) -> None:
        with self._lock:
            self._actions.pop(action_id, None)

    def sweep(self, max_age_s: float) -> list[str]:
        cutoff = self._clock() - timedelta(seconds=max_age_s)
        with self._lock:
            expired = [key for key, action in self._actions.items() if action.issued_at <= cutoff]
            for key in expired:
                del self._actions[key]
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    def __contains__(self, action_id: object) -> bool:
        with self._lock:
            return action_id in self._actions

from __future__ import annotations

import asyncio

import pytest

from conftest import OWNER, TTL_S, FakeClock
from shopledger.actions.models import AddExpense, StagedAction
from shopledger.actions.pending import InMemoryPendingStore
from shopledger.actions.sweeper import ExpirySweeper


def _park(pending: InMemoryPendingStore, clock: FakeClock, action_id: str) -> None:
    pending.put(
        StagedAction(
            id=action_id,
            owner=OWNER,
            payload=AddExpense(amount=50, description="tea", category="Other"),
            locale="en",
            issued_at=clock(),
            source_text="paid 50 for tea",
        )
    )


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def test_sweep_once_evicts_expired(pending: InMemoryPendingStore, clock: FakeClock) -> None:
    sweeper = ExpirySweeper(pending, max_age_s=TTL_S, interval_s=120)
    _park(pending, clock, "old")
    clock.advance(TTL_S)
    _park(pending, clock, "new")

    assert sweeper.sweep_once() == ["old"]
    assert "new" in pending


@pytest.mark.parametrize(("max_age_s", "interval_s"), [(0, 1), (300, 0)])
def test_sweeper_rejects_non_positive_timing(
        pending: InMemoryPendingStore,
        max_age_s: float,
        interval_s: float,
) -> None:
    with pytest.raises(ValueError):
        ExpirySweeper(pending, max_age_s=max_age_s, interval_s=interval_s)


@pytest.mark.asyncio
async def test_background_task_sweeps_until_stopped(pending: InMemoryPendingStore, clock: FakeClock) -> None:
    _park(pending, clock, "a1")
    clock.advance(TTL_S + 1)

    async with ExpirySweeper(pending, max_age_s=TTL_S, interval_s=0.01) as sweeper:
        assert sweeper.running
        await _wait_until(lambda: len(pending) == 0)

    assert not sweeper.running


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_without_start_is_noop(pending: InMemoryPendingStore) -> None:
    sweeper = ExpirySweeper(pending, max_age_s=TTL_S, interval_s=60)
    await sweeper.stop()

    sweeper.start()
    sweeper.start()
    assert sweeper.running

    await sweeper.stop()
    assert not sweeper.running


class _FlakyStore:
    def __init__(self) -> None:
        self.calls = 0

    def sweep(self, max_age_s: float) -> list[str]:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")
        return []


@pytest.mark.asyncio
async def test_sweep_errors_do_not_stop_the_loop() -> None:
    store = _FlakyStore()
    sweeper = ExpirySweeper(store, max_age_s=TTL_S, interval_s=0.01)  # type: ignore[arg-type]

    sweeper.start()
    try:
        await _wait_until(lambda: store.calls >= 3)
        assert sweeper.running
    finally:
        await sweeper.stop()

"""Tests for the aiogram handlers of the confirm protocol.

Every free-text message gets exactly one reply: either a preview with Confirm/Cancel buttons or
the reason nothing was staged. Button presses resolve the staged action and remove the buttons.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from conftest import OTHER_OWNER, OWNER, StubClassifier
from shopledger.actions.engine import ActionEngine
from shopledger.bot import handlers
from shopledger.bot.handlers import ConfirmCallback, handle_confirmation, handle_message
from shopledger.ledger.memory import InMemoryRecordStore

EXPENSE = {"amount": 500, "description": "shop rent", "category": "Rent"}


class _FakeMessage:
    def __init__(self, text: str | None, user_id: str = OWNER, language_code: str | None = "en") -> None:
        self.text = text
        self.caption = None
        self.from_user = SimpleNamespace(id=int(user_id), language_code=language_code)
        self.chat = SimpleNamespace(id=int(user_id))
        self.answers: list[tuple[str, Any]] = []
        self.markup_cleared = False

    async def answer(self, text: str, reply_markup: Any = None) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append((text, reply_markup))

    async def edit_reply_markup(self, reply_markup: Any = None) -> None:
        self.markup_cleared = reply_markup is None


class _FakeCallback:
    def __init__(self, message: _FakeMessage, user_id: str) -> None:
        self.message = message
        self.from_user = SimpleNamespace(id=int(user_id), language_code="en")
        self.answers: list[tuple[str | None, bool]] = []

    async def answer(self, text: str | None = None, show_alert: bool = False) -> None:
        self.answers.append((text, show_alert))


@pytest.fixture(autouse=True)
def _fake_message_type(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(handlers, "Message", _FakeMessage)


def _make_app(engine: Any) -> Any:
    return SimpleNamespace(settings=SimpleNamespace(default_locale="en"), engine=engine)


def _callback_data(message: _FakeMessage, *, confirmed: bool) -> ConfirmCallback:
    _, markup = message.answers[-1]
    confirm, cancel = markup.inline_keyboard[0]
    button = confirm if confirmed else cancel
    return ConfirmCallback.unpack(button.callback_data)


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "   ", "/start"])
async def test_empty_text_and_commands_get_help(engine: ActionEngine, text: str | None) -> None:
    message = _FakeMessage(text)

    await handle_message(message, _make_app(engine))  # type: ignore[arg-type]

    [(reply, markup)] = message.answers
    assert reply.startswith("Tell me what happened in the shop")
    assert markup is None


@pytest.mark.asyncio
async def test_staged_action_is_previewed_with_buttons(engine: ActionEngine, classifier: StubClassifier) -> None:
    classifier.returns(isAction=True, actionType="add_expense", data=EXPENSE, confidence=0.9)
    message = _FakeMessage("Paid 500 for shop rent")

    await handle_message(message, _make_app(engine))  # type: ignore[arg-type]

    [(reply, markup)] = message.answers
    assert reply.startswith("You want to add an expense")
    confirm, cancel = markup.inline_keyboard[0]
    assert confirm.text == "✅ Confirm" and cancel.text == "❌ Cancel"
    assert len(confirm.callback_data.encode()) <= 64
    assert ConfirmCallback.unpack(confirm.callback_data).confirmed is True
    assert ConfirmCallback.unpack(cancel.callback_data).confirmed is False


@pytest.mark.asyncio
async def test_hindi_operator_gets_hindi_buttons(engine: ActionEngine, classifier: StubClassifier) -> None:
    classifier.returns(isAction=True, actionType="add_expense", data=EXPENSE)
    message = _FakeMessage("किराया 500", language_code="hi-IN")

    await handle_message(message, _make_app(engine))  # type: ignore[arg-type]

    _, markup = message.answers[0]
    assert markup.inline_keyboard[0][1].text == "❌ रद्द करें"
    assert classifier.calls[0][2] == "hi"


@pytest.mark.asyncio
async def test_question_is_answered_without_buttons(engine: ActionEngine, classifier: StubClassifier) -> None:
    classifier.returns(isAction=False, reason="This is a query/question, not a database action")
    message = _FakeMessage("How much did I sell today?")

    await handle_message(message, _make_app(engine))  # type: ignore[arg-type]

    [(reply, markup)] = message.answers
    assert "query/question" in reply
    assert markup is None


@pytest.mark.asyncio
async def test_stage_crash_gets_generic_reply() -> None:
    class _Boom:
        async def stage(self, *_args: Any, **_kwargs: Any) -> Any:
            raise RuntimeError("secret connection string")

    message = _FakeMessage("Sold 5 Rice")

    await handle_message(message, _make_app(_Boom()))  # type: ignore[arg-type]

    [(reply, _)] = message.answers
    assert reply == "❌ Failed to execute action. Please try again."


@pytest.mark.asyncio
async def test_confirm_executes_and_removes_buttons(
        engine: ActionEngine,
        classifier: StubClassifier,
        records: InMemoryRecordStore,
) -> None:
    classifier.returns(isAction=True, actionType="add_expense", data=EXPENSE)
    app = _make_app(engine)
    message = _FakeMessage("Paid 500 for shop rent")
    await handle_message(message, app)  # type: ignore[arg-type]

    callback = _FakeCallback(message, OWNER)
    await handle_confirmation(callback, _callback_data(message, confirmed=True), app)  # type: ignore[arg-type]

    assert callback.answers == [(None, False)]
    assert message.markup_cleared is True
    assert message.answers[-1][0] == "✅ Expense recorded successfully! Amount: ₹500"
    assert len(records.expenses) == 1


@pytest.mark.asyncio
async def test_cancel_then_second_press_reports_missing_action(
        engine: ActionEngine,
        classifier: StubClassifier,
        records: InMemoryRecordStore,
) -> None:
    classifier.returns(isAction=True, actionType="add_expense", data=EXPENSE)
    app = _make_app(engine)
    message = _FakeMessage("Paid 500 for shop rent")
    await handle_message(message, app)  # type: ignore[arg-type]
    data = _callback_data(message, confirmed=False)

    await handle_confirmation(_FakeCallback(message, OWNER), data, app)  # type: ignore[arg-type]
    await handle_confirmation(_FakeCallback(message, OWNER), data, app)  # type: ignore[arg-type]

    assert [text for text, _ in message.answers[1:]] == [
        "Okay, I cancelled that action.",
        "No pending action found. Please try again.",
    ]
    assert records.expenses == []


@pytest.mark.asyncio
async def test_foreign_press_is_rejected_with_alert(
        engine: ActionEngine,
        classifier: StubClassifier,
        records: InMemoryRecordStore,
) -> None:
    classifier.returns(isAction=True, actionType="add_expense", data=EXPENSE)
    app = _make_app(engine)
    message = _FakeMessage("Paid 500 for shop rent")
    await handle_message(message, app)  # type: ignore[arg-type]
    data = _callback_data(message, confirmed=True)

    intruder = _FakeCallback(message, OTHER_OWNER)
    await handle_confirmation(intruder, data, app)  # type: ignore[arg-type]

    assert intruder.answers == [("Unauthorized action.", True)]
    assert message.markup_cleared is False
    assert records.expenses == []

    owner = _FakeCallback(message, OWNER)
    await handle_confirmation(owner, data, app)  # type: ignore[arg-type]

    assert len(records.expenses) == 1

"""aiogram handlers for the confirm protocol.

A free-text message is staged and answered with a preview plus Confirm/Cancel buttons; pressing a
button resolves the staged action. Internal errors never leak to the chat: the operator gets a
generic localized failure and the details go to the log.
"""

from __future__ import annotations

import logging
from time import monotonic

from aiogram.filters.callback_data import CallbackData
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from shopledger.actions.composer import compose_message, resolve_locale
from shopledger.actions.engine import ResolveStatus
from shopledger.app import App

logger = logging.getLogger(__name__)


class ConfirmCallback(CallbackData, prefix="act"):
    """Callback payload of the Confirm/Cancel buttons (`act:<action_id>:<0|1>`)."""

    action_id: str
    confirmed: bool


def _is_command_text(text: str) -> bool:
    return text.lstrip().startswith("/")


def _owner_and_locale(event: Message | CallbackQuery, app: App) -> tuple[str, str]:
    user = event.from_user
    default = app.settings.default_locale
    if user is None:
        # Channel posts carry no user; the chat acts as the owner.
        chat = event.chat if isinstance(event, Message) else None
        return str(chat.id if chat is not None else "anonymous"), default
    return str(user.id), resolve_locale(user.language_code, default)


def confirm_keyboard(action_id: str, locale: str) -> InlineKeyboardMarkup:
    """Build the Confirm/Cancel keyboard for a staged action."""

    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text=compose_message("confirm_button", locale),
                    callback_data=ConfirmCallback(action_id=action_id, confirmed=True).pack(),
                ),
                InlineKeyboardButton(
                    text=compose_message("cancel_button", locale),
                    callback_data=ConfirmCallback(action_id=action_id, confirmed=False).pack(),
                ),
            ]
        ]
    )


async def handle_message(message: Message, app: App) -> None:
    """Stage the operator's message and reply with a preview (or the reason it was not staged)."""

    started = monotonic()
    owner, locale = _owner_and_locale(message, app)

    raw_text = message.text or message.caption or ""
    if not raw_text.strip() or _is_command_text(raw_text):
        await message.answer(compose_message("help", locale))
        return

    # noinspection PyBroadException
    try:
        result = await app.engine.stage(owner, raw_text, locale)
    except Exception:
        # Handler boundary: reply with a generic failure, never with internals.
        logger.exception("stage handler failed owner=%s", owner)
        await message.answer(compose_message("internal_failure", locale))
        return

    latency_ms = int((monotonic() - started) * 1000)
    if result.staged and result.id is not None:
        logger.info(
            "handled staged=true id=%s kind=%s source=%s latency_ms=%d",
            result.id,
            result.kind,
            result.source,
            latency_ms,
        )
        await message.answer(result.message, reply_markup=confirm_keyboard(result.id, locale))
        return

    logger.info("handled staged=false failure=%s latency_ms=%d", result.failure, latency_ms)
    await message.answer(result.message)


async def handle_confirmation(
        callback: CallbackQuery,
        callback_data: ConfirmCallback,
        app: App,
) -> None:
    """Resolve a staged action from a Confirm/Cancel button press."""

    owner, locale = _owner_and_locale(callback, app)

    # noinspection PyBroadException
    try:
        result = await app.engine.resolve(owner, callback_data.action_id, callback_data.confirmed, locale)
    except Exception:
        logger.exception("resolve handler failed owner=%s id=%s", owner, callback_data.action_id)
        await callback.answer(compose_message("internal_failure", locale), show_alert=True)
        return

    if result.status is ResolveStatus.forbidden:
        # Someone else's preview: keep the buttons for the owner.
        await callback.answer(result.message, show_alert=True)
        return

    await callback.answer()
    if isinstance(callback.message, Message):
        await callback.message.edit_reply_markup(reply_markup=None)
        await callback.message.answer(result.message)

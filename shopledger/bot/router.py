"""Bot router composition."""

from __future__ import annotations

from aiogram import Router

from shopledger.bot.handlers import ConfirmCallback, handle_confirmation, handle_message

router = Router(name="root")
router.callback_query.register(handle_confirmation, ConfirmCallback.filter())
router.message.register(handle_message)

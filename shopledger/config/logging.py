"""Logging configuration for the bot process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Chatty per-update and per-connection loggers; their warnings still get through.
_QUIET_LOGGERS = ("aiogram.event", "aiogram.dispatcher", "psycopg.pool")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup.

    Records carry ids, owners, kinds and outcomes only. Operator text and payload values stay out
    of the log; operators themselves only ever see the localized replies.
    """

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

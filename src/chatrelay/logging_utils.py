"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

NO_CHANNEL = "-"

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "chat": "[{extra[channel]}] {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {extra[channel]} | {name}:{function}:{line} | {message}",
}
_CONFIGURED_PROFILE: LogProfile | None = None


def _build_chat_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def channel_logger(channel: str) -> loguru.Logger:
    """Logger whose records carry the realtime channel name."""
    return logger.bind(channel=channel)


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once per profile.

    Records without a bound channel render as ``-``.
    """
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    level = (level or os.getenv("CHATRELAY_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    logger.configure(extra={"channel": NO_CHANNEL})
    sink = _build_chat_handler() if profile == "chat" else sys.stderr
    logger.add(
        sink,
        level=level,
        format=_PROFILE_FORMATS[profile],
        backtrace=False,
        diagnose=False,
    )
    _CONFIGURED_PROFILE = profile

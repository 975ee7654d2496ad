"""Incremental reconstruction of an agent's streamed response."""

from __future__ import annotations

from collections.abc import AsyncIterable, Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from chatrelay.agent.events import (
    ContentBlock,
    Delta,
    FinalAssistantMessage,
    SessionAnnounced,
    StreamEvent,
    Terminal,
    TextBlock,
)

_LINE_BREAKS = "\r\n"


@dataclass(frozen=True)
class StreamCallbacks:
    on_token: Callable[[str], None]
    on_session_id: Callable[[str], None]


def apply_delta(accumulated: str, delta_text: str) -> tuple[str, str] | None:
    """Return ``(emitted, new_accumulated)`` or ``None`` when nothing should be shown.

    Leading line breaks are dropped until the first real content arrives.
    """
    text = delta_text
    if not accumulated:
        text = text.lstrip(_LINE_BREAKS)
        if not text:
            return None
    return text, accumulated + text


def extract_final_text(blocks: Iterable[ContentBlock]) -> str:
    return "".join(block.text for block in blocks if isinstance(block, TextBlock))


async def drive(stream: AsyncIterable[StreamEvent], callbacks: StreamCallbacks) -> str:
    """Consume ``stream`` until its terminal event and return the final text."""
    accumulated = ""
    async for event in stream:
        session_id = getattr(event, "session_id", None)
        if session_id:
            callbacks.on_session_id(session_id)

        match event:
            case Delta(text=text):
                result = apply_delta(accumulated, text) if text else None
                if result is not None:
                    token, accumulated = result
                    callbacks.on_token(token)
            case FinalAssistantMessage(blocks=blocks):
                full_text = extract_final_text(blocks)
                if full_text:
                    accumulated = full_text
            case Terminal():
                break
            case SessionAnnounced():
                pass
            case _:
                logger.debug("agent.stream.skip_unknown type={}", type(event).__name__)
    return accumulated

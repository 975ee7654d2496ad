"""Agent response stream event models."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class OtherBlock:
    """Any non-textual content block (tool use, tool result, thinking)."""

    kind: str


ContentBlock = TextBlock | OtherBlock


@dataclass(frozen=True)
class Delta:
    """Partial text fragment streamed while the agent is responding."""

    text: str
    session_id: str | None = None


@dataclass(frozen=True)
class FinalAssistantMessage:
    """Complete assistant message; authoritative over earlier deltas."""

    blocks: tuple[ContentBlock, ...] = field(default_factory=tuple)
    session_id: str | None = None


@dataclass(frozen=True)
class SessionAnnounced:
    session_id: str | None = None


@dataclass(frozen=True)
class Terminal:
    """End of the turn."""

    session_id: str | None = None


StreamEvent = Delta | FinalAssistantMessage | SessionAnnounced | Terminal


class AgentInvoker(Protocol):
    """Runs one agent turn and yields its events in arrival order."""

    def invoke(self, prompt: str, resume_session_id: str | None = None) -> AsyncGenerator[StreamEvent, None]: ...


def _parse_block(raw: Any) -> ContentBlock:
    if isinstance(raw, Mapping) and raw.get("type") == "text":
        return TextBlock(str(raw.get("text") or ""))
    kind = raw.get("type") if isinstance(raw, Mapping) else None
    return OtherBlock(str(kind or "unknown"))


def parse_stream_message(raw: Mapping[str, Any]) -> StreamEvent | None:
    """Convert one JSON-shaped agent message into a stream event.

    Returns ``None`` for shapes that carry neither text, a final message, a
    session id nor the end of the turn.
    """
    session_id = raw.get("session_id") or None
    kind = raw.get("type")

    if kind == "stream_event":
        event = raw.get("event") or {}
        delta = event.get("delta") or {}
        if event.get("type") == "content_block_delta" and delta.get("type") == "text_delta" and delta.get("text"):
            return Delta(text=delta["text"], session_id=session_id)
    elif kind == "assistant":
        message = raw.get("message") or {}
        content = message.get("content") or []
        return FinalAssistantMessage(blocks=tuple(_parse_block(b) for b in content), session_id=session_id)
    elif kind == "result":
        return Terminal(session_id=session_id)

    if session_id:
        return SessionAnnounced(session_id=session_id)
    return None

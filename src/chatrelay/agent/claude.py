"""Agent invoker backed by the Claude Agent SDK."""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

from claude_agent_sdk import AssistantMessage, ClaudeAgentOptions, ResultMessage, SystemMessage, query
from claude_agent_sdk import TextBlock as SdkTextBlock
from claude_agent_sdk.types import StreamEvent as SdkStreamEvent
from loguru import logger

from chatrelay.agent.events import (
    ContentBlock,
    FinalAssistantMessage,
    OtherBlock,
    SessionAnnounced,
    StreamEvent,
    Terminal,
    TextBlock,
    parse_stream_message,
)
from chatrelay.config import Settings
from chatrelay.errors import AgentTurnFailure


def _convert_block(block: Any) -> ContentBlock:
    if isinstance(block, SdkTextBlock):
        return TextBlock(block.text)
    return OtherBlock(type(block).__name__)


def convert_sdk_message(message: Any) -> StreamEvent | None:
    """Map one SDK message object onto a stream event, or ``None`` if irrelevant."""
    session_id = getattr(message, "session_id", None) or None
    if isinstance(message, SdkStreamEvent):
        return parse_stream_message({"type": "stream_event", "event": message.event, "session_id": session_id})
    if isinstance(message, AssistantMessage):
        blocks = tuple(_convert_block(block) for block in message.content)
        return FinalAssistantMessage(blocks=blocks, session_id=session_id)
    if isinstance(message, ResultMessage):
        if message.is_error:
            raise AgentTurnFailure(str(message.result or "agent turn failed"))
        return Terminal(session_id=session_id)
    if isinstance(message, SystemMessage):
        data = message.data if isinstance(message.data, dict) else {}
        session_id = session_id or data.get("session_id")
    if session_id:
        return SessionAnnounced(session_id=session_id)
    return None


class ClaudeInvoker:
    """Runs one ``query`` per turn with partial messages enabled."""

    def __init__(self, options: ClaudeAgentOptions | None = None) -> None:
        self._options = options or ClaudeAgentOptions()

    @classmethod
    def from_settings(cls, settings: Settings) -> ClaudeInvoker:
        options = ClaudeAgentOptions(model=settings.agent_model, system_prompt=settings.agent_system_prompt)
        return cls(options)

    async def invoke(self, prompt: str, resume_session_id: str | None = None) -> AsyncGenerator[StreamEvent, None]:
        options = dataclasses.replace(self._options, include_partial_messages=True)
        if resume_session_id:
            options = dataclasses.replace(options, resume=resume_session_id)
        logger.debug("agent.claude.query resume={}", resume_session_id)
        async with aclosing(query(prompt=prompt, options=options)) as messages:
            async for message in messages:
                event = convert_sdk_message(message)
                if event is not None:
                    yield event

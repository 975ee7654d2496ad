"""Deterministic agent that streams the prompt back."""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import AsyncGenerator

from chatrelay.agent.events import Delta, FinalAssistantMessage, SessionAnnounced, StreamEvent, Terminal, TextBlock

_WORD_RE = re.compile(r"\S+\s*")


class EchoInvoker:
    """Answers every prompt with ``"echo: <prompt>"``, one word per delta."""

    def __init__(self, *, prefix: str = "echo: ", delay: float = 0.0) -> None:
        self.prefix = prefix
        self.delay = delay
        self.turns = 0

    async def invoke(self, prompt: str, resume_session_id: str | None = None) -> AsyncGenerator[StreamEvent, None]:
        session_id = resume_session_id or uuid.uuid4().hex
        self.turns += 1
        yield SessionAnnounced(session_id=session_id)
        reply = f"{self.prefix}{prompt}"
        # Leading blank line mimics backends that preface their output.
        yield Delta(text="\n")
        for word in _WORD_RE.findall(reply):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield Delta(text=word, session_id=session_id)
        yield FinalAssistantMessage(blocks=(TextBlock(reply),), session_id=session_id)
        yield Terminal(session_id=session_id)

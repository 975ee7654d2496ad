"""One request/response cycle with the agent, relayed through the message bus."""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, replace

from loguru import logger

from chatrelay.agent.events import AgentInvoker
from chatrelay.agent.stream import StreamCallbacks, drive
from chatrelay.realtime.client import MessageBusClient


@dataclass(frozen=True)
class TurnContext:
    """State carried from one agent turn to the next."""

    session_id: str | None = None
    accumulated_text: str = ""
    is_responding: bool = False


class AgentTurn:
    """Streams an agent reply as typing broadcasts and sends the final text."""

    def __init__(self, invoker: AgentInvoker, client: MessageBusClient, *, sender: str = "agent") -> None:
        self._invoker = invoker
        self._client = client
        self.sender = sender

    async def run(self, context: TurnContext, prompt: str) -> TurnContext:
        if context.is_responding:
            logger.warning("agent.turn.busy sender={}", self.sender)
            return context

        session_id = context.session_id
        accumulated = ""

        def _on_session_id(value: str) -> None:
            nonlocal session_id
            session_id = value

        def _on_token(token: str) -> None:
            nonlocal accumulated
            accumulated += token
            self._client.broadcast_typing(accumulated, self.sender)

        logger.info("agent.turn.start resume={} prompt={}", bool(session_id), prompt[:100])
        try:
            async with aclosing(self._invoker.invoke(prompt, context.session_id)) as stream:
                accumulated = await drive(stream, StreamCallbacks(on_token=_on_token, on_session_id=_on_session_id))
            if accumulated:
                await self._client.send_message(accumulated, self.sender)
            logger.info("agent.turn.done chars={}", len(accumulated))
        except Exception:
            logger.exception("agent.turn.error sender={}", self.sender)
        return replace(context, session_id=session_id, accumulated_text=accumulated, is_responding=False)


class AgentResponder:
    """Owns the turn context for one agent participant and refuses overlapping turns."""

    def __init__(self, turn: AgentTurn, context: TurnContext | None = None) -> None:
        self.turn = turn
        self.context = context or TurnContext()

    async def respond(self, prompt: str) -> TurnContext:
        if self.context.is_responding:
            logger.warning("agent.turn.skipped reason=busy")
            return self.context
        previous = self.context
        self.context = replace(previous, is_responding=True, accumulated_text="")
        try:
            self.context = await self.turn.run(previous, prompt)
        finally:
            if self.context.is_responding:
                self.context = replace(self.context, is_responding=False)
        return self.context

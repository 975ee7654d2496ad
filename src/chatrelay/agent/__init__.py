"""Agent turn handling: stream events, aggregation and turn context."""

from chatrelay.agent.echo import EchoInvoker
from chatrelay.agent.events import (
    AgentInvoker,
    Delta,
    FinalAssistantMessage,
    OtherBlock,
    SessionAnnounced,
    StreamEvent,
    Terminal,
    TextBlock,
    parse_stream_message,
)
from chatrelay.agent.stream import StreamCallbacks, apply_delta, drive, extract_final_text
from chatrelay.agent.turn import AgentResponder, AgentTurn, TurnContext

__all__ = [
    "AgentInvoker",
    "AgentResponder",
    "AgentTurn",
    "Delta",
    "EchoInvoker",
    "FinalAssistantMessage",
    "OtherBlock",
    "SessionAnnounced",
    "StreamCallbacks",
    "StreamEvent",
    "Terminal",
    "TextBlock",
    "TurnContext",
    "apply_delta",
    "drive",
    "extract_final_text",
    "parse_stream_message",
]

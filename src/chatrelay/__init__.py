"""chatrelay - relay chat messages and streamed agent replies over a realtime backend."""

from .agent import AgentResponder, AgentTurn, TurnContext, drive
from .realtime import LocalBackend, MessageBusClient

__version__ = "0.1.0"

__all__ = ["AgentResponder", "AgentTurn", "LocalBackend", "MessageBusClient", "TurnContext", "drive"]

"""Application-level exception types for chatrelay."""

from __future__ import annotations


class ChatRelayError(Exception):
    """Base exception for chatrelay."""


class ConfigurationError(ChatRelayError):
    """Raised when settings are missing or inconsistent."""


class WriteFailure(ChatRelayError):
    """Raised when the durable store rejects a message insert.

    The store's original exception is attached as ``__cause__``.
    """

    def __init__(self, text: str, sender: str) -> None:
        super().__init__(f"failed to store message from {sender!r}")
        self.text = text
        self.sender = sender


class AgentTurnFailure(ChatRelayError):
    """Raised by an agent invoker when a turn cannot be completed."""

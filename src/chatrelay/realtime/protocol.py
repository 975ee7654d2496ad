"""Contracts for the hosted realtime backend and the reconnect clock."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

Row = dict[str, Any]
InsertCallback = Callable[[Row], None]
StatusCallback = Callable[["ChannelStatus", "Exception | None"], None]


class ChannelStatus(StrEnum):
    """Connection states reported by a realtime channel."""

    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    CLOSED = "CLOSED"

    @property
    def is_loss(self) -> bool:
        return self is not ChannelStatus.SUBSCRIBED


class RealtimeChannel(Protocol):
    """One logical broadcast/subscription connection."""

    def on_insert(self, schema: str, table: str, callback: InsertCallback) -> RealtimeChannel: ...

    def subscribe(self, callback: StatusCallback) -> RealtimeChannel: ...

    def send_broadcast(self, event: str, payload: dict[str, Any]) -> None: ...

    def unsubscribe(self) -> None: ...


class RealtimeBackend(Protocol):
    """Durable store plus channel factory."""

    def channel(self, name: str) -> RealtimeChannel: ...

    async def insert(self, table: str, row: Row) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock abstraction used for reconnect backoff."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)

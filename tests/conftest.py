from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

import pytest

from chatrelay.realtime.protocol import ChannelStatus, InsertCallback, Row, StatusCallback


class FakeTimer:
    def __init__(self, scheduler: FakeScheduler, delay: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records timers and fires them on demand instead of waiting."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self, delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def armed(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> int:
        fired = 0
        for timer in self.armed:
            timer.fired = True
            timer.callback()
            fired += 1
        return fired


class FakeChannel:
    def __init__(
        self, name: str, initial_status: ChannelStatus = ChannelStatus.SUBSCRIBED, *, defer_status: bool = False
    ) -> None:
        self.name = name
        self.initial_status = initial_status
        self.defer_status = defer_status
        self.insert_handlers: list[tuple[str, str, InsertCallback]] = []
        self.status_callbacks: list[StatusCallback] = []
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.unsubscribed = 0

    def on_insert(self, schema: str, table: str, callback: InsertCallback) -> FakeChannel:
        self.insert_handlers.append((schema, table, callback))
        return self

    def subscribe(self, callback: StatusCallback) -> FakeChannel:
        self.status_callbacks.append(callback)
        if not self.defer_status:
            callback(self.initial_status, None)
        return self

    def send_broadcast(self, event: str, payload: dict[str, Any]) -> None:
        self.sent.append((event, payload))

    def unsubscribe(self) -> None:
        self.unsubscribed += 1

    def emit_insert(self, row: Row) -> None:
        for _schema, _table, callback in self.insert_handlers:
            callback(row)

    def emit_status(self, status: ChannelStatus, error: Exception | None = None) -> None:
        for callback in self.status_callbacks:
            callback(status, error)


class FakeBackend:
    def __init__(self) -> None:
        self.channels: list[FakeChannel] = []
        self.inserts: list[tuple[str, Row]] = []
        self.error: Exception | None = None
        self.next_status = ChannelStatus.SUBSCRIBED
        self.defer_status = False

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name, self.next_status, defer_status=self.defer_status)
        self.channels.append(channel)
        return channel

    async def insert(self, table: str, row: Row) -> None:
        if self.error is not None:
            raise self.error
        self.inserts.append((table, row))


class FakeSubscribeState(Enum):
    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    CLOSED = "CLOSED"


class FakeRealtimeChannel:
    """Mimics the coroutine API of an async supabase realtime channel."""

    def __init__(self, topic: str, state: FakeSubscribeState = FakeSubscribeState.SUBSCRIBED) -> None:
        self.topic = topic
        self.state = state
        self.postgres_handlers: list[tuple[str, Callable[[dict[str, Any]], None], dict[str, str]]] = []
        self.state_callbacks: list[Callable[..., None]] = []
        self.sent: list[tuple[str, dict[str, Any]]] = []

    def on_postgres_changes(
        self, event: str, callback: Callable[[dict[str, Any]], None], **filters: str
    ) -> FakeRealtimeChannel:
        self.postgres_handlers.append((event, callback, filters))
        return self

    async def subscribe(self, callback: Callable[..., None]) -> FakeRealtimeChannel:
        self.state_callbacks.append(callback)
        callback(self.state, None)
        return self

    async def send_broadcast(self, event: str, data: dict[str, Any]) -> None:
        self.sent.append((event, data))

    def emit_change(self, payload: dict[str, Any]) -> None:
        for _event, callback, _filters in self.postgres_handlers:
            callback(payload)

    def emit_state(self, state: FakeSubscribeState, error: Exception | None = None) -> None:
        for callback in self.state_callbacks:
            callback(state, error)


class FakeQuery:
    def __init__(self, client: FakeSupabaseClient, table: str) -> None:
        self.client = client
        self.table = table
        self.row: Row | None = None

    def insert(self, row: Row) -> FakeQuery:
        self.row = row
        return self

    async def execute(self) -> dict[str, Any]:
        if self.client.error is not None:
            raise self.client.error
        self.client.rows.append((self.table, self.row))
        return {"data": [self.row]}


class FakeSupabaseClient:
    def __init__(self) -> None:
        self.channels: list[FakeRealtimeChannel] = []
        self.removed: list[FakeRealtimeChannel] = []
        self.rows: list[tuple[str, Row | None]] = []
        self.error: Exception | None = None
        self.next_state = FakeSubscribeState.SUBSCRIBED
        self.removed_all = False

    def channel(self, topic: str) -> FakeRealtimeChannel:
        channel = FakeRealtimeChannel(topic, self.next_state)
        self.channels.append(channel)
        return channel

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    async def remove_channel(self, channel: FakeRealtimeChannel) -> None:
        self.removed.append(channel)

    async def remove_all_channels(self) -> None:
        self.removed_all = True


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def supabase_client() -> FakeSupabaseClient:
    return FakeSupabaseClient()

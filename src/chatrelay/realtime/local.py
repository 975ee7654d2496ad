"""In-process realtime backend backed by blinker signals."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from blinker import Signal
from loguru import logger

from chatrelay.realtime.protocol import ChannelStatus, InsertCallback, Row, StatusCallback

BroadcastHandler = Callable[[str, dict[str, Any]], None]


class LocalChannel:
    """Channel handle created by :class:`LocalBackend`."""

    def __init__(self, backend: LocalBackend, name: str) -> None:
        self._backend = backend
        self.name = name
        self._inserts: list[tuple[str, str, InsertCallback]] = []
        self._status_callback: StatusCallback | None = None
        self.subscribed = False
        self.closed = False

    def on_insert(self, schema: str, table: str, callback: InsertCallback) -> LocalChannel:
        self._inserts.append((schema, table, callback))
        return self

    def subscribe(self, callback: StatusCallback) -> LocalChannel:
        if self.closed:
            callback(ChannelStatus.CLOSED, None)
            return self
        self._status_callback = callback
        self._backend._attach(self)
        self.subscribed = True
        callback(ChannelStatus.SUBSCRIBED, None)
        return self

    def send_broadcast(self, event: str, payload: dict[str, Any]) -> None:
        if not self.subscribed:
            return
        self._backend.broadcasts.send(self, channel=self.name, event=event, payload=dict(payload))

    def unsubscribe(self) -> None:
        if self.closed:
            return
        was_subscribed = self.subscribed
        self.closed = True
        self.subscribed = False
        self._backend._detach(self)
        if was_subscribed:
            self.report(ChannelStatus.CLOSED)

    def report(self, status: ChannelStatus, error: Exception | None = None) -> None:
        if self._status_callback is not None:
            self._status_callback(status, error)

    def _deliver_insert(self, table: str, row: Row) -> None:
        for _schema, watched, callback in list(self._inserts):
            if watched == table:
                callback(dict(row))


class LocalBackend:
    """Loopback backend: one in-memory table per name plus broadcast fan-out.

    Useful for demos and tests; every channel created here shares the same
    tables and signals.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {}
        self.inserts = Signal("chatrelay.local.insert")
        self.broadcasts = Signal("chatrelay.local.broadcast")
        self._channels: dict[LocalChannel, Callable[..., None]] = {}
        self.reject_inserts: Exception | None = None

    def channel(self, name: str) -> LocalChannel:
        return LocalChannel(self, name)

    async def insert(self, table: str, row: Row) -> None:
        if self.reject_inserts is not None:
            raise self.reject_inserts
        stored = dict(row)
        self.tables.setdefault(table, []).append(stored)
        logger.debug("local.backend.insert table={} rows={}", table, len(self.tables[table]))
        self.inserts.send(self, table=table, row=stored)

    def on_broadcast(self, event: str, handler: BroadcastHandler, *, channel: str = "chat") -> Callable[[], None]:
        """Observe broadcasts of ``event`` on ``channel``; returns a disconnect callable."""

        def _receiver(sender: Any, **kwargs: Any) -> None:
            if kwargs["channel"] == channel and kwargs["event"] == event:
                handler(event, kwargs["payload"])

        self.broadcasts.connect(_receiver, weak=False)
        return lambda: self.broadcasts.disconnect(_receiver)

    def drop_connections(self, status: ChannelStatus = ChannelStatus.CHANNEL_ERROR) -> None:
        """Report ``status`` to every live channel, simulating a backend outage."""
        for channel in list(self._channels):
            channel.subscribed = False
            self._detach(channel)
            channel.report(status)

    @property
    def live_channels(self) -> list[LocalChannel]:
        return list(self._channels)

    def _attach(self, channel: LocalChannel) -> None:
        def _receiver(sender: Any, *, table: str, row: Row) -> None:
            channel._deliver_insert(table, row)

        self.inserts.connect(_receiver, weak=False)
        self._channels[channel] = _receiver

    def _detach(self, channel: LocalChannel) -> None:
        receiver = self._channels.pop(channel, None)
        if receiver is not None:
            self.inserts.disconnect(receiver)

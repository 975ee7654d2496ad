"""Message bus client over one realtime channel."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from chatrelay.config import Settings
from chatrelay.errors import WriteFailure
from chatrelay.logging_utils import channel_logger
from chatrelay.realtime.dedup import DedupFilter
from chatrelay.realtime.protocol import (
    AsyncioScheduler,
    ChannelStatus,
    RealtimeBackend,
    RealtimeChannel,
    Row,
    Scheduler,
)
from chatrelay.realtime.reconnect import DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, ReconnectSupervisor

MessageHandler = Callable[[str, str], None]

MESSAGE_EVENT = "message"
TYPING_EVENT = "typing"


class MessageBusClient:
    """Send, receive and typing broadcasts over one logical channel.

    Messages written by this client are remembered until their row-insert
    echo arrives, so subscribers only see messages authored elsewhere.
    """

    def __init__(
        self,
        backend: RealtimeBackend,
        *,
        channel_name: str = "chat",
        table: str = "messages",
        schema: str = "public",
        scheduler: Scheduler | None = None,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ) -> None:
        self._backend = backend
        self.channel_name = channel_name
        self.table = table
        self.schema = schema
        self.dedup = DedupFilter()
        self._on_message: MessageHandler | None = None
        self._closed = False
        self._log = channel_logger(channel_name)
        self.supervisor = ReconnectSupervisor(
            scheduler or AsyncioScheduler(),
            self._reconnect,
            name=channel_name,
            base_delay=base_delay,
            max_delay=max_delay,
        )
        self._channel: RealtimeChannel | None = backend.channel(channel_name)

    @classmethod
    def from_settings(
        cls, backend: RealtimeBackend, settings: Settings, *, scheduler: Scheduler | None = None
    ) -> MessageBusClient:
        return cls(
            backend,
            channel_name=settings.channel_name,
            table=settings.table,
            schema=settings.schema_name,
            scheduler=scheduler,
            base_delay=settings.reconnect_base_delay,
            max_delay=settings.reconnect_max_delay,
        )

    @property
    def channel(self) -> RealtimeChannel | None:
        return self._channel

    def subscribe(self, on_message: MessageHandler) -> None:
        """Register ``on_message`` for inserts authored by other participants."""
        if self._channel is None:
            raise RuntimeError("message bus client is unsubscribed")
        self._on_message = on_message
        channel = self._channel

        def _on_insert(row: Row) -> None:
            self._handle_insert(row, on_message)

        def _on_status(status: ChannelStatus, error: Exception | None = None) -> None:
            if channel is not self._channel:
                # Late status from a handle that has already been replaced.
                return
            status = ChannelStatus(status)
            if status is ChannelStatus.SUBSCRIBED:
                self._log.info("realtime.channel.subscribed")
            self.supervisor.handle_status(status, error)

        channel.on_insert(self.schema, self.table, _on_insert).subscribe(_on_status)

    def _handle_insert(self, row: Row, on_message: MessageHandler) -> None:
        text = str(row.get("text", ""))
        sender = str(row.get("sender", ""))
        if self.dedup.try_consume(text):
            self._log.debug("realtime.message.echo_suppressed sender={}", sender)
            return
        on_message(text, sender)

    def _reconnect(self) -> None:
        if self._on_message is None or self._closed:
            return
        old = self._channel
        self._channel = self._backend.channel(self.channel_name)
        if old is not None:
            old.unsubscribe()
        self.subscribe(self._on_message)

    async def send_message(self, text: str, sender: str) -> None:
        """Store ``text`` durably, then broadcast it.

        Raises:
            WriteFailure: If the store rejects the insert. The store's own exception
                is chained as ``__cause__``; the pending echo is forgotten and
                nothing is broadcast.
        """
        self.dedup.mark_pending(text)
        try:
            await self._backend.insert(self.table, {"text": text, "sender": sender})
        except Exception as exc:
            self.dedup.cancel_pending(text)
            self._log.error("realtime.message.write_failed sender={} error={}", sender, exc)
            raise WriteFailure(text, sender) from exc
        self._broadcast(MESSAGE_EVENT, {"text": text, "sender": sender})

    def broadcast_typing(self, text: str, sender: str) -> None:
        self._broadcast(TYPING_EVENT, {"currentLine": text, "sender": sender})

    def _broadcast(self, event: str, payload: dict[str, Any]) -> None:
        if self._channel is None:
            return
        self._channel.send_broadcast(event, payload)

    def unsubscribe(self) -> None:
        self.supervisor.dispose()
        self._closed = True
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.unsubscribe()
            self._log.info("realtime.channel.unsubscribed")

"""Backoff state machine for re-establishing a realtime channel."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum

from chatrelay.logging_utils import NO_CHANNEL, channel_logger
from chatrelay.realtime.protocol import ChannelStatus, Scheduler, TimerHandle

DEFAULT_BASE_DELAY = 3.0
DEFAULT_MAX_DELAY = 60.0


class SupervisorState(StrEnum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISPOSED = "disposed"


class ReconnectSupervisor:
    """Schedules at most one reconnect timer at a time with capped exponential backoff.

    ``reconnect`` is invoked when the timer fires; it is expected to replace the
    channel handle and subscribe again, which reports back through
    :meth:`handle_status`.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        reconnect: Callable[[], None],
        *,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        name: str = NO_CHANNEL,
    ) -> None:
        self._log = channel_logger(name)
        self._scheduler = scheduler
        self._reconnect = reconnect
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.attempt_count = 0
        self.state = SupervisorState.CONNECTING
        self._pending_timer: TimerHandle | None = None

    @property
    def disposed(self) -> bool:
        return self.state is SupervisorState.DISPOSED

    @property
    def has_pending_timer(self) -> bool:
        return self._pending_timer is not None

    def next_delay(self) -> float:
        return min(self.base_delay * 2**self.attempt_count, self.max_delay)

    def handle_status(self, status: ChannelStatus, error: Exception | None = None) -> None:
        if self.disposed:
            return
        if status is ChannelStatus.SUBSCRIBED:
            self.state = SupervisorState.CONNECTED
            self.attempt_count = 0
            return
        if self.state is SupervisorState.RECONNECTING:
            self._log.debug("realtime.reconnect.coalesced status={}", status.value)
            return
        self._log.warning("realtime.channel.lost status={} error={}", status.value, error)
        self._schedule()

    def _schedule(self) -> None:
        delay = self.next_delay()
        self.attempt_count += 1
        self.state = SupervisorState.RECONNECTING
        self._pending_timer = self._scheduler.call_later(delay, self._fire)
        self._log.info("realtime.reconnect.scheduled attempt={} delay={}", self.attempt_count, delay)

    def _fire(self) -> None:
        self._pending_timer = None
        if self.disposed:
            return
        self.state = SupervisorState.CONNECTING
        self._log.info("realtime.reconnect.attempt attempt={}", self.attempt_count)
        try:
            self._reconnect()
        except Exception:
            self._log.exception("realtime.reconnect.error attempt={}", self.attempt_count)
            if not self.disposed:
                self._schedule()

    def dispose(self) -> None:
        self.state = SupervisorState.DISPOSED
        if self._pending_timer is not None:
            self._pending_timer.cancel()
            self._pending_timer = None

"""Realtime message bus: dedup, reconnect and the client that composes them."""

from chatrelay.realtime.client import MESSAGE_EVENT, TYPING_EVENT, MessageBusClient
from chatrelay.realtime.dedup import DedupFilter
from chatrelay.realtime.local import LocalBackend, LocalChannel
from chatrelay.realtime.protocol import (
    AsyncioScheduler,
    ChannelStatus,
    RealtimeBackend,
    RealtimeChannel,
    Scheduler,
)
from chatrelay.realtime.reconnect import ReconnectSupervisor, SupervisorState
from chatrelay.realtime.supabase import SupabaseBackend, SupabaseChannel

__all__ = [
    "MESSAGE_EVENT",
    "TYPING_EVENT",
    "AsyncioScheduler",
    "ChannelStatus",
    "DedupFilter",
    "LocalBackend",
    "LocalChannel",
    "MessageBusClient",
    "RealtimeBackend",
    "RealtimeChannel",
    "ReconnectSupervisor",
    "Scheduler",
    "SupabaseBackend",
    "SupabaseChannel",
    "SupervisorState",
]

"""Realtime backend over a hosted Supabase project."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger

from chatrelay.config import Settings
from chatrelay.errors import ConfigurationError
from chatrelay.realtime.protocol import ChannelStatus, InsertCallback, Row, StatusCallback


def extract_record(payload: dict[str, Any]) -> Row:
    """Return the inserted row from a ``postgres_changes`` payload."""
    data = payload.get("data", payload)
    record = data.get("record") or data.get("new") or {}
    return dict(record)


def to_channel_status(state: Any) -> ChannelStatus:
    return ChannelStatus(getattr(state, "value", state))


class SupabaseChannel:
    """Wraps one ``AsyncRealtimeChannel``.

    The realtime client is coroutine based, so subscribe/broadcast/unsubscribe
    run as tasks on the backend and report back through callbacks.
    """

    def __init__(self, backend: SupabaseBackend, channel: Any) -> None:
        self._backend = backend
        self._channel = channel
        self.name = getattr(channel, "topic", "")

    def on_insert(self, schema: str, table: str, callback: InsertCallback) -> SupabaseChannel:
        def _on_change(payload: dict[str, Any]) -> None:
            callback(extract_record(payload))

        self._channel.on_postgres_changes("INSERT", _on_change, table=table, schema=schema)
        return self

    def subscribe(self, callback: StatusCallback) -> SupabaseChannel:
        def _on_state(state: Any, error: Exception | None = None) -> None:
            callback(to_channel_status(state), error)

        self._backend.spawn(self._channel.subscribe(_on_state))
        return self

    def send_broadcast(self, event: str, payload: dict[str, Any]) -> None:
        self._backend.spawn(self._channel.send_broadcast(event, payload))

    def unsubscribe(self) -> None:
        self._backend.spawn(self._backend.client.remove_channel(self._channel))


class SupabaseBackend:
    """Durable inserts through PostgREST plus realtime channels from one client."""

    def __init__(self, client: Any) -> None:
        self.client = client
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    async def connect(cls, url: str, key: str) -> SupabaseBackend:
        try:
            from supabase import acreate_client
        except ImportError as exc:
            raise ConfigurationError(
                "the supabase backend needs the 'supabase' extra: pip install chatrelay[supabase]"
            ) from exc

        client = await acreate_client(url, key)
        logger.info("supabase.backend.connected url={}", url)
        return cls(client)

    @classmethod
    async def from_settings(cls, settings: Settings) -> SupabaseBackend:
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigurationError("CHATRELAY_SUPABASE_URL and CHATRELAY_SUPABASE_KEY are required")
        return await cls.connect(settings.supabase_url, settings.supabase_key)

    def channel(self, name: str) -> SupabaseChannel:
        return SupabaseChannel(self, self.client.channel(name))

    async def insert(self, table: str, row: Row) -> None:
        # postgrest raises APIError when the insert is rejected
        await self.client.table(table).insert(row).execute()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error("supabase.backend.task_failed")

    async def drain(self) -> None:
        """Wait for outstanding subscribe/broadcast/unsubscribe calls."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.client.remove_all_channels()

from __future__ import annotations

import pytest
from conftest import FakeSubscribeState

from chatrelay.config import Settings
from chatrelay.errors import ConfigurationError, WriteFailure
from chatrelay.realtime.client import MESSAGE_EVENT, MessageBusClient
from chatrelay.realtime.protocol import ChannelStatus
from chatrelay.realtime.reconnect import SupervisorState
from chatrelay.realtime.supabase import SupabaseBackend, extract_record, to_channel_status


def _client(backend: SupabaseBackend, scheduler) -> MessageBusClient:
    return MessageBusClient(backend, scheduler=scheduler, base_delay=3.0, max_delay=60.0)


def test_extract_record_unwraps_realtime_payload() -> None:
    row = {"text": "hi", "sender": "bob"}

    assert extract_record({"data": {"type": "INSERT", "record": row}, "ids": [1]}) == row
    assert extract_record({"eventType": "INSERT", "new": row}) == row
    assert extract_record({"data": {"type": "INSERT"}}) == {}


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (FakeSubscribeState.SUBSCRIBED, ChannelStatus.SUBSCRIBED),
        (FakeSubscribeState.TIMED_OUT, ChannelStatus.TIMED_OUT),
        (FakeSubscribeState.CHANNEL_ERROR, ChannelStatus.CHANNEL_ERROR),
        ("CLOSED", ChannelStatus.CLOSED),
    ],
)
def test_to_channel_status_accepts_enum_members_and_strings(state, expected) -> None:
    assert to_channel_status(state) is expected


@pytest.mark.asyncio
async def test_subscribe_listens_for_inserts_and_reports_subscribed(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    received: list[tuple[str, str]] = []
    client.subscribe(lambda text, sender: received.append((text, sender)))
    await backend.drain()

    channel = supabase_client.channels[0]
    assert channel.topic == "chat"
    assert [(event, filters) for event, _, filters in channel.postgres_handlers] == [
        ("INSERT", {"table": "messages", "schema": "public"})
    ]
    assert client.supervisor.state is SupervisorState.CONNECTED

    channel.emit_change({"data": {"type": "INSERT", "record": {"text": "hello", "sender": "bob"}}})
    assert received == [("hello", "bob")]


@pytest.mark.asyncio
async def test_send_message_inserts_row_and_broadcasts(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    received: list[tuple[str, str]] = []
    client.subscribe(lambda text, sender: received.append((text, sender)))

    await client.send_message("ping", "alice")
    await backend.drain()

    channel = supabase_client.channels[0]
    assert supabase_client.rows == [("messages", {"text": "ping", "sender": "alice"})]
    assert channel.sent == [(MESSAGE_EVENT, {"text": "ping", "sender": "alice"})]

    channel.emit_change({"data": {"record": {"text": "ping", "sender": "alice"}}})
    assert received == []


@pytest.mark.asyncio
async def test_rejected_insert_surfaces_as_write_failure(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    client.subscribe(lambda text, sender: None)
    supabase_client.error = RuntimeError("permission denied for table messages")

    with pytest.raises(WriteFailure) as excinfo:
        await client.send_message("ping", "alice")
    await backend.drain()

    assert excinfo.value.__cause__ is supabase_client.error
    assert supabase_client.channels[0].sent == []
    assert "ping" not in client.dedup


@pytest.mark.asyncio
async def test_lost_channel_is_replaced_and_removed(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    client.subscribe(lambda text, sender: None)
    await backend.drain()
    first = supabase_client.channels[0]

    first.emit_state(FakeSubscribeState.TIMED_OUT)
    assert client.supervisor.state is SupervisorState.RECONNECTING
    assert [t.delay for t in scheduler.armed] == [3.0]

    scheduler.fire_all()
    await backend.drain()

    assert len(supabase_client.channels) == 2
    assert supabase_client.removed == [first]
    assert client.supervisor.state is SupervisorState.CONNECTED


@pytest.mark.asyncio
async def test_unsubscribe_removes_channel_and_close_releases_client(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    client.subscribe(lambda text, sender: None)

    client.unsubscribe()
    await backend.aclose()

    assert supabase_client.removed == [supabase_client.channels[0]]
    assert supabase_client.removed_all is True


@pytest.mark.asyncio
async def test_failed_background_call_does_not_break_drain(supabase_client, scheduler) -> None:
    backend = SupabaseBackend(supabase_client)
    client = _client(backend, scheduler)
    client.subscribe(lambda text, sender: None)

    async def broken_broadcast(event, data):
        raise ConnectionError("socket closed")

    supabase_client.channels[0].send_broadcast = broken_broadcast
    client.broadcast_typing("draft", "alice")
    await backend.drain()

    assert client.supervisor.state is SupervisorState.CONNECTED


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [{}, {"supabase_url": "https://example.supabase.co"}])
async def test_from_settings_requires_url_and_key(overrides, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CHATRELAY_SUPABASE_URL", raising=False)
    monkeypatch.delenv("CHATRELAY_SUPABASE_KEY", raising=False)
    settings = Settings(backend="supabase", _env_file=None, **overrides)

    with pytest.raises(ConfigurationError):
        await SupabaseBackend.from_settings(settings)

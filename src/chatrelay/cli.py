"""Command line entry points for chatrelay."""

from __future__ import annotations

import asyncio
from typing import Any, NoReturn, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from chatrelay.agent import AgentInvoker, AgentResponder, AgentTurn, EchoInvoker
from chatrelay.config import Settings, get_settings
from chatrelay.errors import ChatRelayError, ConfigurationError, WriteFailure
from chatrelay.logging_utils import configure_logging
from chatrelay.realtime import TYPING_EVENT, LocalBackend, MessageBusClient, RealtimeBackend

console = Console()

_SECRET_FIELDS = {"supabase_key"}


def create_cli_app() -> typer.Typer:
    app = typer.Typer(
        name="chatrelay",
        help="Relay chat messages and streamed agent replies over a realtime channel.",
        add_completion=False,
        rich_markup_mode="rich",
    )

    @app.command("demo")
    def demo(
        prompts: list[str] = typer.Argument(..., help="Messages to send as the local participant"),
        sender: Optional[str] = typer.Option(None, "--sender", "-s", help="Sender name for local messages"),
        agent: str = typer.Option("echo", "--agent", help="Agent backend: echo or claude"),
        show_typing: bool = typer.Option(False, "--typing", help="Render the agent's typing broadcasts"),
    ) -> None:
        """Run a local loopback conversation between you and an agent."""
        settings = get_settings()
        configure_logging(profile="chat", level=settings.log_level)
        try:
            invoker = _build_invoker(agent, settings)
        except ConfigurationError as exc:
            _fail(exc)
        asyncio.run(_run_demo(settings, invoker, prompts, sender or settings.sender, show_typing))

    @app.command("send")
    def send(
        text: str = typer.Argument(..., help="Message text"),
        sender: Optional[str] = typer.Option(None, "--sender", "-s", help="Sender name"),
        backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Realtime backend: local or supabase"),
    ) -> None:
        """Store one message and broadcast it on the channel."""
        settings = _load_settings(backend)
        configure_logging(profile="chat", level=settings.log_level)
        try:
            asyncio.run(_run_send(settings, text, sender or settings.sender))
        except ChatRelayError as exc:
            _fail(exc)

    @app.command("listen")
    def listen(
        agent: Optional[str] = typer.Option(None, "--agent", help="Reply with this agent backend: echo or claude"),
        backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Realtime backend: local or supabase"),
    ) -> None:
        """Print messages from other participants until interrupted."""
        settings = _load_settings(backend)
        configure_logging(profile="chat", level=settings.log_level)
        try:
            invoker = _build_invoker(agent, settings) if agent else None
            asyncio.run(_run_listen(settings, invoker))
        except ChatRelayError as exc:
            _fail(exc)
        except KeyboardInterrupt:
            console.print("[dim]stopped[/dim]")

    @app.command("config")
    def show_config() -> None:
        """Print the resolved settings."""
        settings = get_settings()
        for key, value in settings.model_dump().items():
            if key in _SECRET_FIELDS and value:
                value = "***"
            console.print(f"[bold]{key}[/bold] = [cyan]{escape(str(value))}[/cyan]")

    return app


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    raise typer.Exit(1) from exc


def _load_settings(backend: str | None) -> Settings:
    overrides = {"backend": backend} if backend else {}
    try:
        return get_settings(**overrides)
    except ValidationError as exc:
        _fail(ConfigurationError(f"invalid settings: {exc}"))


def _build_invoker(name: str, settings: Settings) -> AgentInvoker:
    if name == "echo":
        return EchoInvoker(delay=0.02)
    if name == "claude":
        try:
            from chatrelay.agent.claude import ClaudeInvoker
        except ImportError as exc:
            raise ConfigurationError("the claude agent needs the 'agent' extra: pip install chatrelay[agent]") from exc
        return ClaudeInvoker.from_settings(settings)
    raise ConfigurationError(f"unknown agent backend: {name}")


async def open_backend(settings: Settings) -> RealtimeBackend:
    """Build the realtime backend named by ``settings.backend``."""
    if settings.backend == "supabase":
        from chatrelay.realtime.supabase import SupabaseBackend

        return await SupabaseBackend.from_settings(settings)
    return LocalBackend()


async def close_backend(backend: RealtimeBackend) -> None:
    aclose = getattr(backend, "aclose", None)
    if aclose is not None:
        await aclose()


async def _run_send(settings: Settings, text: str, sender: str) -> None:
    backend = await open_backend(settings)
    client = MessageBusClient.from_settings(backend, settings)
    client.subscribe(lambda _text, _sender: None)
    try:
        await client.send_message(text, sender)
        console.print(f"[bold blue]{sender}[/bold blue] {escape(text)}")
    finally:
        client.unsubscribe()
        await close_backend(backend)


async def _run_listen(settings: Settings, invoker: AgentInvoker | None) -> None:
    backend = await open_backend(settings)
    client = MessageBusClient.from_settings(backend, settings)
    responder = AgentResponder(AgentTurn(invoker, client, sender=settings.agent_sender)) if invoker else None
    pending: set[asyncio.Task[Any]] = set()

    def _on_message(text: str, from_sender: str) -> None:
        console.print(f"[bold green]{from_sender}[/bold green] {escape(text)}")
        if responder is None:
            return
        task = asyncio.get_running_loop().create_task(responder.respond(text))
        pending.add(task)
        task.add_done_callback(pending.discard)

    client.subscribe(_on_message)
    console.print(f"[dim]listening on {escape(settings.channel_name)} ({settings.backend})[/dim]")
    try:
        await asyncio.Event().wait()
    finally:
        client.unsubscribe()
        for task in pending:
            task.cancel()
        await close_backend(backend)


async def _run_demo(
    settings: Settings, invoker: AgentInvoker, prompts: list[str], sender: str, show_typing: bool
) -> None:
    backend = LocalBackend()
    human = MessageBusClient.from_settings(backend, settings)
    agent_client = MessageBusClient.from_settings(backend, settings)
    responder = AgentResponder(AgentTurn(invoker, agent_client, sender=settings.agent_sender))
    pending: list[asyncio.Task[Any]] = []

    def _on_human_message(text: str, from_sender: str) -> None:
        console.print(f"[bold green]{from_sender}[/bold green] {escape(text)}")

    def _on_agent_message(text: str, from_sender: str) -> None:
        pending.append(asyncio.get_running_loop().create_task(responder.respond(text)))

    def _on_typing(_event: str, payload: dict[str, Any]) -> None:
        if payload.get("sender") == settings.agent_sender:
            console.print(f"[dim]{escape(str(payload.get('currentLine', '')))}[/dim]")

    if show_typing:
        backend.on_broadcast(TYPING_EVENT, _on_typing, channel=settings.channel_name)
    human.subscribe(_on_human_message)
    agent_client.subscribe(_on_agent_message)
    try:
        for prompt in prompts:
            console.print(f"[bold blue]{sender}[/bold blue] {escape(prompt)}")
            try:
                await human.send_message(prompt, sender)
            except WriteFailure as exc:
                console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
                continue
            while pending:
                await pending.pop(0)
        logger.debug("demo.done session_id={}", responder.context.session_id)
    finally:
        human.unsubscribe()
        agent_client.unsubscribe()

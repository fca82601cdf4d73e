"""Onboarding and chat CLI commands."""

from __future__ import annotations

import asyncio
import uuid

import typer

from teller import __logo__
from teller.core.models import InboundEvent, InteractiveReply, Reply

from .core import app, console, make_runtime


def _render(reply: Reply | None) -> None:
    if reply is None:
        return
    console.print(f"\n{__logo__} {reply.text}")
    if isinstance(reply, InteractiveReply):
        for button in reply.action_buttons:
            console.print(f"  [cyan][{button.label}][/cyan] {button.callback_data}")
    console.print()


@app.command()
def onboard() -> None:
    """Initialize teller configuration."""
    from teller.config.loader import get_config_path, save_config
    from teller.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"[green]✓[/green] Database will live at {config.storage.path}")

    console.print(f"\n{__logo__} teller is ready!")
    console.print("\nNext steps:")
    console.print("  1. Put [cyan]GROQ_API_KEY[/cyan] (and optionally OPENROUTER_API_KEY) in [cyan]~/.teller/.env[/cyan]")
    console.print('  2. Chat: [cyan]teller chat -m "hello"[/cyan]')


@app.command()
def chat(
    message: str = typer.Option(None, "--message", "-m", help="Send one message and exit"),
    user: str = typer.Option("cli-user", "--user", "-u", help="User id to chat as"),
    name: str = typer.Option(None, "--name", help="Display name"),
) -> None:
    """Chat with teller from the terminal."""
    runtime = make_runtime()

    def event_for(text: str) -> InboundEvent:
        return InboundEvent(
            user_id=user,
            chat_id=user,
            text=text,
            channel="cli",
            message_id=uuid.uuid4().hex,
            sender_name=name,
        )

    if message:

        async def run_once() -> None:
            _render(await runtime.handle(event_for(message)))
            await runtime.orchestrator.drain()

        try:
            asyncio.run(run_once())
        finally:
            runtime.close()
        return

    console.print(f"{__logo__} Interactive mode (Ctrl+C to exit)\n")

    async def run_interactive() -> None:
        while True:
            try:
                user_input = console.input("[bold blue]You:[/bold blue] ")
                if not user_input.strip():
                    continue
                _render(await runtime.handle(event_for(user_input)))
            except (KeyboardInterrupt, EOFError):
                console.print("\nGoodbye!")
                break
        await runtime.orchestrator.drain()

    try:
        asyncio.run(run_interactive())
    finally:
        runtime.close()

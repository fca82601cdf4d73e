"""Memory inspection CLI commands."""

from __future__ import annotations

import typer
from rich.table import Table

from .core import app, console

memory_app = typer.Typer(help="Inspect and edit remembered facts")
app.add_typer(memory_app, name="memory")


def _manager():
    from teller.config.loader import load_config
    from teller.memory.service import MemoryManager
    from teller.memory.store import SqliteMemoryStore

    config = load_config()
    return MemoryManager(SqliteMemoryStore(config.storage.path), episode_retention=config.memory.episode_retention)


@memory_app.command("facts")
def memory_facts(
    user: str = typer.Argument(..., help="User id"),
    all: bool = typer.Option(False, "--all", "-a", help="Include forgotten facts"),
) -> None:
    """List facts stored for a user."""
    memory = _manager()
    try:
        facts = memory.store.list_facts(user, include_deprecated=all)
    finally:
        memory.close()

    if not facts:
        console.print("No facts stored.")
        return

    table = Table(title=f"Facts for {user}")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Confidence")
    table.add_column("Updated")
    for fact in facts:
        key = f"[dim]{fact.key}[/dim]" if fact.deprecated else fact.key
        table.add_row(key, fact.value, f"{fact.confidence:.2f}", fact.updated_at)
    console.print(table)


@memory_app.command("teach")
def memory_teach(
    user: str = typer.Argument(..., help="User id"),
    key: str = typer.Argument(..., help="Fact key, e.g. name or wallet_sam"),
    value: str = typer.Argument(..., help="Fact value"),
    confidence: float = typer.Option(1.0, "--confidence", "-c", min=0.0, max=1.0),
) -> None:
    """Store or overwrite one fact."""
    memory = _manager()
    try:
        fact = memory.store_fact(user, key, value, confidence)
    finally:
        memory.close()
    console.print(f"[green]✓[/green] {user}: {fact.key} = {fact.value}")


@memory_app.command("forget")
def memory_forget(
    user: str = typer.Argument(..., help="User id"),
    keyword: str = typer.Argument(..., help="Keyword matched against keys and values"),
) -> None:
    """Mark matching facts as forgotten."""
    memory = _manager()
    try:
        count = memory.forget(user, keyword)
    finally:
        memory.close()
    console.print(f"[green]✓[/green] Forgot {count} fact(s)")

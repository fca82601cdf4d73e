"""Provider diagnostics CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from .core import app, console

providers_app = typer.Typer(help="Inspect completion providers")
app.add_typer(providers_app, name="providers")


@providers_app.command("test")
def providers_test() -> None:
    """Ping every configured tier with a tiny prompt."""
    from teller.config.loader import load_config
    from teller.providers.factory import make_tiered_router

    router = make_tiered_router(load_config())
    results = asyncio.run(router.test_all_tiers())

    table = Table(title="Provider Tiers")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Error")
    for r in results:
        status = f"[green]{r.status}[/green]" if r.ok else f"[red]{r.status}[/red]"
        table.add_row(r.provider, r.model, status, f"{r.latency_ms}ms", r.error or "")
    console.print(table)

    if not any(r.ok for r in results):
        raise typer.Exit(1)

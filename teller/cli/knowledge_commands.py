"""Knowledge base CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from .core import app, console

kb_app = typer.Typer(help="Ingest and search the knowledge base")
app.add_typer(kb_app, name="kb")


def _index():
    from teller.config.loader import load_config
    from teller.knowledge.index import SqliteKnowledgeIndex

    config = load_config()
    return config, SqliteKnowledgeIndex(config.storage.path)


@kb_app.command("ingest")
def kb_ingest(url: str = typer.Argument(..., help="http(s) URL to read")) -> None:
    """Fetch a page, summarize it and index its passages."""
    from teller.knowledge.fetcher import DocumentFetcher, FetchError
    from teller.knowledge.ingest import KnowledgeIngestor

    config, index = _index()
    fetcher = DocumentFetcher(
        timeout_seconds=config.ingest.timeout_seconds,
        max_bytes=config.ingest.max_bytes,
        allowed_content_types=config.ingest.allowed_content_types,
    )
    ingestor = KnowledgeIngestor(fetcher, index)
    try:
        result = asyncio.run(ingestor.ingest(url))
    except (FetchError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        index.close()

    doc = result.document
    if not result.created:
        console.print(f"[yellow]Already indexed:[/yellow] {doc.title} ({doc.id})")
        return
    console.print(f"[green]✓[/green] Indexed {doc.title} ({result.passages} passages)")
    if doc.tldr:
        console.print(f"[dim]{doc.tldr}[/dim]")


@kb_app.command("search")
def kb_search(
    query: str = typer.Argument(..., help="Search terms"),
    limit: int = typer.Option(5, "--limit", "-n", min=1),
) -> None:
    """Rank passages by term overlap."""
    _, index = _index()
    try:
        citations = index.search_terms(query, limit=limit)
    finally:
        index.close()

    if not citations:
        console.print("No matches.")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("Score", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Excerpt")
    for c in citations:
        table.add_row(f"{c.score:.0f}", c.title, c.excerpt)
    console.print(table)


@kb_app.command("list")
def kb_list(limit: int = typer.Option(20, "--limit", "-n", min=1)) -> None:
    """List indexed documents, newest first."""
    _, index = _index()
    try:
        documents = index.list_documents(limit=limit)
    finally:
        index.close()

    if not documents:
        console.print("Knowledge base is empty.")
        return

    table = Table(title="Knowledge Documents")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Source")
    table.add_column("Added")
    for d in documents:
        table.add_row(d.id[:12], d.title, d.url or d.source, d.created_at)
    console.print(table)

"""Shared CLI application context and setup helpers."""

from __future__ import annotations

import typer
from dotenv import load_dotenv
from rich.console import Console

from teller import __logo__, __version__
from teller.utils.helpers import get_data_path

app = typer.Typer(
    name="teller",
    help=f"{__logo__} teller - conversational wallet assistant",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} teller v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
) -> None:
    """teller - conversational wallet assistant."""
    # Existing env vars win over ~/.teller/.env
    load_dotenv(get_data_path() / ".env", override=False)


def make_runtime():
    """Build the runtime from ~/.teller/config.json."""
    from teller.app.bootstrap import build_runtime
    from teller.config.loader import load_config

    return build_runtime(load_config())

"""Entry point for ``python -m teller``."""

from teller.cli.commands import app

if __name__ == "__main__":
    app()

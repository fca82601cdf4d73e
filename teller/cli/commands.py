"""CLI entrypoint; importing the command modules registers them on ``app``."""

from . import (  # noqa: F401
    chat_commands,
    knowledge_commands,
    memory_commands,
    provider_commands,
    skill_commands,
)
from .core import app

__all__ = ["app"]

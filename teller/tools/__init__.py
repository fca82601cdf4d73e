"""Named tools behind a single result envelope."""

from teller.tools.base import ToolName, ToolResult
from teller.tools.dispatcher import ToolDispatcher

__all__ = ["ToolDispatcher", "ToolName", "ToolResult"]

"""Tool identifiers and the result envelope."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

UNKNOWN_TOOL_ERROR = "unknown tool"


class ToolName(StrEnum):
    MEMORY_GET = "memory_get"
    MEMORY_ADD = "memory_add"
    KNOWLEDGE_ASK = "knowledge_ask"
    KNOWLEDGE_SEARCH = "knowledge_search"
    KNOWLEDGE_INGEST = "knowledge_ingest"
    RECENT_EVENTS = "recent_events"
    RESOLVE_RECIPIENT = "resolve_recipient"

    @classmethod
    def parse(cls, raw: str) -> ToolName | None:
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True, kw_only=True)
class ToolResult:
    tool: str
    success: bool
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"tool": self.tool, "success": self.success, "result": self.result}
        if self.error is not None:
            payload["error"] = self.error
        return payload

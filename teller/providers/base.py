"""Provider contracts. Calls never raise; every outcome is a ProviderCallResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, TypeAlias

ChatMessage: TypeAlias = dict[str, str]

STATUS_UNAUTHORIZED = 401
STATUS_TIMEOUT = 408
STATUS_NETWORK_ERROR = 500


@dataclass(frozen=True, slots=True, kw_only=True)
class ProviderCallResult:
    provider: str
    model: str
    latency_ms: int
    status: int
    text: str = ""
    error: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """2xx status and non-empty text."""
        return 200 <= self.status < 300 and bool(self.text.strip())


class CompletionProvider(Protocol):
    """One OpenAI-compatible chat endpoint."""

    name: str
    model: str
    max_tokens: int
    timeout_ms: int

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        timeout_ms: int | None = None,
    ) -> ProviderCallResult:
        """Run one chat completion; must not raise."""

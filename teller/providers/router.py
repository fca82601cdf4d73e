"""Fallback routing across ranked completion providers."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from teller.providers.base import ChatMessage, CompletionProvider, ProviderCallResult

DIAGNOSTIC_TIMEOUT_MS = 5000
DIAGNOSTIC_MAX_TOKENS = 10


class TieredProviderRouter:
    """Primary, fallback, then a fast last-resort tier whose result is final.

    The last tier runs with ``min(tier.max_tokens, fast_max_tokens)`` and its
    result is returned whether or not it succeeded; callers own the offline path.
    """

    def __init__(self, tiers: Sequence[CompletionProvider], *, fast_max_tokens: int = 500) -> None:
        if not tiers:
            raise ValueError("TieredProviderRouter needs at least one tier")
        self._tiers = list(tiers)
        self.fast_max_tokens = fast_max_tokens

    @property
    def tiers(self) -> list[CompletionProvider]:
        return list(self._tiers)

    async def chat(self, messages: list[ChatMessage]) -> ProviderCallResult:
        for tier in self._tiers[:-1]:
            result = await tier.complete(messages)
            if result.ok:
                return result
            logger.warning(
                "Provider tier {} ({}) failed status={} error={}; trying next tier",
                tier.name,
                tier.model,
                result.status,
                result.error,
            )

        last = self._tiers[-1]
        budget = min(last.max_tokens, self.fast_max_tokens) if len(self._tiers) > 1 else None
        result = await last.complete(messages, max_tokens=budget)
        if not result.ok:
            logger.warning("All provider tiers failed; last status={} error={}", result.status, result.error)
        return result

    async def test_all_tiers(self) -> list[ProviderCallResult]:
        """Ping every tier with a tiny prompt; used by diagnostics."""
        probe: list[ChatMessage] = [{"role": "user", "content": "Reply with OK."}]
        results = []
        for tier in self._tiers:
            results.append(
                await tier.complete(probe, max_tokens=DIAGNOSTIC_MAX_TOKENS, timeout_ms=DIAGNOSTIC_TIMEOUT_MS)
            )
        return results


class FallbackProviderRouter:
    """Two-step primary then secondary cascade for the single-shot ask path."""

    def __init__(
        self,
        primary: CompletionProvider,
        secondary: CompletionProvider | None = None,
        *,
        system_prompt: str = "",
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self.system_prompt = system_prompt

    def build_messages(self, text: str, context: str = "") -> list[ChatMessage]:
        messages: list[ChatMessage] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        content = f"CONTEXT:\n{context}\n\nUSER: {text}" if context.strip() else text
        messages.append({"role": "user", "content": content})
        return messages

    async def ask(self, text: str, context: str = "") -> ProviderCallResult:
        messages = self.build_messages(text, context)
        first = await self._primary.complete(messages)
        if first.ok or self._secondary is None:
            return first
        logger.warning(
            "Ask provider {} failed status={} error={}; falling back to {}",
            self._primary.name,
            first.status,
            first.error,
            self._secondary.name,
        )
        return await self._secondary.complete(messages)

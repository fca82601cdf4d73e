"""Provider middleware: model reply over packaged memory and retrieval context.

Gated per user by the AI toggle and the daily call quota. When every tier
fails the message falls through to the offline path marked as degraded.
"""

from __future__ import annotations

from loguru import logger

from teller.assistant.settings import SqliteAssistantSettings
from teller.core.pipeline import NextFn, PipelineContext
from teller.knowledge.retrieval import RetrievalEngine
from teller.memory.service import MemoryManager
from teller.providers.base import ChatMessage
from teller.providers.router import TieredProviderRouter
from teller.utils.helpers import truncate_string


class ContextPackager:
    """Facts, the last few episodes and the top retrieval hits as plain text."""

    def __init__(
        self,
        *,
        memory: MemoryManager,
        retrieval: RetrievalEngine,
        facts: int = 5,
        episodes: int = 3,
        hits: int = 2,
        snippet_chars: int = 200,
    ) -> None:
        self._memory = memory
        self._retrieval = retrieval
        self.facts = facts
        self.episodes = episodes
        self.hits = hits
        self.snippet_chars = snippet_chars

    def package(self, user_id: str, query: str) -> str:
        sections: list[str] = []

        facts = self._memory.get_all_facts(user_id, limit=self.facts)
        if facts:
            sections.append("Known facts:\n" + "\n".join(f"- {f.key}: {f.value}" for f in facts))

        episodes = self._memory.recent_episodes(user_id, self.episodes)
        if episodes:
            turns = [
                f"- user: {truncate_string(e.input_text, self.snippet_chars)} | "
                f"you: {truncate_string(e.output_text, self.snippet_chars)}"
                for e in reversed(episodes)
            ]
            sections.append("Recent conversation:\n" + "\n".join(turns))

        hits = self._retrieval.retrieve(user_id, query)[: self.hits]
        if hits:
            lines = [
                f"- [{h.source}] {h.title + ': ' if h.title else ''}{truncate_string(h.text, self.snippet_chars)}"
                for h in hits
            ]
            sections.append("Relevant notes:\n" + "\n".join(lines))

        return "\n\n".join(sections)


class ProviderResponderMiddleware:
    def __init__(
        self,
        *,
        router: TieredProviderRouter,
        settings: SqliteAssistantSettings,
        packager: ContextPackager,
        system_prompt: str = "",
        enabled_by_default: bool = True,
        daily_limit: int = 50,
    ) -> None:
        self._router = router
        self._settings = settings
        self._packager = packager
        self._system_prompt = system_prompt
        self._enabled_by_default = enabled_by_default
        self._daily_limit = daily_limit

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        user_id = ctx.event.user_id
        if not self._settings.is_enabled(user_id, default=self._enabled_by_default):
            ctx.metric("provider_skipped", labels=(("reason", "disabled"),))
            await next(ctx)
            return
        if not self._settings.try_consume(user_id, limit=self._daily_limit):
            ctx.metric("provider_skipped", labels=(("reason", "quota"),))
            await next(ctx)
            return

        messages = self._build_messages(ctx.text, self._packager.package(user_id, ctx.text))
        result = await self._router.chat(messages)
        try:
            self._settings.record_call(user_id, result)
        except Exception as e:
            logger.warning("diagnostics write failed user={}: {}", user_id, e)

        ctx.metric(
            "provider_call",
            labels=(("provider", result.provider), ("status", str(result.status))),
        )
        if result.ok:
            ctx.respond(result.text.strip(), source="provider")
            return

        ctx.degraded = True
        await next(ctx)

    def _build_messages(self, text: str, context: str) -> list[ChatMessage]:
        messages: list[ChatMessage] = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        content = f"CONTEXT:\n{context}\n\nUSER: {text}" if context.strip() else text
        messages.append({"role": "user", "content": content})
        return messages

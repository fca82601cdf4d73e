"""Research middleware: DEEP_RESEARCH requests go to the ask providers."""

from __future__ import annotations

from teller.assistant.settings import SqliteAssistantSettings
from teller.brain.nlu import IntentTag
from teller.brain.researcher import Researcher, research_topic
from teller.brain.templates import get_variant
from teller.core.pipeline import NextFn, PipelineContext


class ResearchMiddleware:
    """Users who turned model replies off fall through to the offline path."""

    def __init__(
        self,
        *,
        researcher: Researcher,
        settings: SqliteAssistantSettings,
        ai_enabled_by_default: bool = True,
    ) -> None:
        self._researcher = researcher
        self._settings = settings
        self._ai_default = ai_enabled_by_default

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if ctx.parsed is None or ctx.parsed.intent is not IntentTag.DEEP_RESEARCH:
            await next(ctx)
            return
        if not self._settings.is_enabled(ctx.event.user_id, default=self._ai_default):
            await next(ctx)
            return

        topic = research_topic(ctx.text)
        if not topic:
            ctx.respond(get_variant(IntentTag.DEEP_RESEARCH.value), source="research")
            return

        report = await self._researcher.research(topic)
        ctx.metric("research_run")
        ctx.respond(report, source="research")

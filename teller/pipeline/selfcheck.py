"""Self-check middleware: vary replies that read like the last few."""

from __future__ import annotations

from loguru import logger

from teller.brain.selfcheck import SelfChecker
from teller.core.pipeline import NextFn, PipelineContext
from teller.memory.service import MemoryManager


class SelfCheckMiddleware:
    """Rewrite the draft reply against the user's recent replies.

    Safety messages are marked verbatim upstream and pass through untouched.
    """

    def __init__(self, *, checker: SelfChecker, memory: MemoryManager, recent_replies: int = 5) -> None:
        self._checker = checker
        self._memory = memory
        self._recent_replies = max(1, int(recent_replies))

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        await next(ctx)

        if not ctx.reply or ctx.verbatim:
            return

        name = ctx.event.display_name
        try:
            episodes = self._memory.recent_episodes(ctx.event.user_id, self._recent_replies)
            name = self._memory.preferred_name(ctx.event.user_id, name)
        except Exception as e:
            logger.warning("self-check could not read history for user={}: {}", ctx.event.user_id, e)
            episodes = []
        recent = [e.output_text for e in episodes if e.output_text]

        checked = self._checker.check(ctx.reply, name, recent)
        if checked != ctx.reply:
            ctx.metric("selfcheck_rewrite", labels=(("source", ctx.source or "unknown"),))
            ctx.reply = checked

"""Normalization middleware: empty-content guard and intent parsing."""

from __future__ import annotations

from teller.brain.nlu import IntentParser
from teller.core.pipeline import NextFn, PipelineContext


class NormalizationMiddleware:
    """Drop empty events, then attach the parsed intent and entities."""

    def __init__(self, parser: IntentParser) -> None:
        self._parser = parser

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        text = (ctx.event.text or "").strip()
        if not text:
            ctx.metric("event_drop_empty", labels=(("channel", ctx.event.channel),))
            ctx.halt()
            return

        ctx.text = text
        ctx.parsed = self._parser.parse(text)
        ctx.metric("intent_parsed", labels=(("intent", ctx.intent_name),))
        await next(ctx)

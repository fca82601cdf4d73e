"""Delivery middleware: turn the final reply into a send intent."""

from __future__ import annotations

from teller.core.intents import SendReplyIntent
from teller.core.models import InteractiveReply, PlainReply, Reply
from teller.core.pipeline import NextFn, PipelineContext


class DeliveryMiddleware:
    """Runs outermost after dedup so every later rewrite is already applied."""

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        await next(ctx)

        if not ctx.reply:
            ctx.metric("reply_empty", labels=(("channel", ctx.event.channel),))
            return

        reply: Reply
        if ctx.buttons:
            reply = InteractiveReply(text=ctx.reply, action_buttons=tuple(ctx.buttons))
        else:
            reply = PlainReply(text=ctx.reply)
        ctx.intents.append(SendReplyIntent(chat_id=ctx.event.chat_id, reply=reply))
        ctx.metric(
            "reply_sent",
            labels=(("channel", ctx.event.channel), ("source", ctx.source or "unknown")),
        )

"""Message orchestrator: run the pipeline and execute its intents."""

from __future__ import annotations

from typing import assert_never

from loguru import logger

from teller.core.intents import PipelineIntent, RecordMetricIntent, SendReplyIntent
from teller.core.models import InboundEvent, PlainReply, Reply
from teller.core.pipeline import Pipeline
from teller.core.ports import TelemetryPort
from teller.pipeline.persistence import BackgroundWriter

ERROR_REPLY = "Sorry, something went wrong on my side. Nothing was sent; please try again."


class Orchestrator:
    """One pipeline run per inbound event; returns the reply to deliver, if any."""

    def __init__(
        self,
        *,
        pipeline: Pipeline,
        telemetry: TelemetryPort,
        background: BackgroundWriter | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._telemetry = telemetry
        self._background = background

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    async def handle(self, event: InboundEvent) -> Reply | None:
        try:
            intents = await self._pipeline.run(event)
        except Exception as e:
            logger.exception("pipeline failure channel={} chat={}: {}", event.channel, event.chat_id, e)
            self._telemetry.incr("pipeline_error", labels=(("channel", event.channel),))
            return PlainReply(text=ERROR_REPLY)
        return self._dispatch_intents(intents)

    def _dispatch_intents(self, intents: list[PipelineIntent]) -> Reply | None:
        reply: Reply | None = None
        for intent in intents:
            match intent:
                case SendReplyIntent():
                    reply = intent.reply
                case RecordMetricIntent():
                    self._telemetry.incr(intent.name, intent.value, intent.labels)
                case _:
                    assert_never(intent)
        return reply

    async def drain(self) -> None:
        """Wait for background writes queued by earlier messages."""
        if self._background is not None:
            await self._background.drain()

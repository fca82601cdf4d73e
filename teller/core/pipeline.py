"""Middleware pipeline for inbound message processing.

Each message runs through a chain of independently testable middleware
classes.  A middleware calls ``next()`` to pass through, or answers the
message with ``ctx.respond()`` which also halts the chain.  Layers placed
early in the chain may post-process after ``await next(ctx)`` returns
(self-check, persistence, delivery).

Usage::

    pipeline = Pipeline([
        NormalizationMiddleware(parser),
        DeduplicationMiddleware(ttl_seconds=1200),
        DeliveryMiddleware(),
        ...
        OfflineFallbackMiddleware(...),
    ])
    intents = await pipeline.run(event)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from teller.brain.nlu import ParsedIntent
from teller.core.intents import PipelineIntent, RecordMetricIntent
from teller.core.models import ActionButton, InboundEvent


@dataclass
class PipelineContext:
    """Mutable state flowing through the middleware chain.

    Attributes:
        event: The inbound event being processed.
        text: Trimmed message text.
        parsed: Intent and entities, set by the normalization middleware.
        reply: Draft reply text; post-processors may rewrite it.
        buttons: Action buttons attached to an interactive reply.
        source: Name of the stage that produced the reply.
        verbatim: When ``True`` the self-check stage leaves the reply untouched.
        degraded: Set when every provider tier failed for this message.
        intents: Accumulated output intents.
        halted: When ``True``, the pipeline stops executing further middleware.
    """

    event: InboundEvent
    text: str = ""
    parsed: ParsedIntent | None = None
    reply: str | None = None
    buttons: list[ActionButton] = field(default_factory=list)
    source: str | None = None
    verbatim: bool = False
    degraded: bool = False
    intents: list[PipelineIntent] = field(default_factory=list)
    halted: bool = False

    # ── Convenience helpers ──────────────────────────────────────────

    @property
    def intent_name(self) -> str:
        return self.parsed.intent.value if self.parsed is not None else "UNKNOWN"

    def metric(
        self,
        name: str,
        value: int = 1,
        labels: tuple[tuple[str, str], ...] = (),
    ) -> None:
        """Append a metric intent (shorthand used by most middleware)."""
        self.intents.append(RecordMetricIntent(name=name, value=value, labels=labels))

    def halt(self) -> None:
        """Signal the pipeline to stop after this middleware."""
        self.halted = True

    def respond(
        self,
        text: str,
        *,
        source: str,
        verbatim: bool = False,
        buttons: Iterable[ActionButton] = (),
    ) -> None:
        """Set the reply and stop the chain."""
        self.reply = text
        self.source = source
        self.verbatim = verbatim
        self.buttons = list(buttons)
        self.halt()


NextFn = Callable[[PipelineContext], Awaitable[None]]
"""Signature for the ``next`` callback passed to each middleware."""


@runtime_checkable
class Middleware(Protocol):
    """Protocol for pipeline middleware.

    Implementations must be callable with ``(ctx, next)`` and may:

    1. Modify ``ctx`` and call ``await next(ctx)`` to pass through.
    2. Call ``ctx.respond()`` to short-circuit with a reply.
    3. Call ``await next(ctx)`` then inspect/modify the result.
    """

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None: ...


class Pipeline:
    """Ordered chain of middleware that processes an inbound event."""

    __slots__ = ("_layers",)

    def __init__(self, layers: list[Middleware]) -> None:
        self._layers = list(layers)

    async def run(self, event: InboundEvent) -> list[PipelineIntent]:
        """Process *event* through the full middleware chain and return intents."""
        ctx = PipelineContext(event=event)
        await self._execute(ctx, index=0)
        return ctx.intents

    async def _execute(self, ctx: PipelineContext, index: int) -> None:
        if ctx.halted or index >= len(self._layers):
            return
        layer = self._layers[index]
        await layer(ctx, lambda c: self._execute(c, index + 1))

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        names = [type(m).__name__ for m in self._layers]
        return f"Pipeline({' → '.join(names)})"

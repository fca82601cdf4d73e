"""Persistence middleware: episode log, fact capture and post-turn evaluation.

Runs after the reply is final. Every write here is best-effort: a failure is
logged and the reply still goes out.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from teller.brain.evaluator import Evaluator
from teller.core.pipeline import NextFn, PipelineContext
from teller.memory.extractor import extract_facts
from teller.memory.service import MemoryManager


class BackgroundWriter:
    """Owns fire-and-forget tasks so they can be drained on shutdown or in tests."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, label: str, fn: Callable[[], Any]) -> None:
        task = asyncio.create_task(self._run(label, fn))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(label: str, fn: Callable[[], Any]) -> None:
        try:
            await asyncio.to_thread(fn)
        except Exception as e:
            logger.warning("background {} failed: {}", label, e)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)


class PersistenceMiddleware:
    """Log the turn, store extracted facts, then queue the evaluator."""

    def __init__(
        self,
        *,
        memory: MemoryManager,
        evaluator: Evaluator | None = None,
        background: BackgroundWriter | None = None,
    ) -> None:
        self._memory = memory
        self._evaluator = evaluator
        self._background = background or BackgroundWriter()

    @property
    def background(self) -> BackgroundWriter:
        return self._background

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        await next(ctx)

        if not ctx.reply:
            return

        user_id = ctx.event.user_id
        entities = ctx.parsed.entities.as_dict() if ctx.parsed is not None else {}
        try:
            self._memory.log_episode(user_id, ctx.text, ctx.intent_name, entities, ctx.reply)
        except Exception as e:
            logger.warning("episode write failed user={}: {}", user_id, e)
            ctx.metric("persist_episode_failed")

        for fact in extract_facts(ctx.text):
            try:
                self._memory.store_fact(user_id, fact.key, fact.value, fact.confidence)
            except Exception as e:
                logger.warning("fact write failed user={} key={}: {}", user_id, fact.key, e)
                ctx.metric("persist_fact_failed")

        if self._evaluator is not None:
            evaluator, text, reply, intent = self._evaluator, ctx.text, ctx.reply, ctx.intent_name
            self._background.spawn(
                "evaluator",
                lambda: evaluator.evaluate(user_id, text, reply, intent),
            )

"""Offline fallback: deterministic replies when no model answered.

Order: captured facts, WHOAMI, link ingestion, status and listing intents,
knowledge citations, a confident retrieval hit, research for long unknown
questions, then a template.
"""

from __future__ import annotations

import random
import re

from teller.assistant.settings import SqliteAssistantSettings
from teller.brain.nlu import IntentTag
from teller.brain.researcher import Researcher
from teller.brain.templates import get_variant
from teller.core.pipeline import NextFn, PipelineContext
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.retrieval import RetrievalEngine
from teller.memory.extractor import ExtractedFact, extract_facts
from teller.memory.service import WALLET_KEY_PREFIX, MemoryManager
from teller.safety.machine import TransactionSafetyMachine
from teller.tools.base import ToolName
from teller.tools.dispatcher import ToolDispatcher

DEGRADED_NOTE = "(I couldn't reach my language model, so this is the short offline answer.)"
DEFAULT_PREFERENCES = "wallet transfers and quick answers"
RESEARCH_MIN_CHARS = 10

_URL_RE = re.compile(r"https?://[^\s<>\"']+")
_INGEST_INTENTS = {IntentTag.UNKNOWN, IntentTag.KB_ADD, IntentTag.SUMMARIZE, IntentTag.EXPLAIN}
_NO_LOOKUP_INTENTS = {
    IntentTag.GREET,
    IntentTag.HELP,
    IntentTag.CONNECT,
    IntentTag.DISTRIBUTE,
    IntentTag.TRANSFER_INTENT,
    IntentTag.TX_CONFIRM,
    IntentTag.TX_CANCEL,
}


def acknowledge_facts(facts: list[ExtractedFact]) -> str | None:
    lines: list[str] = []
    for fact in facts:
        if fact.key == "name":
            lines.append(f"Nice to meet you, {fact.value}! I'll remember your name.")
        elif fact.key.startswith(WALLET_KEY_PREFIX):
            handle = "@" + fact.key[len(WALLET_KEY_PREFIX):]
            lines.append(f"Saved {handle} as {fact.value}. You can send to {handle} by name now.")
        elif fact.key.startswith("note_"):
            lines.append("Noted. I'll keep that in mind.")
    return "\n".join(lines) or None


class OfflineFallbackMiddleware:
    """Last layer; always produces a reply."""

    def __init__(
        self,
        *,
        memory: MemoryManager,
        dispatcher: ToolDispatcher,
        index: SqliteKnowledgeIndex,
        retrieval: RetrievalEngine,
        machine: TransactionSafetyMachine,
        settings: SqliteAssistantSettings,
        researcher: Researcher | None = None,
        ai_enabled_by_default: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self._memory = memory
        self._dispatcher = dispatcher
        self._index = index
        self._retrieval = retrieval
        self._machine = machine
        self._settings = settings
        self._researcher = researcher
        self._ai_default = ai_enabled_by_default
        self._rng = rng

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        text, source = await self._answer(ctx)
        if ctx.degraded:
            text = f"{DEGRADED_NOTE}\n{text}"
        ctx.metric("offline_reply", labels=(("source", source),))
        ctx.respond(text, source=source)

    async def _answer(self, ctx: PipelineContext) -> tuple[str, str]:
        user_id = ctx.event.user_id
        intent = ctx.parsed.intent if ctx.parsed is not None else IntentTag.UNKNOWN
        name = self._memory.preferred_name(user_id, ctx.event.display_name)

        captured = acknowledge_facts(extract_facts(ctx.text))
        if captured:
            return captured, "memory"

        if intent is IntentTag.WHOAMI:
            return get_variant(intent.value, rng=self._rng, name=name, preferences=DEFAULT_PREFERENCES), "memory"

        url = _URL_RE.search(ctx.text)
        if url and intent in _INGEST_INTENTS:
            return await self._ingest(url.group(0)), "knowledge"

        if intent is IntentTag.STATUS:
            return self._status(user_id), "status"
        if intent is IntentTag.KB_LIST:
            return self._list_documents(), "knowledge"

        if intent not in _NO_LOOKUP_INTENTS:
            asked = await self._dispatcher.dispatch(ToolName.KNOWLEDGE_ASK, {"question": ctx.text})
            if asked.success:
                return str(asked.result["answer"]), "knowledge"

            hits = self._retrieval.retrieve(user_id, ctx.text)
            if hits and self._retrieval.is_confident(hits[0]):
                top = hits[0]
                where = top.title or ("our earlier chat" if top.source == "log" else "my notes")
                return f"{top.text}\n\n(from {where})", "retrieval"

        if (
            intent is IntentTag.UNKNOWN
            and len(ctx.text) > RESEARCH_MIN_CHARS
            and self._researcher is not None
            and not ctx.degraded
            and self._settings.is_enabled(user_id, default=self._ai_default)
        ):
            return await self._researcher.research(ctx.text), "research"

        return get_variant(intent.value, rng=self._rng, name=name, preferences=DEFAULT_PREFERENCES), "template"

    async def _ingest(self, url: str) -> str:
        ingested = await self._dispatcher.dispatch(ToolName.KNOWLEDGE_INGEST, {"url": url})
        if not ingested.success:
            return f"I couldn't read that link: {ingested.error}"
        doc = ingested.result
        if not doc["created"]:
            return f"I already have {doc['title']} in my notes."
        summary = f"\nTL;DR: {doc['tldr']}" if doc["tldr"] else ""
        return f"Read and saved {doc['title']} ({doc['passages']} passages).{summary}"

    def _status(self, user_id: str) -> str:
        lines: list[str] = []
        session = self._machine.active_session(user_id)
        if session is not None:
            lines.append(f"Signing session: active for {session.wallet_address} until {session.expires_at}.")
        else:
            lines.append("Signing session: none. Send /authorize to start one.")
        pending = self._machine.store.latest_pending(user_id)
        if pending is not None:
            lines.append(f"Pending draft {pending.id}: {pending.amount} {pending.token} to {pending.recipient}.")
        else:
            lines.append("No pending drafts.")
        state = "on" if self._settings.is_enabled(user_id, default=self._ai_default) else "off"
        lines.append(f"Model replies: {state}. Knowledge documents: {self._index.count_documents()}.")
        return "\n".join(lines)

    def _list_documents(self) -> str:
        documents = self._index.list_documents(limit=10)
        if not documents:
            return "I haven't read anything yet. Send me a link."
        lines = [f"- {d.title}" + (f" ({d.url})" if d.url else "") for d in documents]
        return "Here's what I've read:\n" + "\n".join(lines)

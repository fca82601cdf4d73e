"""Dispatch named tools; every failure is folded into the ToolResult envelope."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, assert_never

from loguru import logger

from teller.identity.resolver import RecipientResolver
from teller.knowledge.answer import compose_answer, format_citations
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.ingest import KnowledgeIngestor
from teller.memory.service import MemoryManager
from teller.safety.machine import TransactionSafetyMachine
from teller.tools.base import UNKNOWN_TOOL_ERROR, ToolName, ToolResult


class ToolDispatcher:
    """Runs one tool at a time; callers sequence multi-tool work themselves."""

    def __init__(
        self,
        *,
        memory: MemoryManager,
        resolver: RecipientResolver,
        index: SqliteKnowledgeIndex,
        ingestor: KnowledgeIngestor,
        safety: TransactionSafetyMachine,
        citations: int = 3,
        search_results: int = 5,
    ) -> None:
        self._memory = memory
        self._resolver = resolver
        self._index = index
        self._ingestor = ingestor
        self._safety = safety
        self.citations = citations
        self.search_results = search_results

    async def dispatch(self, name: str | ToolName, args: dict[str, Any] | None = None) -> ToolResult:
        tool = name if isinstance(name, ToolName) else ToolName.parse(name)
        if tool is None:
            return ToolResult(tool=str(name), success=False, error=UNKNOWN_TOOL_ERROR)
        params = dict(args or {})
        try:
            return await self._run(tool, params)
        except Exception as e:
            logger.warning("Tool {} failed: {}", tool.value, e)
            return ToolResult(tool=tool.value, success=False, error=str(e) or type(e).__name__)

    async def _run(self, tool: ToolName, params: dict[str, Any]) -> ToolResult:
        match tool:
            case ToolName.MEMORY_GET:
                facts = self._memory.get_all_facts(self._require(params, "user_id"))
                return self._ok(tool, [{"key": f.key, "value": f.value, "confidence": f.confidence} for f in facts])

            case ToolName.MEMORY_ADD:
                fact = self._memory.store_fact(
                    self._require(params, "user_id"),
                    self._require(params, "key"),
                    self._require(params, "value"),
                    float(params.get("confidence", 1.0)),
                )
                return self._ok(tool, {"key": fact.key, "value": fact.value, "confidence": fact.confidence})

            case ToolName.KNOWLEDGE_ASK:
                question = self._require(params, "question")
                citations = self._index.search_terms(question, limit=self.citations)
                if not citations:
                    return ToolResult(tool=tool.value, success=False, error="No relevant citations found")
                answer = compose_answer(question, citations)
                return self._ok(
                    tool,
                    {
                        "answer": answer.answer + format_citations(answer.citations),
                        "confidence": answer.confidence,
                        "citations": [asdict(c) for c in answer.citations],
                    },
                )

            case ToolName.KNOWLEDGE_SEARCH:
                citations = self._index.search_terms(
                    self._require(params, "query"),
                    limit=int(params.get("limit", self.search_results)),
                )
                return self._ok(tool, [asdict(c) for c in citations])

            case ToolName.KNOWLEDGE_INGEST:
                ingested = await self._ingestor.ingest(self._require(params, "url"))
                doc = ingested.document
                return self._ok(
                    tool,
                    {
                        "document_id": doc.id,
                        "title": doc.title,
                        "url": doc.url,
                        "tldr": doc.tldr,
                        "created": ingested.created,
                        "passages": ingested.passages,
                    },
                )

            case ToolName.RECENT_EVENTS:
                executed = self._safety.recent_executed(
                    user_id=params.get("user_id"),
                    limit=int(params.get("limit", 5)),
                )
                return self._ok(
                    tool,
                    [
                        {"id": t.id, "amount": t.amount, "token": t.token, "recipient": t.recipient, "tx_hash": t.tx_hash}
                        for t in executed
                    ],
                )

            case ToolName.RESOLVE_RECIPIENT:
                mention = self._require(params, "mention")
                address = self._resolver.resolve(mention, user_id=params.get("user_id"))
                if address is None:
                    return ToolResult(tool=tool.value, success=False, error=f"No wallet found for {mention}")
                return self._ok(tool, {"mention": mention, "address": address})

            case _:
                assert_never(tool)

    @staticmethod
    def _ok(tool: ToolName, result: Any) -> ToolResult:
        return ToolResult(tool=tool.value, success=True, result=result)

    @staticmethod
    def _require(params: dict[str, Any], key: str) -> str:
        value = params.get(key)
        if value is None or not str(value).strip():
            raise ValueError(f"missing required argument '{key}'")
        return str(value)

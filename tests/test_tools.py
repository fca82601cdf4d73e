from pathlib import Path

import httpx
import pytest

from teller.identity.directory import SqliteIdentityDirectory
from teller.identity.resolver import RecipientResolver
from teller.knowledge.fetcher import DocumentFetcher
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.ingest import KnowledgeIngestor
from teller.memory.service import MemoryManager
from teller.memory.store import SqliteMemoryStore
from teller.safety.executor import DisabledTransferExecutor
from teller.safety.machine import TransactionSafetyMachine
from teller.safety.store import SqliteSafetyStore
from teller.tools import ToolDispatcher, ToolName

SAM_WALLET = "0x" + "5a" * 20


def _refuse_all(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500)


@pytest.fixture
def dispatcher(tmp_path: Path) -> ToolDispatcher:
    db = tmp_path / "teller.db"
    memory = MemoryManager(SqliteMemoryStore(db))
    index = SqliteKnowledgeIndex(db)
    fetcher = DocumentFetcher(transport=httpx.MockTransport(_refuse_all), url_guard=lambda u: (True, ""))
    return ToolDispatcher(
        memory=memory,
        resolver=RecipientResolver(memory, SqliteIdentityDirectory(db)),
        index=index,
        ingestor=KnowledgeIngestor(fetcher, index),
        safety=TransactionSafetyMachine(SqliteSafetyStore(db), DisabledTransferExecutor()),
    )


async def test_unknown_tool_returns_envelope(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.dispatch("wire_money", {"amount": "5"})

    assert result.success is False
    assert result.to_dict() == {"tool": "wire_money", "success": False, "result": None, "error": "unknown tool"}


async def test_missing_argument_is_folded_into_envelope(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.dispatch(ToolName.MEMORY_ADD, {"user_id": "u1", "key": "name"})

    assert result.success is False
    assert "value" in (result.error or "")


async def test_resolve_recipient_after_memory_add(dispatcher: ToolDispatcher) -> None:
    before = await dispatcher.dispatch("resolve_recipient", {"mention": "@sam", "user_id": "u1"})
    assert before.success is False
    assert before.error == "No wallet found for @sam"

    added = await dispatcher.dispatch(
        "memory_add", {"user_id": "u1", "key": "wallet_sam", "value": SAM_WALLET}
    )
    assert added.success is True

    after = await dispatcher.dispatch("RESOLVE_RECIPIENT", {"mention": "@Sam", "user_id": "u1"})
    assert after.success is True
    assert after.result == {"mention": "@Sam", "address": SAM_WALLET}

    facts = await dispatcher.dispatch("memory_get", {"user_id": "u1"})
    assert facts.result == [{"key": "wallet_sam", "value": SAM_WALLET, "confidence": 1.0}]


async def test_knowledge_ask_without_citations(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.dispatch("knowledge_ask", {"question": "what are base fees"})

    assert result.success is False
    assert result.error == "No relevant citations found"


async def test_knowledge_ask_cites_indexed_passages(dispatcher: ToolDispatcher) -> None:
    dispatcher._index.add_document(
        title="Base fees",
        content="Transfers on the Base network cost a fraction of a cent in fees.",
        source="notes",
        url="https://docs.example.org/fees",
    )

    result = await dispatcher.dispatch("knowledge_ask", {"question": "base fees"})

    assert result.success is True
    assert "[1]" in result.result["answer"]
    assert "Sources:\n[1] Base fees https://docs.example.org/fees" in result.result["answer"]
    assert result.result["citations"][0]["title"] == "Base fees"


async def test_ingest_failure_is_folded_into_envelope(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.dispatch("knowledge_ingest", {"url": "https://docs.example.org/down"})

    assert result.success is False
    assert "HTTP 500" in (result.error or "")


async def test_recent_events_is_empty_without_executions(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.dispatch("recent_events", {"user_id": "u1"})

    assert result.success is True
    assert result.result == []

from datetime import timedelta
from pathlib import Path

from teller.brain.nlu import IntentParser
from teller.brain.planner import Planner
from teller.identity.directory import SqliteIdentityDirectory
from teller.identity.resolver import RecipientResolver
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.retrieval import RetrievalEngine
from teller.memory.extractor import extract_facts
from teller.memory.service import MemoryManager, wallet_key
from teller.memory.store import SqliteMemoryStore
from teller.utils.helpers import utc_now

ADDRESS = "0x" + "12" * 20


def _memory(tmp_path: Path, retention: int = 50) -> MemoryManager:
    return MemoryManager(SqliteMemoryStore(tmp_path / "teller.db"), episode_retention=retention)


def test_fact_upsert_last_write_wins(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    memory.store_fact("u1", "name", "Sam")
    memory.store_fact("u1", "name", "Samir", 0.8)

    fact = memory.get_fact("u1", "name")
    assert fact is not None
    assert fact.value == "Samir"
    assert fact.confidence == 0.8
    assert len(memory.get_all_facts("u1")) == 1


def test_forget_deprecates_instead_of_deleting(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    memory.store_fact("u1", "favorite_token", "USDC")
    memory.store_fact("u1", "city", "Cairo")

    assert memory.forget("u1", "usdc") == 1
    assert memory.get_fact("u1", "favorite_token") is None
    kept = memory.store.list_facts("u1", include_deprecated=True)
    assert {f.key for f in kept} == {"favorite_token", "city"}
    assert memory.forget("u1", "   ") == 0


def test_episode_retention_prunes_oldest(tmp_path: Path) -> None:
    memory = _memory(tmp_path, retention=50)
    for i in range(60):
        memory.log_episode("u1", f"message {i}", "UNKNOWN", {}, f"reply {i}")
    memory.log_episode("u2", "other user", "GREET", {}, "hi")

    assert memory.store.count_episodes("u1") == 50
    assert memory.store.count_episodes("u2") == 1
    recent = memory.recent_episodes("u1", 3)
    assert [e.input_text for e in recent] == ["message 59", "message 58", "message 57"]


def test_wallet_lookup_only_reads_own_mapping(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    other = "0x" + "34" * 20
    memory.store_fact("u2", wallet_key("@Sam"), other)
    assert memory.lookup_wallet("@sam", user_id="u1") is None
    assert memory.lookup_wallet("@sam") is None

    memory.store_fact("u1", wallet_key("sam"), ADDRESS)
    assert memory.lookup_wallet("@sam", user_id="u1") == ADDRESS
    assert memory.lookup_wallet("@sam", user_id="u2") == other


def test_another_users_mapping_never_reaches_a_transfer_plan(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    directory = SqliteIdentityDirectory(tmp_path / "teller.db")
    planner = Planner(RecipientResolver(memory, directory))
    parsed = IntentParser().parse("send 5 USDC to @sam")
    memory.store_fact("mallory", wallet_key("@sam"), "0x" + "66" * 20)

    plan = planner.create_plan(parsed, "alice")
    assert plan is not None
    assert plan.step("resolve_recipient").params["recipient"] is None
    assert not plan.ready_to_draft()

    # A linked identity is the shared fallback.
    directory.link("sam-id", ADDRESS, username="@sam")
    plan = planner.create_plan(parsed, "alice")
    assert plan.step("draft_tx").params["recipient"] == ADDRESS


def test_extract_facts() -> None:
    facts = extract_facts(f"my name is Layla and @sam wallet is {ADDRESS}")
    assert {(f.key, f.value) for f in facts} == {("name", "Layla"), ("wallet_sam", ADDRESS)}

    notes = extract_facts("remember that I prefer USDC on Base")
    assert len(notes) == 1
    assert notes[0].key.startswith("note_")
    assert notes[0].value == "I prefer USDC on Base"

    assert extract_facts("hello there") == []


def test_retrieval_ranks_titles_and_recent_logs(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    index = SqliteKnowledgeIndex(tmp_path / "teller.db")
    index.add_document(
        title="Staking Guide",
        content="Staking locks tokens to help secure the network and earn rewards over time.",
        source="test",
    )
    memory.log_episode("u1", "staking question from yesterday", "UNKNOWN", {}, "answered")

    engine = RetrievalEngine(index, memory, top_n=7, confident_score=20)
    hits = engine.retrieve("u1", "staking", now=utc_now() + timedelta(days=1))

    assert [h.source for h in hits] == ["log", "kb"]
    assert 13.9 < hits[0].score <= 14.0
    assert hits[1].score == 10
    assert not engine.is_confident(hits[0])
    assert engine.retrieve("u1", "") == []

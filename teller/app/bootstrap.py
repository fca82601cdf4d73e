"""Application bootstrap: build every store, router and middleware from config."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from teller.assistant.settings import SqliteAssistantSettings
from teller.brain.evaluator import Evaluator, SqliteProposalStore
from teller.brain.nlu import IntentParser
from teller.brain.planner import Planner
from teller.brain.researcher import Researcher
from teller.brain.selfcheck import SelfChecker
from teller.brain.skills import SkillRegistry, SqliteSkillStore, register_builtin_skills
from teller.core.models import InboundEvent, Reply
from teller.core.orchestrator import Orchestrator
from teller.core.pipeline import Pipeline
from teller.core.ports import TransferExecutorPort
from teller.identity.directory import SqliteIdentityDirectory
from teller.identity.resolver import RecipientResolver
from teller.knowledge.fetcher import DocumentFetcher, UrlGuard, validate_url
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.ingest import KnowledgeIngestor
from teller.knowledge.retrieval import RetrievalEngine
from teller.memory.service import MemoryManager
from teller.memory.store import SqliteMemoryStore
from teller.pipeline.commands import CommandMiddleware
from teller.pipeline.dedup import DeduplicationMiddleware
from teller.pipeline.delivery import DeliveryMiddleware
from teller.pipeline.fallback import OfflineFallbackMiddleware
from teller.pipeline.normalize import NormalizationMiddleware
from teller.pipeline.persistence import BackgroundWriter, PersistenceMiddleware
from teller.pipeline.research import ResearchMiddleware
from teller.pipeline.responder import ContextPackager, ProviderResponderMiddleware
from teller.pipeline.safety import SafetyActions, SafetyMiddleware
from teller.pipeline.selfcheck import SelfCheckMiddleware
from teller.pipeline.skills import SkillMiddleware
from teller.pipeline.transfer import TransferPlanMiddleware
from teller.providers.factory import make_ask_router, make_tiered_router
from teller.providers.router import FallbackProviderRouter, TieredProviderRouter
from teller.safety.executor import DisabledTransferExecutor
from teller.safety.machine import TransactionSafetyMachine
from teller.safety.store import SqliteSafetyStore
from teller.telemetry.inmemory import InMemoryTelemetry
from teller.tools.dispatcher import ToolDispatcher
from teller.utils.helpers import utc_now

if TYPE_CHECKING:
    from teller.config.schema import Config


@dataclass(slots=True)
class TellerRuntime:
    """Lifecycle holder for the composed assistant."""

    orchestrator: Orchestrator
    memory: MemoryManager
    index: SqliteKnowledgeIndex
    ingestor: KnowledgeIngestor
    dispatcher: ToolDispatcher
    safety: TransactionSafetyMachine
    settings: SqliteAssistantSettings
    skills: SkillRegistry
    skill_store: SqliteSkillStore
    proposals: SqliteProposalStore
    identity: SqliteIdentityDirectory
    router: TieredProviderRouter
    ask_router: FallbackProviderRouter
    telemetry: InMemoryTelemetry

    async def handle(self, event: InboundEvent) -> Reply | None:
        return await self.orchestrator.handle(event)

    async def aclose(self) -> None:
        await self.orchestrator.drain()
        self.close()

    def close(self) -> None:
        self.memory.close()
        self.index.close()
        self.safety.store.close()
        self.settings.close()
        self.skill_store.close()
        self.proposals.close()
        self.identity.close()


def build_runtime(
    config: "Config",
    *,
    db_path: Path | None = None,
    executor: TransferExecutorPort | None = None,
    router: TieredProviderRouter | None = None,
    ask_router: FallbackProviderRouter | None = None,
    provider_transport: httpx.AsyncBaseTransport | None = None,
    fetch_transport: httpx.AsyncBaseTransport | None = None,
    url_guard: UrlGuard = validate_url,
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> TellerRuntime:
    """Compose the runtime; every store shares one SQLite file."""
    path = db_path or config.storage.path
    logger.debug("building runtime with database {}", path)

    memory = MemoryManager(SqliteMemoryStore(path), episode_retention=config.memory.episode_retention)
    identity = SqliteIdentityDirectory(path)
    resolver = RecipientResolver(memory, identity)
    index = SqliteKnowledgeIndex(path)
    fetcher = DocumentFetcher(
        timeout_seconds=config.ingest.timeout_seconds,
        max_bytes=config.ingest.max_bytes,
        allowed_content_types=config.ingest.allowed_content_types,
        transport=fetch_transport,
        url_guard=url_guard,
    )
    ingestor = KnowledgeIngestor(fetcher, index)
    retrieval = RetrievalEngine(
        index,
        memory,
        top_n=config.retrieval.top_n,
        confident_score=config.retrieval.confident_score,
    )

    safety_cfg = config.safety
    machine = TransactionSafetyMachine(
        SqliteSafetyStore(path),
        executor or DisabledTransferExecutor(),
        daily_limit=safety_cfg.daily_draft_limit,
        session_ttl_hours=safety_cfg.session_ttl_hours,
        session_daily_cap=safety_cfg.session_daily_cap,
        cap_token=safety_cfg.default_token,
        network=safety_cfg.network,
        agent_name=safety_cfg.agent_name,
        permissions=safety_cfg.permissions,
        clock=clock,
    )
    dispatcher = ToolDispatcher(
        memory=memory,
        resolver=resolver,
        index=index,
        ingestor=ingestor,
        safety=machine,
        citations=config.retrieval.citations,
        search_results=config.retrieval.search_results,
    )

    settings = SqliteAssistantSettings(path)
    skill_store = SqliteSkillStore(path)
    skills = SkillRegistry(skill_store)
    register_builtin_skills(skills)
    proposals = SqliteProposalStore(path)
    evaluator = Evaluator(memory, proposals)

    tiered = router or make_tiered_router(config, transport=provider_transport)
    ask = ask_router or make_ask_router(config, transport=provider_transport)
    researcher = Researcher(ask, index)

    assistant_cfg = config.assistant
    actions = SafetyActions(machine)
    background = BackgroundWriter()
    pipeline = Pipeline(
        [
            NormalizationMiddleware(IntentParser(default_token=safety_cfg.default_token)),
            DeduplicationMiddleware(ttl_seconds=config.pipeline.dedupe_ttl_seconds),
            DeliveryMiddleware(),
            PersistenceMiddleware(memory=memory, evaluator=evaluator, background=background),
            SelfCheckMiddleware(
                checker=SelfChecker(
                    any_threshold=config.selfcheck.any_threshold,
                    latest_threshold=config.selfcheck.latest_threshold,
                    markers=config.selfcheck.markers,
                    rng=rng,
                ),
                memory=memory,
                recent_replies=config.selfcheck.recent_replies,
            ),
            CommandMiddleware(
                actions=actions,
                settings=settings,
                memory=memory,
                router=tiered,
                ai_enabled_by_default=assistant_cfg.enabled_by_default,
                ai_daily_limit=assistant_cfg.daily_limit,
            ),
            SkillMiddleware(registry=skills, memory=memory),
            SafetyMiddleware(actions),
            TransferPlanMiddleware(
                planner=Planner(resolver, default_token=safety_cfg.default_token),
                machine=machine,
                memory=memory,
            ),
            ResearchMiddleware(
                researcher=researcher,
                settings=settings,
                ai_enabled_by_default=assistant_cfg.enabled_by_default,
            ),
            ProviderResponderMiddleware(
                router=tiered,
                settings=settings,
                packager=ContextPackager(
                    memory=memory,
                    retrieval=retrieval,
                    facts=config.memory.context_facts,
                    episodes=config.memory.context_episodes,
                    hits=config.retrieval.context_hits,
                    snippet_chars=config.retrieval.snippet_chars,
                ),
                system_prompt=assistant_cfg.system_prompt,
                enabled_by_default=assistant_cfg.enabled_by_default,
                daily_limit=assistant_cfg.daily_limit,
            ),
            OfflineFallbackMiddleware(
                memory=memory,
                dispatcher=dispatcher,
                index=index,
                retrieval=retrieval,
                machine=machine,
                settings=settings,
                researcher=researcher,
                ai_enabled_by_default=assistant_cfg.enabled_by_default,
                rng=rng,
            ),
        ]
    )
    telemetry = InMemoryTelemetry()
    logger.debug("{}", pipeline)

    return TellerRuntime(
        orchestrator=Orchestrator(pipeline=pipeline, telemetry=telemetry, background=background),
        memory=memory,
        index=index,
        ingestor=ingestor,
        dispatcher=dispatcher,
        safety=machine,
        settings=settings,
        skills=skills,
        skill_store=skill_store,
        proposals=proposals,
        identity=identity,
        router=tiered,
        ask_router=ask,
        telemetry=telemetry,
    )

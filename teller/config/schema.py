"""Configuration schema using Pydantic."""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

from teller.config.defaults import (
    DEFAULT_INGEST,
    DEFAULT_SAFETY,
    default_ask_providers,
    default_provider_tiers,
)


class ProviderTierConfig(BaseModel):
    """One OpenAI-compatible completion endpoint in a fallback chain."""

    model_config = ConfigDict(extra="ignore")

    name: str
    api_base: str
    model: str
    api_key: str = ""
    api_key_env: str | None = None
    timeout_ms: int = Field(default=12000, ge=100)
    max_tokens: int = Field(default=900, ge=1)
    extra_headers: dict[str, str] | None = None

    def resolved_api_key(self) -> str:
        """Explicit key wins; otherwise read the configured environment variable."""
        if self.api_key.strip():
            return self.api_key.strip()
        if self.api_key_env:
            return os.environ.get(self.api_key_env, "").strip()
        return ""


def _tiers() -> list[ProviderTierConfig]:
    return [ProviderTierConfig.model_validate(p) for p in default_provider_tiers()]


def _ask() -> list[ProviderTierConfig]:
    return [ProviderTierConfig.model_validate(p) for p in default_ask_providers()]


class ProvidersConfig(BaseModel):
    """Tiered chat router plus the two-provider single-shot ask chain."""

    model_config = ConfigDict(extra="ignore")

    tiers: list[ProviderTierConfig] = Field(default_factory=_tiers)
    ask: list[ProviderTierConfig] = Field(default_factory=_ask)
    fast_max_tokens: int = Field(default=500, ge=1)
    temperature: float = 0.55
    top_p: float = 0.9

    @model_validator(mode="after")
    def _validate_chain(self) -> "ProvidersConfig":
        if not self.tiers:
            raise ValueError("providers.tiers must list at least one tier")
        if not self.ask:
            raise ValueError("providers.ask must list at least one provider")
        return self


class SafetyConfig(BaseModel):
    """Transfer guard rails."""

    model_config = ConfigDict(extra="ignore")

    default_token: str = str(DEFAULT_SAFETY["default_token"])
    daily_draft_limit: int = Field(default=int(DEFAULT_SAFETY["daily_draft_limit"]), ge=1)
    session_ttl_hours: int = Field(default=int(DEFAULT_SAFETY["session_ttl_hours"]), ge=1)
    session_daily_cap: int = Field(default=int(DEFAULT_SAFETY["session_daily_cap"]), ge=1)
    network: str = str(DEFAULT_SAFETY["network"])
    agent_name: str = str(DEFAULT_SAFETY["agent_name"])
    permissions: list[str] = Field(default_factory=lambda: list(DEFAULT_SAFETY["permissions"]))


class MemoryConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    episode_retention: int = Field(default=50, ge=1)
    context_facts: int = Field(default=5, ge=0)
    context_episodes: int = Field(default=3, ge=0)


class RetrievalConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    top_n: int = Field(default=7, ge=1)
    confident_score: float = 20.0
    context_hits: int = Field(default=2, ge=0)
    snippet_chars: int = Field(default=200, ge=20)
    citations: int = Field(default=3, ge=1)
    search_results: int = Field(default=5, ge=1)


class SelfCheckConfig(BaseModel):
    """Reply-variety thresholds for the rewriter."""

    model_config = ConfigDict(extra="ignore")

    recent_replies: int = Field(default=5, ge=1)
    any_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    latest_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    markers: list[str] = Field(default_factory=lambda: ["hey", "look", "يا", "بص"])


class AssistantConfig(BaseModel):
    """Per-user model access defaults."""

    model_config = ConfigDict(extra="ignore")

    enabled_by_default: bool = True
    daily_limit: int = Field(default=50, ge=0)
    system_prompt: str = (
        "You are teller, a friendly wallet assistant. Answer briefly, in the user's language, "
        "and never claim a transfer happened unless the context says it executed."
    )


class IngestConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timeout_seconds: float = float(DEFAULT_INGEST["timeout_seconds"])
    max_bytes: int = Field(default=int(DEFAULT_INGEST["max_bytes"]), ge=1024)
    allowed_content_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INGEST["allowed_content_types"])
    )


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    db_path: str = "teller.db"

    @property
    def path(self) -> Path:
        from teller.utils.helpers import resolve_db_path
        return resolve_db_path(self.db_path)


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dedupe_ttl_seconds: int = Field(default=20 * 60, ge=1)


class Config(BaseSettings):
    """Root configuration for teller."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, env_prefix="TELLER_", env_nested_delimiter="__")

    config_version: int = 1
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    selfcheck: SelfCheckConfig = Field(default_factory=SelfCheckConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

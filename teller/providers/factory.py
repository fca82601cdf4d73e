"""Build provider routers from config."""

from __future__ import annotations

import httpx

from teller.config.schema import Config, ProviderTierConfig
from teller.providers.openai_compatible import OpenAICompatibleProvider
from teller.providers.router import FallbackProviderRouter, TieredProviderRouter


def make_provider(
    tier: ProviderTierConfig,
    config: Config,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        name=tier.name,
        api_base=tier.api_base,
        api_key=tier.resolved_api_key(),
        model=tier.model,
        timeout_ms=tier.timeout_ms,
        max_tokens=tier.max_tokens,
        temperature=config.providers.temperature,
        top_p=config.providers.top_p,
        extra_headers=tier.extra_headers,
        transport=transport,
    )


def make_tiered_router(config: Config, *, transport: httpx.AsyncBaseTransport | None = None) -> TieredProviderRouter:
    tiers = [make_provider(t, config, transport=transport) for t in config.providers.tiers]
    return TieredProviderRouter(tiers, fast_max_tokens=config.providers.fast_max_tokens)


def make_ask_router(config: Config, *, transport: httpx.AsyncBaseTransport | None = None) -> FallbackProviderRouter:
    providers = [make_provider(t, config, transport=transport) for t in config.providers.ask]
    return FallbackProviderRouter(
        providers[0],
        providers[1] if len(providers) > 1 else None,
        system_prompt=config.assistant.system_prompt,
    )

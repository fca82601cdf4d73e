"""Centralized opinionated defaults for generated config files."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

GROQ_API_BASE = "https://api.groq.com/openai/v1"
OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"

DEFAULT_PROVIDER_TIERS: list[dict[str, Any]] = [
    {
        "name": "primary",
        "api_base": GROQ_API_BASE,
        "api_key_env": "GROQ_API_KEY",
        "model": "openai/gpt-oss-120b",
        "timeout_ms": 12000,
        "max_tokens": 900,
    },
    {
        "name": "fallback",
        "api_base": GROQ_API_BASE,
        "api_key_env": "GROQ_API_KEY",
        "model": "llama-3.3-70b-versatile",
        "timeout_ms": 12000,
        "max_tokens": 900,
    },
    {
        "name": "fast",
        "api_base": GROQ_API_BASE,
        "api_key_env": "GROQ_API_KEY",
        "model": "llama-3.1-8b-instant",
        "timeout_ms": 8000,
        "max_tokens": 500,
    },
]

DEFAULT_ASK_PROVIDERS: list[dict[str, Any]] = [
    {
        "name": "groq",
        "api_base": GROQ_API_BASE,
        "api_key_env": "GROQ_API_KEY",
        "model": "llama-3.3-70b-versatile",
        "timeout_ms": 12000,
        "max_tokens": 700,
    },
    {
        "name": "openrouter",
        "api_base": OPENROUTER_API_BASE,
        "api_key_env": "OPENROUTER_API_KEY",
        "model": "google/gemini-2.0-flash-exp:free",
        "timeout_ms": 15000,
        "max_tokens": 700,
    },
]

DEFAULT_SAFETY: dict[str, Any] = {
    "default_token": "USDC",
    "daily_draft_limit": 5,
    "session_ttl_hours": 24,
    "session_daily_cap": 100,
    "network": "Base",
    "agent_name": "teller-agent",
    "permissions": ["transfer USDC"],
}

DEFAULT_INGEST: dict[str, Any] = {
    "timeout_seconds": 10.0,
    "max_bytes": 1_572_864,
    "allowed_content_types": [
        "text/html",
        "application/json",
        "application/xml",
        "text/plain",
    ],
}


def default_provider_tiers() -> list[dict[str, Any]]:
    """Return a deep-copied providers.tiers payload."""
    return deepcopy(DEFAULT_PROVIDER_TIERS)


def default_ask_providers() -> list[dict[str, Any]]:
    """Return a deep-copied providers.ask payload."""
    return deepcopy(DEFAULT_ASK_PROVIDERS)


def default_safety() -> dict[str, Any]:
    return deepcopy(DEFAULT_SAFETY)


def default_ingest() -> dict[str, Any]:
    return deepcopy(DEFAULT_INGEST)


def apply_missing_defaults(snake_config: dict[str, Any]) -> None:
    """Inject missing config defaults without overriding existing user values."""
    if not isinstance(snake_config, dict):
        return

    providers = snake_config.setdefault("providers", {})
    if isinstance(providers, dict):
        if not isinstance(providers.get("tiers"), list) or not providers["tiers"]:
            providers["tiers"] = default_provider_tiers()
        if not isinstance(providers.get("ask"), list) or not providers["ask"]:
            providers["ask"] = default_ask_providers()

    for section, seeded in (("safety", default_safety()), ("ingest", default_ingest())):
        current = snake_config.setdefault(section, {})
        if not isinstance(current, dict):
            snake_config[section] = seeded
            continue
        for k, v in seeded.items():
            current.setdefault(k, v)

"""Completion providers and fallback routing."""

from teller.providers.base import ChatMessage, CompletionProvider, ProviderCallResult
from teller.providers.router import FallbackProviderRouter, TieredProviderRouter

__all__ = [
    "ChatMessage",
    "CompletionProvider",
    "FallbackProviderRouter",
    "ProviderCallResult",
    "TieredProviderRouter",
]

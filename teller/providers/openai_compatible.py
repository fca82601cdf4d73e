"""OpenAI-compatible chat completions over httpx."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
from loguru import logger

from teller.providers.base import (
    STATUS_NETWORK_ERROR,
    STATUS_TIMEOUT,
    STATUS_UNAUTHORIZED,
    ChatMessage,
    ProviderCallResult,
)
from teller.utils.helpers import truncate_string


class OpenAICompatibleProvider:
    """Chat completions against ``{api_base}/chat/completions``.

    The whole request runs under ``asyncio.wait_for`` so an expired call is
    cancelled, which closes the in-flight connection.
    """

    def __init__(
        self,
        *,
        name: str,
        api_base: str,
        api_key: str,
        model: str,
        timeout_ms: int = 12000,
        max_tokens: int = 900,
        temperature: float = 0.55,
        top_p: float = 0.9,
        extra_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self.api_url = api_base.rstrip("/") + "/chat/completions"
        self.api_key = api_key
        self.model = model
        self.timeout_ms = timeout_ms
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.extra_headers = extra_headers
        self._transport = transport

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        timeout_ms: int | None = None,
    ) -> ProviderCallResult:
        started = time.monotonic()
        budget_ms = timeout_ms or self.timeout_ms

        def _result(status: int, text: str = "", error: str | None = None, usage: dict[str, Any] | None = None) -> ProviderCallResult:
            return ProviderCallResult(
                provider=self.name,
                model=self.model,
                latency_ms=int((time.monotonic() - started) * 1000),
                status=status,
                text=text,
                error=error,
                usage=usage or {},
            )

        if not self.api_key:
            return _result(STATUS_UNAUTHORIZED, error=f"Missing API key for provider {self.name}")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": max_tokens or self.max_tokens,
        }
        try:
            response = await asyncio.wait_for(self._post(payload, budget_ms), timeout=budget_ms / 1000.0)
        except (TimeoutError, httpx.TimeoutException):
            return _result(STATUS_TIMEOUT, error=f"Timed out after {budget_ms}ms")
        except Exception as e:
            logger.warning("Provider {} request failed: {}", self.name, e)
            return _result(STATUS_NETWORK_ERROR, error=str(e) or type(e).__name__)

        if response.status_code < 200 or response.status_code >= 300:
            return _result(response.status_code, error=truncate_string(response.text, 300))

        try:
            data = response.json()
            text = str(data["choices"][0]["message"].get("content") or "").strip()
            usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            return _result(response.status_code, error=f"Malformed completion payload: {e}")

        if not text:
            return _result(response.status_code, error="Empty completion")
        return _result(response.status_code, text=text, usage=usage)

    async def _post(self, payload: dict[str, Any], budget_ms: int) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **(self.extra_headers or {}),
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=budget_ms / 1000.0) as client:
            return await client.post(self.api_url, headers=headers, json=payload)

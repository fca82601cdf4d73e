import asyncio
import json

import httpx

from teller.providers.base import ChatMessage, ProviderCallResult
from teller.providers.openai_compatible import OpenAICompatibleProvider
from teller.providers.router import FallbackProviderRouter, TieredProviderRouter


class _FakeProvider:
    def __init__(self, name: str, *, status: int = 200, text: str = "", max_tokens: int = 900) -> None:
        self.name = name
        self.model = f"{name}-model"
        self.max_tokens = max_tokens
        self.timeout_ms = 1000
        self.status = status
        self.text = text
        self.calls: list[dict[str, object]] = []

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        timeout_ms: int | None = None,
    ) -> ProviderCallResult:
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "timeout_ms": timeout_ms})
        return ProviderCallResult(
            provider=self.name,
            model=self.model,
            latency_ms=1,
            status=self.status,
            text=self.text,
            error=None if self.status < 300 else f"status {self.status}",
        )


MESSAGES: list[ChatMessage] = [{"role": "user", "content": "hi"}]


async def test_second_tier_answers_and_third_is_not_called() -> None:
    primary = _FakeProvider("primary", status=500)
    fallback = _FakeProvider("fallback", text="from fallback")
    fast = _FakeProvider("fast", text="from fast")
    router = TieredProviderRouter([primary, fallback, fast], fast_max_tokens=500)

    result = await router.chat(MESSAGES)

    assert result.ok
    assert result.provider == "fallback"
    assert len(primary.calls) == 1
    assert fast.calls == []


async def test_last_tier_result_is_final_with_reduced_budget() -> None:
    primary = _FakeProvider("primary", status=408)
    fallback = _FakeProvider("fallback", status=200, text="   ")
    fast = _FakeProvider("fast", status=503, max_tokens=900)
    router = TieredProviderRouter([primary, fallback, fast], fast_max_tokens=500)

    result = await router.chat(MESSAGES)

    assert not result.ok
    assert result.provider == "fast"
    assert result.status == 503
    assert fast.calls[0]["max_tokens"] == 500


async def test_single_tier_keeps_its_own_budget() -> None:
    only = _FakeProvider("only", text="ok")
    router = TieredProviderRouter([only], fast_max_tokens=10)
    await router.chat(MESSAGES)
    assert only.calls[0]["max_tokens"] is None


async def test_tier_diagnostics_use_small_probe() -> None:
    a, b = _FakeProvider("a", text="OK"), _FakeProvider("b", status=401)
    results = await TieredProviderRouter([a, b]).test_all_tiers()
    assert [r.ok for r in results] == [True, False]
    assert a.calls[0]["max_tokens"] == 10
    assert a.calls[0]["timeout_ms"] == 5000


async def test_fallback_router_uses_secondary_and_builds_context() -> None:
    primary = _FakeProvider("groq", status=429)
    secondary = _FakeProvider("openrouter", text="answer")
    router = FallbackProviderRouter(primary, secondary, system_prompt="be brief")

    result = await router.ask("what is base?", context="facts here")

    assert result.text == "answer"
    sent = secondary.calls[0]["messages"]
    assert sent[0] == {"role": "system", "content": "be brief"}
    assert sent[1]["content"] == "CONTEXT:\nfacts here\n\nUSER: what is base?"


def _provider(handler, *, api_key: str = "sk-test", timeout_ms: int = 2000) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        name="groq",
        api_base="https://api.example.test/v1/",
        api_key=api_key,
        model="llama",
        timeout_ms=timeout_ms,
        max_tokens=300,
        transport=httpx.MockTransport(handler),
    )


async def test_openai_compatible_success() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": " Hello! "}}], "usage": {"total_tokens": 7}},
        )

    result = await _provider(handler).complete(MESSAGES, max_tokens=50)

    assert result.ok
    assert result.text == "Hello!"
    assert result.usage == {"total_tokens": 7}
    assert seen["url"] == "https://api.example.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["max_tokens"] == 50
    assert seen["body"]["model"] == "llama"


async def test_openai_compatible_keeps_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="rate limited")

    result = await _provider(handler).complete(MESSAGES)
    assert result.status == 429
    assert not result.ok
    assert result.error == "rate limited"


async def test_openai_compatible_missing_key_never_calls_network() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    result = await _provider(handler, api_key="").complete(MESSAGES)
    assert result.status == 401
    assert calls == []


async def test_openai_compatible_network_error_and_empty_text() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = await _provider(broken).complete(MESSAGES)
    assert result.status == 500

    def empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": ""}}]})

    result = await _provider(empty).complete(MESSAGES)
    assert result.status == 200
    assert not result.ok
    assert result.error == "Empty completion"


async def test_openai_compatible_timeout_returns_408() -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"choices": [{"message": {"content": "late"}}]})

    result = await _provider(slow, timeout_ms=50).complete(MESSAGES)
    assert result.status == 408
    assert not result.ok

import itertools
import random
from pathlib import Path

import pytest
from eth_account import Account

from teller.app.bootstrap import TellerRuntime, build_runtime
from teller.config.schema import AssistantConfig, Config
from teller.core.models import InboundEvent, InteractiveReply, PlainReply, TransferOutcome
from teller.core.orchestrator import ERROR_REPLY
from teller.pipeline.commands import HELP_TEXT
from teller.pipeline.fallback import DEGRADED_NOTE
from teller.providers.base import ChatMessage, ProviderCallResult
from teller.providers.router import FallbackProviderRouter, TieredProviderRouter
from teller.safety.session_auth import sign_message

SAM_WALLET = "0x" + "5a" * 20


class _FakeProvider:
    def __init__(self, name: str, *, status: int = 200, text: str = "") -> None:
        self.name = name
        self.model = f"{name}-model"
        self.max_tokens = 900
        self.timeout_ms = 1000
        self.status = status
        self.text = text
        self.calls: list[list[ChatMessage]] = []

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        timeout_ms: int | None = None,
    ) -> ProviderCallResult:
        self.calls.append(messages)
        return ProviderCallResult(
            provider=self.name,
            model=self.model,
            latency_ms=3,
            status=self.status,
            text=self.text,
            error=None if self.status < 300 else f"status {self.status}",
        )


class _FakeExecutor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def execute_transfer(self, session_private_key: str, recipient: str, amount: str, token: str) -> TransferOutcome:
        self.calls.append((recipient, amount, token))
        return TransferOutcome(success=True, transfer_hash="0xfeed")


_ids = itertools.count()


def _event(text: str, *, user_id: str = "u1", message_id: str | None = None) -> InboundEvent:
    return InboundEvent(
        user_id=user_id,
        chat_id=f"chat-{user_id}",
        text=text,
        message_id=message_id or f"m{next(_ids)}",
        sender_name="Sam",
    )


def _runtime(
    tmp_path: Path,
    *,
    tiers: list[_FakeProvider] | None = None,
    assistant: AssistantConfig | None = None,
    executor: _FakeExecutor | None = None,
) -> TellerRuntime:
    tiers = tiers or [_FakeProvider("primary", text="Fees on Base are tiny.")]
    config = Config(assistant=assistant or AssistantConfig())
    return build_runtime(
        config,
        db_path=tmp_path / "teller.db",
        executor=executor,
        router=TieredProviderRouter(tiers),
        ask_router=FallbackProviderRouter(_FakeProvider("ask", status=503)),
        url_guard=lambda url: (True, ""),
        rng=random.Random(5),
    )


@pytest.fixture
def offline(tmp_path: Path):
    runtime = _runtime(tmp_path, assistant=AssistantConfig(enabled_by_default=False))
    yield runtime
    runtime.close()


async def test_provider_answer_is_delivered(tmp_path: Path) -> None:
    provider = _FakeProvider("primary", text="Fees on Base are tiny.")
    runtime = _runtime(tmp_path, tiers=[provider])

    reply = await runtime.handle(_event("what do you think about gas costs lately"))

    assert isinstance(reply, PlainReply)
    assert "Fees on Base are tiny." in reply.text
    assert provider.calls[0][-1]["content"].endswith("what do you think about gas costs lately")
    assert runtime.telemetry.get_counter("reply_sent", (("channel", "cli"), ("source", "provider"))) == 1
    assert runtime.settings.diagnostics("u1").last_success_provider == "primary"
    await runtime.aclose()


async def test_transfer_flow_needs_session_then_executes(tmp_path: Path) -> None:
    executor = _FakeExecutor()
    runtime = _runtime(tmp_path, assistant=AssistantConfig(enabled_by_default=False), executor=executor)

    saved = await runtime.handle(_event(f"@sam wallet is {SAM_WALLET}"))
    assert f"Saved @sam as {SAM_WALLET}" in saved.text
    assert runtime.memory.lookup_wallet("@sam", user_id="u1") == SAM_WALLET

    drafted = await runtime.handle(_event("send 5 USDC to @sam"))
    assert isinstance(drafted, InteractiveReply)
    assert [b.action for b in drafted.action_buttons] == ["confirm", "cancel"]
    tx_id = drafted.action_buttons[0].transaction_id
    assert f"Draft {tx_id} is pending." in drafted.text

    refused = await runtime.handle(_event("/confirm"))
    assert refused.text.startswith("No active session allowed to send USDC.")
    assert executor.calls == []

    prompt = await runtime.handle(_event("/authorize"))
    assert prompt.text.startswith("Sign this message with your wallet")
    waiting = runtime.safety.store.latest_waiting_session("u1")
    assert waiting is not None and waiting.auth_message in prompt.text

    wallet = Account.create()
    signature = sign_message(waiting.auth_message, "0x" + bytes(wallet.key).hex())
    verified = await runtime.handle(_event(f"/verify {wallet.address} {signature}"))
    assert verified.text.startswith(f"Session active for {wallet.address}")

    done = await runtime.handle(_event(drafted.action_buttons[0].callback_data))
    assert done.text == f"Done. Sent 5 USDC to {SAM_WALLET}.\nTransaction hash: 0xfeed"
    assert executor.calls == [(SAM_WALLET, "5", "USDC")]
    await runtime.aclose()


async def test_unknown_recipient_is_refused_verbatim(offline: TellerRuntime) -> None:
    reply = await offline.handle(_event("send 5 USDC to @nobody"))

    assert isinstance(reply, PlainReply)
    assert reply.text.startswith("No wallet on file for @nobody.")
    assert offline.safety.store.list_transactions("u1") == []


async def test_all_tiers_failing_marks_reply_degraded(tmp_path: Path) -> None:
    tiers = [_FakeProvider("primary", status=500), _FakeProvider("fast", status=429)]
    runtime = _runtime(tmp_path, tiers=tiers)

    reply = await runtime.handle(_event("tell me something about the weather"))

    assert DEGRADED_NOTE in reply.text
    assert len(tiers[0].calls) == len(tiers[1].calls) == 1
    diag = runtime.settings.diagnostics("u1")
    assert diag.last_error_provider == "fast"
    assert diag.last_status == 429
    await runtime.aclose()


async def test_duplicate_message_is_dropped(offline: TellerRuntime) -> None:
    first = await offline.handle(_event("/help", message_id="dup-1"))
    second = await offline.handle(_event("/help", message_id="dup-1"))

    assert first.text == HELP_TEXT
    assert second is None
    assert offline.telemetry.get_counter("event_drop_duplicate", (("channel", "cli"),)) == 1


async def test_daily_quota_falls_back_offline(tmp_path: Path) -> None:
    provider = _FakeProvider("primary", text="Model answer.")
    runtime = _runtime(tmp_path, tiers=[provider], assistant=AssistantConfig(daily_limit=1))

    first = await runtime.handle(_event("what do you think about gas costs lately"))
    second = await runtime.handle(_event("explain bridging fees"))

    assert "Model answer." in first.text
    assert "Model answer." not in second.text
    assert len(provider.calls) == 1
    assert runtime.telemetry.get_counter("provider_skipped", (("reason", "quota"),)) == 1
    await runtime.aclose()


async def test_ai_toggle_command(tmp_path: Path) -> None:
    provider = _FakeProvider("primary", text="Model answer.")
    runtime = _runtime(tmp_path, tiers=[provider])

    off = await runtime.handle(_event("/ai off"))
    reply = await runtime.handle(_event("what do you think about gas costs lately"))

    assert off.text == "Model replies are now off."
    assert provider.calls == []
    assert "Model answer." not in reply.text
    await runtime.aclose()


async def test_cancel_reply_is_verbatim(offline: TellerRuntime) -> None:
    reply = await offline.handle(_event("/cancel"))
    assert reply.text == "There's nothing pending to cancel."

    unknown = await offline.handle(_event("/frobnicate"))
    assert unknown.text == "Unknown command /frobnicate. Send /help for the list."


async def test_forget_command_deprecates_facts(offline: TellerRuntime) -> None:
    await offline.handle(_event("my name is Layla"))
    assert offline.memory.preferred_name("u1", "friend") == "Layla"

    reply = await offline.handle(_event("/forget layla"))

    assert reply.text == "Forgot 1 fact(s) about 'layla'."
    assert offline.memory.preferred_name("u1", "friend") == "friend"


async def test_confusion_files_a_proposal(offline: TellerRuntime) -> None:
    await offline.handle(_event("this is wrong"))
    await offline.orchestrator.drain()

    proposals = offline.proposals.list()
    assert len(proposals) == 1
    assert "confusion" in proposals[0].reason


async def test_pipeline_failure_returns_error_reply(offline: TellerRuntime, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(offline.safety, "cancel", boom)

    reply = await offline.handle(_event("/cancel"))

    assert reply.text == ERROR_REPLY
    assert offline.telemetry.get_counter("pipeline_error", (("channel", "cli"),)) == 1

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from eth_account import Account

from teller.core.models import TransferOutcome
from teller.safety.errors import (
    AuthorizationError,
    MissingDraftFields,
    NoPendingTransaction,
    RateLimitExceeded,
    SessionUnavailable,
    UnresolvedRecipient,
)
from teller.safety.machine import TransactionSafetyMachine
from teller.safety.models import TxStatus
from teller.safety.session_auth import generate_auth_message, sign_message, verify_signature
from teller.safety.store import SqliteSafetyStore

RECIPIENT = "0x" + "ab" * 20


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


class _RecordingExecutor:
    def __init__(self, outcome: TransferOutcome | None = None, error: Exception | None = None) -> None:
        self.outcome = outcome or TransferOutcome(success=True, transfer_hash="0xfeed")
        self.error = error
        self.calls: list[tuple[str, str, str, str]] = []

    async def execute_transfer(self, session_private_key: str, recipient: str, amount: str, token: str) -> TransferOutcome:
        self.calls.append((session_private_key, recipient, amount, token))
        if self.error is not None:
            raise self.error
        return self.outcome


class _SlowExecutor(_RecordingExecutor):
    async def execute_transfer(self, session_private_key: str, recipient: str, amount: str, token: str) -> TransferOutcome:
        await asyncio.sleep(0.05)
        return await super().execute_transfer(session_private_key, recipient, amount, token)


def _machine(tmp_path: Path, executor=None, clock: _Clock | None = None) -> TransactionSafetyMachine:
    return TransactionSafetyMachine(
        SqliteSafetyStore(tmp_path / "teller.db"),
        executor or _RecordingExecutor(),
        daily_limit=5,
        clock=clock or _Clock(),
    )


def _authorize(machine: TransactionSafetyMachine, user_id: str = "u1") -> str:
    wallet = Account.create()
    request = machine.request_authorization(user_id)
    signature = sign_message(request.message, "0x" + bytes(wallet.key).hex())
    machine.complete_authorization(user_id, wallet.address, signature)
    return wallet.address


def test_draft_requires_fields_and_hex_recipient(tmp_path: Path) -> None:
    machine = _machine(tmp_path)
    with pytest.raises(MissingDraftFields):
        machine.draft("u1", recipient=RECIPIENT, amount=None, token="USDC")
    with pytest.raises(MissingDraftFields):
        machine.draft("u1", recipient=RECIPIENT, amount="0", token="USDC")
    with pytest.raises(UnresolvedRecipient) as exc:
        machine.draft("u1", recipient=None, amount="5", token="USDC", requested="@sam")
    assert "No wallet on file for @sam" in exc.value.message
    assert machine.store.list_transactions("u1") == []


def test_sixth_draft_in_a_day_is_refused_without_a_row(tmp_path: Path) -> None:
    clock = _Clock()
    machine = _machine(tmp_path, clock=clock)
    for _ in range(5):
        machine.draft("u1", recipient=RECIPIENT, amount="1", token="usdc")

    with pytest.raises(RateLimitExceeded):
        machine.draft("u1", recipient=RECIPIENT, amount="1", token="USDC")
    assert len(machine.store.list_transactions("u1")) == 5

    # Other users and the next UTC day have their own windows.
    machine.draft("u2", recipient=RECIPIENT, amount="1", token="USDC")
    clock.now += timedelta(days=1)
    machine.draft("u1", recipient=RECIPIENT, amount="1", token="USDC")
    assert len(machine.store.list_transactions("u1")) == 6


async def test_confirm_without_session_keeps_draft_pending(tmp_path: Path) -> None:
    executor = _RecordingExecutor()
    machine = _machine(tmp_path, executor)
    tx = machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    with pytest.raises(SessionUnavailable):
        await machine.confirm("u1")

    assert executor.calls == []
    stored = machine.store.get_transaction(tx.id)
    assert stored is not None and stored.status is TxStatus.PENDING


async def test_confirm_with_session_executes_latest_draft(tmp_path: Path) -> None:
    executor = _RecordingExecutor()
    machine = _machine(tmp_path, executor)
    _authorize(machine)
    machine.draft("u1", recipient=RECIPIENT, amount="2", token="USDC")
    latest = machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    finished = await machine.confirm("u1")

    assert finished.id == latest.id
    assert finished.status is TxStatus.EXECUTED
    assert finished.tx_hash == "0xfeed"
    assert executor.calls[0][1:] == (RECIPIENT, "5", "USDC")
    assert [t.id for t in machine.recent_executed(user_id="u1")] == [latest.id]

    with pytest.raises(NoPendingTransaction):
        await machine.confirm("u1", latest.id)


async def test_executor_failure_is_recorded_and_not_retried(tmp_path: Path) -> None:
    executor = _RecordingExecutor(error=RuntimeError("rpc down"))
    machine = _machine(tmp_path, executor)
    _authorize(machine)
    tx = machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    finished = await machine.confirm("u1", tx.id)

    assert finished.status is TxStatus.FAILED
    assert finished.error == "rpc down"
    assert len(executor.calls) == 1


async def test_concurrent_confirms_execute_a_draft_once(tmp_path: Path) -> None:
    executor = _SlowExecutor()
    machine = _machine(tmp_path, executor)
    _authorize(machine)
    tx = machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    results = await asyncio.gather(
        machine.confirm("u1"),
        machine.confirm("u1", tx.id),
        return_exceptions=True,
    )

    assert len(executor.calls) == 1
    finished = [r for r in results if not isinstance(r, BaseException)]
    refused = [r for r in results if isinstance(r, BaseException)]
    assert [f.status for f in finished] == [TxStatus.EXECUTED]
    assert len(refused) == 1 and isinstance(refused[0], NoPendingTransaction)
    stored = machine.store.get_transaction(tx.id)
    assert stored is not None and stored.tx_hash == "0xfeed"


async def test_expired_session_is_ignored(tmp_path: Path) -> None:
    clock = _Clock()
    machine = _machine(tmp_path, clock=clock)
    _authorize(machine)
    machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    clock.now += timedelta(hours=25)
    assert machine.active_session("u1") is None
    with pytest.raises(SessionUnavailable):
        await machine.confirm("u1")


async def test_session_without_token_permission_cannot_send(tmp_path: Path) -> None:
    machine = _machine(tmp_path)
    _authorize(machine)
    machine.draft("u1", recipient=RECIPIENT, amount="1", token="ETH")
    with pytest.raises(SessionUnavailable):
        await machine.confirm("u1")


def test_cancel_is_idempotent(tmp_path: Path) -> None:
    machine = _machine(tmp_path)
    tx = machine.draft("u1", recipient=RECIPIENT, amount="5", token="USDC")

    assert machine.cancel("u1") == 1
    assert machine.cancel("u1") == 0
    stored = machine.store.get_transaction(tx.id)
    assert stored is not None and stored.status is TxStatus.CANCELLED


def test_waiting_session_cannot_sign_and_wrong_signer_is_rejected(tmp_path: Path) -> None:
    machine = _machine(tmp_path)
    request = machine.request_authorization("u1")
    assert machine.active_session("u1") is None
    assert "Session Public Key: " + request.session_public_key in request.message

    wallet, impostor = Account.create(), Account.create()
    signature = sign_message(request.message, "0x" + bytes(impostor.key).hex())
    with pytest.raises(AuthorizationError):
        machine.complete_authorization("u1", wallet.address, signature)
    assert machine.active_session("u1") is None


def test_verify_signature_is_a_pure_check() -> None:
    wallet = Account.create()
    message = generate_auth_message(
        agent_name="teller-agent",
        user_id="u1",
        session_public_key="0x" + "00" * 20,
        permissions=["transfer USDC"],
        daily_cap=100,
        token="USDC",
        network="Base",
        expires_at=datetime(2026, 3, 2, tzinfo=UTC),
    )
    assert message.splitlines()[0] == "Authorize Session Agent"
    assert "- max daily limit: 100 USDC" in message

    signature = sign_message(message, "0x" + bytes(wallet.key).hex())
    assert verify_signature(message, signature, wallet.address)
    assert not verify_signature(message + "x", signature, wallet.address)
    assert not verify_signature(message, "0xdeadbeef", wallet.address)

"""Transaction safety state machine.

``pending -> executed | failed | cancelled``. A draft needs amount, token and
a hex recipient and must fit the per-user daily window. Execution needs the
latest pending draft plus a verified, unexpired session key allowed to move
the token. Nothing here retries.
"""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from loguru import logger

from teller.core.ports import TransferExecutorPort
from teller.identity.resolver import is_hex_address
from teller.safety.errors import (
    AuthorizationError,
    MissingDraftFields,
    NoPendingTransaction,
    RateLimitExceeded,
    SafetyWriteError,
    SessionUnavailable,
    UnresolvedRecipient,
)
from teller.safety.models import WAITING_WALLET, PendingTransaction, SessionKey, TxStatus
from teller.safety.session_auth import create_session_signer, generate_auth_message, verify_signature
from teller.safety.store import SqliteSafetyStore
from teller.utils.helpers import utc_day, utc_now


@dataclass(frozen=True, slots=True, kw_only=True)
class AuthorizationRequest:
    session_public_key: str
    message: str
    expires_at: datetime


class TransactionSafetyMachine:
    def __init__(
        self,
        store: SqliteSafetyStore,
        executor: TransferExecutorPort,
        *,
        daily_limit: int = 5,
        session_ttl_hours: int = 24,
        session_daily_cap: int = 100,
        cap_token: str = "USDC",
        network: str = "Base",
        agent_name: str = "teller-agent",
        permissions: Sequence[str] = ("transfer USDC",),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._executor = executor
        self.daily_limit = daily_limit
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.session_daily_cap = session_daily_cap
        self.cap_token = cap_token
        self.network = network
        self.agent_name = agent_name
        self.permissions = tuple(permissions)
        self._clock = clock
        self._confirm_locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> SqliteSafetyStore:
        return self._store

    # ── Drafts ───────────────────────────────────────────────────────

    def draft(
        self,
        user_id: str,
        *,
        recipient: str | None,
        amount: str | None,
        token: str | None,
        requested: str | None = None,
    ) -> PendingTransaction:
        """Create a pending transfer; raises a SafetyGateError when a rule refuses it."""
        if not amount or not token:
            raise MissingDraftFields("I need an amount and a token, e.g. 'send 5 USDC to @sam'.")
        try:
            if Decimal(amount) <= 0:
                raise MissingDraftFields("The amount must be greater than zero.")
        except InvalidOperation:
            raise MissingDraftFields(f"'{amount}' is not a valid amount.") from None
        if not recipient or not is_hex_address(recipient):
            who = requested or recipient or "that recipient"
            raise UnresolvedRecipient(
                f"No wallet on file for {who}. Send their 0x address, or save it with "
                f"'{who} wallet is 0x...'."
            )

        window = utc_day(self._clock())
        try:
            tx = self._store.create_draft_within_limit(
                user_id=user_id,
                recipient=recipient,
                token=token.upper(),
                amount=amount,
                window=window,
                limit=self.daily_limit,
            )
        except sqlite3.Error as e:
            logger.error("draft write failed user={}: {}", user_id, e)
            raise SafetyWriteError("I couldn't save the draft, so nothing was prepared. Try again shortly.") from e
        if tx is None:
            raise RateLimitExceeded(
                f"You've reached today's limit of {self.daily_limit} transfer drafts. Try again tomorrow."
            )
        logger.info("draft {} created user={} {} {} -> {}", tx.id, user_id, tx.amount, tx.token, tx.recipient)
        return tx

    def cancel(self, user_id: str) -> int:
        """Cancel every pending draft for the user; safe when there are none."""
        try:
            count = self._store.cancel_pending(user_id)
        except sqlite3.Error as e:
            logger.error("cancel write failed user={}: {}", user_id, e)
            raise SafetyWriteError("I couldn't cancel your drafts. Nothing was changed.") from e
        logger.info("cancelled {} pending draft(s) user={}", count, user_id)
        return count

    # ── Execution ────────────────────────────────────────────────────

    def active_session(self, user_id: str, token: str | None = None) -> SessionKey | None:
        now = self._clock()
        for session in self._store.sessions_for(user_id):
            if session.awaiting_signature or session.expired(now):
                continue
            if token is not None and not session.allows_transfer(token):
                continue
            return session
        return None

    async def confirm(self, user_id: str, transaction_id: str | None = None) -> PendingTransaction:
        """Execute the latest pending draft (or *transaction_id*) and record the outcome.

        Confirms for one user are serialized, so a draft reaches the executor
        at most once even when two confirms arrive together.
        """
        lock = self._confirm_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            return await self._confirm_locked(user_id, transaction_id)

    async def _confirm_locked(self, user_id: str, transaction_id: str | None) -> PendingTransaction:
        tx = self._locate_pending(user_id, transaction_id)
        session = self.active_session(user_id, tx.token)
        if session is None:
            raise SessionUnavailable(
                f"No active session allowed to send {tx.token}. Run /authorize and sign the message first."
            )

        try:
            outcome = await self._executor.execute_transfer(session.session_private_key, tx.recipient, tx.amount, tx.token)
            success, tx_hash, error = outcome.success and bool(outcome.transfer_hash), outcome.transfer_hash, outcome.error
        except Exception as e:
            logger.error("executor raised for tx {}: {}", tx.id, e)
            success, tx_hash, error = False, None, str(e) or type(e).__name__

        status = TxStatus.EXECUTED if success else TxStatus.FAILED
        if not success and not error:
            error = "Executor returned no transfer hash"
        try:
            written = self._store.finish_transaction(
                tx.id,
                status,
                tx_hash=tx_hash if success else None,
                error=None if success else error,
            )
        except sqlite3.Error as e:
            logger.error("status write failed for tx {}: {}", tx.id, e)
            written = False
        if not written:
            raise SafetyWriteError(
                f"I couldn't record the result of transaction {tx.id}; check its status before retrying."
            )

        finished = self._store.get_transaction(tx.id)
        if finished is None:
            raise SafetyWriteError(f"Transaction {tx.id} vanished after execution.")
        logger.info("tx {} -> {}", tx.id, finished.status)
        return finished

    def _locate_pending(self, user_id: str, transaction_id: str | None) -> PendingTransaction:
        if transaction_id:
            tx = self._store.get_transaction(transaction_id)
            if tx is None or tx.user_id != user_id:
                raise NoPendingTransaction(f"I can't find transaction {transaction_id}.")
            if tx.status is not TxStatus.PENDING:
                raise NoPendingTransaction(f"Transaction {transaction_id} is already {tx.status}.")
            return tx
        tx = self._store.latest_pending(user_id)
        if tx is None:
            raise NoPendingTransaction("There's no pending transfer to confirm.")
        return tx

    # ── Session authorization ───────────────────────────────────────

    def request_authorization(self, user_id: str) -> AuthorizationRequest:
        signer = create_session_signer()
        now = self._clock()
        expires_at = now + self.session_ttl
        message = generate_auth_message(
            agent_name=self.agent_name,
            user_id=user_id,
            session_public_key=signer.address,
            permissions=self.permissions,
            daily_cap=self.session_daily_cap,
            token=self.cap_token,
            network=self.network,
            expires_at=expires_at,
        )
        try:
            self._store.save_session(
                SessionKey(
                    id=uuid.uuid4().hex,
                    user_id=user_id,
                    wallet_address=WAITING_WALLET,
                    session_public_key=signer.address,
                    session_private_key=signer.private_key,
                    permissions=self.permissions,
                    auth_message=message,
                    expires_at=expires_at.isoformat(),
                    created_at=now.isoformat(),
                )
            )
        except sqlite3.Error as e:
            logger.error("session write failed user={}: {}", user_id, e)
            raise SafetyWriteError("I couldn't start the authorization. Try /authorize again.") from e
        return AuthorizationRequest(session_public_key=signer.address, message=message, expires_at=expires_at)

    def complete_authorization(self, user_id: str, wallet_address: str, signature: str) -> SessionKey:
        """Activate the pending session once *signature* by *wallet_address* checks out."""
        pending = self._store.latest_waiting_session(user_id)
        if pending is None:
            raise AuthorizationError("There's no authorization waiting for a signature. Run /authorize first.")
        if pending.expired(self._clock()):
            raise AuthorizationError("That authorization request expired. Run /authorize again.")
        if not is_hex_address(wallet_address):
            raise AuthorizationError(f"'{wallet_address}' is not a wallet address.")
        if not verify_signature(pending.auth_message, signature, wallet_address):
            raise AuthorizationError("The signature doesn't match that wallet and the authorization message.")
        try:
            activated = self._store.activate_session(pending.id, wallet_address)
        except sqlite3.Error as e:
            logger.error("session activation failed user={}: {}", user_id, e)
            activated = False
        if not activated:
            raise SafetyWriteError("I couldn't activate the session. Run /authorize again.")
        logger.info("session {} activated user={} wallet={}", pending.id, user_id, wallet_address)
        return SessionKey(
            id=pending.id,
            user_id=pending.user_id,
            wallet_address=wallet_address,
            session_public_key=pending.session_public_key,
            session_private_key=pending.session_private_key,
            permissions=pending.permissions,
            auth_message=pending.auth_message,
            expires_at=pending.expires_at,
            created_at=pending.created_at,
        )

    def recent_executed(self, *, user_id: str | None = None, limit: int = 5) -> list[PendingTransaction]:
        return self._store.executed_transactions(user_id=user_id, limit=limit)

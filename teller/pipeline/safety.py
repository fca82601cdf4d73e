"""Safety middleware: confirm, cancel and session authorization.

Every reply produced here is verbatim; the self-check stage must not decorate
or reword a refusal or an execution result.
"""

from __future__ import annotations

from loguru import logger

from teller.brain.nlu import IntentTag
from teller.core.pipeline import NextFn, PipelineContext
from teller.safety.errors import SafetyGateError
from teller.safety.machine import TransactionSafetyMachine
from teller.safety.models import PendingTransaction, TxStatus

SOURCE = "safety"


def refuse(ctx: PipelineContext, error: SafetyGateError) -> None:
    """Surface a gate refusal to the user as-is."""
    logger.info("safety refused user={} reason={}", ctx.event.user_id, type(error).__name__)
    ctx.metric("safety_refused", labels=(("reason", type(error).__name__),))
    ctx.respond(error.message, source=SOURCE, verbatim=True)


def describe_outcome(tx: PendingTransaction) -> str:
    if tx.status is TxStatus.EXECUTED:
        return f"Done. Sent {tx.amount} {tx.token} to {tx.recipient}.\nTransaction hash: {tx.tx_hash}"
    return (
        f"The transfer of {tx.amount} {tx.token} to {tx.recipient} failed: {tx.error}. "
        "It was not retried; start a new draft if you want to try again."
    )


class SafetyActions:
    """Confirm/cancel/authorize flows shared by slash commands and intents."""

    def __init__(self, machine: TransactionSafetyMachine) -> None:
        self._machine = machine

    async def confirm(self, ctx: PipelineContext, transaction_id: str | None = None) -> None:
        try:
            tx = await self._machine.confirm(ctx.event.user_id, transaction_id)
        except SafetyGateError as e:
            refuse(ctx, e)
            return
        ctx.metric("tx_finished", labels=(("status", tx.status.value),))
        ctx.respond(describe_outcome(tx), source=SOURCE, verbatim=True)

    def cancel(self, ctx: PipelineContext) -> None:
        try:
            count = self._machine.cancel(ctx.event.user_id)
        except SafetyGateError as e:
            refuse(ctx, e)
            return
        ctx.metric("tx_cancelled", value=count)
        text = f"Cancelled {count} pending transfer(s)." if count else "There's nothing pending to cancel."
        ctx.respond(text, source=SOURCE, verbatim=True)

    def authorize(self, ctx: PipelineContext) -> None:
        try:
            request = self._machine.request_authorization(ctx.event.user_id)
        except SafetyGateError as e:
            refuse(ctx, e)
            return
        ctx.metric("session_requested")
        ctx.respond(
            "Sign this message with your wallet, then send /verify <your address> <signature>:\n\n"
            f"{request.message}",
            source=SOURCE,
            verbatim=True,
        )

    def verify(self, ctx: PipelineContext, wallet_address: str, signature: str) -> None:
        try:
            session = self._machine.complete_authorization(ctx.event.user_id, wallet_address, signature)
        except SafetyGateError as e:
            refuse(ctx, e)
            return
        ctx.metric("session_activated")
        ctx.respond(
            f"Session active for {session.wallet_address} until {session.expires_at}. "
            "Transfers still need your /confirm.",
            source=SOURCE,
            verbatim=True,
        )


class SafetyMiddleware:
    """Handle TX_CONFIRM and TX_CANCEL intents expressed in plain words."""

    def __init__(self, actions: SafetyActions) -> None:
        self._actions = actions

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        intent = ctx.parsed.intent if ctx.parsed is not None else None
        if intent is IntentTag.TX_CONFIRM:
            await self._actions.confirm(ctx)
            return
        if intent is IntentTag.TX_CANCEL:
            self._actions.cancel(ctx)
            return
        await next(ctx)

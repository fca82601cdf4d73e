"""Transfer middleware: plan a TRANSFER_INTENT and open a pending draft."""

from __future__ import annotations

from teller.brain.nlu import IntentTag
from teller.brain.planner import Planner
from teller.brain.templates import get_variant
from teller.core.models import ActionButton
from teller.core.pipeline import NextFn, PipelineContext
from teller.memory.service import MemoryManager
from teller.pipeline.safety import refuse
from teller.safety.errors import SafetyGateError
from teller.safety.machine import TransactionSafetyMachine


class TransferPlanMiddleware:
    """Draft only; execution waits for an explicit confirm."""

    def __init__(
        self,
        *,
        planner: Planner,
        machine: TransactionSafetyMachine,
        memory: MemoryManager,
    ) -> None:
        self._planner = planner
        self._machine = machine
        self._memory = memory

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if ctx.parsed is None or ctx.parsed.intent is not IntentTag.TRANSFER_INTENT:
            await next(ctx)
            return

        user_id = ctx.event.user_id
        plan = self._planner.create_plan(ctx.parsed, user_id)
        if plan is None:
            await next(ctx)
            return

        resolve = plan.step("resolve_recipient")
        draft_step = plan.step("draft_tx")
        params = dict(draft_step.params) if draft_step is not None else {}
        requested = resolve.params.get("requested") if resolve is not None else None
        ctx.metric("plan_created", labels=(("ready", str(plan.ready_to_draft).lower()),))

        try:
            tx = self._machine.draft(
                user_id,
                recipient=params.get("recipient"),
                amount=params.get("amount"),
                token=params.get("token"),
                requested=requested,
            )
        except SafetyGateError as e:
            refuse(ctx, e)
            return

        if draft_step is not None:
            draft_step.status = "completed"
        name = self._memory.preferred_name(user_id, ctx.event.display_name)
        summary = get_variant(
            IntentTag.TRANSFER_INTENT.value,
            name=name,
            amount=tx.amount,
            token=tx.token,
            recipient=tx.recipient,
        )
        waiting = plan.next_pending()
        text = (
            f"{summary}\n"
            f"Draft {tx.id} is pending. {waiting.description if waiting else 'Ready'}: "
            "reply /confirm to send or /cancel to drop it."
        )
        ctx.metric("draft_created", labels=(("token", tx.token),))
        ctx.respond(
            text,
            source="transfer",
            verbatim=True,
            buttons=(
                ActionButton(label="Confirm", action="confirm", transaction_id=tx.id),
                ActionButton(label="Cancel", action="cancel", transaction_id=tx.id),
            ),
        )

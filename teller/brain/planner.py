"""Multi-step plans for intents that need resolution before acting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal, TypeAlias

from teller.brain.nlu import IntentTag, ParsedIntent
from teller.identity.resolver import RecipientResolver

StepStatus: TypeAlias = Literal["pending", "completed", "failed"]


class StepAction(StrEnum):
    RESOLVE = "RESOLVE"
    DRAFT = "DRAFT"
    CONFIRM = "CONFIRM"
    INFO = "INFO"


@dataclass(slots=True, kw_only=True)
class PlanStep:
    id: str
    description: str
    action: StepAction
    params: dict[str, Any] = field(default_factory=dict)
    status: StepStatus = "pending"


@dataclass(slots=True, kw_only=True)
class Plan:
    intent: str
    steps: list[PlanStep] = field(default_factory=list)

    def step(self, step_id: str) -> PlanStep | None:
        return next((s for s in self.steps if s.id == step_id), None)

    def next_pending(self) -> PlanStep | None:
        return next((s for s in self.steps if s.status == "pending"), None)

    @property
    def ready_to_draft(self) -> bool:
        """Recipient resolved and draft parameters complete."""
        resolve, draft = self.step("resolve_recipient"), self.step("draft_tx")
        return bool(resolve and draft and resolve.status == "completed" and draft.status == "completed")


class Planner:
    """Describes readiness only; it never creates transaction rows."""

    def __init__(self, resolver: RecipientResolver, *, default_token: str = "USDC") -> None:
        self._resolver = resolver
        self._default_token = default_token

    def create_plan(self, parsed: ParsedIntent, user_id: str) -> Plan | None:
        if parsed.intent is IntentTag.TRANSFER_INTENT:
            return self._transfer_plan(parsed, user_id)
        return None

    def _transfer_plan(self, parsed: ParsedIntent, user_id: str) -> Plan:
        entities = parsed.entities
        requested = entities.address or entities.username
        recipient = None
        if entities.address:
            recipient = entities.address
        elif entities.username:
            recipient = self._resolver.resolve(entities.username, user_id=user_id)
        token = entities.token or self._default_token

        return Plan(
            intent=IntentTag.TRANSFER_INTENT.value,
            steps=[
                PlanStep(
                    id="resolve_recipient",
                    description=f"Resolve recipient: {recipient or requested or 'unknown'}",
                    action=StepAction.RESOLVE,
                    params={"requested": requested, "recipient": recipient},
                    status="completed" if recipient else "pending",
                ),
                PlanStep(
                    id="draft_tx",
                    description=f"Draft transfer of {entities.amount or '?'} {token}",
                    action=StepAction.DRAFT,
                    params={"amount": entities.amount, "token": token, "recipient": recipient},
                    status="completed" if entities.amount and recipient else "pending",
                ),
                PlanStep(
                    id="wait_confirm",
                    description="Waiting for your confirmation",
                    action=StepAction.CONFIRM,
                ),
            ],
        )

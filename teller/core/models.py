"""Domain models crossing the transport boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

UserId: TypeAlias = str
ChatId: TypeAlias = str
ButtonAction: TypeAlias = Literal["confirm", "cancel"]


@dataclass(frozen=True, slots=True, kw_only=True)
class InboundEvent:
    """One message delivered by a chat transport."""

    user_id: UserId
    chat_id: ChatId
    text: str
    channel: str = "cli"
    message_id: str | None = None
    reply_to_id: str | None = None
    sender_name: str | None = None

    @property
    def display_name(self) -> str:
        return (self.sender_name or "").strip() or "friend"


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionButton:
    """Confirm/cancel callback keyed by a pending transaction id."""

    label: str
    action: ButtonAction
    transaction_id: str

    @property
    def callback_data(self) -> str:
        return f"/{self.action} {self.transaction_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class PlainReply:
    text: str


@dataclass(frozen=True, slots=True, kw_only=True)
class InteractiveReply:
    text: str
    action_buttons: tuple[ActionButton, ...] = field(default_factory=tuple)


Reply: TypeAlias = PlainReply | InteractiveReply


@dataclass(frozen=True, slots=True, kw_only=True)
class TransferOutcome:
    """Result reported by the execution collaborator."""

    success: bool
    transfer_hash: str | None = None
    error: str | None = None

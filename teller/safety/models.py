"""Transaction safety records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from teller.utils.helpers import parse_iso

WAITING_WALLET = "WAITING"


class TxStatus(StrEnum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not TxStatus.PENDING


@dataclass(frozen=True, slots=True, kw_only=True)
class PendingTransaction:
    id: str
    user_id: str
    recipient: str
    token: str
    amount: str
    status: TxStatus = TxStatus.PENDING
    created_at: str
    tx_hash: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SessionKey:
    """Time-boxed signing authority; ``wallet_address`` is WAITING until verified."""

    id: str
    user_id: str
    wallet_address: str
    session_public_key: str
    session_private_key: str = field(repr=False)
    permissions: tuple[str, ...] = ()
    auth_message: str = ""
    expires_at: str
    created_at: str

    @property
    def awaiting_signature(self) -> bool:
        return self.wallet_address == WAITING_WALLET

    def expired(self, now: datetime) -> bool:
        return parse_iso(self.expires_at) <= now

    def allows_transfer(self, token: str) -> bool:
        for permission in self.permissions:
            words = permission.lower().split()
            if not words or words[0] != "transfer":
                continue
            if len(words) == 1 or words[1] in {"*", "any", token.lower()}:
                return True
        return False


@dataclass(frozen=True, slots=True, kw_only=True)
class RateLimitWindow:
    user_id: str
    window: str
    count: int

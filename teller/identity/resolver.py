"""Recipient resolution shared by the planner and the resolve_recipient tool."""

from __future__ import annotations

import re

from teller.core.ports import IdentityPort
from teller.memory.service import MemoryManager

HEX_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_hex_address(value: str | None) -> bool:
    return bool(value) and bool(HEX_ADDRESS_RE.match(value.strip()))


class RecipientResolver:
    """Literal address, then stored ``wallet_<handle>`` facts, then linked identities."""

    def __init__(self, memory: MemoryManager, identity: IdentityPort | None = None) -> None:
        self._memory = memory
        self._identity = identity

    def resolve(self, target: str, *, user_id: str | None = None) -> str | None:
        value = (target or "").strip()
        if not value:
            return None
        if is_hex_address(value):
            return value
        found = self._memory.lookup_wallet(value, user_id=user_id)
        if is_hex_address(found):
            return found
        if self._identity is not None:
            linked = self._identity.lookup_wallet(value)
            if is_hex_address(linked):
                return linked
        return None

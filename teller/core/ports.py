"""Port interfaces for collaborators outside the core."""

from __future__ import annotations

from typing import Protocol

from teller.core.models import TransferOutcome


class TelemetryPort(Protocol):
    """Counter and event telemetry sink."""

    def incr(self, name: str, value: int = 1, labels: tuple[tuple[str, str], ...] = ()) -> None:
        """Increase named counter with optional labels."""


class TransferExecutorPort(Protocol):
    """On-chain execution collaborator; treated as a black box."""

    async def execute_transfer(
        self,
        session_private_key: str,
        recipient: str,
        amount: str,
        token: str,
    ) -> TransferOutcome:
        """Submit one transfer signed by the session key."""


class IdentityPort(Protocol):
    """Linked-account lookups supplied by the identity collaborator."""

    def wallet_for_user(self, user_id: str) -> str | None:
        """Wallet address linked to one user id."""

    def lookup_wallet(self, username: str) -> str | None:
        """Wallet address linked to an @handle."""

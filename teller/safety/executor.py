"""Default execution collaborator."""

from __future__ import annotations

from loguru import logger

from teller.core.models import TransferOutcome


class DisabledTransferExecutor:
    """Fails closed until a real chain executor is wired in."""

    async def execute_transfer(
        self,
        session_private_key: str,
        recipient: str,
        amount: str,
        token: str,
    ) -> TransferOutcome:
        logger.warning("Transfer of {} {} to {} refused: no executor configured", amount, token, recipient)
        return TransferOutcome(success=False, error="Transfer execution is not configured on this deployment.")

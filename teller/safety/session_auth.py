"""Session signer generation and wallet-signature checks (EIP-191 personal_sign)."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from eth_account import Account
from eth_account.messages import encode_defunct
from loguru import logger


@dataclass(frozen=True, slots=True)
class SessionSigner:
    address: str
    private_key: str = field(repr=False)


def create_session_signer() -> SessionSigner:
    """Fresh secp256k1 key pair held by the agent for one session."""
    account = Account.create()
    return SessionSigner(address=account.address, private_key="0x" + bytes(account.key).hex())


def generate_auth_message(
    *,
    agent_name: str,
    user_id: str,
    session_public_key: str,
    permissions: Sequence[str],
    daily_cap: int,
    token: str,
    network: str,
    expires_at: datetime,
) -> str:
    """Exact text the user signs to delegate transfer authority to the session key."""
    lines = [
        "Authorize Session Agent",
        f"Agent: {agent_name}",
        f"User ID: {user_id}",
        f"Session Public Key: {session_public_key}",
        "Permissions:",
        *(f"- {p}" for p in permissions),
        f"- max daily limit: {daily_cap} {token}",
        f"- network: {network}",
        f"- expiry: {expires_at.isoformat()}",
    ]
    return "\n".join(lines)


def sign_message(message: str, private_key: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


def verify_signature(message: str, signature: str, expected_address: str) -> bool:
    """True iff *signature* over *message* recovers to *expected_address*."""
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as e:
        logger.debug("signature recovery failed: {}", e)
        return False
    return recovered.lower() == expected_address.strip().lower()

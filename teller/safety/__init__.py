"""Transfer drafts, session authority and execution gating."""

from teller.safety.errors import SafetyGateError
from teller.safety.machine import AuthorizationRequest, TransactionSafetyMachine
from teller.safety.models import PendingTransaction, SessionKey, TxStatus
from teller.safety.store import SqliteSafetyStore

__all__ = [
    "AuthorizationRequest",
    "PendingTransaction",
    "SafetyGateError",
    "SessionKey",
    "SqliteSafetyStore",
    "TransactionSafetyMachine",
    "TxStatus",
]

"""Safety-gate failures. Messages are shown to the user verbatim."""

from __future__ import annotations


class SafetyGateError(Exception):
    """A transfer safety rule refused the action."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingDraftFields(SafetyGateError):
    pass


class UnresolvedRecipient(SafetyGateError):
    pass


class RateLimitExceeded(SafetyGateError):
    pass


class NoPendingTransaction(SafetyGateError):
    pass


class SessionUnavailable(SafetyGateError):
    pass


class AuthorizationError(SafetyGateError):
    pass


class SafetyWriteError(SafetyGateError):
    """A required safety write could not be confirmed."""

"""
Service-layer exceptions

Every error carries a stable `code` (the ErrorKind exposed in API envelopes),
a human-readable `message` and optional structured `details`.
"""

from typing import Any, Dict, Optional


class VaultCoreError(Exception):
    """Base exception for vault operations"""

    code = "VAULT_CORE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(VaultCoreError):
    """Raised when input is malformed (missing fields, bad amount, unknown members)"""
    code = "VALIDATION_ERROR"


class AuthorizationError(VaultCoreError):
    """Raised when the actor is not a member of the vault"""
    code = "AUTHORIZATION_ERROR"


class NotFoundError(VaultCoreError):
    """Raised when a vault or withdrawal request does not exist"""
    code = "NOT_FOUND"


class StateError(VaultCoreError):
    """Raised on an illegal state transition (duplicate vote, executing twice, ...)"""
    code = "STATE_ERROR"


class ConcurrencyConflictError(StateError):
    """Raised when a request kept changing underneath a vote until retries ran out"""
    code = "CONCURRENCY_CONFLICT"


class InsufficientFundsError(VaultCoreError):
    """Raised when a withdrawal would breach the minimum native reserve"""
    code = "INSUFFICIENT_FUNDS"


class LedgerError(VaultCoreError):
    """Raised when the external ledger call failed"""
    code = "LEDGER_ERROR"


class PersistenceError(VaultCoreError):
    """Raised when the durable store failed to read or write"""
    code = "PERSISTENCE_ERROR"


class ReconciliationRequiredError(PersistenceError):
    """
    Raised when funds moved on the ledger but the result could not be recorded.

    details always carries request_id and transaction_hash for manual reconciliation.
    """
    code = "RECONCILIATION_REQUIRED"

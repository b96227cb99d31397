"""
Services layer - Vault business logic
"""

from friendvault.services.exceptions import (
    VaultCoreError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    StateError,
    ConcurrencyConflictError,
    InsufficientFundsError,
    LedgerError,
    PersistenceError,
    ReconciliationRequiredError,
)
from friendvault.services.vault_registry import VaultRegistry, VaultSummary, VaultDetails
from friendvault.services.withdrawal_service import WithdrawalRequestManager
from friendvault.services.voting_engine import VotingEngine, compute_status
from friendvault.services.execution_engine import ExecutionEngine, ExecutionResult
from friendvault.services.deposit_service import DepositRecorder

__all__ = [
    # Errors
    "VaultCoreError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "StateError",
    "ConcurrencyConflictError",
    "InsufficientFundsError",
    "LedgerError",
    "PersistenceError",
    "ReconciliationRequiredError",
    # Vaults
    "VaultRegistry",
    "VaultSummary",
    "VaultDetails",
    "DepositRecorder",
    # Withdrawals
    "WithdrawalRequestManager",
    "VotingEngine",
    "compute_status",
    "ExecutionEngine",
    "ExecutionResult",
]

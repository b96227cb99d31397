"""
Vault models
"""

from friendvault.core.vaults.models import (
    Vault,
    VaultMember,
    WithdrawalRequest,
    WithdrawalVote,
    VaultTransaction,
    WithdrawalStatus,
    VoteDecision,
    VaultTransactionType,
)

__all__ = [
    "Vault",
    "VaultMember",
    "WithdrawalRequest",
    "WithdrawalVote",
    "VaultTransaction",
    "WithdrawalStatus",
    "VoteDecision",
    "VaultTransactionType",
]

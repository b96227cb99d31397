"""
Models registry for Alembic - Import all models here to ensure Base.metadata is complete

Import order matters to avoid circular dependencies:
1. Base first
2. Models without foreign keys
3. Models with foreign keys (in dependency order)
"""

# Import Base first
from friendvault.infrastructure.database import Base

# 1. User model (no foreign keys)
from friendvault.core.users.models import User, UserStatus

# 2. Vault models (vaults -> members, requests -> votes, journal)
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

# 3. Security models (depend on Vault)
from friendvault.core.security.models import VaultSecret, SecretAccessLog

__all__ = [
    "Base",
    "User",
    "UserStatus",
    "Vault",
    "VaultMember",
    "WithdrawalRequest",
    "WithdrawalVote",
    "VaultTransaction",
    "WithdrawalStatus",
    "VoteDecision",
    "VaultTransactionType",
    "VaultSecret",
    "SecretAccessLog",
]

"""
Core domain models - Export all models for Alembic
"""

from friendvault.core.users.models import User
from friendvault.core.vaults.models import Vault, VaultMember, WithdrawalRequest, WithdrawalVote, VaultTransaction
from friendvault.core.security.models import VaultSecret, SecretAccessLog

__all__ = [
    "User",
    "Vault",
    "VaultMember",
    "WithdrawalRequest",
    "WithdrawalVote",
    "VaultTransaction",
    "VaultSecret",
    "SecretAccessLog",
]

"""
FastAPI dependencies - service wiring

Each collaborator is its own dependency so tests can swap it through
app.dependency_overrides (the ledger client in particular).
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from friendvault.infrastructure.database import get_db
from friendvault.services.deposit_service import DepositRecorder
from friendvault.services.execution_engine import ExecutionEngine
from friendvault.services.identity import DatabaseIdentityChecker, IdentityChecker
from friendvault.services.ledger.client import LedgerClient
from friendvault.services.ledger.stellar_client import create_ledger_client
from friendvault.services.secret_store import SecretStore
from friendvault.services.vault_registry import VaultRegistry
from friendvault.services.voting_engine import VotingEngine
from friendvault.services.withdrawal_service import WithdrawalRequestManager


@lru_cache()
def get_ledger_client() -> LedgerClient:
    """Process-wide ledger client (holds the Horizon/Soroban HTTP sessions)"""
    return create_ledger_client()


def get_identity_checker(db: Session = Depends(get_db)) -> IdentityChecker:
    return DatabaseIdentityChecker(db)


def get_secret_store(db: Session = Depends(get_db)) -> SecretStore:
    return SecretStore(db)


def get_vault_registry(
    db: Session = Depends(get_db),
    identity_checker: IdentityChecker = Depends(get_identity_checker),
    ledger: LedgerClient = Depends(get_ledger_client),
    secret_store: SecretStore = Depends(get_secret_store),
) -> VaultRegistry:
    return VaultRegistry(db, identity_checker, ledger, secret_store)


def get_withdrawal_manager(
    db: Session = Depends(get_db),
    registry: VaultRegistry = Depends(get_vault_registry),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> WithdrawalRequestManager:
    return WithdrawalRequestManager(db, registry, ledger)


def get_voting_engine(db: Session = Depends(get_db)) -> VotingEngine:
    return VotingEngine(db)


def get_execution_engine(
    db: Session = Depends(get_db),
    ledger: LedgerClient = Depends(get_ledger_client),
    secret_store: SecretStore = Depends(get_secret_store),
) -> ExecutionEngine:
    return ExecutionEngine(db, ledger, secret_store)


def get_deposit_recorder(
    db: Session = Depends(get_db),
    registry: VaultRegistry = Depends(get_vault_registry),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> DepositRecorder:
    return DepositRecorder(db, registry, ledger)

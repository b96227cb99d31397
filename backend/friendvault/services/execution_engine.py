"""
Execution engine - moves approved withdrawals onto the ledger exactly once

Flow:
1. Claim: conditional UPDATE (status = APPROVED AND execution_claim IS NULL),
   committed before any ledger call. Only one executor can win it.
2. Open the custodial secret (audited) and submit the payment.
3. Record: conditional UPDATE to EXECUTED (still holding the claim) plus the
   WITHDRAWAL journal row, in one commit.

A definite ledger failure releases the claim so the request can be retried.
An ambiguous failure (outcome unknown) keeps the claim: the request stays
locked until an operator reconciles it against the ledger.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.common.base_model import utcnow
from friendvault.core.vaults.models import (
    Vault,
    VaultTransaction,
    VaultTransactionType,
    WithdrawalRequest,
    WithdrawalStatus,
)
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import (
    AuthorizationError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ReconciliationRequiredError,
    StateError,
)
from friendvault.services.identity import normalize_identity
from friendvault.services.ledger.client import LedgerClient, LedgerOutcomeUnknownError, PaymentResult
from friendvault.services.secret_store import SecretStore
from friendvault.services.vault_helpers import is_native_asset
from friendvault.services.voting_engine import ensure_transition
from friendvault.utils.metrics import record_execution, record_ledger_failure, record_withdrawal_transition

logger = logging.getLogger(__name__)

SECRET_PURPOSE_WITHDRAWAL = "withdrawal_execution"


@dataclass(frozen=True)
class ExecutionResult:
    transaction_hash: str
    request: WithdrawalRequest


class ExecutionEngine:
    """Executes APPROVED withdrawal requests against the ledger"""

    def __init__(
        self,
        db: Session,
        ledger: LedgerClient,
        secret_store: SecretStore,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.ledger = ledger
        self.secret_store = secret_store
        self.settings = settings or get_settings()

    def execute(self, request_id: UUID, executor: str) -> ExecutionResult:
        """
        Execute an approved request. Any member may execute.

        Raises:
            NotFoundError: unknown request
            AuthorizationError: executor is not a member
            StateError: request not APPROVED, or already being executed
            LedgerError: payment failed (claim released, request stays APPROVED)
            LedgerOutcomeUnknownError: payment fate unknown (claim kept)
            ReconciliationRequiredError: payment succeeded but was not recorded
        """
        executor = normalize_identity(executor)
        request = self._load(request_id)
        vault: Vault = request.vault
        if not vault.is_member(executor):
            raise AuthorizationError("Not a member of this vault", details={"vault_id": str(vault.id)})

        ensure_transition(request.status, WithdrawalStatus.EXECUTED)

        # Snapshot before commits expire the instances
        vault_id = vault.id
        custodial_address = vault.custodial_address
        amount = request.amount
        asset_ref = request.asset_ref
        recipient = request.recipient

        claim = self._claim(request_id)

        try:
            with self.secret_store.open(
                vault_id,
                actor=executor,
                purpose=SECRET_PURPOSE_WITHDRAWAL,
                reference_id=request_id,
            ) as secret:
                self._commit_access_log()
                result = self._pay(secret, asset_ref, recipient, amount, request_id)
        except LedgerOutcomeUnknownError as e:
            record_ledger_failure("payment")
            record_execution("outcome_unknown")
            logger.critical(
                "Withdrawal outcome unknown - request stays claimed until reconciled against the ledger",
                extra={
                    "request_id": str(request_id),
                    "vault_id": str(vault_id),
                    "execution_claim": str(claim),
                    "executor": executor,
                    "error": e.message,
                },
            )
            raise
        except (LedgerError, PersistenceError) as e:
            if isinstance(e, LedgerError):
                record_ledger_failure("payment")
            record_execution("ledger_error")
            logger.warning(
                f"Withdrawal execution failed, releasing claim: {e.message}",
                extra={"request_id": str(request_id), "vault_id": str(vault_id), "executor": executor},
            )
            self._release_claim(request_id, claim)
            raise

        return self._record_success(
            request_id=request_id,
            claim=claim,
            executor=executor,
            vault_id=vault_id,
            custodial_address=custodial_address,
            amount=amount,
            asset_ref=asset_ref,
            recipient=recipient,
            transaction_hash=result.hash,
        )

    def _load(self, request_id: UUID) -> WithdrawalRequest:
        try:
            request = self.db.execute(
                select(WithdrawalRequest)
                .where(WithdrawalRequest.id == request_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load withdrawal request: {type(e).__name__}") from e
        if request is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found", details={"request_id": str(request_id)})
        return request

    def _claim(self, request_id: UUID) -> UUID:
        """Atomically take the execution claim; StateError if someone else holds it"""
        claim = uuid4()
        try:
            result = self.db.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == request_id,
                    WithdrawalRequest.status == WithdrawalStatus.APPROVED,
                    WithdrawalRequest.execution_claim.is_(None),
                )
                .values(
                    execution_claim=claim,
                    execution_claimed_at=utcnow(),
                    version=WithdrawalRequest.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.db.commit()
                return claim

            self.db.rollback()
            current_status = self.db.execute(
                select(WithdrawalRequest.status).where(WithdrawalRequest.id == request_id)
            ).scalar_one()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to claim withdrawal request: {type(e).__name__}") from e

        if current_status == WithdrawalStatus.APPROVED:
            raise StateError(
                "Request is already being executed",
                details={"request_id": str(request_id), "status": current_status.value},
            )
        raise StateError(
            f"Request is {current_status.value.lower()}; only approved requests can be executed",
            details={"request_id": str(request_id), "status": current_status.value},
        )

    def _pay(self, secret: str, asset_ref: str, recipient: str, amount, request_id: UUID) -> PaymentResult:
        # The request id doubles as idempotency key (hash memo on native payments)
        if is_native_asset(asset_ref, self.settings.native_asset_code):
            return self.ledger.send_payment(secret, recipient, amount, idempotency_key=str(request_id))
        return self.ledger.send_token(asset_ref, secret, recipient, amount, idempotency_key=str(request_id))

    def _release_claim(self, request_id: UUID, claim: UUID) -> None:
        try:
            self.db.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == request_id,
                    WithdrawalRequest.execution_claim == claim,
                    WithdrawalRequest.status == WithdrawalStatus.APPROVED,
                )
                .values(
                    execution_claim=None,
                    execution_claimed_at=None,
                    version=WithdrawalRequest.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to release execution claim; request stays locked: {type(e).__name__}",
                extra={"request_id": str(request_id), "execution_claim": str(claim)},
            )

    def _commit_access_log(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to persist secret access log: {type(e).__name__}") from e

    def _record_success(
        self,
        request_id: UUID,
        claim: UUID,
        executor: str,
        vault_id: UUID,
        custodial_address: str,
        amount,
        asset_ref: str,
        recipient: str,
        transaction_hash: str,
    ) -> ExecutionResult:
        try:
            result = self.db.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == request_id,
                    WithdrawalRequest.execution_claim == claim,
                    WithdrawalRequest.status == WithdrawalStatus.APPROVED,
                )
                .values(
                    status=WithdrawalStatus.EXECUTED,
                    executed_at=utcnow(),
                    executed_by=executor,
                    transaction_hash=transaction_hash,
                    execution_claim=None,
                    execution_claimed_at=None,
                    version=WithdrawalRequest.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise PersistenceError("Execution claim was lost before the result could be recorded")

            self.db.add(
                VaultTransaction(
                    vault_id=vault_id,
                    type=VaultTransactionType.WITHDRAWAL,
                    amount=amount,
                    asset_ref=asset_ref,
                    sender=custodial_address,
                    recipient=recipient,
                    request_id=request_id,
                    transaction_hash=transaction_hash,
                )
            )
            self.db.commit()
        except (SQLAlchemyError, PersistenceError) as e:
            self.db.rollback()
            record_execution("reconciliation_required")
            logger.critical(
                "Ledger payment succeeded but could not be recorded - manual reconciliation required",
                extra={
                    "request_id": str(request_id),
                    "vault_id": str(vault_id),
                    "transaction_hash": transaction_hash,
                    "executor": executor,
                    "error": type(e).__name__,
                },
            )
            raise ReconciliationRequiredError(
                "Withdrawal was paid on the ledger but could not be recorded",
                details={"request_id": str(request_id), "transaction_hash": transaction_hash},
            ) from e

        record_execution("executed")
        record_withdrawal_transition(WithdrawalStatus.EXECUTED.value)
        logger.info(
            f"Withdrawal executed: request_id={request_id}, tx_hash={transaction_hash}",
            extra={
                "request_id": str(request_id),
                "vault_id": str(vault_id),
                "executed_by": executor,
                "transaction_hash": transaction_hash,
            },
        )
        request = self.db.get(WithdrawalRequest, request_id, populate_existing=True)
        return ExecutionResult(transaction_hash=transaction_hash, request=request)

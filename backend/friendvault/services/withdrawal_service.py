"""
Withdrawal request service - proposals to move funds out of a vault
"""

import logging
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.vaults.models import VoteDecision, WithdrawalRequest, WithdrawalVote
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import (
    InsufficientFundsError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from friendvault.services.ledger.client import LedgerClient
from friendvault.services.vault_helpers import is_native_asset, normalize_asset_ref, parse_amount
from friendvault.services.vault_registry import VaultRegistry
from friendvault.services.voting_engine import compute_status
from friendvault.utils.metrics import record_ledger_failure, record_withdrawal_transition

logger = logging.getLogger(__name__)


class WithdrawalRequestManager:
    """Creates and reads withdrawal requests"""

    def __init__(
        self,
        db: Session,
        registry: VaultRegistry,
        ledger: LedgerClient,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.registry = registry
        self.ledger = ledger
        self.settings = settings or get_settings()

    def create_request(
        self,
        vault_id: UUID,
        amount: Any,
        recipient: str,
        requested_by: str,
        asset_ref: Optional[str] = None,
    ) -> WithdrawalRequest:
        """
        Create a withdrawal request; the requester's approval is recorded with it.

        For the native asset the vault must keep MIN_NATIVE_RESERVE after the
        withdrawal (balance - amount >= reserve), checked against the live
        ledger balance. If the balance cannot be read the request is not
        created (LedgerError).

        A vault whose only member is the requester is unanimous immediately,
        so the request is created APPROVED.

        Commits on success.
        """
        vault = self.registry.get_vault(vault_id)
        requested_by = self.registry.require_member(vault, requested_by)

        amount = parse_amount(amount)
        recipient = (recipient or "").strip()
        if not recipient:
            raise ValidationError("Recipient is required")

        native_code = self.settings.native_asset_code
        asset_ref = normalize_asset_ref(asset_ref, native_code)

        if is_native_asset(asset_ref, native_code):
            self._check_native_reserve(vault.custodial_address, amount, vault_id)

        status = compute_status({requested_by}, set(), vault.member_identities)
        request = WithdrawalRequest(
            vault_id=vault.id,
            amount=amount,
            asset_ref=asset_ref,
            recipient=recipient,
            requested_by=requested_by,
            status=status,
            version=1,
        )
        request.votes = [WithdrawalVote(voter=requested_by, decision=VoteDecision.APPROVE)]

        try:
            self.db.add(request)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to create withdrawal request: {type(e).__name__}") from e

        record_withdrawal_transition(status.value)
        logger.info(
            f"Withdrawal request created: request_id={request.id}, status={status.value}",
            extra={
                "request_id": str(request.id),
                "vault_id": str(vault.id),
                "requested_by": requested_by,
                "amount": str(amount),
                "asset_ref": asset_ref,
            },
        )
        return request

    def get_request(self, request_id: UUID) -> WithdrawalRequest:
        try:
            request = self.db.get(WithdrawalRequest, request_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load withdrawal request: {type(e).__name__}") from e
        if request is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found", details={"request_id": str(request_id)})
        return request

    def get_request_for_member(self, request_id: UUID, identity: str) -> WithdrawalRequest:
        request = self.get_request(request_id)
        self.registry.require_member(request.vault, identity)
        return request

    def get_requests_for_vault(self, vault_id: UUID, identity: str) -> List[WithdrawalRequest]:
        """A vault's requests, newest first (members only)"""
        vault = self.registry.get_member_vault(vault_id, identity)
        try:
            return list(
                self.db.execute(
                    select(WithdrawalRequest)
                    .where(WithdrawalRequest.vault_id == vault.id)
                    .order_by(WithdrawalRequest.created_at.desc())
                ).scalars().all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load withdrawal requests: {type(e).__name__}") from e

    def _check_native_reserve(self, address: str, amount: Decimal, vault_id: UUID) -> None:
        reserve = self.settings.MIN_NATIVE_RESERVE
        try:
            balance = self.ledger.get_native_balance(address)
        except LedgerError:
            record_ledger_failure("balance")
            logger.warning(
                "Cannot verify vault balance, withdrawal request refused",
                extra={"vault_id": str(vault_id)},
            )
            raise

        if balance - amount < reserve:
            raise InsufficientFundsError(
                f"Insufficient funds: the vault must keep at least {reserve} {self.settings.native_asset_code}",
                details={
                    "balance": str(balance),
                    "amount": str(amount),
                    "min_reserve": str(reserve),
                },
            )

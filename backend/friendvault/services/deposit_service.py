"""
Deposit service - members send funds from their own account into the vault
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.vaults.models import VaultTransaction, VaultTransactionType
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import LedgerError, ReconciliationRequiredError, ValidationError
from friendvault.services.ledger.client import LedgerClient
from friendvault.services.vault_helpers import is_native_asset, normalize_asset_ref, parse_amount
from friendvault.services.vault_registry import VaultRegistry
from friendvault.utils.metrics import record_ledger_failure

logger = logging.getLogger(__name__)


class DepositRecorder:
    """
    Sends a member's funds to the vault's custodial address and journals it.

    The depositor signs with their own secret, which is used for this single
    call and never stored.
    """

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

    def deposit(
        self,
        vault_id: UUID,
        depositor: str,
        source_secret: str,
        amount: Any,
        asset_ref: Optional[str] = None,
    ) -> VaultTransaction:
        """
        Deposit into a vault (members only). Commits on success.

        LedgerError leaves nothing recorded. If the transfer landed but the
        journal row cannot be written, ReconciliationRequiredError.
        """
        vault = self.registry.get_vault(vault_id)
        depositor = self.registry.require_member(vault, depositor)

        amount = parse_amount(amount)
        if not source_secret:
            raise ValidationError("Source secret is required to sign the deposit")

        native_code = self.settings.native_asset_code
        asset_ref = normalize_asset_ref(asset_ref, native_code)
        vault_id = vault.id
        custodial_address = vault.custodial_address

        try:
            if is_native_asset(asset_ref, native_code):
                result = self.ledger.send_payment(source_secret, custodial_address, amount)
            else:
                result = self.ledger.send_token(asset_ref, source_secret, custodial_address, amount)
        except LedgerError as e:
            record_ledger_failure("payment" if is_native_asset(asset_ref, native_code) else "token_transfer")
            logger.warning(
                f"Deposit failed on the ledger: {e.message}",
                extra={"vault_id": str(vault_id), "depositor": depositor, "asset_ref": asset_ref},
            )
            raise

        transaction = VaultTransaction(
            vault_id=vault_id,
            type=VaultTransactionType.DEPOSIT,
            amount=amount,
            asset_ref=asset_ref,
            sender=depositor,
            recipient=custodial_address,
            transaction_hash=result.hash,
        )
        try:
            self.db.add(transaction)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.critical(
                "Deposit landed on the ledger but could not be recorded - manual reconciliation required",
                extra={"vault_id": str(vault_id), "depositor": depositor, "transaction_hash": result.hash},
            )
            raise ReconciliationRequiredError(
                "Deposit was sent on the ledger but could not be recorded",
                details={"vault_id": str(vault_id), "transaction_hash": result.hash},
            ) from e

        logger.info(
            f"Deposit recorded: vault_id={vault_id}, tx_hash={result.hash}",
            extra={
                "vault_id": str(vault_id),
                "depositor": depositor,
                "amount": str(amount),
                "asset_ref": asset_ref,
            },
        )
        return transaction

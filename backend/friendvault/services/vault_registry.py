"""
Vault registry - vault creation, membership checks and member-scoped views
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.vaults.models import (
    Vault,
    VaultMember,
    VaultTransaction,
    WithdrawalRequest,
)
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import (
    AuthorizationError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from friendvault.services.identity import IdentityChecker, normalize_identity
from friendvault.services.ledger.client import LedgerClient
from friendvault.services.secret_store import SecretStore
from friendvault.services.vault_helpers import is_native_asset
from friendvault.utils.metrics import record_ledger_failure, record_vault_created

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultSummary:
    """Member-facing view of a vault; never carries the custodial secret"""
    id: UUID
    name: str
    description: str
    custodial_address: str
    created_by: str
    members: Tuple[str, ...]
    is_creator: bool
    balance: Decimal
    balance_available: bool
    created_at: datetime

    @property
    def member_count(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class VaultDetails(VaultSummary):
    withdrawal_requests: List[WithdrawalRequest] = field(default_factory=list)
    token_balances: Dict[str, Decimal] = field(default_factory=dict)


class VaultRegistry:
    """
    Owns vault lifecycle and membership.

    Members are fixed at creation. Balances are always read live from the
    ledger; a failing balance read degrades to 0 with balance_available=False
    rather than failing the listing.
    """

    def __init__(
        self,
        db: Session,
        identity_checker: IdentityChecker,
        ledger: LedgerClient,
        secret_store: SecretStore,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.identity_checker = identity_checker
        self.ledger = ledger
        self.secret_store = secret_store
        self.settings = settings or get_settings()

    def create_vault(
        self,
        name: str,
        creator: str,
        member_identities: List[str],
        description: Optional[str] = None,
    ) -> VaultSummary:
        """
        Create a vault with a fresh custodial keypair.

        The creator is always a member. Duplicate identities collapse to one.
        Every member must exist on the platform; otherwise ValidationError
        with details["invalid_members"] and nothing is persisted.

        Commits on success.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Vault name is required")

        creator = normalize_identity(creator)
        if not creator:
            raise ValidationError("Creator identity is required")

        # Ordered de-duplication, creator first
        identities = list(dict.fromkeys([creator] + [normalize_identity(m) for m in member_identities or []]))

        invalid_members = [identity for identity in identities if not self.identity_checker.exists(identity)]
        if invalid_members:
            raise ValidationError(
                "Some members are not registered on the platform",
                details={"invalid_members": invalid_members},
            )

        keypair = self.ledger.generate_keypair()

        vault = Vault(
            name=name,
            description=(description or "").strip(),
            custodial_address=keypair.address,
            created_by=creator,
        )
        vault.members = [VaultMember(identity=identity) for identity in identities]

        try:
            self.db.add(vault)
            self.db.flush()
            self.secret_store.store(vault.id, keypair.secret)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to create vault: {type(e).__name__}") from e

        record_vault_created()
        logger.info(
            f"Vault created: vault_id={vault.id}",
            extra={
                "vault_id": str(vault.id),
                "created_by": creator,
                "member_count": len(identities),
                "custodial_address": keypair.address,
            },
        )
        return self._summarize(vault, creator)

    def get_vault(self, vault_id: UUID) -> Vault:
        """Raises NotFoundError if the vault does not exist"""
        try:
            vault = self.db.get(Vault, vault_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load vault: {type(e).__name__}") from e
        if vault is None:
            raise NotFoundError(f"Vault {vault_id} not found", details={"vault_id": str(vault_id)})
        return vault

    def require_member(self, vault: Vault, identity: str) -> str:
        """Return the normalized identity, or raise AuthorizationError for non-members"""
        identity = normalize_identity(identity)
        if not vault.is_member(identity):
            raise AuthorizationError(
                "Not a member of this vault",
                details={"vault_id": str(vault.id)},
            )
        return identity

    def get_member_vault(self, vault_id: UUID, identity: str) -> Vault:
        vault = self.get_vault(vault_id)
        self.require_member(vault, identity)
        return vault

    def get_vaults_for_member(self, identity: str) -> List[VaultSummary]:
        """All vaults where identity is a member, newest first, with live balances"""
        identity = normalize_identity(identity)
        try:
            vaults = self.db.execute(
                select(Vault)
                .join(VaultMember, VaultMember.vault_id == Vault.id)
                .where(VaultMember.identity == identity)
                .order_by(Vault.created_at.desc())
            ).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list vaults: {type(e).__name__}") from e

        return [self._summarize(vault, identity) for vault in vaults]

    def get_vault_details(self, vault_id: UUID, identity: str) -> VaultDetails:
        """
        Full vault view for a member: live balance, members, and withdrawal
        requests newest first. Token balances are best-effort per asset
        referenced by the vault's requests.
        """
        identity = normalize_identity(identity)
        vault = self.get_member_vault(vault_id, identity)
        balance, balance_available = self._live_balance(vault)

        try:
            requests = self.db.execute(
                select(WithdrawalRequest)
                .where(WithdrawalRequest.vault_id == vault.id)
                .order_by(WithdrawalRequest.created_at.desc())
            ).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load withdrawal requests: {type(e).__name__}") from e

        return VaultDetails(
            id=vault.id,
            name=vault.name,
            description=vault.description or "",
            custodial_address=vault.custodial_address,
            created_by=vault.created_by,
            members=tuple(m.identity for m in vault.members),
            is_creator=vault.created_by == identity,
            balance=balance,
            balance_available=balance_available,
            created_at=vault.created_at,
            withdrawal_requests=list(requests),
            token_balances=self._token_balances(vault, requests),
        )

    def get_vault_transactions(self, vault_id: UUID, identity: str) -> List[VaultTransaction]:
        """Journal of recorded deposits and executed withdrawals, newest first"""
        vault = self.get_member_vault(vault_id, identity)
        try:
            return list(
                self.db.execute(
                    select(VaultTransaction)
                    .where(VaultTransaction.vault_id == vault.id)
                    .order_by(VaultTransaction.created_at.desc())
                ).scalars().all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load vault transactions: {type(e).__name__}") from e

    def _summarize(self, vault: Vault, identity: str) -> VaultSummary:
        balance, balance_available = self._live_balance(vault)
        return VaultSummary(
            id=vault.id,
            name=vault.name,
            description=vault.description or "",
            custodial_address=vault.custodial_address,
            created_by=vault.created_by,
            members=tuple(m.identity for m in vault.members),
            is_creator=vault.created_by == identity,
            balance=balance,
            balance_available=balance_available,
            created_at=vault.created_at,
        )

    def _live_balance(self, vault: Vault) -> Tuple[Decimal, bool]:
        try:
            return self.ledger.get_native_balance(vault.custodial_address), True
        except LedgerError as e:
            record_ledger_failure("balance")
            logger.warning(
                f"Balance unavailable for vault {vault.id}: {e.message}",
                extra={"vault_id": str(vault.id), "custodial_address": vault.custodial_address},
            )
            return Decimal("0"), False

    def _token_balances(self, vault: Vault, requests: List[WithdrawalRequest]) -> Dict[str, Decimal]:
        native_code = self.settings.native_asset_code
        asset_refs = sorted({r.asset_ref for r in requests if not is_native_asset(r.asset_ref, native_code)})
        balances: Dict[str, Decimal] = {}
        for asset_ref in asset_refs:
            try:
                balances[asset_ref] = self.ledger.get_token_balance(asset_ref, vault.custodial_address)
            except LedgerError as e:
                record_ledger_failure("balance")
                logger.warning(
                    f"Token balance unavailable for vault {vault.id}: {e.message}",
                    extra={"vault_id": str(vault.id), "asset_ref": asset_ref},
                )
        return balances

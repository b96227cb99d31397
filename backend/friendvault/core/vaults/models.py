"""
Vault models - shared custodial vaults, withdrawal requests and votes
"""

import enum
from decimal import Decimal
from typing import FrozenSet

from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    Enum as SQLEnum,
    Numeric,
    Text,
    DateTime,
    Integer,
    Uuid,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from friendvault.core.common.base_model import BaseModel

# Ledger amounts carry up to 7 fractional digits (stroops)
AMOUNT_SCALE = 7
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)


class WithdrawalStatus(str, enum.Enum):
    """
    Withdrawal request status

    PENDING -> APPROVED -> EXECUTED, or PENDING -> REJECTED.
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"

    @property
    def is_terminal(self) -> bool:
        return self in (WithdrawalStatus.REJECTED, WithdrawalStatus.EXECUTED)


class VoteDecision(str, enum.Enum):
    """Vote decision enum"""
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class VaultTransactionType(str, enum.Enum):
    """Vault journal entry type"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class Vault(BaseModel):
    """
    Vault model - a custodial ledger account shared by a fixed set of members

    The balance is never stored here; it is read live from the ledger.
    The custodial secret lives in vault_secrets (see SecretStore).
    """

    __tablename__ = "vaults"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    custodial_address = Column(String(64), unique=True, nullable=False, index=True)
    created_by = Column(String(255), nullable=False, index=True)

    # Relationships
    members = relationship(
        "VaultMember",
        back_populates="vault",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="VaultMember.identity",
    )
    withdrawal_requests = relationship("WithdrawalRequest", back_populates="vault", cascade="all, delete-orphan")

    @property
    def member_identities(self) -> FrozenSet[str]:
        return frozenset(m.identity for m in self.members)

    def is_member(self, identity: str) -> bool:
        return identity in self.member_identities

    def __repr__(self) -> str:
        return f"<Vault(id={self.id}, name={self.name!r}, members={len(self.members)})>"


class VaultMember(BaseModel):
    """VaultMember model - one row per member identity; fixed at vault creation"""

    __tablename__ = "vault_members"

    vault_id = Column(Uuid(as_uuid=True), ForeignKey("vaults.id", name="fk_vault_members_vault_id", ondelete="CASCADE"), nullable=False, index=True)
    identity = Column(String(255), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('vault_id', 'identity', name='uq_vault_members_vault_identity'),
    )

    vault = relationship("Vault", back_populates="members")


class WithdrawalRequest(BaseModel):
    """
    WithdrawalRequest model - a proposal to move funds out of a vault

    approvals/rejections are derived from withdrawal_votes, where
    (request_id, voter) is unique: the two sets are disjoint by construction.

    version is the optimistic concurrency token, bumped on every mutation.
    execution_claim is written by the execution gate before the ledger call.
    """

    __tablename__ = "withdrawal_requests"

    vault_id = Column(Uuid(as_uuid=True), ForeignKey("vaults.id", name="fk_withdrawal_requests_vault_id"), nullable=False, index=True)

    amount = Column(Numeric(28, AMOUNT_SCALE), nullable=False)
    asset_ref = Column(String(64), nullable=False, default="XLM")  # Native asset code or token contract id
    recipient = Column(String(128), nullable=False)
    requested_by = Column(String(255), nullable=False, index=True)

    status = Column(SQLEnum(WithdrawalStatus, name="withdrawal_status", create_constraint=True), nullable=False, default=WithdrawalStatus.PENDING, index=True)
    version = Column(Integer, nullable=False, default=1)

    execution_claim = Column(Uuid(as_uuid=True), nullable=True)
    execution_claimed_at = Column(DateTime(timezone=True), nullable=True)

    executed_at = Column(DateTime(timezone=True), nullable=True)
    executed_by = Column(String(255), nullable=True)
    transaction_hash = Column(String(128), nullable=True, unique=True)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_withdrawal_requests_amount_positive'),
        CheckConstraint(
            "(status = 'EXECUTED' AND transaction_hash IS NOT NULL) OR (status != 'EXECUTED' AND transaction_hash IS NULL)",
            name='ck_withdrawal_requests_hash_iff_executed',
        ),
        Index('ix_withdrawal_requests_vault_status_created', 'vault_id', 'status', 'created_at'),
    )

    # Relationships
    vault = relationship("Vault", back_populates="withdrawal_requests")
    votes = relationship(
        "WithdrawalVote",
        back_populates="request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WithdrawalVote.created_at",
    )

    @property
    def requested_at(self):
        return self.created_at

    @property
    def approvals(self) -> FrozenSet[str]:
        return frozenset(v.voter for v in self.votes if v.decision == VoteDecision.APPROVE)

    @property
    def rejections(self) -> FrozenSet[str]:
        return frozenset(v.voter for v in self.votes if v.decision == VoteDecision.REJECT)

    def has_voted(self, identity: str) -> bool:
        return any(v.voter == identity for v in self.votes)

    def __repr__(self) -> str:
        return f"<WithdrawalRequest(id={self.id}, vault_id={self.vault_id}, amount={self.amount}, status={self.status})>"


class WithdrawalVote(BaseModel):
    """WithdrawalVote model - one decision per member per request, never retracted"""

    __tablename__ = "withdrawal_votes"

    request_id = Column(Uuid(as_uuid=True), ForeignKey("withdrawal_requests.id", name="fk_withdrawal_votes_request_id", ondelete="CASCADE"), nullable=False, index=True)
    voter = Column(String(255), nullable=False)
    decision = Column(SQLEnum(VoteDecision, name="vote_decision", create_constraint=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('request_id', 'voter', name='uq_withdrawal_votes_request_voter'),
    )

    request = relationship("WithdrawalRequest", back_populates="votes")


class VaultTransaction(BaseModel):
    """
    VaultTransaction model - append-only journal of ledger transfers

    One WITHDRAWAL row per executed request (request_id is unique), one
    DEPOSIT row per recorded deposit.
    """

    __tablename__ = "vault_transactions"

    # Note: updated_at exists in BaseModel but is never written - rows are immutable

    vault_id = Column(Uuid(as_uuid=True), ForeignKey("vaults.id", name="fk_vault_transactions_vault_id"), nullable=False, index=True)
    type = Column(SQLEnum(VaultTransactionType, name="vault_transaction_type", create_constraint=True), nullable=False)
    amount = Column(Numeric(28, AMOUNT_SCALE), nullable=False)
    asset_ref = Column(String(64), nullable=False)
    sender = Column(String(255), nullable=False)  # Identity (deposits) or custodial address (withdrawals)
    recipient = Column(String(128), nullable=False)
    request_id = Column(Uuid(as_uuid=True), ForeignKey("withdrawal_requests.id", name="fk_vault_transactions_request_id"), nullable=True, unique=True)
    transaction_hash = Column(String(128), nullable=False, unique=True)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_vault_transactions_amount_positive'),
        CheckConstraint(
            "(type = 'WITHDRAWAL' AND request_id IS NOT NULL) OR (type = 'DEPOSIT' AND request_id IS NULL)",
            name='ck_vault_transactions_request_iff_withdrawal',
        ),
        Index('ix_vault_transactions_vault_created', 'vault_id', 'created_at'),
    )

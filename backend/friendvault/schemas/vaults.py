"""
Vault API request/response schemas
"""

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from decimal import Decimal
from typing import Dict, List, Optional
from datetime import datetime

from friendvault.schemas.withdrawals import WithdrawalRequestResponse
from friendvault.services.ledger.client import format_amount


class CreateVaultRequest(BaseModel):
    """Request schema for vault creation"""
    name: str = Field(..., min_length=1, max_length=255, description="Vault display name")
    description: str = Field(default="", description="Free-text description")
    creator_identity: str = Field(
        ...,
        validation_alias=AliasChoices("creator_identity", "creatorIdentity"),
        description="Creator's e-mail identity (always becomes a member)",
    )
    member_identities: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("member_identities", "memberIdentities"),
        description="Other members' e-mail identities",
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject whitespace-only names"""
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Trip to Lisbon",
                "description": "Shared budget for the summer trip",
                "creator_identity": "ana@example.com",
                "member_identities": ["ben@example.com", "chloe@example.com"],
            }
        }


class VaultSummaryResponse(BaseModel):
    """Vault as seen by one of its members"""
    id: str = Field(..., description="Vault UUID")
    name: str = Field(..., description="Vault display name")
    description: str = Field(..., description="Vault description")
    custodial_address: str = Field(..., description="Ledger address holding the pooled funds")
    created_by: str = Field(..., description="Creator identity")
    members: List[str] = Field(..., description="Member identities")
    member_count: int = Field(..., description="Number of members (approvals needed)")
    is_creator: bool = Field(..., description="True if the requesting identity created the vault")
    balance: str = Field(..., description="Live native balance (\"0\" when unavailable)")
    balance_available: bool = Field(..., description="False if the ledger could not be read")
    created_at: datetime = Field(..., description="Creation timestamp")

    @classmethod
    def from_summary(cls, summary) -> "VaultSummaryResponse":
        return cls(
            id=str(summary.id),
            name=summary.name,
            description=summary.description,
            custodial_address=summary.custodial_address,
            created_by=summary.created_by,
            members=list(summary.members),
            member_count=summary.member_count,
            is_creator=summary.is_creator,
            balance=format_amount(summary.balance),
            balance_available=summary.balance_available,
            created_at=summary.created_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "name": "Trip to Lisbon",
                "description": "Shared budget for the summer trip",
                "custodial_address": "GBRPYHIL2CI3FNQ4BXLFMNDLFJUNPU2HY3ZMFSHONUCEOASW7QC7OX2H",
                "created_by": "ana@example.com",
                "members": ["ana@example.com", "ben@example.com", "chloe@example.com"],
                "member_count": 3,
                "is_creator": True,
                "balance": "250.5",
                "balance_available": True,
                "created_at": "2025-06-01T10:00:00Z",
            }
        }


class VaultDetailsResponse(VaultSummaryResponse):
    """Vault details with withdrawal requests (newest first)"""
    withdrawal_requests: List[WithdrawalRequestResponse] = Field(default_factory=list, description="Withdrawal requests, newest first")
    token_balances: Dict[str, str] = Field(default_factory=dict, description="Token balances keyed by contract id (best effort)")

    @classmethod
    def from_details(cls, details) -> "VaultDetailsResponse":
        summary = VaultSummaryResponse.from_summary(details)
        return cls(
            **summary.model_dump(),
            withdrawal_requests=[WithdrawalRequestResponse.from_model(r) for r in details.withdrawal_requests],
            token_balances={asset: format_amount(balance) for asset, balance in details.token_balances.items()},
        )


class VaultTransactionResponse(BaseModel):
    """Journal entry for a deposit or an executed withdrawal"""
    id: str = Field(..., description="Journal entry UUID")
    vault_id: str = Field(..., description="Vault UUID")
    type: str = Field(..., description="DEPOSIT or WITHDRAWAL")
    amount: str = Field(..., description="Amount moved")
    asset_ref: str = Field(..., description="Native asset code or token contract id")
    sender: str = Field(..., description="Depositor identity or vault custodial address")
    recipient: str = Field(..., description="Destination address")
    request_id: Optional[str] = Field(None, description="Withdrawal request UUID (withdrawals only)")
    transaction_hash: str = Field(..., description="Ledger transaction hash")
    created_at: datetime = Field(..., description="Recorded at")

    @classmethod
    def from_model(cls, transaction) -> "VaultTransactionResponse":
        return cls(
            id=str(transaction.id),
            vault_id=str(transaction.vault_id),
            type=transaction.type.value,
            amount=format_amount(transaction.amount),
            asset_ref=transaction.asset_ref,
            sender=transaction.sender,
            recipient=transaction.recipient,
            request_id=str(transaction.request_id) if transaction.request_id else None,
            transaction_hash=transaction.transaction_hash,
            created_at=transaction.created_at,
        )


class DepositRequest(BaseModel):
    """Request schema for a member deposit"""
    depositor_identity: str = Field(
        ...,
        validation_alias=AliasChoices("depositor_identity", "depositorIdentity"),
        description="Depositing member identity",
    )
    source_secret: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("source_secret", "sourceSecret"),
        description="Depositor's ledger secret, used once to sign and never stored",
    )
    amount: Decimal = Field(..., description="Deposit amount (must be > 0)")
    asset_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("asset_ref", "assetRef"),
        description="Token contract id; omit for the native asset",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "depositor_identity": "ben@example.com",
                "source_secret": "S...",
                "amount": "50",
            }
        }


class IdentityExistsResponse(BaseModel):
    """Whether an identity belongs to an active platform user"""
    exists: bool = Field(..., description="True if the identity can be added to a vault")

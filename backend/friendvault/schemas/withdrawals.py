"""
Withdrawal request API schemas
"""

from pydantic import AliasChoices, BaseModel, Field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from friendvault.services.ledger.client import format_amount


class CreateWithdrawalRequest(BaseModel):
    """Request schema for a withdrawal proposal"""
    vault_id: UUID = Field(..., validation_alias=AliasChoices("vault_id", "vaultId"), description="Vault UUID")
    amount: Decimal = Field(..., description="Amount to withdraw (must be > 0, max 7 decimals)")
    recipient: str = Field(..., description="Destination ledger address")
    requested_by: str = Field(
        ...,
        validation_alias=AliasChoices("requested_by", "requestedBy"),
        description="Requesting member identity (recorded as first approval)",
    )
    asset_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("asset_ref", "assetRef"),
        description="Token contract id; omit for the native asset",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "vault_id": "123e4567-e89b-12d3-a456-426614174000",
                "amount": "40",
                "recipient": "GCFXHS4GXL6BVUCXBWXGTITROWLVYXQKQLF4YH5O5JT3YZXCYPAFBJZB",
                "requested_by": "ana@example.com",
            }
        }


class VoteRequest(BaseModel):
    """Request schema for a vote"""
    voter_identity: str = Field(
        ...,
        validation_alias=AliasChoices("voter_identity", "voterIdentity"),
        description="Voting member identity",
    )
    decision: str = Field(..., description="'approve' or 'reject' (case-insensitive)")

    class Config:
        json_schema_extra = {
            "example": {
                "voter_identity": "ben@example.com",
                "decision": "approve",
            }
        }


class ExecuteRequest(BaseModel):
    """Request schema for executing an approved withdrawal"""
    executor_identity: str = Field(
        ...,
        validation_alias=AliasChoices("executor_identity", "executorIdentity"),
        description="Executing member identity",
    )


class WithdrawalRequestResponse(BaseModel):
    """Withdrawal request with its votes"""
    id: str = Field(..., description="Withdrawal request UUID")
    vault_id: str = Field(..., description="Vault UUID")
    amount: str = Field(..., description="Requested amount")
    asset_ref: str = Field(..., description="Native asset code or token contract id")
    recipient: str = Field(..., description="Destination ledger address")
    requested_by: str = Field(..., description="Requesting member identity")
    requested_at: datetime = Field(..., description="Creation timestamp")
    status: str = Field(..., description="PENDING, APPROVED, REJECTED or EXECUTED")
    approvals: List[str] = Field(..., description="Members who approved")
    rejections: List[str] = Field(..., description="Members who rejected")
    required_approvals: int = Field(..., description="Approvals needed (member count)")
    executed_at: Optional[datetime] = Field(None, description="Execution timestamp")
    executed_by: Optional[str] = Field(None, description="Executing member identity")
    transaction_hash: Optional[str] = Field(None, description="Ledger transaction hash (EXECUTED only)")

    @classmethod
    def from_model(cls, request) -> "WithdrawalRequestResponse":
        return cls(
            id=str(request.id),
            vault_id=str(request.vault_id),
            amount=format_amount(request.amount),
            asset_ref=request.asset_ref,
            recipient=request.recipient,
            requested_by=request.requested_by,
            requested_at=request.requested_at,
            status=request.status.value,
            approvals=sorted(request.approvals),
            rejections=sorted(request.rejections),
            required_approvals=len(request.vault.members),
            executed_at=request.executed_at,
            executed_by=request.executed_by,
            transaction_hash=request.transaction_hash,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "9b2f7c4e-1a3d-4e5f-8a7b-6c5d4e3f2a1b",
                "vault_id": "123e4567-e89b-12d3-a456-426614174000",
                "amount": "40",
                "asset_ref": "XLM",
                "recipient": "GCFXHS4GXL6BVUCXBWXGTITROWLVYXQKQLF4YH5O5JT3YZXCYPAFBJZB",
                "requested_by": "ana@example.com",
                "requested_at": "2025-06-02T09:30:00Z",
                "status": "PENDING",
                "approvals": ["ana@example.com"],
                "rejections": [],
                "required_approvals": 3,
                "executed_at": None,
                "executed_by": None,
                "transaction_hash": None,
            }
        }


class ExecutionResponse(BaseModel):
    """Result of a successful execution"""
    transaction_hash: str = Field(..., description="Ledger transaction hash")
    request: WithdrawalRequestResponse = Field(..., description="Request after execution (EXECUTED)")

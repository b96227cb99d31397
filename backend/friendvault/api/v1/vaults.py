"""
Client API - Vaults (creation, views, deposits)
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from friendvault.api.dependencies import (
    get_deposit_recorder,
    get_vault_registry,
    get_withdrawal_manager,
)
from friendvault.schemas.common import Envelope
from friendvault.schemas.vaults import (
    CreateVaultRequest,
    DepositRequest,
    VaultDetailsResponse,
    VaultSummaryResponse,
    VaultTransactionResponse,
)
from friendvault.schemas.withdrawals import WithdrawalRequestResponse
from friendvault.services.deposit_service import DepositRecorder
from friendvault.services.vault_registry import VaultRegistry
from friendvault.services.withdrawal_service import WithdrawalRequestManager
from friendvault.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vaults", tags=["vaults"])


@router.post(
    "",
    response_model=Envelope[VaultSummaryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create vault",
    description="Create a shared vault with a fresh custodial address. Every member must be a registered identity.",
)
def create_vault(
    payload: CreateVaultRequest,
    http_request: Request,
    registry: VaultRegistry = Depends(get_vault_registry),
) -> Envelope[VaultSummaryResponse]:
    logger.info(
        "Vault creation requested",
        extra={
            "trace_id": get_trace_id(http_request),
            "creator": payload.creator_identity,
            "member_count": len(payload.member_identities),
        },
    )
    summary = registry.create_vault(
        name=payload.name,
        creator=payload.creator_identity,
        member_identities=payload.member_identities,
        description=payload.description,
    )
    return Envelope(data=VaultSummaryResponse.from_summary(summary), message="Vault created")


@router.get(
    "",
    response_model=Envelope[List[VaultSummaryResponse]],
    summary="List my vaults",
    description="Vaults where the identity is a member, newest first, with live balances.",
)
def list_vaults(
    member: str = Query(..., description="Member identity"),
    registry: VaultRegistry = Depends(get_vault_registry),
) -> Envelope[List[VaultSummaryResponse]]:
    summaries = registry.get_vaults_for_member(member)
    return Envelope(data=[VaultSummaryResponse.from_summary(s) for s in summaries])


@router.get(
    "/{vault_id}",
    response_model=Envelope[VaultDetailsResponse],
    summary="Get vault details",
    description="Balance, members and withdrawal requests (newest first). Members only.",
)
def get_vault_details(
    vault_id: UUID,
    requester: str = Query(..., description="Requesting member identity"),
    registry: VaultRegistry = Depends(get_vault_registry),
) -> Envelope[VaultDetailsResponse]:
    details = registry.get_vault_details(vault_id, requester)
    return Envelope(data=VaultDetailsResponse.from_details(details))


@router.get(
    "/{vault_id}/withdrawal-requests",
    response_model=Envelope[List[WithdrawalRequestResponse]],
    summary="List withdrawal requests",
    description="Withdrawal requests of a vault, newest first. Members only.",
)
def list_withdrawal_requests(
    vault_id: UUID,
    requester: str = Query(..., description="Requesting member identity"),
    manager: WithdrawalRequestManager = Depends(get_withdrawal_manager),
) -> Envelope[List[WithdrawalRequestResponse]]:
    requests = manager.get_requests_for_vault(vault_id, requester)
    return Envelope(data=[WithdrawalRequestResponse.from_model(r) for r in requests])


@router.get(
    "/{vault_id}/transactions",
    response_model=Envelope[List[VaultTransactionResponse]],
    summary="List vault transactions",
    description="Recorded deposits and executed withdrawals, newest first. Members only.",
)
def list_vault_transactions(
    vault_id: UUID,
    requester: str = Query(..., description="Requesting member identity"),
    registry: VaultRegistry = Depends(get_vault_registry),
) -> Envelope[List[VaultTransactionResponse]]:
    transactions = registry.get_vault_transactions(vault_id, requester)
    return Envelope(data=[VaultTransactionResponse.from_model(t) for t in transactions])


@router.post(
    "/{vault_id}/deposits",
    response_model=Envelope[VaultTransactionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Deposit to vault",
    description="Send funds from the member's own ledger account to the vault. The secret is used once and never stored.",
)
def deposit_to_vault(
    vault_id: UUID,
    payload: DepositRequest,
    http_request: Request,
    recorder: DepositRecorder = Depends(get_deposit_recorder),
) -> Envelope[VaultTransactionResponse]:
    logger.info(
        "Deposit requested",
        extra={
            "trace_id": get_trace_id(http_request),
            "vault_id": str(vault_id),
            "depositor": payload.depositor_identity,
        },
    )
    transaction = recorder.deposit(
        vault_id=vault_id,
        depositor=payload.depositor_identity,
        source_secret=payload.source_secret.get_secret_value(),
        amount=payload.amount,
        asset_ref=payload.asset_ref,
    )
    return Envelope(data=VaultTransactionResponse.from_model(transaction), message="Deposit recorded")

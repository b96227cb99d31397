"""
Client API - Withdrawal requests (proposal, votes, execution)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from friendvault.api.dependencies import (
    get_execution_engine,
    get_voting_engine,
    get_withdrawal_manager,
)
from friendvault.schemas.common import Envelope
from friendvault.schemas.withdrawals import (
    CreateWithdrawalRequest,
    ExecuteRequest,
    ExecutionResponse,
    VoteRequest,
    WithdrawalRequestResponse,
)
from friendvault.services.execution_engine import ExecutionEngine
from friendvault.services.voting_engine import VotingEngine
from friendvault.services.withdrawal_service import WithdrawalRequestManager
from friendvault.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/withdrawal-requests", tags=["withdrawal-requests"])


@router.post(
    "",
    response_model=Envelope[WithdrawalRequestResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Request withdrawal",
    description="Propose a withdrawal. The requester's approval is recorded; every other member must approve.",
)
def create_withdrawal_request(
    payload: CreateWithdrawalRequest,
    http_request: Request,
    manager: WithdrawalRequestManager = Depends(get_withdrawal_manager),
) -> Envelope[WithdrawalRequestResponse]:
    logger.info(
        "Withdrawal request submitted",
        extra={
            "trace_id": get_trace_id(http_request),
            "vault_id": str(payload.vault_id),
            "requested_by": payload.requested_by,
        },
    )
    request = manager.create_request(
        vault_id=payload.vault_id,
        amount=payload.amount,
        recipient=payload.recipient,
        requested_by=payload.requested_by,
        asset_ref=payload.asset_ref,
    )
    return Envelope(data=WithdrawalRequestResponse.from_model(request), message="Withdrawal request created")


@router.get(
    "/{request_id}",
    response_model=Envelope[WithdrawalRequestResponse],
    summary="Get withdrawal request",
    description="A withdrawal request with its votes. Members only.",
)
def get_withdrawal_request(
    request_id: UUID,
    requester: str = Query(..., description="Requesting member identity"),
    manager: WithdrawalRequestManager = Depends(get_withdrawal_manager),
) -> Envelope[WithdrawalRequestResponse]:
    request = manager.get_request_for_member(request_id, requester)
    return Envelope(data=WithdrawalRequestResponse.from_model(request))


@router.post(
    "/{request_id}/votes",
    response_model=Envelope[WithdrawalRequestResponse],
    summary="Vote on withdrawal request",
    description="Approve or reject. Unanimous approval approves; a single rejection vetoes.",
)
def vote_on_withdrawal_request(
    request_id: UUID,
    payload: VoteRequest,
    http_request: Request,
    engine: VotingEngine = Depends(get_voting_engine),
) -> Envelope[WithdrawalRequestResponse]:
    logger.info(
        "Vote submitted",
        extra={
            "trace_id": get_trace_id(http_request),
            "request_id": str(request_id),
            "voter": payload.voter_identity,
        },
    )
    request = engine.vote(request_id, payload.voter_identity, payload.decision)
    return Envelope(data=WithdrawalRequestResponse.from_model(request), message="Vote recorded")


@router.post(
    "/{request_id}/execute",
    response_model=Envelope[ExecutionResponse],
    summary="Execute withdrawal request",
    description="Send an approved withdrawal to the ledger. Executes at most once.",
)
def execute_withdrawal_request(
    request_id: UUID,
    payload: ExecuteRequest,
    http_request: Request,
    engine: ExecutionEngine = Depends(get_execution_engine),
) -> Envelope[ExecutionResponse]:
    logger.info(
        "Execution submitted",
        extra={
            "trace_id": get_trace_id(http_request),
            "request_id": str(request_id),
            "executor": payload.executor_identity,
        },
    )
    result = engine.execute(request_id, payload.executor_identity)
    return Envelope(
        data=ExecutionResponse(
            transaction_hash=result.transaction_hash,
            request=WithdrawalRequestResponse.from_model(result.request),
        ),
        message="Withdrawal executed",
    )

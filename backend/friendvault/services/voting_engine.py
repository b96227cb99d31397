"""
Voting engine - unanimity with veto

A request becomes APPROVED once every member approved, REJECTED as soon as
any member rejects, and stays PENDING otherwise. Votes are final.
"""

import logging
from typing import AbstractSet, Dict, FrozenSet, Optional, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.vaults.models import VoteDecision, WithdrawalRequest, WithdrawalStatus, WithdrawalVote
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import (
    AuthorizationError,
    ConcurrencyConflictError,
    NotFoundError,
    PersistenceError,
    StateError,
    ValidationError,
)
from friendvault.services.identity import normalize_identity
from friendvault.utils.metrics import record_vote, record_withdrawal_transition

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[WithdrawalStatus, FrozenSet[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED}),
    WithdrawalStatus.APPROVED: frozenset({WithdrawalStatus.EXECUTED}),
    WithdrawalStatus.REJECTED: frozenset(),
    WithdrawalStatus.EXECUTED: frozenset(),
}


def ensure_transition(current: WithdrawalStatus, target: WithdrawalStatus) -> None:
    """Raise StateError unless current -> target is a legal withdrawal transition"""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise StateError(
            f"Request is {current.value}; cannot move to {target.value}",
            details={"status": current.value, "target_status": target.value},
        )


def compute_status(
    approvals: AbstractSet[str],
    rejections: AbstractSet[str],
    members: AbstractSet[str],
) -> WithdrawalStatus:
    """
    Status implied by a set of votes.

    Rules:
    - any rejection -> REJECTED (veto wins, even over a full set of approvals)
    - every member approved -> APPROVED
    - otherwise -> PENDING
    """
    if rejections:
        return WithdrawalStatus.REJECTED
    if members and members <= approvals:
        return WithdrawalStatus.APPROVED
    return WithdrawalStatus.PENDING


def parse_decision(decision: Union[VoteDecision, str]) -> VoteDecision:
    if isinstance(decision, VoteDecision):
        return decision
    try:
        return VoteDecision((decision or "").strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid decision '{decision}'. Must be 'approve' or 'reject'",
            details={"decision": decision},
        )


class _VersionConflict(Exception):
    """The request changed between read and conditional write"""


class VotingEngine:
    """
    Records votes and recomputes request status.

    Each attempt reads the request (FOR UPDATE where supported), inserts the
    vote, then writes the new status conditionally on the version it read.
    Losing the race rolls back and retries on fresh state.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def vote(
        self,
        request_id: UUID,
        voter: str,
        decision: Union[VoteDecision, str],
    ) -> WithdrawalRequest:
        """
        Cast a vote. Commits on success.

        Raises:
            NotFoundError: unknown request
            StateError: request no longer PENDING, or voter already voted
            AuthorizationError: voter is not a member of the request's vault
            ConcurrencyConflictError: retries exhausted under contention
        """
        decision = parse_decision(decision)
        voter = normalize_identity(voter)
        max_attempts = max(1, self.settings.VOTE_MAX_ATTEMPTS)

        for attempt in range(1, max_attempts + 1):
            try:
                return self._vote_once(request_id, voter, decision)
            except _VersionConflict:
                self.db.rollback()
                logger.info(
                    f"Vote lost a concurrent update, retrying (attempt {attempt}/{max_attempts})",
                    extra={"request_id": str(request_id), "voter": voter},
                )

        logger.warning(
            "Vote abandoned after repeated concurrent updates",
            extra={"request_id": str(request_id), "voter": voter, "attempts": max_attempts},
        )
        raise ConcurrencyConflictError(
            "Request is being updated concurrently, please retry",
            details={"request_id": str(request_id)},
        )

    def _vote_once(self, request_id: UUID, voter: str, decision: VoteDecision) -> WithdrawalRequest:
        try:
            request = self.db.execute(
                select(WithdrawalRequest)
                .where(WithdrawalRequest.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to load withdrawal request: {type(e).__name__}") from e

        if request is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found", details={"request_id": str(request_id)})

        current_status = request.status
        if current_status != WithdrawalStatus.PENDING:
            raise StateError(
                f"Request is already {current_status.value.lower()}",
                details={"request_id": str(request.id), "status": current_status.value},
            )

        members = request.vault.member_identities
        if voter not in members:
            raise AuthorizationError("Not a member of this vault", details={"vault_id": str(request.vault_id)})

        if request.has_voted(voter):
            raise StateError(
                "Member has already voted on this request",
                details={"request_id": str(request.id), "voter": voter},
            )

        approvals = set(request.approvals)
        rejections = set(request.rejections)
        if decision == VoteDecision.APPROVE:
            approvals.add(voter)
        else:
            rejections.add(voter)

        new_status = compute_status(approvals, rejections, members)
        ensure_transition(current_status, new_status)
        expected_version = request.version

        try:
            self.db.add(WithdrawalVote(request_id=request.id, voter=voter, decision=decision))
            self.db.flush()
        except IntegrityError:
            # A concurrent vote by the same member won; the retry reports the duplicate
            raise _VersionConflict()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to record vote: {type(e).__name__}") from e

        try:
            result = self.db.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == request.id,
                    WithdrawalRequest.status == WithdrawalStatus.PENDING,
                    WithdrawalRequest.version == expected_version,
                )
                .values(status=new_status, version=expected_version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _VersionConflict()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update withdrawal request: {type(e).__name__}") from e

        record_vote(decision.value)
        logger.info(
            f"Vote recorded: request_id={request_id}, decision={decision.value}",
            extra={
                "request_id": str(request_id),
                "vault_id": str(request.vault_id),
                "voter": voter,
                "approvals": len(approvals),
                "members": len(members),
            },
        )
        if new_status != current_status:
            record_withdrawal_transition(new_status.value)
            logger.info(
                f"Withdrawal request {new_status.value.lower()}: request_id={request_id}",
                extra={"request_id": str(request_id), "status": new_status.value},
            )

        # Expired by commit; reloads with the committed vote and status
        self.db.refresh(request)
        return request

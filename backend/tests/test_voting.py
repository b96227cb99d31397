"""
Voting tests - unanimity with veto
"""

import pytest
from uuid import uuid4

from friendvault.core.vaults.models import WithdrawalRequest, WithdrawalStatus
from friendvault.services.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateError,
    ValidationError,
)
from friendvault.services.voting_engine import compute_status, ensure_transition
from tests.helpers import ANA, BEN, CHLOE, MALLORY, RECIPIENT

MEMBERS = frozenset({ANA, BEN, CHLOE})


@pytest.fixture
def pending(services, vault):
    return services["withdrawals"].create_request(vault.id, "10", RECIPIENT, ANA)


def test_compute_status_rules():
    assert compute_status({ANA}, set(), MEMBERS) == WithdrawalStatus.PENDING
    assert compute_status({ANA, BEN}, set(), MEMBERS) == WithdrawalStatus.PENDING
    assert compute_status(set(MEMBERS), set(), MEMBERS) == WithdrawalStatus.APPROVED
    assert compute_status({ANA}, {BEN}, MEMBERS) == WithdrawalStatus.REJECTED
    # Veto wins even over a full set of approvals
    assert compute_status(set(MEMBERS), {CHLOE}, MEMBERS) == WithdrawalStatus.REJECTED


def test_transitions_never_move_backward():
    ensure_transition(WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED)
    ensure_transition(WithdrawalStatus.APPROVED, WithdrawalStatus.EXECUTED)
    for current, target in [
        (WithdrawalStatus.APPROVED, WithdrawalStatus.PENDING),
        (WithdrawalStatus.REJECTED, WithdrawalStatus.PENDING),
        (WithdrawalStatus.EXECUTED, WithdrawalStatus.APPROVED),
        (WithdrawalStatus.PENDING, WithdrawalStatus.EXECUTED),
    ]:
        with pytest.raises(StateError):
            ensure_transition(current, target)


def test_partial_approval_stays_pending(services, pending):
    request = services["voting"].vote(pending.id, BEN, "approve")

    assert request.status == WithdrawalStatus.PENDING
    assert request.approvals == {ANA, BEN}
    assert request.version == 2


def test_unanimous_approval_approves(services, pending):
    services["voting"].vote(pending.id, BEN, "approve")
    request = services["voting"].vote(pending.id, CHLOE, "APPROVE")

    assert request.status == WithdrawalStatus.APPROVED
    assert request.approvals == {ANA, BEN, CHLOE}


def test_single_rejection_vetoes(services, pending):
    services["voting"].vote(pending.id, BEN, "approve")
    request = services["voting"].vote(pending.id, CHLOE, "reject")

    assert request.status == WithdrawalStatus.REJECTED
    assert request.rejections == {CHLOE}
    assert request.approvals == {ANA, BEN}


def test_approval_and_rejection_sets_stay_disjoint(services, pending):
    request = services["voting"].vote(pending.id, BEN, "reject")

    assert not (request.approvals & request.rejections)


def test_no_votes_on_decided_request(services, pending):
    services["voting"].vote(pending.id, BEN, "reject")

    with pytest.raises(StateError):
        services["voting"].vote(pending.id, CHLOE, "approve")


def test_duplicate_vote_rejected(services, pending):
    services["voting"].vote(pending.id, BEN, "approve")

    with pytest.raises(StateError) as exc_info:
        services["voting"].vote(pending.id, " BEN@example.com", "reject")
    assert "already voted" in exc_info.value.message


def test_requester_cannot_vote_again(services, pending):
    with pytest.raises(StateError):
        services["voting"].vote(pending.id, ANA, "approve")


def test_non_member_cannot_vote(services, pending, db_session):
    with pytest.raises(AuthorizationError):
        services["voting"].vote(pending.id, MALLORY, "approve")

    stored = db_session.get(WithdrawalRequest, pending.id, populate_existing=True)
    assert stored.status == WithdrawalStatus.PENDING
    assert stored.version == 1
    assert stored.approvals == {ANA}
    assert stored.rejections == frozenset()


def test_unknown_request(services, users):
    with pytest.raises(NotFoundError):
        services["voting"].vote(uuid4(), BEN, "approve")


def test_invalid_decision(services, pending):
    with pytest.raises(ValidationError):
        services["voting"].vote(pending.id, BEN, "abstain")

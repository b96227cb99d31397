"""
Concurrency tests - exactly-once execution and lost-update-free voting
"""

import pytest
from concurrent.futures import ThreadPoolExecutor, as_completed
from sqlalchemy import select
from sqlalchemy.orm import Session

from friendvault.core.vaults.models import VaultTransaction, WithdrawalRequest, WithdrawalStatus
from friendvault.infrastructure.database import SessionLocal
from friendvault.services.exceptions import StateError
from tests.helpers import ANA, BEN, CHLOE, RECIPIENT, build_services


def _in_new_session(ledger, action):
    """Run action(services) on a dedicated session, like a separate API worker"""
    session = SessionLocal()
    try:
        return action(build_services(session, ledger))
    finally:
        session.close()


def test_concurrent_executes_pay_exactly_once(db_session: Session, services, vault, ledger):
    """
    Scenario:
    - Fully approved request
    - All three members hit execute at the same time, twice each
    - Expected: one payment, one EXECUTED record, everyone else gets StateError
    """
    request = services["withdrawals"].create_request(vault.id, "10", RECIPIENT, ANA)
    services["voting"].vote(request.id, BEN, "approve")
    services["voting"].vote(request.id, CHLOE, "approve")
    request_id = request.id

    def execute_as(executor):
        return _in_new_session(
            ledger,
            lambda svc: svc["execution"].execute(request_id, executor).transaction_hash,
        )

    hashes = []
    state_errors = 0
    with ThreadPoolExecutor(max_workers=6) as executor:
        futures = [executor.submit(execute_as, member) for member in (ANA, BEN, CHLOE) * 2]
        for future in as_completed(futures):
            try:
                hashes.append(future.result())
            except StateError:
                state_errors += 1

    assert len(hashes) == 1, f"Expected exactly one successful execution, got {len(hashes)}"
    assert state_errors == 5
    assert len(ledger.payments) == 1

    stored = db_session.get(WithdrawalRequest, request_id, populate_existing=True)
    assert stored.status == WithdrawalStatus.EXECUTED
    assert stored.transaction_hash == hashes[0]

    journal = db_session.execute(select(VaultTransaction)).scalars().all()
    assert len(journal) == 1


def test_concurrent_votes_are_not_lost(db_session: Session, services, vault, ledger):
    """
    Scenario:
    - ana requested (auto-approves); ben and chloe approve concurrently
    - Expected: both approvals recorded and the request ends APPROVED
    """
    request = services["withdrawals"].create_request(vault.id, "10", RECIPIENT, ANA)
    request_id = request.id

    def approve_as(voter):
        return _in_new_session(
            ledger,
            lambda svc: svc["voting"].vote(request_id, voter, "approve").status,
        )

    with ThreadPoolExecutor(max_workers=2) as executor:
        statuses = [future.result() for future in [executor.submit(approve_as, m) for m in (BEN, CHLOE)]]

    assert WithdrawalStatus.APPROVED in statuses

    stored = db_session.get(WithdrawalRequest, request_id, populate_existing=True)
    assert stored.status == WithdrawalStatus.APPROVED
    assert stored.approvals == {ANA, BEN, CHLOE}
    assert stored.rejections == frozenset()


@pytest.mark.parametrize("veto_voter", [BEN, CHLOE])
def test_concurrent_approve_and_reject_ends_rejected(db_session: Session, services, vault, ledger, veto_voter):
    """Whatever the interleaving, a single rejection wins"""
    request = services["withdrawals"].create_request(vault.id, "10", RECIPIENT, ANA)
    request_id = request.id
    approver = CHLOE if veto_voter == BEN else BEN

    def vote_as(voter, decision):
        def action(svc):
            try:
                return svc["voting"].vote(request_id, voter, decision).status
            except StateError:
                # Lost to the veto: request was already rejected
                return None
        return _in_new_session(ledger, action)

    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [
            executor.submit(vote_as, veto_voter, "reject"),
            executor.submit(vote_as, approver, "approve"),
        ]
        for future in futures:
            future.result()

    stored = db_session.get(WithdrawalRequest, request_id, populate_existing=True)
    assert stored.status == WithdrawalStatus.REJECTED
    assert veto_voter in stored.rejections

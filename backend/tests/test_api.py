"""
API tests - envelopes, status codes and the full withdrawal flow over HTTP
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from friendvault.services.exceptions import LedgerError
from tests.helpers import ANA, BEN, CHLOE, MALLORY, RECIPIENT

API = "/api/v1"


def _create_vault(client, members=(BEN, CHLOE)):
    response = client.post(
        f"{API}/vaults",
        json={
            "name": "Trip to Lisbon",
            "description": "Summer trip",
            "creator_identity": ANA,
            "member_identities": list(members),
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _create_request(client, vault_id, amount="10", requested_by=ANA):
    return client.post(
        f"{API}/withdrawal-requests",
        json={
            "vault_id": vault_id,
            "amount": amount,
            "recipient": RECIPIENT,
            "requested_by": requested_by,
        },
    )


def _vote(client, request_id, voter, decision):
    return client.post(
        f"{API}/withdrawal-requests/{request_id}/votes",
        json={"voter_identity": voter, "decision": decision},
    )


def test_create_vault_returns_envelope(client):
    response = client.post(
        f"{API}/vaults",
        json={
            "name": "Trip to Lisbon",
            "creatorIdentity": ANA,
            "memberIdentities": [BEN, "  CHLOE@example.com "],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Vault created"
    vault = body["data"]
    assert vault["members"] == [ANA, BEN, CHLOE]
    assert vault["member_count"] == 3
    assert vault["created_by"] == ANA
    assert vault["is_creator"] is True
    assert vault["custodial_address"].startswith("G")
    assert "secret" not in response.text.lower()


def test_create_vault_with_unknown_member_is_400(client):
    response = client.post(
        f"{API}/vaults",
        json={"name": "Trip", "creator_identity": ANA, "member_identities": ["ghost@example.com"]},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"]["invalid_members"] == ["ghost@example.com"]
    assert body["trace_id"] == response.headers["X-Trace-ID"]


def test_malformed_body_is_422(client):
    response = client.post(f"{API}/vaults", json={"name": "Trip"})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"


def test_list_and_get_vault(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "42.5")

    listed = client.get(f"{API}/vaults", params={"member": BEN}).json()["data"]
    assert [v["id"] for v in listed] == [vault["id"]]
    assert listed[0]["balance"] == "42.5"
    assert listed[0]["is_creator"] is False

    assert client.get(f"{API}/vaults", params={"member": MALLORY}).json()["data"] == []

    details = client.get(f"{API}/vaults/{vault['id']}", params={"requester": CHLOE})
    assert details.status_code == 200
    assert details.json()["data"]["withdrawal_requests"] == []


def test_vault_details_for_non_member_is_403(client):
    vault = _create_vault(client)

    response = client.get(f"{API}/vaults/{vault['id']}", params={"requester": MALLORY})

    assert response.status_code == 403
    assert response.json()["error"] == "AUTHORIZATION_ERROR"


def test_unknown_vault_is_404(client):
    response = client.get(f"{API}/vaults/{uuid4()}", params={"requester": ANA})

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_full_withdrawal_flow(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")

    created = _create_request(client, vault["id"], amount="40")
    assert created.status_code == 201
    request = created.json()["data"]
    assert request["status"] == "PENDING"
    assert request["approvals"] == [ANA]
    assert request["required_approvals"] == 3
    assert request["amount"] == "40"

    first = _vote(client, request["id"], BEN, "approve").json()["data"]
    assert first["status"] == "PENDING"

    second = _vote(client, request["id"], CHLOE, "APPROVE").json()["data"]
    assert second["status"] == "APPROVED"
    assert second["approvals"] == [ANA, BEN, CHLOE]

    executed = client.post(
        f"{API}/withdrawal-requests/{request['id']}/execute",
        json={"executorIdentity": BEN},
    )
    assert executed.status_code == 200, executed.text
    data = executed.json()["data"]
    assert data["transaction_hash"] == ledger.payments[0]["hash"]
    assert data["request"]["status"] == "EXECUTED"
    assert data["request"]["executed_by"] == BEN
    assert ledger.balances[vault["custodial_address"]] == Decimal("60")

    again = client.post(
        f"{API}/withdrawal-requests/{request['id']}/execute",
        json={"executor_identity": CHLOE},
    )
    assert again.status_code == 409
    assert again.json()["error"] == "STATE_ERROR"
    assert len(ledger.payments) == 1

    transactions = client.get(
        f"{API}/vaults/{vault['id']}/transactions", params={"requester": ANA}
    ).json()["data"]
    assert len(transactions) == 1
    assert transactions[0]["type"] == "WITHDRAWAL"
    assert transactions[0]["request_id"] == request["id"]


def test_veto_over_http(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    request = _create_request(client, vault["id"]).json()["data"]

    rejected = _vote(client, request["id"], CHLOE, "reject").json()["data"]
    assert rejected["status"] == "REJECTED"
    assert rejected["rejections"] == [CHLOE]

    late = _vote(client, request["id"], BEN, "approve")
    assert late.status_code == 409
    assert late.json()["error"] == "STATE_ERROR"


def test_duplicate_vote_is_409(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    request = _create_request(client, vault["id"]).json()["data"]

    response = _vote(client, request["id"], ANA, "approve")

    assert response.status_code == 409
    assert response.json()["details"]["voter"] == ANA


def test_invalid_decision_is_400(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    request = _create_request(client, vault["id"]).json()["data"]

    response = _vote(client, request["id"], BEN, "maybe")

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.parametrize("amount", ["0", "-5", "1.12345678"])
def test_bad_withdrawal_amount_is_400(client, ledger, amount):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")

    response = _create_request(client, vault["id"], amount=amount)

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_reserve_breach_is_409(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "10")

    response = _create_request(client, vault["id"], amount="9.5")

    assert response.status_code == 409
    assert response.json()["error"] == "INSUFFICIENT_FUNDS"

    listed = client.get(
        f"{API}/vaults/{vault['id']}/withdrawal-requests", params={"requester": ANA}
    ).json()["data"]
    assert listed == []


def test_token_amount_above_ledger_range_is_400(client):
    vault = _create_vault(client)

    response = client.post(
        f"{API}/withdrawal-requests",
        json={
            "vault_id": vault["id"],
            "amount": "1e30",
            "recipient": RECIPIENT,
            "requested_by": ANA,
            "asset_ref": "CTOKEN",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"

    listed = client.get(
        f"{API}/vaults/{vault['id']}/withdrawal-requests", params={"requester": ANA}
    ).json()["data"]
    assert listed == []


def test_ledger_failure_on_execute_is_502(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    request = _create_request(client, vault["id"]).json()["data"]
    _vote(client, request["id"], BEN, "approve")
    _vote(client, request["id"], CHLOE, "approve")
    ledger.fail_next_payment = LedgerError("tx_failed")

    response = client.post(
        f"{API}/withdrawal-requests/{request['id']}/execute",
        json={"executor_identity": ANA},
    )

    assert response.status_code == 502
    assert response.json()["error"] == "LEDGER_ERROR"

    current = client.get(
        f"{API}/withdrawal-requests/{request['id']}", params={"requester": ANA}
    ).json()["data"]
    assert current["status"] == "APPROVED"


def test_get_request_for_non_member_is_403(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    request = _create_request(client, vault["id"]).json()["data"]

    response = client.get(f"{API}/withdrawal-requests/{request['id']}", params={"requester": MALLORY})

    assert response.status_code == 403


def test_list_vault_requests_newest_first(client, ledger):
    vault = _create_vault(client)
    ledger.fund(vault["custodial_address"], "100")
    first = _create_request(client, vault["id"], amount="1").json()["data"]
    second = _create_request(client, vault["id"], amount="2").json()["data"]

    listed = client.get(
        f"{API}/vaults/{vault['id']}/withdrawal-requests", params={"requester": BEN}
    ).json()["data"]

    assert [r["id"] for r in listed] == [second["id"], first["id"]]


def test_deposit_endpoint(client, ledger):
    vault = _create_vault(client)
    source_secret = ledger.register_account("50")

    response = client.post(
        f"{API}/vaults/{vault['id']}/deposits",
        json={"depositor_identity": BEN, "source_secret": source_secret, "amount": "20"},
    )

    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["type"] == "DEPOSIT"
    assert data["sender"] == BEN
    assert data["recipient"] == vault["custodial_address"]
    assert data["amount"] == "20"
    assert source_secret not in response.text
    assert ledger.balances[vault["custodial_address"]] == Decimal("20")


def test_identity_exists(client):
    assert client.get(f"{API}/identities/{ANA}/exists").json()["data"] == {"exists": True}
    assert client.get(f"{API}/identities/{MALLORY}/exists").json()["data"] == {"exists": False}
    assert client.get(f"{API}/identities/nobody@example.com/exists").json()["data"] == {"exists": False}


def test_trace_id_is_propagated(client):
    response = client.get(f"{API}/vaults", params={"member": ANA}, headers={"X-Trace-ID": "trace-123"})

    assert response.headers["X-Trace-ID"] == "trace-123"


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"

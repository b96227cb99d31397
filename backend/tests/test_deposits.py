"""
Deposit tests - member funds reach the vault and are journaled
"""

import pytest
from decimal import Decimal
from sqlalchemy import select

from friendvault.core.vaults.models import VaultTransaction, VaultTransactionType
from friendvault.services.exceptions import AuthorizationError, LedgerError, ValidationError
from tests.helpers import BEN, CHLOE, MALLORY


def test_deposit_moves_funds_and_journals(services, vault, ledger, db_session):
    source_secret = ledger.register_account("50")

    transaction = services["deposits"].deposit(vault.id, BEN, source_secret, "12.5")

    assert ledger.balances[vault.custodial_address] == Decimal("112.5")
    assert transaction.type == VaultTransactionType.DEPOSIT
    assert transaction.sender == BEN
    assert transaction.recipient == vault.custodial_address
    assert transaction.request_id is None
    assert transaction.transaction_hash == ledger.payments[0]["hash"]

    journal = services["registry"].get_vault_transactions(vault.id, CHLOE)
    assert [t.id for t in journal] == [transaction.id]


def test_token_deposit_uses_token_transfer(services, vault, ledger):
    source_secret = ledger.register_account("5")

    transaction = services["deposits"].deposit(vault.id, BEN, source_secret, "3", asset_ref="CTOKEN")

    assert ledger.payments[0]["kind"] == "token"
    assert transaction.asset_ref == "CTOKEN"


def test_deposit_requires_membership(services, vault, ledger):
    source_secret = ledger.register_account("50")

    with pytest.raises(AuthorizationError):
        services["deposits"].deposit(vault.id, MALLORY, source_secret, "10")
    assert ledger.payments == []


def test_deposit_requires_secret(services, vault):
    with pytest.raises(ValidationError):
        services["deposits"].deposit(vault.id, BEN, "", "10")


def test_failed_deposit_records_nothing(services, vault, ledger, db_session):
    source_secret = ledger.register_account("50")
    ledger.fail_next_payment = LedgerError("op_underfunded")

    with pytest.raises(LedgerError):
        services["deposits"].deposit(vault.id, BEN, source_secret, "10")

    assert db_session.execute(select(VaultTransaction)).scalars().all() == []
    assert ledger.balances[vault.custodial_address] == Decimal("100")

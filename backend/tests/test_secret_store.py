"""
Custodial secret store tests - encryption at rest and audited access
"""

import pytest
from uuid import uuid4
from sqlalchemy import select

from friendvault.core.security.models import SecretAccessLog, VaultSecret
from friendvault.infrastructure.settings import get_settings
from friendvault.services.exceptions import PersistenceError
from friendvault.services.secret_store import SecretStore, derive_fernet_key
from tests.helpers import ANA, BEN


def test_derived_key_is_stable_fernet_key():
    key = derive_fernet_key("some passphrase")
    assert key == derive_fernet_key("some passphrase")
    assert key != derive_fernet_key("another passphrase")
    assert len(key) == 44


def test_open_returns_custodial_secret(services, vault, ledger):
    with services["secret_store"].open(vault.id, actor=ANA, purpose="test") as secret:
        assert ledger.secrets[secret] == vault.custodial_address


def test_secret_is_encrypted_at_rest(services, vault, ledger, db_session):
    stored = db_session.execute(select(VaultSecret)).scalar_one()
    plaintext = next(s for s, address in ledger.secrets.items() if address == vault.custodial_address)

    assert stored.vault_id == vault.id
    assert plaintext not in stored.encrypted_secret


def test_every_access_is_logged(services, vault, db_session):
    reference = uuid4()
    with services["secret_store"].open(vault.id, actor=BEN, purpose="audit_check", reference_id=reference):
        pass
    db_session.commit()

    log = db_session.execute(select(SecretAccessLog)).scalar_one()
    assert log.vault_id == vault.id
    assert log.actor == BEN
    assert log.purpose == "audit_check"
    assert log.reference_id == reference


def test_wrong_key_cannot_open(services, vault, db_session):
    other_settings = get_settings().model_copy(update={"CUSTODIAL_ENCRYPTION_KEY": "a-different-key"})
    store = SecretStore(db_session, settings=other_settings)

    with pytest.raises(PersistenceError):
        with store.open(vault.id, actor=ANA, purpose="test"):
            pass


def test_missing_secret(services, users):
    with pytest.raises(PersistenceError):
        with services["secret_store"].open(uuid4(), actor=ANA, purpose="test"):
            pass

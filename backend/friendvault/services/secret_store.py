"""
Custodial secret store - encrypted at rest, opened only through an audited scope
"""

import base64
import hashlib
import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.security.models import SecretAccessLog, VaultSecret
from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def derive_fernet_key(key_material: str) -> bytes:
    """Derive a Fernet key (urlsafe base64 of 32 bytes) from arbitrary key material"""
    digest = hashlib.sha256(key_material.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SecretStore:
    """
    Stores and releases vault custodial secrets.

    store() only stages rows on the session (NO COMMIT - caller must commit).
    open() stages a SecretAccessLog row for every access; the caller's commit
    makes it durable.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        settings = settings or get_settings()
        self._fernet = Fernet(derive_fernet_key(settings.CUSTODIAL_ENCRYPTION_KEY))

    def store(self, vault_id: UUID, secret: str) -> None:
        token = self._fernet.encrypt(secret.encode("utf-8")).decode("ascii")
        self.db.add(VaultSecret(vault_id=vault_id, encrypted_secret=token))

    @contextmanager
    def open(
        self,
        vault_id: UUID,
        actor: str,
        purpose: str,
        reference_id: Optional[UUID] = None,
    ) -> Iterator[str]:
        """
        Yield the plaintext custodial secret of a vault.

        Raises PersistenceError if the secret is missing or cannot be decrypted.
        """
        try:
            token = self.db.execute(
                select(VaultSecret.encrypted_secret).where(VaultSecret.vault_id == vault_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load custodial secret: {type(e).__name__}") from e

        if token is None:
            raise PersistenceError(f"No custodial secret stored for vault {vault_id}")

        try:
            secret = self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            logger.error(
                "Custodial secret could not be decrypted (wrong CUSTODIAL_ENCRYPTION_KEY?)",
                extra={"vault_id": str(vault_id)},
            )
            raise PersistenceError(f"Custodial secret for vault {vault_id} cannot be decrypted") from e

        self.db.add(SecretAccessLog(vault_id=vault_id, actor=actor, purpose=purpose, reference_id=reference_id))
        logger.info(
            "Custodial secret opened",
            extra={
                "vault_id": str(vault_id),
                "actor": actor,
                "purpose": purpose,
                "reference_id": str(reference_id) if reference_id else None,
            },
        )
        yield secret

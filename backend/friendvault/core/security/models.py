"""
Security models - custodial secret storage and its access trail
"""

from sqlalchemy import Column, String, ForeignKey, Text, Uuid
from friendvault.core.common.base_model import BaseModel


class VaultSecret(BaseModel):
    """
    VaultSecret model - encrypted custodial secret, one per vault

    Only SecretStore reads or writes this table.
    """

    __tablename__ = "vault_secrets"

    vault_id = Column(Uuid(as_uuid=True), ForeignKey("vaults.id", name="fk_vault_secrets_vault_id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    encrypted_secret = Column(Text, nullable=False)  # Fernet token


class SecretAccessLog(BaseModel):
    """SecretAccessLog model - one row per custodial secret access (append-only)"""

    __tablename__ = "secret_access_logs"

    vault_id = Column(Uuid(as_uuid=True), ForeignKey("vaults.id", name="fk_secret_access_logs_vault_id"), nullable=False, index=True)
    actor = Column(String(255), nullable=False, index=True)
    purpose = Column(String(100), nullable=False)
    reference_id = Column(Uuid(as_uuid=True), nullable=True)  # e.g. withdrawal request id

"""
Identity checks - is a claimed member identity known to the platform?
"""

from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friendvault.core.users.models import User, UserStatus
from friendvault.services.exceptions import PersistenceError


def normalize_identity(identity: str) -> str:
    """Identities are e-mail addresses; compare them trimmed and case-folded"""
    return (identity or "").strip().lower()


class IdentityChecker(ABC):
    """Synchronous, authoritative-at-call-time identity lookup"""

    @abstractmethod
    def exists(self, identity: str) -> bool:
        """True if identity belongs to an active platform user"""


class DatabaseIdentityChecker(IdentityChecker):
    """IdentityChecker backed by the users table"""

    def __init__(self, db: Session):
        self.db = db

    def exists(self, identity: str) -> bool:
        identity = normalize_identity(identity)
        if not identity:
            return False
        try:
            user_id = self.db.execute(
                select(User.id).where(User.email == identity, User.status == UserStatus.ACTIVE)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Identity lookup failed: {type(e).__name__}") from e
        return user_id is not None

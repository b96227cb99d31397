"""
User model - platform identity registry
"""

from sqlalchemy import Column, String, Enum as SQLEnum
import enum
from friendvault.core.common.base_model import BaseModel


class UserStatus(str, enum.Enum):
    """User status enum"""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class User(BaseModel):
    """
    User model

    Identities are issued by the platform's auth layer; this table is only read
    here (membership checks). Only ACTIVE users count as existing identities.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    status = Column(SQLEnum(UserStatus, name="user_status", create_constraint=True), nullable=False, default=UserStatus.ACTIVE)
    display_name = Column(String(255), nullable=True)
    stellar_address = Column(String(64), nullable=True)  # Member's own wallet, if linked

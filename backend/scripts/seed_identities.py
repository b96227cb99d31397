"""
Seed script to register platform identities (idempotent)

Usage:
    python scripts/seed_identities.py ana@example.com ben@example.com
"""

import sys
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Import all models first to ensure relationships are resolved
import friendvault.models  # noqa: F401

from sqlalchemy.orm import Session
from friendvault.infrastructure.database import SessionLocal
from friendvault.core.users.models import User, UserStatus
from friendvault.services.identity import normalize_identity

DEFAULT_IDENTITIES = ["ana@example.com", "ben@example.com", "chloe@example.com"]


def seed_identities(db: Session, identities):
    """Create ACTIVE users for the given identities if they don't exist"""
    print("Seeding identities...")

    for raw in identities:
        email = normalize_identity(raw)
        if not email:
            continue
        user = db.query(User).filter(User.email == email).first()
        if user:
            print(f"  ✓ {email} already exists ({user.status.value})")
            continue
        db.add(User(email=email, status=UserStatus.ACTIVE))
        print(f"  ✓ Created {email}")

    db.commit()
    print("Identities seeding complete.")


if __name__ == "__main__":
    with SessionLocal() as db:
        seed_identities(db, sys.argv[1:] or DEFAULT_IDENTITIES)

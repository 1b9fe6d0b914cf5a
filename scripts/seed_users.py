"""
Nutrition Portal - Database Seed Script

Creates the default accounts for development:
  admin / admin123  (admin)
  deo   / deo123    (data-entry officer, with sample details)
  vo    / vo123     (verification officer, with sample details)

Existing accounts are left untouched, so the script can be re-run.

Usage:
    python scripts/seed_users.py

Exit status is 0 on success and 1 if the database could not be seeded.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from nutrition_portal.config import settings
from nutrition_portal.auth.database import get_engine, init_db
from nutrition_portal.auth.models import ActiveFlag, Role, User, detail_model_for, utcnow
from nutrition_portal.auth.password import hash_password


DEFAULT_USERS = [
    ("admin", "admin123", Role.ADMIN, None),
    ("deo", "deo123", Role.DEO, {
        "full_name": "Default Data Entry Officer",
        "nic_number": "199012345678",
        "tel_number": "0771234567",
        "address": "Zonal Education Office",
    }),
    ("vo", "vo123", Role.VO, {
        "full_name": "Default Verification Officer",
        "nic_number": "198512345678",
        "tel_number": "0777654321",
        "address": "Zonal Education Office",
    }),
]


def seed_users(engine) -> list:
    """
    Create any missing default accounts (and their officer details).

    Returns:
        List of (username, created) pairs
    """
    init_db(engine)
    results = []

    with Session(engine) as session:
        for username, password, role, details in DEFAULT_USERS:
            existing = session.exec(select(User).where(User.username == username)).first()
            if existing:
                print(f"User {username} already exists, skipping.")
                results.append((username, False))
                continue

            now = utcnow()
            user = User(
                username=username,
                password_hash=hash_password(password),
                role=role,
                is_active=ActiveFlag.YES,
                created_at=now,
                updated_at=now,
            )
            session.add(user)
            session.flush()

            if details:
                model = detail_model_for(role)
                session.add(model(user_id=user.id, created_at=now, updated_at=now, **details))

            print(f"Created user: {username} ({role.value})")
            results.append((username, True))

        session.commit()

    return results


def main() -> int:
    print("=" * 50)
    print("Nutrition Portal - User Seed Script")
    print("=" * 50)

    try:
        engine = get_engine(settings.DATABASE_URL)
        seed_users(engine)
    except SQLAlchemyError as e:
        print(f"Error seeding users: {e}")
        return 1

    print()
    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

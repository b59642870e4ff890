"""
Create tables (when not managed by alembic yet) and seed the admin account.

Usage:
  python scripts/init_db.py            # create_all + seed
  python scripts/init_db.py --seed-only
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from sqlalchemy import select

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.tenderguru import create_app  # noqa: E402
from app.tenderguru.constants import ROLE_ADMIN  # noqa: E402
from app.tenderguru.db import create_schema, session_scope  # noqa: E402
from app.tenderguru.models import User  # noqa: E402

logger = logging.getLogger("init_db")


def seed_admin(app) -> bool:
    """
    Seed the admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password. Returns True when a user was created.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@tenderguru.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me-now"
    admin_employee_id = (os.environ.get("ADMIN_EMPLOYEE_ID") or "ADMIN-0001").strip()

    with session_scope(app) as s:
        existing = s.scalar(select(User).where(User.email == admin_email))
        if existing:
            if existing.role != ROLE_ADMIN:
                existing.role = ROLE_ADMIN
                logger.info("Promoted existing user %s to admin", admin_email)
            return False
        u = User(
            name="Administrator",
            email=admin_email,
            employee_id=admin_employee_id,
            role=ROLE_ADMIN,
            permissions=[],
            is_active=True,
        )
        u.set_password(admin_password)
        s.add(u)
    logger.info("Seeded admin user %s", admin_email)
    return True


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed-only", action="store_true", help="skip create_all (schema managed by alembic)")
    args = parser.parse_args(argv)

    app = create_app()
    if not args.seed_only:
        create_schema(app)
        logger.info("Schema created")
    seed_admin(app)


if __name__ == "__main__":
    main()

#!/usr/bin/env python
"""Idempotent bootstrap of the first admin account.

Usage:
    python backend/scripts/seed_admin.py             # create if missing
    python backend/scripts/seed_admin.py --dry-run   # run logic then rollback

Env: SEED_ADMIN_EMAIL (default admin@example.com), SEED_ADMIN_PASSWORD, SEED_ADMIN_NAME.
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select, func, text

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from service_center import create_app, get_db  # noqa: E402
from service_center.models.authz import Base, User  # noqa: E402
from service_center.constants.roles import ROLE_ADMIN  # noqa: E402


def ensure_admin(session, email: str, password: str, name: str = 'Admin'):
    """Return (user, created). An existing account is promoted and approved, its password kept."""
    email = email.strip().lower()
    user = session.execute(select(User).where(func.lower(User.email)==email)).scalar_one_or_none()
    if user:
        user.role = ROLE_ADMIN
        user.approved = True
        return user, False
    user = User(name=name, email=email, password_hash='', role=ROLE_ADMIN, approved=True)
    user.set_password(password)
    session.add(user)
    session.flush()
    return user, True


def main():
    p = argparse.ArgumentParser(description='Create or promote the bootstrap admin user')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    args = p.parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM users LIMIT 1'))
        except Exception:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
        user, created = ensure_admin(session, email, os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'),
                                     os.getenv('SEED_ADMIN_NAME', 'Admin'))
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) admin {email} would be {'created' if created else 'promoted'}")
        else:
            session.commit()
            print(f"[DONE] admin {email} {'created with temporary password' if created else 'promoted'}")


if __name__ == '__main__':
    main()

#!/usr/bin/env python
"""Repair stored user roles.

Every role is passed through normalize_role (e.g. 'Administrator' -> admin,
'manajer' -> manager, anything unknown -> user).

Usage:
    python backend/scripts/fix_roles.py            # apply
    python backend/scripts/fix_roles.py --dry-run  # report only, rollback
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from service_center import create_app, get_db  # noqa: E402
from service_center.models.authz import User  # noqa: E402
from service_center.constants.roles import normalize_role  # noqa: E402


def fix_roles(session):
    """Return a list of (email, old_role, new_role) for every changed user."""
    changes = []
    for user in session.execute(select(User).order_by(User.id)).scalars().all():
        new_role = normalize_role(user.role)
        if new_role == user.role:
            continue
        changes.append((user.email, user.role, new_role))
        user.role = new_role
    return changes


def parse_args():
    p = argparse.ArgumentParser(description='Normalize stored user roles')
    p.add_argument('--dry-run', action='store_true', help='Rollback after reporting (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        changes = fix_roles(session)
        for email, old, new in changes:
            print(f"{email}: {old!r} -> {new}")
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) {len(changes)} user(s) would change")
        else:
            session.commit()
            print(f"[DONE] {len(changes)} user(s) updated")


if __name__ == '__main__':
    main()

#!/usr/bin/env python
"""Rewrite legacy status spellings ('process', 'ready', 'done', 'cancel') to canonical values.

Applies to service_requests.status and every status_log_entries row. The requests' version
is bumped so clients holding an old ETag re-read.

Usage:
    python backend/scripts/migrate_legacy_statuses.py [--dry-run]
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from service_center import create_app, get_db  # noqa: E402
from service_center.constants.statuses import LEGACY_ALIASES, normalize_status  # noqa: E402
from service_center.models.service_request import ServiceRequest, StatusLogEntry  # noqa: E402


def migrate_statuses(session):
    """Return (requests_changed, log_entries_changed)."""
    legacy = list(LEGACY_ALIASES)
    requests = session.execute(
        select(ServiceRequest).where(ServiceRequest.status.in_(legacy))
    ).scalars().all()
    for sr in requests:
        sr.status = normalize_status(sr.status)
    entries = session.execute(
        select(StatusLogEntry).where(StatusLogEntry.status.in_(legacy))
    ).scalars().all()
    for e in entries:
        e.status = normalize_status(e.status)
    session.flush()
    return len(requests), len(entries)


def main():
    p = argparse.ArgumentParser(description='Canonicalize legacy status values')
    p.add_argument('--dry-run', action='store_true', help='Rollback after counting (no commit)')
    args = p.parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        n_req, n_log = migrate_statuses(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) requests: {n_req}, log entries: {n_log}")
        else:
            session.commit()
            print(f"[DONE] requests: {n_req}, log entries: {n_log}")


if __name__ == '__main__':
    main()

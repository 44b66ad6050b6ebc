"""Anonymous read access to a single service request through an unguessable token."""
from __future__ import annotations
import secrets
from datetime import timedelta
from typing import Optional
from flask import abort
from sqlalchemy import select
from service_center.models.authz import utcnow
from service_center.models.public_view import PublicView
from service_center.models.service_request import ServiceRequest
from service_center.constants.statuses import normalize_status, status_display

TOKEN_BYTES = 24
RECENT_STATUS_ENTRIES = 5


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def issue_public_view(session, sr: ServiceRequest, ttl_days: int = 0) -> PublicView:
    """Revoke any active token of sr and attach a fresh one."""
    now = utcnow()
    for pv in sr.public_views:
        if pv.revoked_at is None:
            pv.revoked_at = now
    pv = PublicView(
        token=generate_token(),
        created_at=now,
        expires_at=now + timedelta(days=ttl_days) if ttl_days and ttl_days > 0 else None,
    )
    sr.public_views.append(pv)
    session.flush()
    return pv


def active_public_view(sr: ServiceRequest) -> Optional[PublicView]:
    for pv in reversed(sr.public_views):
        if pv.is_active():
            return pv
    return None


def resolve_token(session, token: str) -> ServiceRequest:
    """Return the request a token grants access to; 404 for unknown, revoked or expired tokens."""
    pv = session.execute(select(PublicView).where(PublicView.token == token)).scalar_one_or_none()
    if not pv or not pv.is_active():
        abort(404, description='Link not found or expired')
    return pv.service_request


def public_payload(sr: ServiceRequest) -> dict:
    """Customer-safe subset: no address, phone, email or internal notes."""
    status = normalize_status(sr.status)
    recent = sr.status_log[-RECENT_STATUS_ENTRIES:]
    return {
        'track_number': sr.track_number,
        'nama': sr.nama,
        'merk': sr.merk,
        'tipe': sr.tipe,
        'status': status,
        'status_display': status_display(status),
        'status_log': [
            {
                'status': normalize_status(e.status),
                'label': status_display(e.status)['label'],
                'note': e.note,
                'updated_at': e.updated_at.isoformat() if e.updated_at else None,
            } for e in reversed(recent)
        ],
        'estimasi_items': [{'item': i.item, 'harga': i.harga, 'qty': i.qty, 'total': i.total} for i in sr.estimate_items],
        'subtotal': sr.subtotal,
        'dp': sr.dp,
        'total_biaya': sr.total_biaya,
        'dp_payments': [
            {'id': p.id, 'amount': p.amount, 'status': p.status, 'created_at': p.created_at.isoformat() if p.created_at else None}
            for p in sr.dp_payments
        ],
        'technicians_count': len(sr.assigned_technicians or []),
        'customer_log': [
            {
                'id': c.id,
                'comment': c.comment,
                'media': [{'url': m.get('url'), 'type': m.get('type')} for m in (c.media or [])],
                'author': c.author,
                'created_at': c.created_at.isoformat() if c.created_at else None,
            } for c in reversed(sr.customer_log)
        ],
        'updated_at': sr.updated_at.isoformat() if sr.updated_at else None,
    }

__all__ = ['generate_token', 'issue_public_view', 'active_public_view', 'resolve_token', 'public_payload']

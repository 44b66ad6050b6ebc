"""Service request intake, lookup and JSON shapes shared by the internal, public and receipt blueprints."""
from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from flask import abort
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from service_center import get_db
from service_center.models.branch import Branch
from service_center.models.service_request import ServiceRequest
from service_center.models.dp_payment import DpPayment
from service_center.models.media_asset import MediaAsset
from service_center.constants.statuses import STATUS_PENDING, normalize_status, status_display
from service_center.services.policy import assert_branch_access
from service_center.services.billing import lock_service_request, approved_dp_sum
from service_center.services.track_number import next_track_number, MAX_ATTEMPTS
from service_center.services.public_views import issue_public_view, active_public_view
from service_center.utils.listing import record_etag, assert_if_match, iso_z
from service_center.utils.validation import ValidationFailed, require_text, string_list, normalize_phone_number

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'^(08|628)\d{8,15}$')

# field -> label used in "<label> wajib diisi."
REQUIRED_TEXT_FIELDS = (
    ('nama', 'Nama'),
    ('alamat', 'Alamat'),
    ('no_hp', 'Nomor HP'),
    ('email', 'Email'),
    ('merk', 'Merk'),
    ('tipe', 'Tipe'),
    ('serial_number', 'Serial number'),
    ('keluhan', 'Keluhan'),
    ('spesifikasi_teknis', 'Spesifikasi teknis'),
    ('prioritas_service', 'Prioritas service'),
    ('penerima_service', 'Penerima service'),
)
REQUIRED_LIST_FIELDS = (
    ('jenis_perangkat', 'Pilih minimal 1 jenis perangkat.'),
    ('accessories', 'Pilih minimal 1 accessories.'),
    ('kondisi', 'Pilih minimal 1 kondisi perangkat.'),
)
OPTIONAL_TEXT_FIELDS = ('keterangan_perangkat', 'keterangan_accessories', 'keterangan_garansi', 'keterangan_kondisi')
EDITABLE_FIELDS = tuple(f for f, _ in REQUIRED_TEXT_FIELDS) + tuple(f for f, _ in REQUIRED_LIST_FIELDS) + OPTIONAL_TEXT_FIELDS + ('garansi',)


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('ya', 'yes', 'true', '1')
    return bool(value)


def validate_intake_fields(data: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], List[str]]:
    """Collect every problem with an intake (or, with partial=True, an edit) payload.

    Returns the cleaned values and the list of messages; nothing is raised so callers can
    combine these with their own checks.
    """
    errors: List[str] = []
    clean: Dict[str, Any] = {}
    for key, label in REQUIRED_TEXT_FIELDS:
        if partial and key not in data:
            continue
        clean[key] = require_text(data, key, label, errors)
    if clean.get('no_hp'):
        phone = normalize_phone_number(clean['no_hp'])
        if not PHONE_PATTERN.match(phone):
            errors.append('Format Nomor HP tidak valid. Gunakan format 08... atau 62...')
        clean['no_hp'] = phone
    if clean.get('email') and '@' not in clean['email']:
        errors.append('Format email tidak valid.')
    for key, message in REQUIRED_LIST_FIELDS:
        if partial and key not in data:
            continue
        values = string_list(data.get(key))
        if not values:
            errors.append(message)
        clean[key] = values
    for key in OPTIONAL_TEXT_FIELDS:
        if key in data:
            value = data.get(key)
            clean[key] = value.strip() if isinstance(value, str) and value.strip() else None
    if 'garansi' in data or not partial:
        clean['garansi'] = _parse_flag(data.get('garansi'))
    return clean, errors


def resolve_branch(session, data: Dict[str, Any], default_branch_id: Optional[int], errors: List[str]) -> Optional[int]:
    raw = data.get('branch_id', default_branch_id)
    if raw in (None, ''):
        errors.append('Cabang wajib diisi.')
        return None
    try:
        branch_id = int(raw)
    except (TypeError, ValueError):
        errors.append('Cabang tidak dikenal.')
        return None
    if not session.get(Branch, branch_id):
        errors.append('Cabang tidak dikenal.')
        return None
    return branch_id


def create_service_request(session, clean: Dict[str, Any], branch_id: int, created_by: Optional[int],
                           prefix: str = 'WO', ttl_days: int = 0) -> ServiceRequest:
    """Insert a pending request with a fresh track number and public token (caller commits).

    A track number collision (two writers passing the counter at once) rolls back and retries.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            sr = ServiceRequest(
                track_number=next_track_number(session, prefix),
                branch_id=branch_id,
                status=STATUS_PENDING,
                created_by=created_by,
                assigned_technicians=[],
                **clean,
            )
            session.add(sr)
            session.flush()
            issue_public_view(session, sr, ttl_days)
            return sr
        except IntegrityError:
            session.rollback()
            logger.warning('track number collision, retrying (attempt %s/%s)', attempt, MAX_ATTEMPTS)
    abort(409, description='Could not allocate a track number; retry')


def raise_if_errors(errors: List[str]):
    if errors:
        raise ValidationFailed(errors)


def get_request_or_404(session, request_id: int) -> ServiceRequest:
    sr = session.execute(select(ServiceRequest).where(ServiceRequest.id==request_id)).scalar_one_or_none()
    if not sr:
        abort(404)
    assert_branch_access(sr.branch_id)
    return sr


def load_for_write(session, request_id: int, precondition: bool = True) -> ServiceRequest:
    """Lock the row, check branch scope and (unless deferred) the client's If-Match precondition."""
    sr = lock_service_request(session, request_id)
    if not sr:
        abort(404)
    assert_branch_access(sr.branch_id)
    if precondition:
        assert_if_match(record_etag(sr.id, sr.version))
    return sr


def etag_for(sr: ServiceRequest) -> str:
    return record_etag(sr.id, sr.version)


def with_etag(body: dict, sr: ServiceRequest, status: int = 200):
    return body, status, {'ETag': etag_for(sr)}


def status_log_json(e) -> dict:
    return {
        'id': e.id,
        'status': normalize_status(e.status),
        'label': status_display(e.status)['label'],
        'note': e.note,
        'updated_by': e.updated_by,
        'updated_at': iso_z(e.updated_at),
    }


def estimate_json(sr: ServiceRequest) -> dict:
    return {
        'id': sr.id,
        'estimasi_items': [{'item': i.item, 'harga': i.harga, 'qty': i.qty, 'total': i.total} for i in sr.estimate_items],
        'subtotal': sr.subtotal,
        'dp': sr.dp,
        'total_biaya': sr.total_biaya,
    }


def dp_summary(sr: ServiceRequest) -> dict:
    pending = [p for p in sr.dp_payments if p.status == DpPayment.STATUS_PENDING]
    return {
        'approved_amount': approved_dp_sum(sr.dp_payments),
        'pending_count': len(pending),
        'pending_amount': sum(p.amount for p in pending),
    }


def media_json(a: MediaAsset) -> dict:
    return {'id': a.id, 'field': a.field, 'url': a.url, 'public_id': a.public_id, 'type': a.resource_type,
            'created_by': a.created_by, 'created_at': iso_z(a.created_at)}


def sr_json(sr: ServiceRequest) -> dict:
    """Row shape used by list endpoints."""
    status = normalize_status(sr.status)
    return {
        'id': sr.id,
        'track_number': sr.track_number,
        'branch_id': sr.branch_id,
        'nama': sr.nama,
        'no_hp': sr.no_hp,
        'merk': sr.merk,
        'tipe': sr.tipe,
        'status': status,
        'status_display': status_display(status),
        'assigned_technicians': list(sr.assigned_technicians or []),
        'dp': sr.dp,
        'total_biaya': sr.total_biaya,
        'created_at': iso_z(sr.created_at),
        'updated_at': iso_z(sr.updated_at),
    }


def sr_detail_json(sr: ServiceRequest) -> dict:
    body = sr_json(sr)
    for key in EDITABLE_FIELDS:
        body[key] = getattr(sr, key)
    media: Dict[str, list] = {f: [] for f in MediaAsset.ALL_FIELDS}
    for a in sr.media_assets:
        media.setdefault(a.field, []).append(media_json(a))
    pv = active_public_view(sr)
    body.update({
        'status_log': [status_log_json(e) for e in sr.status_log],
        'estimasi_items': estimate_json(sr)['estimasi_items'],
        'subtotal': sr.subtotal,
        'dp_summary': dp_summary(sr),
        'media': media,
        'public_token': pv.token if pv else None,
        'created_by': sr.created_by,
        'version': sr.version,
    })
    return body


def snapshot(request_id: int) -> dict:
    """Audit pre_fetch: the fields whose before/after values are worth keeping."""
    sr = get_db().execute(select(ServiceRequest).where(ServiceRequest.id==request_id)).scalar_one_or_none()
    if not sr:
        return {}
    return {
        'status': normalize_status(sr.status),
        'assigned_technicians': list(sr.assigned_technicians or []),
        'dp': sr.dp,
        'total_biaya': sr.total_biaya,
        **{k: getattr(sr, k) for k in EDITABLE_FIELDS},
    }

__all__ = [
    'validate_intake_fields', 'resolve_branch', 'create_service_request', 'raise_if_errors', 'get_request_or_404',
    'load_for_write', 'etag_for', 'with_etag', 'sr_json', 'sr_detail_json', 'estimate_json', 'status_log_json',
    'dp_summary', 'media_json', 'snapshot', 'EDITABLE_FIELDS'
]

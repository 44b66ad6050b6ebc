"""Anonymous endpoints: customer intake, track lookup and the token-scoped public view."""
from __future__ import annotations
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from service_center import get_db
from service_center.decorators.audit import audit_log
from service_center.models.service_request import ServiceRequest
from service_center.services.billing import lock_service_request
from service_center.services.customer_log import customer_log_json, add_customer_log_entry
from service_center.services.public_views import resolve_token, public_payload, active_public_view
from service_center.services.service_requests import validate_intake_fields, resolve_branch, create_service_request, raise_if_errors
from service_center.services import dp_payments as dp
from service_center.utils.listing import compute_etag, iso_z, handle_conditional, make_cached_record_response
from service_center.utils.validation import read_payload, normalize_phone_number

public_bp = Blueprint('public', __name__)

CUSTOMER = 'customer'


def _locked_by_token(session, token: str) -> ServiceRequest:
    sr = resolve_token(session, token)
    return lock_service_request(session, sr.id)


@public_bp.post('/intake')
@audit_log('SR.CREATE.PUBLIC', entity='ServiceRequest', entity_id_key='id', meta_keys=['track_number', 'branch_id'], actor_email=CUSTOMER)
def public_intake():
    session = get_db()
    data = request.get_json(silent=True) or {}
    clean, errors = validate_intake_fields(data)
    branch_id = resolve_branch(session, data, None, errors)
    raise_if_errors(errors)
    sr = create_service_request(
        session, clean, branch_id, None,
        prefix=current_app.config['TRACK_NUMBER_PREFIX'], ttl_days=current_app.config['PUBLIC_VIEW_TTL_DAYS'],
    )
    session.commit()
    pv = active_public_view(sr)
    return {
        'id': sr.id,
        'track_number': sr.track_number,
        'branch_id': sr.branch_id,
        'status': sr.status,
        'public_token': pv.token if pv else None,
    }, 201


@public_bp.get('/lookup')
def lookup():
    """Find a request by track number, else the newest one for a phone number."""
    query = (request.args.get('query') or '').strip()
    if not query:
        abort(400, description='Query parameter is required')
    session = get_db()
    sr = session.execute(
        select(ServiceRequest).where(ServiceRequest.track_number==query.upper())
    ).scalar_one_or_none()
    if sr is None:
        phone = normalize_phone_number(query)
        if phone:
            sr = session.execute(
                select(ServiceRequest).where(ServiceRequest.no_hp==phone)
                .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).limit(1)
            ).scalar_one_or_none()
    pv = active_public_view(sr) if sr else None
    if not pv:
        abort(404, description='Data tidak ditemukan')
    return {'track_number': sr.track_number, 'public_token': pv.token}


@public_bp.route('/<token>', methods=['GET', 'HEAD'])
def public_view(token: str):
    session = get_db()
    sr = resolve_token(session, token)
    etag = compute_etag([sr.id], 1, 1, 0, f"public-v{sr.version}")
    cond = handle_conditional(etag, sr.updated_at)
    if cond:
        return cond
    return make_cached_record_response(public_payload(sr), etag, sr.updated_at)


@public_bp.post('/<token>/dp-payments')
@audit_log('DP.SUBMIT.PUBLIC', entity='DpPayment', entity_id_key='id', meta_keys=['service_request_id', 'amount'], actor_email=CUSTOMER)
def public_submit_dp(token: str):
    session = get_db()
    sr = _locked_by_token(session, token)
    key = request.headers.get('Idempotency-Key')
    existing = dp.find_by_idempotency_key(session, sr, key)
    if existing:
        return _public_dp_json(existing), 200
    fields, files = read_payload()
    payment = dp.submit_claim(session, sr, fields, files, CUSTOMER, current_app.config['DP_MIN_AMOUNT'], key)
    session.commit()
    return _public_dp_json(payment), 201


def _public_dp_json(p):
    return {'id': p.id, 'service_request_id': p.service_request_id, 'amount': p.amount, 'status': p.status,
            'created_at': iso_z(p.created_at)}


@public_bp.get('/<token>/customer-log')
def public_customer_log(token: str):
    session = get_db()
    sr = resolve_token(session, token)
    return {'data': [customer_log_json(c) for c in reversed(sr.customer_log)]}


@public_bp.post('/<token>/customer-log')
@audit_log('SR.CUSTOMERLOG.ADD.PUBLIC', entity='CustomerLogEntry', entity_id_key='id', actor_email=CUSTOMER)
def public_add_customer_log(token: str):
    session = get_db()
    sr = _locked_by_token(session, token)
    entry = add_customer_log_entry(session, sr, CUSTOMER)
    return customer_log_json(entry), 201

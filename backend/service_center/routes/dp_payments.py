from __future__ import annotations
from flask import Blueprint, request, current_app
from service_center import get_db
from service_center.decorators.auth import require_permissions
from service_center.decorators.audit import audit_log
from service_center.models.dp_payment import DpPayment
from service_center.services.policy import current_email
from service_center.services.media_host import get_media_host
from service_center.services.service_requests import get_request_or_404, load_for_write, etag_for
from service_center.services import dp_payments as dp
from service_center.utils.validation import read_payload
from service_center.utils.listing import assert_if_match

dp_bp = Blueprint('dp_payments', __name__)


def _decision_body(sr, payment):
    return dp.dp_json(payment) | {'dp': sr.dp, 'total_biaya': sr.total_biaya}


@dp_bp.get('/<int:request_id>/dp-payments')
@require_permissions('DP.READ')
def list_dp_payments(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    status = request.args.get('status')
    rows = [p for p in sr.dp_payments if not status or p.status == status]
    return {'data': [dp.dp_json(p) for p in rows], 'dp': sr.dp, 'total_biaya': sr.total_biaya, 'subtotal': sr.subtotal}


@dp_bp.post('/<int:request_id>/dp-payments')
@require_permissions('DP.SUBMIT')
@audit_log('DP.SUBMIT', entity='DpPayment', entity_id_key='id', meta_keys=['service_request_id', 'amount'])
def submit_dp_payment(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id, precondition=False)
    key = request.headers.get('Idempotency-Key')
    existing = dp.find_by_idempotency_key(session, sr, key)
    if existing:
        return dp.dp_json(existing), 200
    # a replay carries the pre-submit ETag, so the precondition applies to new claims only
    assert_if_match(etag_for(sr))
    fields, files = read_payload()
    payment = dp.submit_claim(session, sr, fields, files, current_email(), current_app.config['DP_MIN_AMOUNT'], key)
    session.commit()
    return dp.dp_json(payment), 201, {'ETag': etag_for(sr)}


def _decide(request_id: int, payment_id: int, target: str):
    session = get_db()
    sr = load_for_write(session, request_id)
    payment = dp.get_payment_or_404(sr, payment_id)
    dp.decide(session, sr, payment, target, current_email())
    session.commit()
    return _decision_body(sr, payment), 200, {'ETag': etag_for(sr)}


@dp_bp.post('/<int:request_id>/dp-payments/<int:payment_id>/approve')
@require_permissions('DP.APPROVE')
@audit_log('DP.APPROVE', entity='DpPayment', entity_id_key='id', meta_keys=['service_request_id', 'amount', 'dp', 'total_biaya'])
def approve_dp_payment(request_id: int, payment_id: int):
    return _decide(request_id, payment_id, DpPayment.STATUS_APPROVED)


@dp_bp.post('/<int:request_id>/dp-payments/<int:payment_id>/reject')
@require_permissions('DP.APPROVE')
@audit_log('DP.REJECT', entity='DpPayment', entity_id_key='id', meta_keys=['service_request_id', 'amount', 'dp', 'total_biaya'])
def reject_dp_payment(request_id: int, payment_id: int):
    return _decide(request_id, payment_id, DpPayment.STATUS_REJECTED)


@dp_bp.delete('/<int:request_id>/dp-payments/<int:payment_id>')
@require_permissions('DP.DELETE')
@audit_log('DP.DELETE', entity='DpPayment', entity_id_arg='payment_id', meta_keys=['amount', 'status', 'dp', 'total_biaya'])
def delete_dp_payment(request_id: int, payment_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    payment = dp.get_payment_or_404(sr, payment_id)
    body = dp.dp_json(payment)
    proof = dp.remove(session, sr, payment)
    session.commit()
    get_media_host().discard(proof)
    return body | {'deleted': True, 'dp': sr.dp, 'total_biaya': sr.total_biaya}, 200, {'ETag': etag_for(sr)}

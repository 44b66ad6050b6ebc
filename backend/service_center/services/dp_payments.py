"""Down-payment claims: submission (staff or customer), approval decisions and the derived dp total."""
from __future__ import annotations
import logging
from typing import List, Optional
from flask import abort
from sqlalchemy import select
from werkzeug.datastructures import FileStorage

from service_center.models.authz import utcnow
from service_center.models.dp_payment import DpPayment
from service_center.models.service_request import ServiceRequest
from service_center.services.billing import dp_amount_errors, recompute_totals
from service_center.services.media_host import get_media_host
from service_center.utils.fsm import TransitionValidator
from service_center.utils.listing import iso_z
from service_center.utils.validation import ValidationFailed, parse_amount

logger = logging.getLogger(__name__)

# approved claims may still be rejected (e.g. transfer bounced); rejected is final
DP_FSM = TransitionValidator({
    DpPayment.STATUS_PENDING: {DpPayment.STATUS_APPROVED, DpPayment.STATUS_REJECTED},
    DpPayment.STATUS_APPROVED: {DpPayment.STATUS_REJECTED},
    DpPayment.STATUS_REJECTED: set(),
}, field_name='payment status')


def dp_json(p: DpPayment) -> dict:
    return {
        'id': p.id,
        'service_request_id': p.service_request_id,
        'amount': p.amount,
        'note': p.note,
        'proof': p.proof or [],
        'status': p.status,
        'created_by': p.created_by,
        'approved_by': p.approved_by,
        'decided_at': iso_z(p.decided_at),
        'created_at': iso_z(p.created_at),
    }


def find_by_idempotency_key(session, sr: ServiceRequest, key: Optional[str]) -> Optional[DpPayment]:
    if not key:
        return None
    return session.execute(
        select(DpPayment).where(DpPayment.service_request_id==sr.id, DpPayment.idempotency_key==key)
    ).scalar_one_or_none()


def submit_claim(session, sr: ServiceRequest, fields: dict, files: List[FileStorage], created_by: str,
                 min_amount: int, idempotency_key: Optional[str] = None) -> DpPayment:
    """Create a pending claim; proof files are uploaded first and removed again if the row is not written.

    The caller owns the transaction (commits on success).
    """
    amount = parse_amount(fields.get('amount'))
    errors = dp_amount_errors(amount, sr.subtotal, min_amount)
    if errors:
        raise ValidationFailed(errors)
    note = fields.get('note')
    note = note.strip() if isinstance(note, str) and note.strip() else None
    host = get_media_host()
    proof = [{'url': m['url'], 'public_id': m['public_id'], 'type': m['type']}
             for m in host.upload_many(files, folder=f"dp_payments/{sr.track_number}")]
    try:
        payment = DpPayment(amount=amount, note=note, proof=proof, status=DpPayment.STATUS_PENDING,
                            created_by=created_by, idempotency_key=(idempotency_key or None))
        sr.dp_payments.append(payment)
        sr.touch()
        session.flush()
    except Exception:
        session.rollback()
        host.discard(proof)
        raise
    logger.info('dp claim %s submitted on %s (%s) by %s', payment.id, sr.track_number, amount, created_by)
    return payment


def get_payment_or_404(sr: ServiceRequest, payment_id: int) -> DpPayment:
    payment = next((p for p in sr.dp_payments if p.id == payment_id), None)
    if not payment:
        abort(404)
    return payment


def decide(session, sr: ServiceRequest, payment: DpPayment, target: str, actor: str) -> DpPayment:
    """Move a claim to approved/rejected and re-derive dp inside the same transaction (parent row locked by caller)."""
    DP_FSM.assert_can_transition(payment.status, target)
    payment.status = target
    payment.approved_by = actor
    payment.decided_at = utcnow()
    recompute_totals(session, sr)
    return payment


def remove(session, sr: ServiceRequest, payment: DpPayment) -> List[dict]:
    """Delete a claim, re-derive dp; returns the proof media to clean up after commit."""
    proof = list(payment.proof or [])
    sr.dp_payments.remove(payment)
    recompute_totals(session, sr)
    return proof

__all__ = ['DP_FSM', 'dp_json', 'find_by_idempotency_key', 'submit_claim', 'get_payment_or_404', 'decide', 'remove']

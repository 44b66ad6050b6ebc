"""Estimate and down-payment arithmetic.

Invariants kept by every write path:
    estimate_item.total == harga * qty
    service_request.dp == sum(amount of approved dp_payments)
    service_request.total_biaya == sum(estimate_item.total) - dp
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Tuple
from sqlalchemy import select, func
from service_center.models.service_request import ServiceRequest, EstimateItem
from service_center.models.dp_payment import DpPayment
from service_center.utils.validation import parse_amount

logger = logging.getLogger(__name__)


def normalize_estimate_items(raw_items: Any) -> List[Dict[str, Any]]:
    """Coerce client rows into {item, harga, qty, total}; blank rows (no name, no price) are dropped."""
    if not isinstance(raw_items, list):
        return []
    out = []
    for row in raw_items:
        if not isinstance(row, dict):
            continue
        item = str(row.get('item') or '').strip()
        harga = parse_amount(row.get('harga'))
        qty = parse_amount(row.get('qty')) if row.get('qty') not in (None, '') else 1
        if not item and harga == 0:
            continue
        out.append({'item': item, 'harga': harga, 'qty': qty, 'total': harga * qty})
    return out


def estimate_subtotal(items: Iterable[Dict[str, Any]]) -> int:
    return sum(int(i['harga']) * int(i['qty']) for i in items)


def total_due(subtotal: int, dp: int) -> int:
    return subtotal - dp


def approved_dp_sum(payments: Iterable[Any]) -> int:
    return sum(p.amount for p in payments if p.status == DpPayment.STATUS_APPROVED)


def dp_amount_errors(amount: int, subtotal: int, min_amount: int) -> List[str]:
    errors = []
    if amount < min_amount:
        errors.append(f"Nominal DP minimal Rp {min_amount:,}.".replace(',', '.'))
    if subtotal <= 0:
        errors.append('Estimasi biaya belum tersedia.')
    elif amount > subtotal:
        errors.append(f"Nominal DP tidak boleh melebihi total estimasi (Rp {subtotal:,}).".replace(',', '.'))
    return errors


def lock_service_request(session, request_id: int) -> ServiceRequest:
    """Load the parent row with SELECT ... FOR UPDATE (no-op lock on SQLite)."""
    return session.execute(
        select(ServiceRequest).where(ServiceRequest.id == request_id)
        .with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()


def replace_estimate(sr: ServiceRequest, items: List[Dict[str, Any]]):
    sr.estimate_items.clear()
    for pos, row in enumerate(items):
        sr.estimate_items.append(EstimateItem(position=pos, item=row['item'], harga=row['harga'], qty=row['qty'], total=row['total']))
    sr.total_biaya = total_due(estimate_subtotal(items), sr.dp or 0)
    sr.touch()


def recompute_totals(session, sr: ServiceRequest) -> Tuple[int, int]:
    """Re-derive dp from approved payments and total_biaya from the estimate, inside the caller's transaction."""
    session.flush()
    dp = session.execute(
        select(func.coalesce(func.sum(DpPayment.amount), 0)).where(
            DpPayment.service_request_id == sr.id,
            DpPayment.status == DpPayment.STATUS_APPROVED,
        )
    ).scalar_one()
    subtotal = sr.subtotal
    sr.dp = int(dp)
    sr.total_biaya = total_due(subtotal, sr.dp)
    sr.touch()
    logger.info('service request %s totals: subtotal=%s dp=%s total_biaya=%s', sr.id, subtotal, sr.dp, sr.total_biaya)
    return sr.dp, sr.total_biaya

__all__ = [
    'normalize_estimate_items', 'estimate_subtotal', 'total_due', 'approved_dp_sum', 'dp_amount_errors',
    'lock_service_request', 'replace_estimate', 'recompute_totals'
]

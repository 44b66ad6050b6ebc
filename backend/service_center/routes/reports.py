from __future__ import annotations
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, abort
from sqlalchemy import func, select
from service_center import get_db
from service_center.decorators.auth import require_permissions
from service_center.constants.statuses import ALL_STATUSES, normalize_status
from service_center.models.dp_payment import DpPayment
from service_center.models.service_request import ServiceRequest, EstimateItem
from service_center.services.policy import branch_scope
from service_center.utils.listing import compute_etag, handle_conditional, make_cached_record_response, iso_z

rpt_bp = Blueprint('reports', __name__)

DATE_ONLY = '%Y-%m-%d'


def _parse_date(value: str, field: str):
    """Return (datetime, date_only) or (None, False) when absent."""
    if not value:
        return None, False
    for fmt in (DATE_ONLY, '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S%z'):
        try:
            dt = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return (dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)), fmt == DATE_ONLY
    abort(400, description=f"{field} must be YYYY-MM-DD or ISO datetime")


def _scoped(stmt, scope, start, end, end_exclusive=False):
    if scope is not None:
        stmt = stmt.where(ServiceRequest.branch_id.in_(scope))
    if start:
        stmt = stmt.where(ServiceRequest.created_at >= start)
    if end:
        stmt = stmt.where(ServiceRequest.created_at < end if end_exclusive else ServiceRequest.created_at <= end)
    return stmt


def gather_summary(session, scope, start=None, end=None, end_exclusive=False):
    """Counts per canonical status plus estimate / approved-DP sums over requests created in range.

    scope None covers every branch; an empty list covers none.
    """
    counts = {s: 0 for s in ALL_STATUSES}
    rows = session.execute(
        _scoped(select(ServiceRequest.status, func.count(ServiceRequest.id)), scope, start, end, end_exclusive)
        .group_by(ServiceRequest.status)
    ).all()
    for status, n in rows:
        # legacy values fold into their canonical bucket
        key = normalize_status(status) or status
        counts[key] = counts.get(key, 0) + int(n)
    estimate_total = session.execute(
        _scoped(select(func.coalesce(func.sum(EstimateItem.total), 0))
                .join(ServiceRequest, EstimateItem.service_request_id==ServiceRequest.id), scope, start, end, end_exclusive)
    ).scalar_one()
    dp_total = session.execute(
        _scoped(select(func.coalesce(func.sum(DpPayment.amount), 0))
                .join(ServiceRequest, DpPayment.service_request_id==ServiceRequest.id)
                .where(DpPayment.status==DpPayment.STATUS_APPROVED), scope, start, end, end_exclusive)
    ).scalar_one()
    outstanding = session.execute(
        _scoped(select(func.coalesce(func.sum(ServiceRequest.total_biaya), 0)), scope, start, end, end_exclusive)
    ).scalar_one()
    latest_ts = session.execute(
        _scoped(select(func.max(ServiceRequest.updated_at)), scope, start, end, end_exclusive)
    ).scalar_one_or_none()
    return {
        'total_requests': sum(counts.values()),
        'by_status': counts,
        'estimate_total': int(estimate_total),
        'dp_approved_total': int(dp_total),
        'outstanding_total': int(outstanding),
    }, latest_ts


@rpt_bp.route('/summary', methods=['GET', 'HEAD'])
@require_permissions('RPT.READ')
def summary():
    scope = branch_scope()
    start, _ = _parse_date(request.args.get('start'), 'start')
    end, end_date_only = _parse_date(request.args.get('end'), 'end')
    if start and end and start > end:
        abort(400, description='start must not be after end')
    # a bare end date covers that whole day
    upper = end + timedelta(days=1) if end_date_only else end
    body, latest_ts = gather_summary(get_db(), scope, start, upper, end_exclusive=end_date_only)
    body['range'] = {'start': iso_z(start), 'end': iso_z(end)}
    body['branch_ids'] = scope or []
    scope_key = 'all' if scope is None else sorted(scope)
    etag = compute_etag([scope_key], body['total_requests'], 0, 0,
                        f"summary:{iso_z(start)}:{iso_z(end)}:{body['estimate_total']}:{body['dp_approved_total']}:{iso_z(latest_ts)}")
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return make_cached_record_response(body, etag, latest_ts)

from __future__ import annotations
from flask import Blueprint, render_template, make_response
from service_center import get_db
from service_center.decorators.auth import require_permissions
from service_center.models.branch import Branch
from service_center.constants.statuses import status_display
from service_center.services.service_requests import get_request_or_404

receipts_bp = Blueprint('receipts', __name__)


def rupiah(value) -> str:
    """1250000 -> '1.250.000'"""
    return f"{int(value or 0):,}".replace(',', '.')


@receipts_bp.app_template_filter('rupiah')
def _rupiah_filter(value):
    return rupiah(value)


@receipts_bp.get('/<int:request_id>')
@require_permissions('SR.READ')
def receipt(request_id: int):
    """Printable handover receipt (HTML)."""
    session = get_db()
    sr = get_request_or_404(session, request_id)
    branch = session.get(Branch, sr.branch_id) if sr.branch_id is not None else None
    html = render_template(
        'receipt.html',
        sr=sr,
        status=status_display(sr.status),
        branch_name=branch.name if branch else None,
        received_on=sr.created_at.strftime('%d-%m-%Y') if sr.created_at else '-',
    )
    resp = make_response(html)
    resp.headers['Content-Type'] = 'text/html; charset=utf-8'
    return resp

from __future__ import annotations
from flask import Blueprint, request
from service_center import get_db
from service_center.models.audit import AuditLog
from service_center.decorators.auth import require_permissions
from service_center.utils.listing import apply_pagination, make_cached_list_response, handle_conditional, iso_z

admin_bp = Blueprint('admin', __name__)


def _log_json(r: AuditLog):
    return {
        'id': r.id,
        'actor_user_id': r.actor_user_id,
        'actor_email': r.actor_email,
        'actor_role': r.actor_role,
        'action': r.action,
        'entity': r.entity,
        'entity_id': r.entity_id,
        'meta': r.meta or {},
        'created_at': iso_z(r.created_at),
    }


@admin_bp.route('/logs', methods=['GET', 'HEAD'])
@require_permissions('ADMIN.LOGS.READ')
def list_logs():
    """Audit trail, newest first. Filters: action (prefix match), entity, entity_id, actor (email)."""
    session = get_db()
    q = session.query(AuditLog)
    action = request.args.get('action')
    if action:
        q = q.filter(AuditLog.action.like(f"{action}%"))
    entity = request.args.get('entity')
    if entity:
        q = q.filter(AuditLog.entity==entity)
    entity_id = request.args.get('entity_id')
    if entity_id:
        q = q.filter(AuditLog.entity_id==str(entity_id))
    actor = request.args.get('actor')
    if actor:
        q = q.filter(AuditLog.actor_email==actor)
    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((r.created_at for r in rows if r.created_at), default=None)
    resp, etag = make_cached_list_response([_log_json(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp

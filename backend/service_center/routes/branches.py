from __future__ import annotations
import logging
from flask import Blueprint, request, abort
from sqlalchemy import select, update
from service_center import get_db
from service_center.models.authz import User, utcnow
from service_center.models.branch import Branch
from service_center.models.service_request import ServiceRequest
from service_center.constants.roles import ROLE_MANAGER, ROLE_STAFF, UNSCOPED_ROLES
from service_center.decorators.auth import require_permissions
from service_center.decorators.audit import audit_log
from service_center.services.policy import branch_scope
from service_center.utils.listing import iso_z

logger = logging.getLogger(__name__)

branches_bp = Blueprint('branches', __name__)


def _branch_json(b: Branch, staff_count: int = None):
    body = {
        'id': b.id,
        'name': b.name,
        'manager_user_id': b.manager_user_id,
        'created_at': iso_z(b.created_at),
        'updated_at': iso_z(b.updated_at),
    }
    if staff_count is not None:
        body['staff_count'] = staff_count
    return body


def _get_branch_or_404(session, branch_id: int) -> Branch:
    branch = session.get(Branch, branch_id)
    if not branch:
        abort(404)
    return branch


@branches_bp.get('')
@require_permissions('BRANCH.READ')
def list_branches():
    session = get_db()
    q = select(Branch).order_by(Branch.name.asc(), Branch.id.asc())
    scope = branch_scope()
    if scope is not None:
        q = q.where(Branch.id.in_(scope))
    rows = session.execute(q).scalars().all()
    counts = {}
    for bid in session.execute(select(User.branch_id).where(User.branch_id.is_not(None))).scalars():
        counts[bid] = counts.get(bid, 0) + 1
    return {'data': [_branch_json(b, counts.get(b.id, 0)) for b in rows]}


@branches_bp.post('')
@require_permissions('BRANCH.MANAGE')
@audit_log('BRANCH.CREATE', entity='Branch', entity_id_key='id', meta_keys=['name'])
def create_branch():
    session = get_db()
    data = request.json or {}
    name = ' '.join(str(data.get('name') or '').split())
    if not name:
        abort(400, description='Nama cabang wajib diisi.')
    key = Branch.key_for(name)
    if session.execute(select(Branch).where(Branch.name_key==key)).scalar_one_or_none():
        abort(409, description='Cabang dengan nama tersebut sudah ada.')
    branch = Branch(name=name, name_key=key)
    session.add(branch)
    session.commit()
    return _branch_json(branch, 0), 201


@branches_bp.put('/<int:branch_id>/manager')
@require_permissions('BRANCH.MANAGE')
@audit_log('BRANCH.MANAGER.SET', entity='Branch', entity_id_key='id', meta_keys=['manager_user_id'])
def set_branch_manager(branch_id: int):
    """Bind a user as manager of the branch, promoting staff/user accounts to manager."""
    session = get_db()
    branch = _get_branch_or_404(session, branch_id)
    data = request.json or {}
    user_id = data.get('user_id')
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        abort(400, description='user_id required')
    user = session.get(User, user_id)
    if not user:
        abort(404, description='User not found')
    if user.role in UNSCOPED_ROLES:
        abort(400, description='Admin or owner accounts cannot manage a single branch')
    previous = branch.manager_user_id
    if previous and previous != user.id:
        old = session.get(User, previous)
        if old and old.role == ROLE_MANAGER and old.branch_id == branch.id:
            old.role = ROLE_STAFF
    user.role = ROLE_MANAGER
    user.branch_id = branch.id
    branch.manager_user_id = user.id
    session.commit()
    logger.info('branch %s manager set to user %s', branch.id, user.id)
    return _branch_json(branch)


@branches_bp.delete('/<int:branch_id>')
@require_permissions('BRANCH.MANAGE')
@audit_log('BRANCH.DELETE', entity='Branch', entity_id_arg='branch_id', meta_keys=['name', 'unassigned_users', 'detached_requests'])
def delete_branch(branch_id: int):
    """Remove a branch; its users are unassigned and its requests keep their history without a branch."""
    session = get_db()
    branch = _get_branch_or_404(session, branch_id)
    name = branch.name
    users = session.execute(select(User).where(User.branch_id==branch.id)).scalars().all()
    for u in users:
        if u.role == ROLE_MANAGER:
            u.role = ROLE_STAFF
        u.branch_id = None
    detached = session.execute(
        update(ServiceRequest).where(ServiceRequest.branch_id==branch.id)
        .values(branch_id=None, version=ServiceRequest.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session='fetch')
    ).rowcount
    session.delete(branch)
    session.commit()
    logger.info('branch %s deleted: %s users unassigned, %s requests detached', branch_id, len(users), detached)
    return {'id': branch_id, 'name': name, 'deleted': True, 'unassigned_users': len(users), 'detached_requests': detached}

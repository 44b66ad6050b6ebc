from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, get_jwt_identity
from sqlalchemy import select, func
from service_center import get_db
from service_center.models.authz import User
from service_center.models.branch import Branch
from service_center.constants.roles import VALID_ROLES, ROLE_ADMIN, ROLE_STAFF, ROLE_USER, UNSCOPED_ROLES
from service_center.services.policy import compute_claims, assert_branch_access, current_role, filter_query_by_branches, branch_scope
from service_center.services.settings import get_security_settings, password_policy_errors, session_lifetime
from service_center.utils.listing import apply_pagination, make_cached_list_response, handle_conditional
from service_center.utils.sorting import apply_multi_sort
from service_center.utils.validation import ValidationFailed
from service_center.decorators.audit import audit_log
from service_center.decorators.auth import require_permissions, require_login

iam_bp = Blueprint('iam', __name__)

USER_SORTABLE = {
    'id': User.id,
    'name': User.name,
    'email': User.email,
    'role': User.role,
}


def _user_json(u: User):
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'role': u.role,
        'approved': bool(u.approved),
        'branch_id': u.branch_id,
    }


def _get_user_or_404(session, user_id: int) -> User:
    user = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


def _prefetch_user(user_id: int):
    session = get_db()
    u = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    return _user_json(u) if u else {}


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower(); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(func.lower(User.email)==email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    claims = compute_claims(user)
    lifetime = session_lifetime(user.role, get_security_settings(session))
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    if lifetime:
        token = create_access_token(identity=str(user.id), additional_claims=claims, expires_delta=lifetime)
    else:
        token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token, 'user': _user_json(user), 'approved': bool(user.approved)}


@iam_bp.post('/auth/register')
@audit_log('USER.REGISTER', entity='User', entity_id_key='id', meta_keys=['email', 'role'], actor_email='self-registration')
def register():
    """Self sign-up; the account holds no permissions until a manager approves it."""
    session = get_db()
    data = request.json or {}
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    errors = []
    if not name:
        errors.append('Nama wajib diisi.')
    if not email or '@' not in email:
        errors.append('Email tidak valid.')
    errors.extend(password_policy_errors(password, get_security_settings(session)))
    if errors:
        raise ValidationFailed(errors)
    if session.execute(select(User).where(func.lower(User.email)==email)).scalar_one_or_none():
        abort(409, description='Email already registered')
    branch_id = data.get('branch_id')
    if branch_id is not None and not session.get(Branch, branch_id):
        abort(400, description='Unknown branch')
    user = User(name=name, email=email, password_hash='', role=ROLE_STAFF, approved=False, branch_id=branch_id)
    user.set_password(password)
    session.add(user)
    session.commit()
    return _user_json(user), 201


@iam_bp.get('/auth/me')
@require_login
def me():
    # Identity stored as string, cast back to int for DB lookup
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    claims = compute_claims(user)
    return _user_json(user) | {'perms': claims['perms'], 'branch_ids': claims['branch_ids']}


@iam_bp.route('/users', methods=['GET', 'HEAD'])
@require_permissions('ADMIN.USER.MANAGE')
def list_users():
    session = get_db()
    q = session.query(User)
    q = filter_query_by_branches(q, User.branch_id, branch_scope())
    approved = request.args.get('approved')
    if approved is not None:
        if approved.lower() not in ('true', 'false', '1', '0'):
            abort(400, description='approved must be true or false')
        q = q.filter(User.approved==(approved.lower() in ('true', '1')))
    role = request.args.get('role')
    if role:
        q = q.filter(User.role==role)
    q = apply_multi_sort(q, request.args.get('sort'), USER_SORTABLE, User.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((u.updated_at for u in rows if u.updated_at), default=None)
    resp, etag = make_cached_list_response([_user_json(u) for u in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def _assert_can_manage(user: User, allow_unbound: bool = False):
    """Managers only manage non-privileged accounts of their own branch.

    Accounts with no branch yet are left to admin/owner, except for binding them (allow_unbound).
    """
    if current_role() in UNSCOPED_ROLES:
        return
    if user.role in UNSCOPED_ROLES:
        abort(403, description='Only admin or owner may manage this account')
    if user.branch_id is None and allow_unbound:
        return
    assert_branch_access(user.branch_id)


def _assert_not_removing_last_admin(session, user: User, new_role: str):
    if user.role != ROLE_ADMIN or new_role == ROLE_ADMIN:
        return
    admins = session.execute(select(func.count(User.id)).where(User.role==ROLE_ADMIN, User.approved.is_(True))).scalar_one()
    if admins <= 1:
        abort(400, description='Cannot remove last admin')


@iam_bp.post('/users/<int:user_id>/approve')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.APPROVE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def approve_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(session, user_id)
    _assert_can_manage(user)
    if user.role == ROLE_USER:
        abort(400, description='Assign a staff role before approving')
    user.approved = True
    session.commit()
    return _user_json(user)


@iam_bp.put('/users/<int:user_id>/role')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.ROLE.SET', entity='User', entity_id_key='id', diff_keys=['role'], pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def set_user_role(user_id: int):
    session = get_db()
    user = _get_user_or_404(session, user_id)
    data = request.json or {}
    role = data.get('role')
    if role not in VALID_ROLES:
        abort(400, description=f"role must be one of {', '.join(VALID_ROLES)}")
    _assert_can_manage(user)
    if role in UNSCOPED_ROLES and current_role() not in UNSCOPED_ROLES:
        abort(403, description='Only admin or owner may grant this role')
    _assert_not_removing_last_admin(session, user, role)
    user.role = role
    session.commit()
    return _user_json(user)


@iam_bp.put('/users/<int:user_id>/branch')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.BRANCH.SET', entity='User', entity_id_key='id', diff_keys=['branch_id'], pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def set_user_branch(user_id: int):
    session = get_db()
    user = _get_user_or_404(session, user_id)
    _assert_can_manage(user, allow_unbound=True)
    data = request.json or {}
    branch_id = data.get('branch_id')
    if branch_id is not None and (not isinstance(branch_id, int) or not session.get(Branch, branch_id)):
        abort(400, description='Unknown branch')
    # managers may only bind into their own branch, never unbind
    assert_branch_access(branch_id)
    user.branch_id = branch_id
    session.commit()
    return _user_json(user)

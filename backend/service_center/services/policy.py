from __future__ import annotations
from typing import Iterable, List, Optional, Set
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from service_center.models.authz import User
from service_center.constants.permissions import permissions_for_role
from service_center.constants.roles import UNSCOPED_ROLES, ROLE_ADMIN, ROLE_OWNER, ROLE_MANAGER


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_user_id() -> Optional[int]:
    ident = get_jwt_identity()
    return int(ident) if ident is not None else None


def current_role() -> str:
    return get_jwt().get('role') or ''


def current_email() -> str:
    return get_jwt().get('email') or ''


def compute_branch_ids(user: User) -> List[int]:
    """Branches a user is confined to. Empty for admin/owner (unscoped) and for accounts with no branch bound yet (no access)."""
    if user.role in UNSCOPED_ROLES or user.branch_id is None:
        return []
    return [user.branch_id]


def compute_claims(user: User) -> dict:
    """JWT additional claims snapshot for user; permissions follow role + approval."""
    return {
        'email': user.email,
        'name': user.name,
        'role': user.role,
        'approved': bool(user.approved),
        'perms': permissions_for_role(user.role, bool(user.approved)),
        'branch_ids': compute_branch_ids(user),
    }


def branch_scope() -> Optional[List[int]]:
    """Branch ids the caller may touch; None means every branch."""
    claims = get_jwt()
    if claims.get('role') in UNSCOPED_ROLES:
        return None
    return list(claims.get('branch_ids') or [])


def filter_query_by_branches(query, model_branch_column, scope: Optional[Iterable[int]]):
    """Confine query to scope; an empty scope matches nothing."""
    if scope is None:
        return query
    return query.filter(model_branch_column.in_(list(scope)))


def assert_branch_access(branch_id: Optional[int]):
    scope = branch_scope()
    if scope is None:
        return
    if branch_id is None or branch_id not in scope:
        abort(403, description='Branch access denied')


def is_supervisor() -> bool:
    """Managers and above may moderate entries written by other staff."""
    return current_role() in (ROLE_ADMIN, ROLE_OWNER, ROLE_MANAGER)


def assert_author_or_supervisor(author_email: str):
    if is_supervisor():
        return
    if not author_email or author_email.lower() != current_email().lower():
        abort(403, description='Only the author or a manager may remove this entry')

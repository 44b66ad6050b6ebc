"""Closed role vocabulary plus the normalization table used to repair legacy role strings."""
from __future__ import annotations
from typing import Optional

ROLE_ADMIN = 'admin'
ROLE_OWNER = 'owner'
ROLE_MANAGER = 'manager'
ROLE_STAFF = 'staff'
ROLE_USER = 'user'

# Order matters for the substring fallback in normalize_role
VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_OWNER, ROLE_STAFF, ROLE_USER)

# Roles whose members can be assigned as technicians
TECHNICIAN_ROLES = (ROLE_STAFF, ROLE_MANAGER)

# Roles that are not restricted to their own branch
UNSCOPED_ROLES = (ROLE_ADMIN, ROLE_OWNER)

ROLE_SYNONYMS = {
    'management': ROLE_MANAGER,
    'manajer': ROLE_MANAGER,
    'administrator': ROLE_ADMIN,
    'staf': ROLE_STAFF,
    'pengguna': ROLE_USER,
}


def normalize_role(raw: Optional[object]) -> str:
    """Map a free-form role value onto VALID_ROLES.

    Exact match, then synonym table, then substring match; empty and unknown values become 'user'.
    The result is always a valid role so applying it twice is a no-op.
    """
    key = str(raw if raw is not None else '').strip().lower()
    if not key:
        return ROLE_USER
    if key in VALID_ROLES:
        return key
    if key in ROLE_SYNONYMS:
        return ROLE_SYNONYMS[key]
    for role in VALID_ROLES:
        if role in key:
            return role
    return ROLE_USER


def is_valid_role(role: object) -> bool:
    return isinstance(role, str) and role in VALID_ROLES

__all__ = [
    'ROLE_ADMIN', 'ROLE_OWNER', 'ROLE_MANAGER', 'ROLE_STAFF', 'ROLE_USER',
    'VALID_ROLES', 'TECHNICIAN_ROLES', 'UNSCOPED_ROLES', 'normalize_role', 'is_valid_role'
]

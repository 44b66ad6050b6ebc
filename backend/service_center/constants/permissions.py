"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently; add new ones and migrate role presets.
"""
from __future__ import annotations
from typing import List, Dict

from service_center.constants.roles import ROLE_ADMIN, ROLE_OWNER, ROLE_MANAGER, ROLE_STAFF, ROLE_USER

SERVICES = ['SR', 'DP', 'BRANCH', 'RPT', 'ADMIN']

SERVICE_ACTIONS = {
    'SR': ['READ', 'CREATE', 'UPDATE', 'STATUS', 'ESTIMATE', 'ASSIGN', 'WORKLOG', 'MEDIA', 'DELETE'],
    'DP': ['READ', 'SUBMIT', 'APPROVE', 'DELETE'],
    'BRANCH': ['READ', 'MANAGE'],
    'RPT': ['READ'],
    'ADMIN': ['USER.MANAGE', 'SETTINGS.MANAGE', 'LOGS.READ'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

# Capability matrix: role -> permission codes ('*' expands to every code)
ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_ADMIN: ['*'],
    # Owner: everything except the destructive admin-only actions
    ROLE_OWNER: [c for c in ALL_PERMISSION_CODES if c not in ('SR.DELETE', 'DP.DELETE')],
    ROLE_MANAGER: [
        'SR.READ', 'SR.CREATE', 'SR.UPDATE', 'SR.STATUS', 'SR.ESTIMATE', 'SR.ASSIGN', 'SR.WORKLOG', 'SR.MEDIA',
        'DP.READ', 'DP.SUBMIT', 'DP.APPROVE',
        'BRANCH.READ',
        'RPT.READ',
        'ADMIN.USER.MANAGE', 'ADMIN.SETTINGS.MANAGE',
    ],
    ROLE_STAFF: [
        'SR.READ', 'SR.CREATE', 'SR.UPDATE', 'SR.STATUS', 'SR.ESTIMATE', 'SR.WORKLOG', 'SR.MEDIA',
        'DP.READ', 'DP.SUBMIT', 'DP.APPROVE',
        'BRANCH.READ',
    ],
    ROLE_USER: [],
}


def permissions_for_role(role: str, approved: bool = True) -> List[str]:
    """Resolve the sorted permission codes a role carries. Unapproved accounts carry none."""
    if not approved:
        return []
    codes = ROLE_PRESETS.get(role, [])
    if '*' in codes:
        return sorted(ALL_PERMISSION_CODES)
    return sorted(set(codes))

"""Persisted security settings (password policy, per-role session lifetime)."""
from __future__ import annotations
from datetime import timedelta
from typing import Any, Dict, List, Optional
from service_center.models.setting import Setting
from service_center.constants.roles import ROLE_ADMIN, ROLE_OWNER, ROLE_MANAGER
from service_center.utils.validation import ValidationFailed

SECURITY_KEY = 'security'

SECURITY_DEFAULTS: Dict[str, Any] = {
    'passwordLength': 8,
    'requireUppercase': True,
    'requireNumbers': True,
    'requireSymbols': False,
    'enforceMfa': False,
    'sessionTimeoutEnabled': True,
    'adminSessionDuration': 8,
    'managerSessionDuration': 12,
    'staffSessionDuration': 24,
}

_BOOL_KEYS = ('requireUppercase', 'requireNumbers', 'requireSymbols', 'enforceMfa', 'sessionTimeoutEnabled')
# key -> (min, max)
_INT_KEYS = {
    'passwordLength': (6, 64),
    'adminSessionDuration': (1, 720),
    'managerSessionDuration': (1, 720),
    'staffSessionDuration': (1, 720),
}


def get_security_settings(session) -> Dict[str, Any]:
    row = session.get(Setting, SECURITY_KEY)
    merged = dict(SECURITY_DEFAULTS)
    if row and isinstance(row.value, dict):
        merged.update({k: v for k, v in row.value.items() if k in SECURITY_DEFAULTS})
    return merged


def save_security_settings(session, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationFailed(['Settings payload must be an object'])
    errors: List[str] = []
    unknown = sorted(set(data) - set(SECURITY_DEFAULTS))
    if unknown:
        errors.append(f"Unknown settings: {', '.join(unknown)}")
    for k in _BOOL_KEYS:
        if k in data and not isinstance(data[k], bool):
            errors.append(f"{k} must be true or false")
    for k, (lo, hi) in _INT_KEYS.items():
        if k in data:
            v = data[k]
            if isinstance(v, bool) or not isinstance(v, int) or not lo <= v <= hi:
                errors.append(f"{k} must be an integer between {lo} and {hi}")
    if errors:
        raise ValidationFailed(errors)
    merged = get_security_settings(session)
    merged.update(data)
    row = session.get(Setting, SECURITY_KEY)
    if row is None:
        row = Setting(key=SECURITY_KEY, value=merged)
        session.add(row)
    else:
        row.value = merged
    return merged


def password_policy_errors(password: str, settings: Dict[str, Any]) -> List[str]:
    errors = []
    if len(password or '') < int(settings['passwordLength']):
        errors.append(f"Password minimal {settings['passwordLength']} karakter.")
    if settings['requireUppercase'] and not any(c.isupper() for c in password or ''):
        errors.append('Password harus mengandung huruf besar.')
    if settings['requireNumbers'] and not any(c.isdigit() for c in password or ''):
        errors.append('Password harus mengandung angka.')
    if settings['requireSymbols'] and all(c.isalnum() for c in password or ''):
        errors.append('Password harus mengandung simbol.')
    return errors


def session_lifetime(role: str, settings: Dict[str, Any]) -> Optional[timedelta]:
    """Token lifetime for role, or None to keep the JWT default."""
    if not settings.get('sessionTimeoutEnabled'):
        return None
    if role in (ROLE_ADMIN, ROLE_OWNER):
        hours = settings['adminSessionDuration']
    elif role == ROLE_MANAGER:
        hours = settings['managerSessionDuration']
    else:
        hours = settings['staffSessionDuration']
    return timedelta(hours=int(hours))

__all__ = ['SECURITY_DEFAULTS', 'get_security_settings', 'save_security_settings', 'password_policy_errors', 'session_lifetime']

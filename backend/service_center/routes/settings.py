from __future__ import annotations
from flask import Blueprint, request
from service_center import get_db
from service_center.decorators.auth import require_permissions
from service_center.decorators.audit import audit_log
from service_center.services.settings import get_security_settings, save_security_settings

settings_bp = Blueprint('settings', __name__)


@settings_bp.get('/security')
def read_security_settings():
    # public: the registration form needs the password policy before login
    return get_security_settings(get_db())


@settings_bp.put('/security')
@require_permissions('ADMIN.SETTINGS.MANAGE')
@audit_log('SETTINGS.SECURITY.UPDATE', entity='Setting', meta_builder=lambda data, rv, a, kw: {'settings': data})
def update_security_settings():
    session = get_db()
    merged = save_security_settings(session, request.get_json(silent=True))
    session.commit()
    return merged

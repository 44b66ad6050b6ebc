from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity, get_jwt
from service_center import get_db
from service_center.models.audit import AuditLog

logger = logging.getLogger(__name__)


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None,
              actor_email: Optional[str] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. SR.STATUS.UPDATE, DP.APPROVE, BRANCH.DELETE
      entity: optional entity name (ServiceRequest, DpPayment, Branch, User)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
      actor_email: label for anonymous actors (e.g. 'customer') when no JWT is present
    """
    session = get_db()
    claims = {}
    try:
        claims = get_jwt() or {}
    except RuntimeError:
        pass  # no JWT context (public endpoints, scripts): keep empty
    actor = None
    try:
        ident = get_jwt_identity()
        actor = int(ident) if ident is not None else None
    except (RuntimeError, ValueError):
        actor = None
    log = AuditLog(
        actor_user_id=actor or 0,
        actor_email=claims.get('email') or actor_email,
        actor_role=claims.get('role'),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    logger.debug('audit %s %s:%s by %s', action, entity, entity_id, log.actor_email or log.actor_user_id)
    # No commit here; caller's transaction boundary controls durability.
    return log

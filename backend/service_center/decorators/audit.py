"""Audit logging decorator.

Wraps a Flask view and records an AuditLog row after it returns successfully.

Example:

@audit_log('BRANCH.CREATE', entity='Branch', entity_id_key='id', meta_keys=['name'])
def create_branch():
    ... return {'id': b.id, 'name': b.name}, 201

@audit_log('SR.TECHNICIANS.SET', entity='ServiceRequest', entity_id_key='id',
           diff_keys=['assigned_technicians'], pre_fetch=lambda a, kw: _prefetch(kw.get('request_id')))
def set_technicians(request_id): ...

Parameters:
  action: required audit action code (e.g. SR.STATUS.UPDATE)
  entity: optional entity label (ServiceRequest, DpPayment, Branch, User)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs). If provided it overrides meta_keys.
  actor_email: label stored for anonymous callers (public endpoints).

Return handling:
  Flask view functions return one of dict, (dict, status), (dict, status, headers) or a Response.
  For a Response the JSON body is inspected. Responses with status >= 400 are not audited.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import Response
from service_center.services.audit import add_audit
from service_center import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return _extract_payload(data)[0], status
    if isinstance(rv, Response):
        return rv.get_json(silent=True), rv.status_code
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    actor_email: Optional[str] = None,
    # Diff support
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.warning('audit pre_fetch failed for %s', action, exc_info=True)
                    before_snapshot = None
            rv = fn(*args, **kwargs)
            try:
                data, status = _extract_payload(rv)
                if status >= 400:
                    return rv
                if not isinstance(data, dict):  # nothing to inspect
                    entity_id = kwargs.get(entity_id_arg) if entity_id_arg else None
                    add_audit(action, entity, entity_id, None, actor_email=actor_email)
                else:
                    entity_id = None
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    elif entity_id_arg and entity_id_arg in kwargs:
                        entity_id = kwargs.get(entity_id_arg)
                    meta = None
                    if meta_builder:
                        meta = meta_builder(data, rv, args, kwargs)
                    elif meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and isinstance(before_snapshot, dict):
                        changes = {}
                        for k in diff_keys:
                            if k in before_snapshot and k in data:
                                if before_snapshot.get(k) != data.get(k):
                                    changes[k] = {
                                        'before': before_snapshot.get(k),
                                        'after': data.get(k)
                                    }
                        if changes:
                            if meta is None:
                                meta = {}
                            meta['changes'] = changes
                    add_audit(action, entity, entity_id, meta, actor_email=actor_email)
                if commit:
                    get_db().commit()
            except Exception:
                # audit must not interfere with the main response
                logger.exception('audit write failed for %s', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer

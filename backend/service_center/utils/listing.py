"""List/detail response helpers: pagination envelope, ETag + Last-Modified caching headers,
conditional GET (If-None-Match / If-Modified-Since) and optimistic concurrency (If-Match).
"""
from __future__ import annotations
from typing import Iterable, Optional, Tuple
from flask import request, abort, make_response, jsonify, current_app
from sqlalchemy.orm import Query
from service_center.config.pagination import normalize_pagination, DEFAULT_LIMIT, MAX_LIMIT
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)

def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)

def iso_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat().replace('+00:00', 'Z')

def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(
            request.args.get('limit'), request.args.get('offset'),
            default_limit=current_app.config.get('PAGE_DEFAULT_LIMIT', DEFAULT_LIMIT),
            max_limit=current_app.config.get('PAGE_MAX_LIMIT', MAX_LIMIT),
        )
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset

def compute_etag(ids: Iterable, total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]

def record_etag(record_id, version) -> str:
    """ETag of a single versioned record; changes on every committed write."""
    return compute_etag([record_id], 1, 1, 0, f"v{version}")

def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }

def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(canonicalize_timestamp(dt), usegmt=True)

def _set_last_modified(resp, latest_ts: Optional[datetime]):
    if latest_ts:
        lt = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = _http_date(lt)
        resp.headers['X-Last-Modified-ISO'] = iso_z(lt)

def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    latest_iso = iso_z(canonicalize_timestamp(latest_ts)) if isinstance(latest_ts, datetime) else ''
    etag = compute_etag(ids, total, limit, offset, latest_iso)
    resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest_ts if isinstance(latest_ts, datetime) else None)
    return resp, etag

def make_cached_record_response(body: dict, etag: str, latest_ts: Optional[datetime] = None, status: int = 200):
    resp = make_response(jsonify(body), status)
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp

def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    # ISO 8601 first, then HTTP-date (RFC 1123)
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') == etag_value:
            resp = make_response('', 304)
            resp.headers['ETag'] = etag_value
            _set_last_modified(resp, latest_ts)
            return resp
        return None
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt:
            latest_c = canonicalize_timestamp(latest_ts)
            if latest_c <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
                resp = make_response('', 304)
                resp.headers['ETag'] = etag_value
                _set_last_modified(resp, latest_ts)
                return resp
    return None

def assert_if_match(current_etag: str):
    """Reject a write whose If-Match header names a stale representation (412).

    Absent header means the client opted out of the precondition.
    """
    header = request.headers.get('If-Match')
    if not header or header.strip() == '*':
        return
    candidates = {h.strip().strip('"') for h in header.split(',')}
    if current_etag not in candidates:
        abort(412, description='Record was modified by another request; reload and retry')

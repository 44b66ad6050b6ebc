from __future__ import annotations
from flask import abort


def parse_sort(sort_expr: str | None, allowed: dict):
    """Split "-created_at,nama" into [(column, descending), ...]; unknown or repeated keys abort 400."""
    pairs = []
    seen = set()
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        if key in seen:
            abort(400, description=f'Duplicate sort field {key}')
        seen.add(key)
        pairs.append((col, desc))
    return pairs


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker, default=None):
    """Order query by the ?sort expression, falling back to default (or tie_breaker ascending).

    tie_breaker is always appended so pages stay stable when sort keys collide.
    """
    pairs = parse_sort(sort_expr, allowed)
    if not pairs:
        return query.order_by(*(default or [tie_breaker.asc()]))
    clauses = [col.desc() if desc else col.asc() for col, desc in pairs]
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)

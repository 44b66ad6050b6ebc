"""Page size bounds for list endpoints; overridable through PAGE_DEFAULT_LIMIT / PAGE_MAX_LIMIT."""
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _as_int(raw, fallback: int) -> int:
    if raw in (None, ''):
        return fallback
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError('limit/offset must be int')


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
    """Return (limit, offset) clamped into [1, max_limit] and [0, inf). Non-integers raise ValueError."""
    limit = _as_int(limit_raw, default_limit)
    offset = _as_int(offset_raw, 0)
    max_limit = max(1, max_limit)
    return max(1, min(limit, max_limit)), max(0, offset)

from __future__ import annotations
"""Reusable validation helpers.

validate_status keeps lifecycle checks consistent (400 on unknown values); ValidationFailed
carries a list of human readable messages so a form can show every problem at once.
"""
import re
from typing import Any, Iterable, List, Optional
from flask import abort, request
from werkzeug.exceptions import BadRequest


class ValidationFailed(BadRequest):
    """400 carrying every collected validation message."""

    def __init__(self, errors: List[str], description: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(description=description or (self.errors[0] if self.errors else 'Validation failed'))


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def parse_amount(value: Any) -> int:
    """Parse a money/quantity input the way the intake forms do: keep digits only, never negative."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0)
    digits = re.sub(r'[^0-9]', '', str(value))
    return int(digits) if digits else 0


def require_text(data: dict, key: str, label: str, errors: List[str]) -> str:
    value = data.get(key)
    text = value.strip() if isinstance(value, str) else ''
    if not text:
        errors.append(f"{label} wajib diisi.")
    return text


def string_list(value: Any) -> List[str]:
    """Coerce a JSON value into a de-duplicated list of non-empty strings (order kept)."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    out: List[str] = []
    for v in value:
        if isinstance(v, str) and v.strip() and v.strip() not in out:
            out.append(v.strip())
    return out


def read_payload(file_field: str = 'files'):
    """Body of a JSON or multipart request as (fields, files).

    Multipart list fields may repeat ('key=a&key=b') or use the 'key[]' form.
    """
    if request.mimetype == 'multipart/form-data':
        fields = {}
        for key in request.form.keys():
            values = request.form.getlist(key)
            name = key[:-2] if key.endswith('[]') else key
            fields[name] = values if len(values) > 1 or key.endswith('[]') else values[0]
        files = [f for f in request.files.getlist(file_field) if f and f.filename]
        return fields, files
    return (request.get_json(silent=True) or {}), []


def normalize_phone_number(phone: str) -> str:
    """Digits only; local 08xx numbers become 628xx."""
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('08'):
        return '62' + digits[1:]
    return digits

__all__ = ['ValidationFailed', 'validate_status', 'parse_amount', 'require_text', 'string_list', 'normalize_phone_number', 'read_payload']

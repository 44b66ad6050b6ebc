"""Sequential human-readable track numbers (WO1, WO2, ...).

The counter row is read with SELECT ... FOR UPDATE and service_requests.track_number is unique,
so two concurrent intakes can never persist the same number; the loser retries.
"""
from __future__ import annotations
import logging
import re
from sqlalchemy import select
from service_center.models.track_counter import TrackCounter
from service_center.models.service_request import ServiceRequest

logger = logging.getLogger(__name__)

COUNTER_NAME = 'service_requests'
MAX_ATTEMPTS = 5


def _highest_existing(session, prefix: str) -> int:
    """Largest numeric suffix already stored (seeds the counter for imported data)."""
    highest = 0
    rows = session.execute(select(ServiceRequest.track_number).where(ServiceRequest.track_number.like(f'{prefix}%'))).scalars()
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    for tn in rows:
        m = pattern.match(tn or '')
        if m:
            highest = max(highest, int(m.group(1)))
    return highest


def next_track_number(session, prefix: str = 'WO') -> str:
    """Reserve the next number inside the caller's transaction."""
    counter = session.execute(
        select(TrackCounter).where(TrackCounter.name == COUNTER_NAME).with_for_update()
    ).scalar_one_or_none()
    if counter is None:
        counter = TrackCounter(name=COUNTER_NAME, value=_highest_existing(session, prefix))
        session.add(counter)
    counter.value += 1
    session.flush()
    return f'{prefix}{counter.value}'


__all__ = ['next_track_number', 'MAX_ATTEMPTS', 'COUNTER_NAME']

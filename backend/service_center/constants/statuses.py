"""Service request status vocabulary.

Pipeline: pending -> diterima -> diagnosa -> menunggu_konfirmasi -> proses_pengerjaan
          -> testing -> siap_diambil -> selesai   (batal reachable from any open state)

Legacy values written by older clients (process/ready/done/cancel) are mapped onto the
canonical vocabulary with normalize_status(); scripts/migrate_legacy_statuses.py rewrites
them in storage once.
"""
from __future__ import annotations
from typing import Dict, Optional

STATUS_PENDING = 'pending'
STATUS_RECEIVED = 'diterima'
STATUS_DIAGNOSIS = 'diagnosa'
STATUS_AWAITING_CONFIRMATION = 'menunggu_konfirmasi'
STATUS_IN_PROGRESS = 'proses_pengerjaan'
STATUS_TESTING = 'testing'
STATUS_READY = 'siap_diambil'
STATUS_DONE = 'selesai'
STATUS_CANCELLED = 'batal'

PIPELINE = (
    STATUS_PENDING,
    STATUS_RECEIVED,
    STATUS_DIAGNOSIS,
    STATUS_AWAITING_CONFIRMATION,
    STATUS_IN_PROGRESS,
    STATUS_TESTING,
    STATUS_READY,
    STATUS_DONE,
)
ALL_STATUSES = PIPELINE + (STATUS_CANCELLED,)
TERMINAL_STATUSES = (STATUS_DONE, STATUS_CANCELLED)

LEGACY_ALIASES: Dict[str, str] = {
    'process': STATUS_IN_PROGRESS,
    'ready': STATUS_READY,
    'done': STATUS_DONE,
    'cancel': STATUS_CANCELLED,
}

STATUS_LABELS: Dict[str, str] = {
    STATUS_PENDING: 'Pending',
    STATUS_RECEIVED: 'Diterima',
    STATUS_DIAGNOSIS: 'Diagnosa',
    STATUS_AWAITING_CONFIRMATION: 'Menunggu Konfirmasi',
    STATUS_IN_PROGRESS: 'Proses Pengerjaan',
    STATUS_TESTING: 'Testing',
    STATUS_READY: 'Siap Diambil',
    STATUS_DONE: 'Selesai',
    STATUS_CANCELLED: 'Batal',
}

STATUS_COLORS: Dict[str, str] = {
    STATUS_PENDING: 'yellow',
    STATUS_RECEIVED: 'blue',
    STATUS_DIAGNOSIS: 'indigo',
    STATUS_AWAITING_CONFIRMATION: 'orange',
    STATUS_IN_PROGRESS: 'purple',
    STATUS_TESTING: 'cyan',
    STATUS_READY: 'teal',
    STATUS_DONE: 'green',
    STATUS_CANCELLED: 'red',
}
DEFAULT_COLOR = 'gray'


def normalize_status(raw: Optional[str]) -> str:
    """Return the canonical status for raw (legacy aliases resolved, case/whitespace folded).

    Unknown values are returned trimmed but otherwise untouched so they can still be displayed.
    Missing values are treated as pending.
    """
    if raw is None:
        return STATUS_PENDING
    key = str(raw).strip()
    if not key:
        return STATUS_PENDING
    lowered = key.lower()
    if lowered in ALL_STATUSES:
        return lowered
    return LEGACY_ALIASES.get(lowered, key)


def status_display(raw: Optional[str]) -> Dict[str, str]:
    status = normalize_status(raw)
    if status in STATUS_LABELS:
        return {'status': status, 'label': STATUS_LABELS[status], 'color': STATUS_COLORS[status]}
    label = status.replace('_', ' ').strip() or status
    return {'status': status, 'label': label, 'color': DEFAULT_COLOR}


def build_transition_graph() -> Dict[str, set]:
    """Loose lifecycle graph: any forward skip, one step back for rework, cancel while open."""
    graph: Dict[str, set] = {}
    for idx, status in enumerate(PIPELINE):
        if status in TERMINAL_STATUSES:
            graph[status] = set()
            continue
        targets = set(PIPELINE[idx + 1:])
        if idx > 0:
            targets.add(PIPELINE[idx - 1])
        targets.add(STATUS_CANCELLED)
        graph[status] = targets
    graph[STATUS_CANCELLED] = set()
    return graph

__all__ = [
    'STATUS_PENDING', 'STATUS_RECEIVED', 'STATUS_DIAGNOSIS', 'STATUS_AWAITING_CONFIRMATION',
    'STATUS_IN_PROGRESS', 'STATUS_TESTING', 'STATUS_READY', 'STATUS_DONE', 'STATUS_CANCELLED',
    'PIPELINE', 'ALL_STATUSES', 'TERMINAL_STATUSES', 'LEGACY_ALIASES',
    'normalize_status', 'status_display', 'build_transition_graph'
]

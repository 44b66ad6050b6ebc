from __future__ import annotations
"""Small finite state machine helper for status lifecycles (service requests, DP payments).

Usage:
    from service_center.utils.fsm import TransitionValidator
    DP_FSM = TransitionValidator({
        'pending': {'approved', 'rejected'},
        'approved': {'rejected'},
        'rejected': set(),
    }, field_name='payment status')
    DP_FSM.assert_can_transition(current, target)

An optional normalizer is applied to both ends first, so legacy spellings of a state are
checked against the canonical graph. Invalid moves abort with 400.
"""
from typing import Callable, Dict, Optional, Set
from flask import abort

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', normalizer: Optional[Callable[[str], str]] = None):
        self.graph = graph
        self.field_name = field_name
        self.normalizer = normalizer

    def _norm(self, value: str) -> str:
        return self.normalizer(value) if self.normalizer else value

    def allowed_targets(self, current: str) -> Set[str]:
        return set(self.graph.get(self._norm(current), set()))

    def can_transition(self, current: str, target: str) -> bool:
        return self._norm(target) in self.allowed_targets(current)

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {self._norm(current)} -> {self._norm(target)}")
        return True

__all__ = ['TransitionValidator']

"""Simple finite state machine utility for enforcing allowed status transitions.

Used by lifecycle models (FuelEntry, MaterialEntry, MaterialExit, WorkOrder).
Usage:
    from erp.utils.fsm import TransitionValidator
    FUEL_FSM = TransitionValidator({
        'pending': {'signed'},
        'signed': {'completed'},
        'completed': set(),
    })
    FUEL_FSM.assert_can_transition(entry.status, 'signed')

Aborts with ``code`` (409 by default) if invalid.
"""
from __future__ import annotations
from typing import Dict, Optional, Set
from flask import abort


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', code: int = 409):
        self.graph = graph
        self.field_name = field_name
        self.code = code

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str, message: Optional[str] = None):
        if not self.can_transition(current, target):
            abort(self.code, description=message or f"Invalid {self.field_name} transition {current} -> {target}")
        return True


__all__ = ['TransitionValidator']

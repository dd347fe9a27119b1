"""Naming-flow status enum and transition rules."""

from __future__ import annotations

from enum import Enum


class FlowStatus(str, Enum):
    """Externally observable status of a naming flow.

    1. IDLE       - nothing analyzed yet (initial, and after ``reset``)
    2. ANALYZING  - ``/api/analyze`` request in flight
    3. COUNTED    - analysis available, ready to start naming
    4. NAMING     - naming session running, progress streaming
    5. PREVIEWING - results available for review/editing
    6. DONE       - results accepted
    """

    IDLE = "idle"
    ANALYZING = "analyzing"
    COUNTED = "counted"
    NAMING = "naming"
    PREVIEWING = "previewing"
    DONE = "done"


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is invoked from a status that does not allow it."""

    def __init__(self, operation: str, status: FlowStatus):
        super().__init__(f"Cannot {operation} while flow is '{status.value}'")
        self.operation = operation
        self.status = status


# ``reset`` is legal from every status and is not listed.
TRANSITIONS: dict[FlowStatus, frozenset[FlowStatus]] = {
    FlowStatus.IDLE: frozenset({FlowStatus.ANALYZING}),
    FlowStatus.ANALYZING: frozenset({FlowStatus.COUNTED, FlowStatus.IDLE}),
    FlowStatus.COUNTED: frozenset({FlowStatus.ANALYZING, FlowStatus.NAMING}),
    FlowStatus.NAMING: frozenset({FlowStatus.NAMING, FlowStatus.COUNTED, FlowStatus.PREVIEWING}),
    FlowStatus.PREVIEWING: frozenset({FlowStatus.DONE}),
    FlowStatus.DONE: frozenset(),
}

# Statuses from which each public operation may be started.
OPERATION_SOURCES: dict[str, frozenset[FlowStatus]] = {
    "analyze": frozenset({FlowStatus.IDLE, FlowStatus.COUNTED}),
    "start naming": frozenset({FlowStatus.COUNTED, FlowStatus.NAMING}),
    "go to preview": frozenset({FlowStatus.NAMING}),
    "finish": frozenset({FlowStatus.PREVIEWING}),
}

# Statuses in which the accumulated result list is meaningful.
RESULT_STATUSES = frozenset({FlowStatus.PREVIEWING, FlowStatus.DONE})


def can_transition(current: FlowStatus, target: FlowStatus) -> bool:
    """Return True when ``current -> target`` is a legal transition."""
    if target == FlowStatus.IDLE and current != FlowStatus.ANALYZING:
        # Only via reset, which bypasses the table.
        return False
    return target in TRANSITIONS[current]


def require_operation(operation: str, current: FlowStatus) -> None:
    """Raise InvalidTransitionError unless ``operation`` may start from ``current``."""
    if current not in OPERATION_SOURCES[operation]:
        raise InvalidTransitionError(operation, current)


def holds_results(status: FlowStatus) -> bool:
    """Return True when the accumulated result list is meaningful in ``status``."""
    return status in RESULT_STATUSES

"""Result status and service call lifecycle models.

Two lifecycles:
- Result: pending until a main routine records success or error, then frozen.
- Call: the states a single service invocation moves through.
"""

from __future__ import annotations

from enum import StrEnum


class ResultStatus(StrEnum):
    """Outcome of one service invocation."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class CallState(StrEnum):
    """Execution state of a service instance."""

    CREATED = "created"
    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    RUNNING = "running"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


# --- Transition maps ---

RESULT_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["success", "error"],
    "success": [],
    "error": [],
}

CALL_TRANSITIONS: dict[str, list[str]] = {
    "created": ["validating"],
    "validating": ["authorizing", "failed"],
    # a denied call stops straight into finalizing
    "authorizing": ["running", "finalizing", "failed"],
    "running": ["finalizing", "failed"],
    "finalizing": ["completed", "failed"],
    "completed": [],
    "failed": [],
}


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]],
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(current, [])
    return target in allowed


def is_terminal(state: str, transitions: dict[str, list[str]]) -> bool:
    """A state with no outgoing transitions."""
    return not transitions.get(state, [])

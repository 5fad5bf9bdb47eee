"""Action status state machine.

Lifecycle:
    intent_detected -> extracting -> validating -> awaiting_confirmation
        -> executing -> completed
    failed is reachable from extracting, validating, awaiting_confirmation
    and executing; cancelled from every non-terminal state before executing.

extracting -> failed covers an extraction that timed out after a draft
was recorded.
"""

from karat.db.models import ActionStatus


class InvalidActionTransition(Exception):
    """Raised when attempting an invalid action status transition.

    Attributes:
        current_state: The current status of the action.
        attempted_state: The status that was attempted.
        allowed_transitions: Valid transition targets from current status.
    """

    def __init__(
        self,
        current_state: ActionStatus,
        attempted_state: ActionStatus,
        allowed_transitions: list[ActionStatus],
    ) -> None:
        self.current_state = current_state
        self.attempted_state = attempted_state
        self.allowed_transitions = allowed_transitions
        allowed_str = ", ".join(s.value for s in allowed_transitions) or "none (terminal)"
        super().__init__(
            f"Cannot transition from '{current_state.value}' to '{attempted_state.value}'. "
            f"Allowed transitions: {allowed_str}"
        )


VALID_TRANSITIONS: dict[ActionStatus, list[ActionStatus]] = {
    ActionStatus.intent_detected: [
        ActionStatus.extracting,
        ActionStatus.cancelled,
    ],
    ActionStatus.extracting: [
        ActionStatus.validating,
        ActionStatus.failed,
        ActionStatus.cancelled,
    ],
    ActionStatus.validating: [
        ActionStatus.awaiting_confirmation,
        ActionStatus.failed,
        ActionStatus.cancelled,
    ],
    ActionStatus.awaiting_confirmation: [
        ActionStatus.executing,
        ActionStatus.failed,
        ActionStatus.cancelled,
    ],
    ActionStatus.executing: [ActionStatus.completed, ActionStatus.failed],
    ActionStatus.completed: [],  # terminal
    ActionStatus.failed: [],  # terminal
    ActionStatus.cancelled: [],  # terminal
}

# Statuses a freshly extracted action may be recorded in
INITIAL_STATUSES = frozenset({
    ActionStatus.intent_detected,
    ActionStatus.extracting,
    ActionStatus.validating,
})

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


def can_transition(current: ActionStatus, target: ActionStatus) -> bool:
    """Check if a status transition is valid."""
    return target in VALID_TRANSITIONS.get(current, [])


def ensure_transition(current: ActionStatus, target: ActionStatus) -> None:
    """Raise InvalidActionTransition unless current -> target is allowed."""
    if not can_transition(current, target):
        raise InvalidActionTransition(
            current_state=current,
            attempted_state=target,
            allowed_transitions=VALID_TRANSITIONS.get(current, []),
        )

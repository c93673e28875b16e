"""
State transition validation for transfer tasks.

Task lifecycle: PENDING → DOWNLOADING → COMPLETED | FAILED
A task that fails before the engine is reached may go PENDING → FAILED.

INVARIANT: Terminal task states (COMPLETED, FAILED) are immutable.
Once a task enters a terminal state, no state transition is allowed.
"""

from typing import FrozenSet, Optional, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import TaskStatus, TransferTask, local_now


TERMINAL_TASK_STATES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
})


_TASK_TRANSITIONS: Set[Tuple[TaskStatus, TaskStatus]] = {
    (TaskStatus.PENDING, TaskStatus.DOWNLOADING),
    # Setup failure (log dir, credentials) before the engine is reached
    (TaskStatus.PENDING, TaskStatus.FAILED),
    (TaskStatus.DOWNLOADING, TaskStatus.COMPLETED),
    (TaskStatus.DOWNLOADING, TaskStatus.FAILED),
}


def is_task_terminal(status: TaskStatus) -> bool:
    """Check if a task status is terminal (immutable)."""
    return status in TERMINAL_TASK_STATES


def can_transition_task(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """
    Check if a task state transition is legal.

    Staying in the same non-terminal state is allowed (idempotent).
    Terminal states cannot transition to any other state.
    """
    if is_task_terminal(from_status):
        return False

    if from_status == to_status:
        return True

    return (from_status, to_status) in _TASK_TRANSITIONS


def transition_task(
    task: TransferTask,
    to_status: TaskStatus,
    error: Optional[str] = None,
) -> TransferTask:
    """
    Move a task to a new status in place.

    Terminal transitions stamp end_time. FAILED requires an error message.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_task(task.status, to_status):
        raise InvalidStateTransitionError(
            task.trace_id, task.status.value, to_status.value
        )

    task.status = to_status

    if to_status == TaskStatus.FAILED:
        task.error = error or "unknown error"
    if is_task_terminal(to_status):
        task.end_time = local_now()

    return task

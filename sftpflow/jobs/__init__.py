"""
Transfer jobs - specs, status records, lifecycle and persistence.

Public API:
    JobSpec - One requested transfer
    TransferTask - Durable per-job status record
    TaskStatus - pending / downloading / completed / failed
    TaskStatusStore - One JSON file per trace ID
"""

from .errors import (
    JobError,
    InvalidStateTransitionError,
    TaskStoreError,
    TaskNotFoundError,
    TaskParseError,
    StatusSaveError,
    TerminalStateViolation,
)
from .models import (
    JobSpec,
    TransferTask,
    TaskStatus,
    TransferOperation,
    local_now,
    new_trace_id,
    remote_path,
)
from .state import (
    TERMINAL_TASK_STATES,
    can_transition_task,
    is_task_terminal,
    transition_task,
)
from .store import TaskStatusStore, DEFAULT_STATUS_DIR

__all__ = [
    # Errors
    "JobError",
    "InvalidStateTransitionError",
    "TaskStoreError",
    "TaskNotFoundError",
    "TaskParseError",
    "StatusSaveError",
    "TerminalStateViolation",
    # Models
    "JobSpec",
    "TransferTask",
    "TaskStatus",
    "TransferOperation",
    "local_now",
    "new_trace_id",
    "remote_path",
    # State
    "TERMINAL_TASK_STATES",
    "can_transition_task",
    "is_task_terminal",
    "transition_task",
    # Store
    "TaskStatusStore",
    "DEFAULT_STATUS_DIR",
]

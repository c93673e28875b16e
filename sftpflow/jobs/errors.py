"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.
"""


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal task state transition."""

    def __init__(self, trace_id: str, current_state: str, target_state: str):
        self.trace_id = trace_id
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid task state transition for {trace_id}: "
            f"{current_state} -> {target_state}"
        )


class TaskStoreError(JobError):
    """Base exception for task status persistence."""
    pass


class TaskNotFoundError(TaskStoreError):
    """Raised when no status record exists for a trace ID."""

    def __init__(self, trace_id: str):
        self.trace_id = trace_id
        super().__init__(f"Task not found: {trace_id}")


class TaskParseError(TaskStoreError):
    """Raised when a stored status record cannot be decoded."""

    def __init__(self, trace_id: str, reason: str):
        self.trace_id = trace_id
        self.reason = reason
        super().__init__(f"Corrupt status record for {trace_id}: {reason}")


class StatusSaveError(TaskStoreError):
    """Raised when a status record cannot be written to disk."""

    def __init__(self, trace_id: str, reason: str):
        self.trace_id = trace_id
        self.reason = reason
        super().__init__(f"Failed to save status for {trace_id}: {reason}")


class TerminalStateViolation(TaskStoreError):
    """Raised when attempting to rewrite a record already in a terminal state."""

    def __init__(self, trace_id: str, status: str):
        self.trace_id = trace_id
        self.status = status
        super().__init__(
            f"Task {trace_id} is already {status}; terminal records are immutable"
        )

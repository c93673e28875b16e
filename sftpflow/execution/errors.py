"""
Execution-specific errors.

All errors are non-fatal to the application.
They indicate a failure for one transfer; sibling jobs and the
watch daemon keep running.
"""

from typing import Optional


class EngineError(Exception):
    """
    Base exception for transfer engine failures.

    Recorded into the owning job's status record, never retried here.
    """

    pass


class EngineNotAvailableError(EngineError):
    """Raised when the engine binary cannot be found on this system."""

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(f"Transfer engine '{binary}' is not installed or not in PATH")


class CredentialObscureError(EngineError):
    """Raised when the engine fails to obscure a password."""

    pass


class EngineConfigError(EngineError):
    """Raised when the transient engine configuration cannot be produced."""

    pass


class EngineExecutionError(EngineError):
    """Raised when the engine process exits non-zero or cannot be started."""

    def __init__(
        self,
        operation: str,
        source: str,
        destination: str,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.operation = operation
        self.source = source
        self.destination = destination
        self.exit_code = exit_code
        self.stderr = stderr

        message = f"{operation} {source} -> {destination} failed"
        if exit_code is not None:
            message += f" (exit code: {exit_code})"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)

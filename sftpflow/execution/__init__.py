"""
Transfer execution.

sftpflow drives rclone as its sole transfer engine.
"""

from .errors import (
    EngineError,
    EngineNotAvailableError,
    CredentialObscureError,
    EngineConfigError,
    EngineExecutionError,
)
from .base import (
    SftpCredentials,
    TransferEngine,
    TransferResult,
)
from .rclone import RcloneEngine
from .orchestrator import BatchOrchestrator, BatchResult, DEFAULT_MAX_CONCURRENCY

__all__ = [
    # Errors
    "EngineError",
    "EngineNotAvailableError",
    "CredentialObscureError",
    "EngineConfigError",
    "EngineExecutionError",
    # Engine types
    "SftpCredentials",
    "TransferEngine",
    "TransferResult",
    # Engine implementations
    "RcloneEngine",
    # Orchestration
    "BatchOrchestrator",
    "BatchResult",
    "DEFAULT_MAX_CONCURRENCY",
]

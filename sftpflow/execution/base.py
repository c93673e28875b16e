"""
Transfer engine abstraction layer.

Design rules:
- The engine is a black box: copy/sync a source to a destination
- Engines are stateless - all context passed per-call
- Credentials are opaque here; the engine decides how to consume them
- Every failure surfaces as an EngineError, never a retry
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..jobs.models import TransferOperation


DEFAULT_SFTP_HOST = "127.0.0.1"
DEFAULT_SFTP_PORT = 22


class SftpCredentials(BaseModel):
    """
    Connection material for the remote SFTP endpoint.

    At least one of password / key_file is required.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    user: str = Field(..., min_length=1)
    host: str = DEFAULT_SFTP_HOST
    port: int = Field(default=DEFAULT_SFTP_PORT, ge=1, le=65535)
    password: Optional[str] = Field(default=None, repr=False)
    key_file: Optional[str] = None

    @model_validator(mode="after")
    def require_secret(self) -> "SftpCredentials":
        """Reject credentials carrying neither a password nor a key file."""
        if not self.password and not self.key_file:
            raise ValueError("A password or a private key path is required")
        return self


class TransferResult(BaseModel):
    """
    Outcome of one successful engine invocation.

    Failures are raised as EngineError instead of being returned.
    """

    model_config = ConfigDict(extra="forbid")

    operation: TransferOperation
    source: str
    destination: str
    started_at: datetime
    completed_at: datetime
    exit_code: int = 0
    log_file: Optional[str] = None
    command: List[str] = Field(default_factory=list)

    def duration_seconds(self) -> float:
        """Engine wall-clock time."""
        return (self.completed_at - self.started_at).total_seconds()


class TransferEngine(ABC):
    """
    Abstract base class for transfer engines.

    All engines must implement:
    - transfer: Copy or sync one source to one destination
    - list_remote: List entries under a remote path
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name for logs."""
        pass

    @property
    @abstractmethod
    def available(self) -> bool:
        """True if the engine can execute on this system."""
        pass

    @abstractmethod
    def transfer(
        self,
        operation: TransferOperation,
        source: str,
        destination: str,
        *,
        credentials: Optional[SftpCredentials] = None,
        config_path: Optional[Union[str, Path]] = None,
        log_file: Optional[Union[str, Path]] = None,
        log_level: str = "INFO",
        trace_id: Optional[str] = None,
    ) -> TransferResult:
        """
        Run one transfer to completion.

        Exactly one of credentials / config_path selects how the engine
        reaches the remote. With credentials, a transient configuration
        is generated for this call and removed afterwards.

        Raises:
            EngineError: On any failure
        """
        pass

    @abstractmethod
    def list_remote(
        self,
        remote: str,
        *,
        credentials: Optional[SftpCredentials] = None,
        config_path: Optional[Union[str, Path]] = None,
    ) -> List[str]:
        """
        List entry names under a remote path.

        Raises:
            EngineError: On any failure
        """
        pass

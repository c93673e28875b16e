"""
Transfer task and job data models.

A JobSpec describes one requested transfer. A TransferTask is the durable
status record for that job, keyed by its trace ID.

All models use Pydantic for validation.
State transitions are validated externally (see state.py).
"""

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


DEFAULT_REMOTE_NAME = "sftp"


class TaskStatus(str, Enum):
    """
    Transfer task status.

    Tasks only move forward through these states.
    """

    PENDING = "pending"  # Created in memory, engine not reached yet
    DOWNLOADING = "downloading"  # Transfer in progress
    COMPLETED = "completed"  # Engine exited cleanly
    FAILED = "failed"  # Setup or engine failure (see error)


class TransferOperation(str, Enum):
    """Direction of a transfer as understood by the engine adapter."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    SYNC = "sync"


def new_trace_id() -> str:
    """Generate a fresh trace ID for a submitted job."""
    return str(uuid.uuid4())


def local_now() -> datetime:
    """Current local time with its UTC offset."""
    return datetime.now().astimezone()


def remote_path(path: str, remote_name: str = DEFAULT_REMOTE_NAME) -> str:
    """
    Address a path on the configured remote (``remote:path``).

    Paths already carrying a remote prefix are returned unchanged.
    """
    if ":" in path.split("/", 1)[0]:
        return path
    return f"{remote_name}:{path}"


class JobSpec(BaseModel):
    """
    One requested transfer between a source and a destination.

    source/destination use the engine's addressing scheme:
    a local path or a ``remote:path`` string.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    operation: TransferOperation = TransferOperation.DOWNLOAD
    source: str
    destination: str
    log_dir: str = "./logs"

    @field_validator("source", "destination")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Endpoints must be non-empty."""
        if not v or not v.strip():
            raise ValueError("Transfer endpoints must be non-empty")
        return v

    @classmethod
    def for_download(
        cls,
        remote: str,
        local_path: str,
        log_dir: str = "./logs",
        remote_name: str = DEFAULT_REMOTE_NAME,
    ) -> "JobSpec":
        """Build a download job from one line of a job list."""
        return cls(
            operation=TransferOperation.DOWNLOAD,
            source=remote_path(remote.strip(), remote_name),
            destination=local_path,
            log_dir=log_dir,
        )


class TransferTask(BaseModel):
    """
    Durable status record of one transfer job.

    Persisted as one JSON file per trace_id. The record is replaced
    whole on every status change and frozen once terminal.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    # Identity
    trace_id: str = Field(default_factory=new_trace_id)

    # State
    status: TaskStatus = TaskStatus.PENDING

    # Timestamps
    start_time: datetime = Field(default_factory=local_now)
    end_time: Optional[datetime] = None

    # Outcome
    error: Optional[str] = None  # Set only when status is FAILED

    # Endpoints
    source: str
    destination: str

    # Directory holding the engine log (<trace_id>.log) and summary
    log_path: str = Field(
        default="",
        validation_alias=AliasChoices("log_path", "logPath"),
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_local_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Records without an offset are read as local time."""
        if v is not None and v.tzinfo is None:
            return v.astimezone()
        return v

    @property
    def is_terminal(self) -> bool:
        """True once the task has completed or failed."""
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def engine_log_file(self) -> str:
        """Path of the engine's detailed log for this task."""
        if not self.log_path:
            return ""
        return str(Path(self.log_path) / f"{self.trace_id}.log")

    def duration_seconds(self) -> Optional[float]:
        """Elapsed time between start and terminal status."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def _unset_optional_fields(self) -> Set[str]:
        exclude = set()
        if self.end_time is None:
            exclude.add("end_time")
        if self.error is None:
            exclude.add("error")
        return exclude

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict; unset end_time/error are omitted."""
        return self.model_dump(mode="json", exclude=self._unset_optional_fields())

    def to_json(self) -> str:
        """Serialize with stable field names; unset end_time/error are omitted."""
        return self.model_dump_json(indent=2, exclude=self._unset_optional_fields())

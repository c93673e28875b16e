"""
Watch daemon data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


DEFAULT_SYNC_INTERVAL_SECONDS = 600
DEFAULT_DEBOUNCE_SECONDS = 2.0
DEFAULT_STABILITY_INTERVAL_SECONDS = 1.0
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 30.0


class TransferMode(str, Enum):
    """What the daemon does once a file has settled."""

    FILE = "file"  # upload the settled file alone
    DIRECTORY = "directory"  # sync the whole watched directory


class WatchConfig(BaseModel):
    """
    Watch daemon configuration.

    The watched directory is mirrored to remote_root. A full sync also
    runs every sync_interval_seconds, independent of filesystem events.
    """

    model_config = {"extra": "forbid"}

    watch_dir: str = Field(..., description="Absolute path to the watched directory")
    remote_root: str = Field(..., description="Engine destination, e.g. sftp:/remote/path")
    config_path: str = Field(..., description="Engine config artifact with the remote definition")
    log_file: Optional[str] = Field(
        default=None, description="Combined daemon and engine log file"
    )
    sync_interval_seconds: float = Field(default=DEFAULT_SYNC_INTERVAL_SECONDS, gt=0)
    debounce_seconds: float = Field(default=DEFAULT_DEBOUNCE_SECONDS, ge=0)
    stability_interval_seconds: float = Field(default=DEFAULT_STABILITY_INTERVAL_SECONDS, ge=0)
    transfer_mode: TransferMode = Field(default=TransferMode.FILE)
    recursive: bool = Field(default=True, description="Whether to watch subdirectories")
    shutdown_timeout: Optional[float] = Field(
        default=DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        description="Seconds to wait for in-flight transfers on shutdown (None waits forever)",
    )

    @field_validator("remote_root", "config_path")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class FileStabilityCheck(BaseModel):
    """
    Result of a file stability check.

    A file is stable when its size did not change across one sampling
    window.
    """

    model_config = {"extra": "forbid"}

    path: str = Field(..., description="Path that was checked")
    is_stable: bool = Field(..., description="Whether file is stable")
    size_bytes: Optional[int] = Field(
        None, description="Size at the second sample (None if file inaccessible)"
    )
    reason: Optional[str] = Field(
        None, description="Human-readable explanation if unstable or inaccessible"
    )

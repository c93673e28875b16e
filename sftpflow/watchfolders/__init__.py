"""
Watch daemon - event-driven mirroring of a local directory.

Public API:
    WatchConfig - Daemon configuration model
    FileStabilityChecker - Two-sample size check for write completion
    InFlightSet - Per-path dedup of filesystem events
    SyncGate - Serializes uploads and full syncs against one remote root
    WatchDaemon - Orchestration: event -> debounce -> stability -> transfer
"""

from .errors import (
    WatchFolderError,
    WatchFolderNotFoundError,
    InvalidWatchFolderPathError,
)
from .models import WatchConfig, TransferMode, FileStabilityCheck
from .stability import FileStabilityChecker
from .inflight import InFlightSet
from .gate import SyncGate
from .daemon import WatchDaemon, join_remote

__all__ = [
    # Errors
    "WatchFolderError",
    "WatchFolderNotFoundError",
    "InvalidWatchFolderPathError",
    # Models
    "WatchConfig",
    "TransferMode",
    "FileStabilityCheck",
    # Core
    "FileStabilityChecker",
    "InFlightSet",
    "SyncGate",
    "WatchDaemon",
    "join_remote",
]

"""
File-backed task status store.

One JSON file per trace ID under a fixed status directory.

Storage rules:
- Every save replaces the whole record atomically (temp file + os.replace)
- Terminal records are never rewritten
- Records are never deleted here (retention is an external concern)

No cross-process locking: each trace ID is written only by the
worker that owns the job.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from .errors import (
    StatusSaveError,
    TaskNotFoundError,
    TaskParseError,
    TerminalStateViolation,
)
from .models import TransferTask


logger = logging.getLogger(__name__)

DEFAULT_STATUS_DIR = Path("./logs/sftp-download-status")
STATUS_SUFFIX = ".json"


class TaskStatusStore:
    """
    Durable record of each job's lifecycle, keyed by trace ID.

    Survives process restarts: a record written by one process can be
    loaded by any later process pointed at the same directory.
    """

    def __init__(self, status_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            status_dir: Directory holding <trace_id>.json files.
                Created lazily on first save.
        """
        self.status_dir = Path(status_dir) if status_dir else DEFAULT_STATUS_DIR

    def path_for(self, trace_id: str) -> Path:
        """Deterministic record path for a trace ID."""
        return self.status_dir / f"{trace_id}{STATUS_SUFFIX}"

    def save(self, task: TransferTask) -> Path:
        """
        Persist a task record, replacing any previous version.

        Returns:
            Path of the written record

        Raises:
            TerminalStateViolation: If the stored record is terminal and differs
            StatusSaveError: If the directory or file cannot be written
        """
        target = self.path_for(task.trace_id)

        existing = self._read_existing(task.trace_id, target)
        if existing is not None and existing.is_terminal and existing != task:
            raise TerminalStateViolation(task.trace_id, existing.status.value)

        payload = task.to_json()

        try:
            self.status_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{task.trace_id}.", suffix=".tmp", dir=self.status_dir
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, target)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise
        except OSError as e:
            raise StatusSaveError(task.trace_id, str(e)) from e

        logger.debug(f"Saved status {task.status.value} for {task.trace_id} -> {target}")
        return target

    def load(self, trace_id: str) -> TransferTask:
        """
        Load a task record by trace ID.

        Raises:
            TaskNotFoundError: If no record exists for the ID
            TaskParseError: If the record is corrupt
        """
        if not trace_id or os.sep in trace_id or "/" in trace_id or trace_id.startswith("."):
            raise TaskNotFoundError(trace_id)

        path = self.path_for(trace_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TaskNotFoundError(trace_id) from e
        except OSError as e:
            raise TaskParseError(trace_id, f"unreadable: {e}") from e

        try:
            task = TransferTask.model_validate_json(raw)
        except ValidationError as e:
            raise TaskParseError(trace_id, str(e)) from e

        if task.trace_id != trace_id:
            raise TaskParseError(
                trace_id, f"record carries trace_id {task.trace_id!r}"
            )
        return task

    def exists(self, trace_id: str) -> bool:
        """Check whether a record exists for the trace ID."""
        return self.path_for(trace_id).is_file()

    def list_tasks(self) -> List[TransferTask]:
        """
        Load every readable record, newest first.

        Corrupt records are skipped with a warning.
        """
        if not self.status_dir.is_dir():
            return []

        tasks = []
        for path in self.status_dir.glob(f"*{STATUS_SUFFIX}"):
            if path.name.startswith("."):
                continue
            try:
                tasks.append(self.load(path.stem))
            except (TaskParseError, TaskNotFoundError) as e:
                logger.warning(f"Skipping status record {path.name}: {e}")

        tasks.sort(key=lambda t: t.start_time, reverse=True)
        return tasks

    def _read_existing(self, trace_id: str, path: Path) -> Optional[TransferTask]:
        """Return the stored record, or None if missing or unreadable."""
        if not path.is_file():
            return None
        try:
            return TransferTask.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning(f"Existing status record for {trace_id} is unreadable: {e}")
            return None

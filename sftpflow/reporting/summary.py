"""
Download summary writer.

After a successful download, walks the destination tree and writes a
human-readable summary next to the engine log:

    <log_path>/download_<trace_id>.log

Summaries are informational. A failure to write one never fails the job.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from ..jobs.models import TransferTask, local_now
from .errors import ReportWriteError

logger = logging.getLogger(__name__)

# Relative paths longer than this are truncated in the file listing
MAX_NAME_WIDTH = 80


def format_size(bytes_size: int) -> str:
    """Format file size in bytes as human-readable string."""
    if bytes_size > 1024 * 1024 * 1024:
        return f"{bytes_size / (1024 * 1024 * 1024):.2f} GB"
    elif bytes_size > 1024 * 1024:
        return f"{bytes_size / (1024 * 1024):.2f} MB"
    elif bytes_size > 1024:
        return f"{bytes_size / 1024:.2f} KB"
    return f"{bytes_size} B"


def collect_files(root: Path) -> Tuple[List[str], int]:
    """
    Describe every regular file under root.

    Returns:
        (one formatted line per file in sorted order, total size in bytes)
    """
    lines: List[str] = []
    total = 0

    if root.is_file():
        candidates = [root]
        base = root.parent
    elif root.is_dir():
        candidates = sorted(p for p in root.rglob("*") if p.is_file())
        base = root
    else:
        return lines, total

    for path in candidates:
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning(f"Error collecting file information for {path}: {e}")
            continue

        total += stat.st_size
        rel = str(path.relative_to(base))[:MAX_NAME_WIDTH]
        modified = datetime.fromtimestamp(stat.st_mtime).astimezone().isoformat(timespec="seconds")
        lines.append(
            f"- {rel:<{MAX_NAME_WIDTH}}  Size: {format_size(stat.st_size):<20}  Modified: {modified}"
        )

    return lines, total


def render_summary(task: TransferTask, completed_at: Optional[datetime] = None) -> str:
    """Render the summary text for a completed task."""
    completed_at = completed_at or task.end_time or local_now()
    file_lines, total = collect_files(Path(task.destination))

    parts = [
        "Download Summary",
        "===============",
        "",
        f"Completed at: {completed_at.astimezone().isoformat(timespec='seconds')}",
        f"Source: {task.source}",
        f"Destination: {task.destination}",
        f"Total Size: {format_size(total)}",
        f"Total Files: {len(file_lines)}",
        "",
        "File Details",
        "============",
        "",
        "\n\n".join(file_lines),
    ]
    return "\n".join(parts)


def summary_path_for(task: TransferTask) -> Path:
    """Where the summary for a task is written."""
    return Path(task.log_path) / f"download_{task.trace_id}.log"


def write_download_summary(task: TransferTask) -> Path:
    """
    Write the download summary for a completed task.

    Returns path to written summary.
    Raises ReportWriteError if write fails.
    """
    path = summary_path_for(task)
    try:
        text = render_summary(task)
    except OSError as e:
        raise ReportWriteError(f"Failed to collect files for summary of {task.trace_id}: {e}") from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(f"Failed to write summary log {path}: {e}") from e

    logger.debug(f"Wrote download summary for {task.trace_id} -> {path}")
    return path

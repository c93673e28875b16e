"""
CLI command implementations.

Commands:
- run_download: Batch download of a job list with bounded concurrency
- show_status: Print one persisted status record
- transfer_once: Ad-hoc upload / download without a status record
- list_remote_entries: List a remote directory
- run_watch: Run the watch daemon until SIGINT/SIGTERM
- serve_status: Serve the read-only status API

Setup problems raise SetupError before any job starts. Job-level
failures stay in the status records.
"""

import logging
import signal
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from ..execution.base import SftpCredentials, TransferEngine, TransferResult
from ..execution.orchestrator import BatchOrchestrator, BatchResult
from ..execution.rclone import RcloneEngine
from ..jobs.models import JobSpec, TransferOperation, TransferTask
from ..jobs.store import TaskStatusStore
from ..monitoring.server import run_status_server
from ..settings import TransferSettings
from ..watchfolders.daemon import WatchDaemon
from ..watchfolders.errors import WatchFolderError
from ..watchfolders.models import WatchConfig
from .errors import SetupError

logger = logging.getLogger(__name__)

BATCH_DONE_MESSAGE = "All downloads completed."


def build_engine(settings: TransferSettings) -> RcloneEngine:
    return RcloneEngine(binary=settings.rclone_binary, remote_name=settings.remote_name)


def resolve_credentials(settings: TransferSettings) -> SftpCredentials:
    """
    Validate credentials up front.

    Raises:
        SetupError: username missing, or neither password nor key file set
    """
    if not settings.username:
        raise SetupError("user is not set (--user or SFTP_USERNAME)")
    if not settings.password and not settings.cert_path:
        raise SetupError("pass or cert path is required (--pass/--key or SFTP_PASSWORD/SFTP_CERT_PATH)")
    try:
        return settings.credentials()
    except ValidationError as e:
        raise SetupError(f"Invalid credentials: {e}") from e


def read_job_list(path: Union[str, Path]) -> List[str]:
    """
    Read remote paths from a job list file, one per line.

    Blank lines are ignored; surrounding whitespace is stripped.

    Raises:
        SetupError: file unreadable or containing no paths
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SetupError(f"Failed to open file list: {e}") from e

    remote_paths = [line.strip() for line in text.splitlines() if line.strip()]
    if not remote_paths:
        raise SetupError(f"No remote paths found in the file list: {path}")
    return remote_paths


def ensure_directory(path: Union[str, Path], purpose: str) -> Path:
    """Create a directory if missing. Raises SetupError if that fails."""
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Cannot create {purpose} directory {directory}: {e}") from e
    if not directory.is_dir():
        raise SetupError(f"{purpose.capitalize()} path is not a directory: {directory}")
    return directory


def ensure_writable_directory(path: Union[str, Path], purpose: str) -> Path:
    """Like ensure_directory, but also checks that files can be created there."""
    directory = ensure_directory(path, purpose)
    try:
        with tempfile.TemporaryFile(dir=directory):
            pass
    except OSError as e:
        raise SetupError(f"{purpose.capitalize()} directory is not writable {directory}: {e}") from e
    return directory


def run_download(
    settings: TransferSettings,
    engine: Optional[TransferEngine] = None,
    store: Optional[TaskStatusStore] = None,
) -> BatchResult:
    """
    Download every path of the job list into settings.local_path.

    Returns after all jobs reached a terminal status. Individual job
    failures do not raise.

    Raises:
        SetupError: missing settings, bad credentials, unusable job list
            or an unusable local, log or status directory
    """
    credentials = resolve_credentials(settings)

    if not settings.local_path:
        raise SetupError("local path is not set (--local or SFTP_LOCAL_PATH)")
    if not settings.file_list:
        raise SetupError("file list is not set (--file-list or SFTP_FILE_LIST)")

    remote_paths = read_job_list(settings.file_list)
    ensure_directory(settings.local_path, "local")
    ensure_directory(settings.log_dir, "log")
    store = store or TaskStatusStore(settings.status_dir)
    ensure_writable_directory(store.status_dir, "status")

    jobs = [
        JobSpec.for_download(
            remote,
            settings.local_path,
            log_dir=settings.log_dir,
            remote_name=settings.remote_name,
        )
        for remote in remote_paths
    ]

    orchestrator = BatchOrchestrator(
        engine=engine or build_engine(settings),
        store=store,
        credentials=credentials,
        log_level=settings.log_level,
    )
    result = orchestrator.run_batch(jobs, max_concurrency=settings.max_concurrent)

    for trace_id in result.trace_ids:
        print(f"Trace ID: {trace_id}")
    print(BATCH_DONE_MESSAGE)
    return result


def show_status(store: TaskStatusStore, trace_id: str) -> TransferTask:
    """
    Print the status record of one job as JSON.

    Raises:
        TaskNotFoundError: no record for trace_id
        TaskParseError: record unreadable
    """
    task = store.load(trace_id)
    print(task.to_json())
    return task


def transfer_once(
    engine: TransferEngine,
    operation: TransferOperation,
    source: str,
    destination: str,
    credentials: Optional[SftpCredentials] = None,
    config_path: Optional[str] = None,
) -> TransferResult:
    """
    Run a single engine transfer in the foreground.

    Engine output streams to the log. Nothing is persisted.

    Raises:
        EngineError: transfer failed
    """
    result = engine.transfer(
        operation,
        source,
        destination,
        credentials=credentials,
        config_path=config_path,
    )
    print(f"Successfully completed {operation.value} from {source} to {destination}")
    return result


def list_remote_entries(
    engine: TransferEngine,
    remote: str,
    credentials: Optional[SftpCredentials] = None,
    config_path: Optional[str] = None,
) -> List[str]:
    """Print the entries of a remote directory, one per line."""
    entries = engine.list_remote(remote, credentials=credentials, config_path=config_path)
    print(f"Files in {remote}:")
    for entry in entries:
        print(f"  {entry}")
    return entries


def run_watch(config: WatchConfig, engine: TransferEngine) -> None:
    """
    Run the watch daemon until SIGINT/SIGTERM.

    Raises:
        SetupError: watch directory missing or invalid
    """
    try:
        daemon = WatchDaemon(config, engine)
    except WatchFolderError as e:
        raise SetupError(str(e)) from e

    if threading.current_thread() is threading.main_thread():
        def _on_signal(signum, frame):
            logger.info("Daemon shutting down gracefully...")
            daemon.stop()

        signal.signal(signal.SIGINT, _on_signal)
        signal.signal(signal.SIGTERM, _on_signal)

    daemon.run()


def serve_status(store: TaskStatusStore, host: str, port: int) -> None:
    run_status_server(store=store, host=host, port=port)

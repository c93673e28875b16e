"""
Watch daemon - mirrors a local directory to a remote tree.

Two triggers feed the engine:
1. Filesystem events: a created/modified file is debounced, checked for
   stability, then uploaded (or a full sync is requested in directory mode)
2. A periodic timer requesting a full sync every sync_interval_seconds

Both go through one SyncGate. Per-file failures are logged; the daemon
keeps watching. Nothing is written to the task status store.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import List, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..execution.base import TransferEngine
from ..execution.errors import EngineError
from ..jobs.models import TransferOperation
from .errors import InvalidWatchFolderPathError, WatchFolderNotFoundError
from .gate import SyncGate
from .inflight import InFlightSet
from .models import TransferMode, WatchConfig
from .stability import FileStabilityChecker

logger = logging.getLogger(__name__)

# How often run() checks for a stop request
STOP_POLL_SECONDS = 0.5


def join_remote(remote_root: str, relative: str) -> str:
    """Append a relative posix path to an engine remote address."""
    if not relative or relative == ".":
        return remote_root
    if remote_root.endswith((":", "/")):
        return f"{remote_root}{relative}"
    return f"{remote_root}/{relative}"


class _WatchEventHandler(FileSystemEventHandler):
    """Forwards file create/modify/move-in events to the daemon."""

    def __init__(self, daemon: "WatchDaemon"):
        super().__init__()
        self.daemon = daemon

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.daemon.handle_event(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.daemon.handle_event(os.fsdecode(event.src_path))

    def on_closed(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.daemon.handle_event(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Writers that rename a finished temp file into place
        if not event.is_directory:
            self.daemon.handle_event(os.fsdecode(event.dest_path))


class WatchDaemon:
    """
    Long-running watcher for one directory.

    Per path:
        Idle -> event -> Pending (debounce, stability check)
        Pending -> unstable -> Idle
        Pending -> stable -> Transferring -> Idle (always)

    Events for a path already in flight are dropped.
    """

    def __init__(
        self,
        config: WatchConfig,
        engine: TransferEngine,
        stability_checker: Optional[FileStabilityChecker] = None,
        gate: Optional[SyncGate] = None,
    ):
        """
        Initialize watch daemon.

        Args:
            config: Watch configuration
            engine: Transfer engine used for uploads and syncs
            stability_checker: Optional checker (defaults to config interval)
            gate: Optional gate, shared when several daemons target one remote

        Raises:
            InvalidWatchFolderPathError: watch_dir is relative or not a directory
            WatchFolderNotFoundError: watch_dir does not exist
        """
        self.config = config
        self.engine = engine
        self.watch_dir = self._validate_watch_dir(config.watch_dir)
        self.stability_checker = stability_checker or FileStabilityChecker(
            interval=config.stability_interval_seconds
        )
        self.gate = gate or SyncGate()
        self.in_flight = InFlightSet()

        self._stop_event = threading.Event()
        self._workers: List[threading.Thread] = []
        self._workers_lock = threading.Lock()
        self._observer: Optional[Observer] = None
        self._timer: Optional[threading.Thread] = None

        self._ignored_files = set()
        if config.log_file:
            self._ignored_files.add(os.path.abspath(config.log_file))

    @staticmethod
    def _validate_watch_dir(watch_dir: str) -> Path:
        path = Path(watch_dir)
        if not path.is_absolute():
            raise InvalidWatchFolderPathError(f"Watch directory must be absolute: {watch_dir}")
        if not path.exists():
            raise WatchFolderNotFoundError(f"Watch directory does not exist: {watch_dir}")
        if not path.is_dir():
            raise InvalidWatchFolderPathError(f"Watch path is not a directory: {watch_dir}")
        return path

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    # =========================================================================
    # Event handling
    # =========================================================================

    def is_ignored(self, path: Path) -> bool:
        """Hidden entries, the daemon's own log file and paths outside the root."""
        if str(path) in self._ignored_files:
            return True
        try:
            relative = path.relative_to(self.watch_dir)
        except ValueError:
            return True
        if not self.config.recursive and len(relative.parts) > 1:
            return True
        return any(part.startswith(".") for part in relative.parts)

    def handle_event(self, path: Union[str, Path]) -> Optional[threading.Thread]:
        """
        Start a settle worker for a path unless it is ignored or in flight.

        Returns the started worker thread, or None if the event was dropped.
        """
        path = Path(os.path.abspath(path))

        if self.stopped or self.is_ignored(path):
            return None

        if not self.in_flight.try_add(str(path)):
            logger.debug(f"Already processing {path}, dropping event")
            return None

        worker = threading.Thread(
            target=self._settle_and_transfer,
            args=(path,),
            name=f"settle-{path.name}",
            daemon=True,
        )
        with self._workers_lock:
            self._workers.append(worker)
        try:
            worker.start()
        except RuntimeError:
            self._forget(worker, path)
            raise
        return worker

    def _settle_and_transfer(self, path: Path) -> None:
        try:
            if self._stop_event.wait(self.config.debounce_seconds):
                logger.debug(f"Shutdown during debounce, skipping {path}")
                return

            check = self.stability_checker.check(path)
            if not check.is_stable:
                logger.info(f"File {path} is not stable, skipping upload: {check.reason}")
                return

            logger.info(f"Detected new file ready for upload: {path}")
            if self.config.transfer_mode == TransferMode.DIRECTORY:
                self.request_full_sync()
            else:
                self.upload_file(path)
        except Exception as e:
            logger.exception(f"Error processing {path}: {e}")
        finally:
            self._forget(threading.current_thread(), path)

    def _forget(self, worker: threading.Thread, path: Path) -> None:
        self.in_flight.discard(str(path))
        with self._workers_lock:
            if worker in self._workers:
                self._workers.remove(worker)

    # =========================================================================
    # Transfers
    # =========================================================================

    def remote_destination_for(self, path: Path) -> str:
        """Remote directory a settled file is uploaded into."""
        relative_parent = path.relative_to(self.watch_dir).parent.as_posix()
        return join_remote(self.config.remote_root, relative_parent)

    def upload_file(self, path: Path) -> bool:
        """Upload one file through the gate. Returns False on engine failure."""
        destination = self.remote_destination_for(path)
        logger.info(f"Uploading {path} to {destination}")
        try:
            self.gate.run(
                self.engine.transfer,
                TransferOperation.UPLOAD,
                str(path),
                destination,
                config_path=self.config.config_path,
            )
        except EngineError as e:
            logger.error(f"Failed to upload file: {path}, error: {e}")
            return False
        return True

    def request_full_sync(self) -> bool:
        """
        Sync the whole watched directory through the gate.

        Returns False if the request was coalesced into an already
        queued sync.
        """
        ran = self.gate.request_full_sync(self._full_sync)
        if not ran:
            logger.debug("Full sync already queued")
        return ran

    def _full_sync(self) -> None:
        logger.info(f"Running scheduled sync: {self.watch_dir} -> {self.config.remote_root}")
        try:
            self.engine.transfer(
                TransferOperation.SYNC,
                str(self.watch_dir),
                self.config.remote_root,
                config_path=self.config.config_path,
            )
        except EngineError as e:
            logger.error(f"Scheduled sync failed: {e}")

    def _timer_loop(self) -> None:
        interval = self.config.sync_interval_seconds
        while not self._stop_event.wait(interval):
            try:
                self.request_full_sync()
            except Exception as e:
                logger.exception(f"Scheduled sync raised unexpectedly: {e}")
        logger.debug("Sync timer stopped")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the observer and the sync timer. Returns immediately."""
        if self._observer is not None:
            return

        observer = Observer()
        observer.schedule(
            _WatchEventHandler(self), str(self.watch_dir), recursive=self.config.recursive
        )
        observer.start()
        self._observer = observer

        self._timer = threading.Thread(target=self._timer_loop, name="sync-timer", daemon=True)
        self._timer.start()

        logger.info(
            f"Starting to watch directory: {self.watch_dir} "
            f"(mode={self.config.transfer_mode.value}, "
            f"sync every {self.config.sync_interval_seconds:g}s)"
        )

    def stop(self) -> None:
        """Request shutdown. Safe to call from a signal handler."""
        self._stop_event.set()

    def run(self) -> None:
        """Start, block until stop() is called, then shut down."""
        self.start()
        try:
            while not self._stop_event.wait(STOP_POLL_SECONDS):
                pass
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """
        Stop watching and wait for in-flight workers.

        Waits at most config.shutdown_timeout seconds in total. Transfers
        still running after that are left to finish on their own.
        """
        self._stop_event.set()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=10)
            self._observer = None

        if self._timer is not None:
            self._timer.join(timeout=10)
            self._timer = None

        timeout = self.config.shutdown_timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._workers_lock:
            workers = list(self._workers)

        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(timeout=remaining)

        still_running = [w for w in workers if w.is_alive()]
        if still_running:
            logger.warning(f"{len(still_running)} transfer(s) still running at shutdown")
        logger.info("Watcher stopped")

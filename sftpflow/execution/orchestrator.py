"""
Batch orchestrator - bounded-concurrency fan-out of transfer jobs.

Execution Rules:
================
- Bounded concurrency: up to N jobs run in parallel
- Jobs are submitted in input order; they may complete in any order
- One status record per job, keyed by a fresh trace ID
- If one job fails, other running jobs complete normally
- No retries, no mid-batch cancellation
- run_batch returns only after every job reached a terminal status

Failure Semantics:
==================
Job failures are recorded in the job's status record and never raised
to the caller. The batch outcome is the set of persisted records.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from ..jobs.errors import TaskNotFoundError, TaskParseError, TaskStoreError
from ..jobs.models import JobSpec, TaskStatus, TransferOperation, TransferTask, new_trace_id
from ..jobs.state import transition_task
from ..jobs.store import TaskStatusStore
from ..reporting.errors import ReportWriteError
from ..reporting.summary import write_download_summary
from .base import SftpCredentials, TransferEngine
from .errors import EngineError

logger = logging.getLogger(__name__)


DEFAULT_MAX_CONCURRENCY = 3

StatusObserver = Callable[[TransferTask], None]


@dataclass
class BatchResult:
    """
    Trace IDs of a finished batch, in submission order.

    The orchestrator does not aggregate outcomes; load the records
    from the store to inspect them.
    """

    trace_ids: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.trace_ids)

    def load_tasks(self, store: TaskStatusStore) -> List[TransferTask]:
        """Load the persisted record of every job that has one."""
        tasks = []
        for trace_id in self.trace_ids:
            try:
                tasks.append(store.load(trace_id))
            except (TaskNotFoundError, TaskParseError) as e:
                logger.warning(f"Status for {trace_id} is not queryable: {e}")
        return tasks


class BatchOrchestrator:
    """
    Runs a list of transfer jobs through a bounded worker pool.

    Each job:
    1. Creates and persists its status record (DOWNLOADING)
    2. Ensures its log directory exists
    3. Calls the transfer engine (transient credentials handled there)
    4. Persists the terminal status (COMPLETED or FAILED)
    5. On successful downloads, writes a summary of the destination tree
    """

    def __init__(
        self,
        engine: TransferEngine,
        store: TaskStatusStore,
        credentials: Optional[SftpCredentials] = None,
        config_path: Optional[Union[str, Path]] = None,
        log_level: str = "INFO",
        write_summaries: bool = True,
        on_status: Optional[StatusObserver] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            engine: Transfer engine invoked once per job
            store: Status store receiving one record per job
            credentials: Shared credentials (rendered into per-job configs)
            config_path: Pre-made engine config, used instead of credentials
            log_level: Engine log level for per-job log files
            write_summaries: Write download summaries after successful downloads
            on_status: Called with a snapshot after every status change
        """
        self.engine = engine
        self.store = store
        self.credentials = credentials
        self.config_path = config_path
        self.log_level = log_level
        self.write_summaries = write_summaries
        self.on_status = on_status

    def run_batch(
        self,
        jobs: Iterable[JobSpec],
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> BatchResult:
        """
        Run every job, at most max_concurrency at a time.

        Blocks until all jobs reached a terminal status.
        A max_concurrency below 1 is coerced to 1.
        """
        jobs = list(jobs)
        result = BatchResult()

        if not jobs:
            logger.info("Empty job list, nothing to transfer")
            return result

        if max_concurrency < 1:
            logger.warning(f"max_concurrency={max_concurrency} is invalid, using 1")
            max_concurrency = 1

        logger.info(f"Starting batch of {len(jobs)} job(s), max concurrency {max_concurrency}")

        slots = threading.BoundedSemaphore(max_concurrency)
        futures: List[Future] = []

        with ThreadPoolExecutor(
            max_workers=max_concurrency, thread_name_prefix="transfer"
        ) as executor:
            for i, job in enumerate(jobs, 1):
                slots.acquire()
                trace_id = new_trace_id()
                result.trace_ids.append(trace_id)
                logger.info(f"[{i}/{len(jobs)}] Submitting {job.source} -> {job.destination} ({trace_id})")
                try:
                    futures.append(executor.submit(self._run_in_slot, slots, job, trace_id))
                except BaseException:
                    slots.release()
                    raise

            for future in as_completed(futures):
                # _run_in_slot records every failure; this only surfaces bugs
                exc = future.exception()
                if exc is not None:
                    logger.error(f"Worker raised unexpectedly: {exc!r}")

        logger.info(f"Batch complete: {len(result)} job(s) reached a terminal status")
        return result

    def _run_in_slot(
        self, slots: threading.BoundedSemaphore, job: JobSpec, trace_id: str
    ) -> TransferTask:
        try:
            return self.run_job(job, trace_id)
        finally:
            slots.release()

    def run_job(self, job: JobSpec, trace_id: Optional[str] = None) -> TransferTask:
        """
        Run a single job to a terminal status.

        Never raises for job-level failures; the returned task carries
        the outcome.
        """
        task = TransferTask(
            trace_id=trace_id or new_trace_id(),
            source=job.source,
            destination=job.destination,
            log_path=job.log_dir,
        )

        self._set_status(task, TaskStatus.DOWNLOADING)
        self._persist(task)

        try:
            Path(job.log_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return self._fail(task, f"Failed to create log directory: {e}")

        try:
            self.engine.transfer(
                job.operation,
                job.source,
                job.destination,
                credentials=self.credentials,
                config_path=self.config_path,
                log_file=task.engine_log_file,
                log_level=self.log_level,
                trace_id=task.trace_id,
            )
        except EngineError as e:
            logger.warning(f"Transfer {task.trace_id} failed: {e}")
            return self._fail(task, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error in transfer {task.trace_id}: {e}")
            return self._fail(task, f"Unexpected error: {e}")

        self._set_status(task, TaskStatus.COMPLETED)
        self._persist(task)
        logger.info(f"Transfer {task.trace_id} completed: {task.source} -> {task.destination}")

        if self.write_summaries and job.operation == TransferOperation.DOWNLOAD:
            try:
                write_download_summary(task)
            except ReportWriteError as e:
                logger.warning(str(e))

        return task

    def _fail(self, task: TransferTask, error: str) -> TransferTask:
        self._set_status(task, TaskStatus.FAILED, error=error)
        self._persist(task)
        return task

    def _set_status(
        self, task: TransferTask, status: TaskStatus, error: Optional[str] = None
    ) -> None:
        transition_task(task, status, error=error)
        if self.on_status is None:
            return
        # Observer errors never change the job outcome
        try:
            self.on_status(task.model_copy())
        except Exception as e:
            logger.exception(f"Status observer failed for {task.trace_id} ({status.value}): {e}")

    def _persist(self, task: TransferTask) -> None:
        """Best-effort save: a persistence failure never aborts the job."""
        try:
            self.store.save(task)
        except TaskStoreError as e:
            logger.error(f"Status for {task.trace_id} may be unqueryable: {e}")

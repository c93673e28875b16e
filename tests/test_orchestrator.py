"""
Tests for the batch orchestrator.

These tests verify:
1. Concurrency never exceeds the configured bound
2. Every job gets its own trace ID and terminal status record
3. A failing job does not affect its siblings
4. Unexpected exceptions and persistence failures are contained
5. Download summaries are written for successful downloads only
"""

import threading
from pathlib import Path
from typing import List

import pytest

from sftpflow.execution.base import SftpCredentials
from sftpflow.execution.orchestrator import BatchOrchestrator, BatchResult
from sftpflow.jobs.errors import StatusSaveError
from sftpflow.jobs.models import JobSpec, TaskStatus, TransferOperation, TransferTask
from sftpflow.jobs.store import TaskStatusStore
from sftpflow.reporting import summary

from fakes import FakeEngine


def _jobs(tmp_path: Path, count: int) -> List[JobSpec]:
    return [
        JobSpec.for_download(
            f"/remote/file_{i}.bin",
            str(tmp_path / "local"),
            log_dir=str(tmp_path / "logs"),
        )
        for i in range(count)
    ]


class StatusSampler:
    """Counts tasks in DOWNLOADING via the on_status observer."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.seen: List[TransferTask] = []
        self._lock = threading.Lock()

    def __call__(self, task: TransferTask) -> None:
        with self._lock:
            self.seen.append(task)
            if task.status == TaskStatus.DOWNLOADING:
                self.active += 1
                self.peak = max(self.peak, self.active)
            elif task.is_terminal:
                self.active -= 1


class FailingStore(TaskStatusStore):
    def save(self, task):
        raise StatusSaveError(task.trace_id, "disk full")


class TestBoundedConcurrency:
    """Scenario: 5 jobs with a bound of 3."""

    def test_five_jobs_three_slots(self, tmp_path: Path, store: TaskStatusStore):
        engine = FakeEngine(delay=0.1)
        sampler = StatusSampler()
        orchestrator = BatchOrchestrator(engine, store, on_status=sampler)

        result = orchestrator.run_batch(_jobs(tmp_path, 5), max_concurrency=3)

        assert len(result.trace_ids) == 5
        assert len(set(result.trace_ids)) == 5
        assert sorted(p.stem for p in store.status_dir.glob("*.json")) == sorted(result.trace_ids)
        assert engine.peak <= 3
        assert 1 <= sampler.peak <= 3
        assert sampler.active == 0

        for task in result.load_tasks(store):
            assert task.status == TaskStatus.COMPLETED
            assert task.end_time is not None

    def test_concurrency_of_one_serializes(self, tmp_path: Path, store: TaskStatusStore):
        engine = FakeEngine(delay=0.02)
        BatchOrchestrator(engine, store).run_batch(_jobs(tmp_path, 4), max_concurrency=1)
        assert engine.peak == 1

    @pytest.mark.parametrize("bound", [0, -2])
    def test_non_positive_bound_is_coerced_to_one(self, tmp_path: Path, store: TaskStatusStore, bound):
        engine = FakeEngine(delay=0.02)

        result = BatchOrchestrator(engine, store).run_batch(_jobs(tmp_path, 3), max_concurrency=bound)

        assert len(result) == 3
        assert engine.peak == 1

    def test_empty_job_list_is_noop(self, store: TaskStatusStore, fake_engine: FakeEngine):
        result = BatchOrchestrator(fake_engine, store).run_batch([], max_concurrency=3)

        assert result == BatchResult(trace_ids=[])
        assert fake_engine.calls == []
        assert not store.status_dir.exists()

    def test_submission_order_preserved(self, tmp_path: Path, store: TaskStatusStore):
        engine = FakeEngine()
        jobs = _jobs(tmp_path, 3)

        result = BatchOrchestrator(engine, store).run_batch(jobs, max_concurrency=3)

        sources = [store.load(t).source for t in result.trace_ids]
        assert sources == [j.source for j in jobs]


class TestFailureIsolation:
    """Job failures stay in job records."""

    def test_failing_engine_records_failure(self, tmp_path: Path, store: TaskStatusStore):
        jobs = _jobs(tmp_path, 3)
        engine = FakeEngine(fail_sources={jobs[1].source})

        result = BatchOrchestrator(engine, store).run_batch(jobs, max_concurrency=3)

        tasks = {t.source: t for t in result.load_tasks(store)}
        failed = tasks[jobs[1].source]
        assert failed.status == TaskStatus.FAILED
        assert failed.error
        assert "exit code: 1" in failed.error
        assert failed.end_time is not None

        for job in (jobs[0], jobs[2]):
            assert tasks[job.source].status == TaskStatus.COMPLETED

    def test_unexpected_exception_recorded_as_failed(self, tmp_path: Path, store: TaskStatusStore):
        engine = FakeEngine(exception=RuntimeError("kaboom"))

        result = BatchOrchestrator(engine, store).run_batch(_jobs(tmp_path, 2), max_concurrency=2)

        for task in result.load_tasks(store):
            assert task.status == TaskStatus.FAILED
            assert "kaboom" in task.error

    def test_persistence_failure_does_not_abort_batch(self, tmp_path: Path):
        engine = FakeEngine()
        sampler = StatusSampler()
        store = FailingStore(tmp_path / "status")

        result = BatchOrchestrator(engine, store, on_status=sampler).run_batch(
            _jobs(tmp_path, 2), max_concurrency=2
        )

        assert len(result) == 2
        assert len(engine.calls) == 2
        terminal = [t for t in sampler.seen if t.is_terminal]
        assert {t.status for t in terminal} == {TaskStatus.COMPLETED}

    def test_raising_observer_does_not_change_outcome(self, tmp_path: Path, store: TaskStatusStore, caplog):
        def observer(task: TransferTask) -> None:
            if task.status == TaskStatus.DOWNLOADING:
                raise RuntimeError("observer broke")

        engine = FakeEngine()
        result = BatchOrchestrator(engine, store, on_status=observer).run_batch(
            _jobs(tmp_path, 2), max_concurrency=2
        )

        assert len(engine.calls) == 2
        assert {t.status for t in result.load_tasks(store)} == {TaskStatus.COMPLETED}
        assert "Status observer failed" in caplog.text

    def test_unusable_log_dir_fails_job_before_engine(self, tmp_path: Path, store: TaskStatusStore):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not dir")
        job = JobSpec.for_download("/remote/a", str(tmp_path / "local"), log_dir=str(blocker / "logs"))
        engine = FakeEngine()

        result = BatchOrchestrator(engine, store).run_batch([job], max_concurrency=1)

        task = store.load(result.trace_ids[0])
        assert task.status == TaskStatus.FAILED
        assert "log directory" in task.error
        assert engine.calls == []


class TestPerJobWiring:
    """What each job hands to the engine and leaves on disk."""

    def test_engine_receives_per_job_log_file_and_trace_id(self, tmp_path: Path, store: TaskStatusStore):
        engine = FakeEngine()
        creds = SftpCredentials(user="bob", password="secret")

        result = BatchOrchestrator(engine, store, credentials=creds).run_batch(
            _jobs(tmp_path, 1), max_concurrency=1
        )

        call = engine.calls[0]
        trace_id = result.trace_ids[0]
        assert call["trace_id"] == trace_id
        assert call["credentials"] == creds
        assert call["log_file"] == str(tmp_path / "logs" / f"{trace_id}.log")
        assert call["operation"] == TransferOperation.DOWNLOAD

    def test_summary_written_only_on_success(self, tmp_path: Path, store: TaskStatusStore):
        jobs = _jobs(tmp_path, 2)
        engine = FakeEngine(fail_sources={jobs[0].source})

        result = BatchOrchestrator(engine, store).run_batch(jobs, max_concurrency=2)

        summaries = {p.name for p in (tmp_path / "logs").glob("download_*.log")}
        by_source = {store.load(t).source: t for t in result.trace_ids}
        assert summaries == {f"download_{by_source[jobs[1].source]}.log"}

    def test_summary_walk_failure_keeps_job_completed(self, tmp_path: Path, store: TaskStatusStore, monkeypatch):
        def vanished(root):
            raise FileNotFoundError(2, "No such file or directory", str(root))

        monkeypatch.setattr(summary, "collect_files", vanished)

        result = BatchOrchestrator(FakeEngine(), store).run_batch(_jobs(tmp_path, 1), max_concurrency=1)

        assert store.load(result.trace_ids[0]).status == TaskStatus.COMPLETED

    def test_summaries_can_be_disabled(self, tmp_path: Path, store: TaskStatusStore):
        BatchOrchestrator(FakeEngine(), store, write_summaries=False).run_batch(
            _jobs(tmp_path, 1), max_concurrency=1
        )
        assert list((tmp_path / "logs").glob("download_*.log")) == []

    def test_observer_sees_forward_progression(self, tmp_path: Path, store: TaskStatusStore):
        sampler = StatusSampler()
        BatchOrchestrator(FakeEngine(), store, on_status=sampler).run_batch(
            _jobs(tmp_path, 1), max_concurrency=1
        )
        assert [t.status for t in sampler.seen] == [TaskStatus.DOWNLOADING, TaskStatus.COMPLETED]

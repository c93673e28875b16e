"""
Tests for the watch daemon.

These tests verify:
1. Settled files are uploaded into the matching remote directory
2. Unstable files are skipped
3. Events for a path already in flight are dropped
4. The in-flight set is emptied on every outcome
5. Hidden files and paths outside the root are ignored
6. Directory mode and the periodic timer request full syncs
"""

import os
import threading
from pathlib import Path

import pytest

from sftpflow.jobs.models import TransferOperation
from sftpflow.watchfolders.daemon import WatchDaemon, join_remote
from sftpflow.watchfolders.errors import InvalidWatchFolderPathError, WatchFolderNotFoundError
from sftpflow.watchfolders.models import FileStabilityCheck, TransferMode, WatchConfig
from sftpflow.watchfolders.stability import FileStabilityChecker

from fakes import BlockingEngine, FakeEngine, wait_until


class NeverStable(FileStabilityChecker):
    def check(self, path):
        return FileStabilityCheck(path=str(path), is_stable=False, reason="still growing")


class ExplodingChecker(FileStabilityChecker):
    def check(self, path):
        raise RuntimeError("stat exploded")


def _config(watch_dir: Path, **kwargs) -> WatchConfig:
    defaults = dict(
        watch_dir=str(watch_dir),
        remote_root="sftp:/remote/path",
        config_path="/etc/rclone/app.conf",
        debounce_seconds=0,
        stability_interval_seconds=0,
        shutdown_timeout=5,
    )
    defaults.update(kwargs)
    return WatchConfig(**defaults)


def _daemon(watch_dir: Path, engine, checker=None, **kwargs) -> WatchDaemon:
    return WatchDaemon(
        _config(watch_dir, **kwargs),
        engine,
        stability_checker=checker or FileStabilityChecker(interval=0, sleep=lambda s: None),
    )


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    path = tmp_path / "watch"
    path.mkdir()
    return path


class TestJoinRemote:
    def test_join(self):
        assert join_remote("sftp:/remote/path", ".") == "sftp:/remote/path"
        assert join_remote("sftp:/remote/path", "a/b") == "sftp:/remote/path/a/b"
        assert join_remote("sftp:", "a") == "sftp:a"
        assert join_remote("sftp:/root/", "a") == "sftp:/root/a"


class TestConfiguration:
    def test_missing_watch_dir(self, tmp_path: Path):
        with pytest.raises(WatchFolderNotFoundError):
            _daemon(tmp_path / "nope", FakeEngine())

    def test_relative_watch_dir(self):
        with pytest.raises(InvalidWatchFolderPathError):
            _daemon(Path("relative/dir"), FakeEngine())

    def test_watch_path_is_a_file(self, tmp_path: Path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(InvalidWatchFolderPathError):
            _daemon(target, FakeEngine())

    def test_defaults(self, watch_dir: Path):
        config = WatchConfig(
            watch_dir=str(watch_dir), remote_root="sftp:/r", config_path="app.conf"
        )
        assert config.sync_interval_seconds == 600
        assert config.debounce_seconds == 2.0
        assert config.stability_interval_seconds == 1.0
        assert config.transfer_mode == TransferMode.FILE
        assert config.recursive is True


class TestEventHandling:
    """handle_event drives one path through settle and transfer."""

    def test_settled_file_is_uploaded(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine)
        path = watch_dir / "report.csv"
        path.write_text("a,b\n")

        worker = daemon.handle_event(path)
        worker.join(timeout=5)

        uploads = engine.calls_for(TransferOperation.UPLOAD)
        assert len(uploads) == 1
        assert uploads[0]["source"] == str(path)
        assert uploads[0]["destination"] == "sftp:/remote/path"
        assert uploads[0]["config_path"] == "/etc/rclone/app.conf"
        assert len(daemon.in_flight) == 0

    def test_nested_file_keeps_relative_directory(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine)
        nested = watch_dir / "2024" / "05"
        nested.mkdir(parents=True)
        path = nested / "data.bin"
        path.write_bytes(b"1")

        daemon.handle_event(path).join(timeout=5)

        assert engine.calls[0]["destination"] == "sftp:/remote/path/2024/05"

    def test_unstable_file_is_skipped_and_released(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine, checker=NeverStable())
        path = watch_dir / "partial.bin"
        path.write_bytes(b"1")

        daemon.handle_event(path).join(timeout=5)

        assert engine.calls == []
        assert str(path) not in daemon.in_flight

    def test_duplicate_events_are_dropped_while_in_flight(self, watch_dir: Path):
        engine = BlockingEngine()
        daemon = _daemon(watch_dir, engine)
        path = watch_dir / "big.bin"
        path.write_bytes(b"1")

        first = daemon.handle_event(path)
        assert engine.entered.wait(timeout=5)
        assert daemon.handle_event(path) is None

        engine.release()
        first.join(timeout=5)

        assert len(engine.calls) == 1
        assert len(daemon.in_flight) == 0

    def test_engine_failure_is_logged_and_released(self, watch_dir: Path, caplog):
        path = watch_dir / "bad.bin"
        path.write_bytes(b"1")
        engine = FakeEngine(fail_sources={str(path)})
        daemon = _daemon(watch_dir, engine)

        daemon.handle_event(path).join(timeout=5)

        assert len(daemon.in_flight) == 0
        assert "Failed to upload file" in caplog.text

    def test_checker_crash_is_contained(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine, checker=ExplodingChecker())
        path = watch_dir / "x.bin"
        path.write_bytes(b"1")

        daemon.handle_event(path).join(timeout=5)

        assert engine.calls == []
        assert len(daemon.in_flight) == 0
        assert daemon.handle_event(path) is not None

    @pytest.mark.parametrize("relative", [".hidden", ".git/config", "sub/.partial.tmp"])
    def test_hidden_paths_are_ignored(self, watch_dir: Path, relative):
        daemon = _daemon(watch_dir, FakeEngine())
        assert daemon.handle_event(watch_dir / relative) is None

    def test_paths_outside_root_are_ignored(self, watch_dir: Path, tmp_path: Path):
        daemon = _daemon(watch_dir, FakeEngine())
        assert daemon.handle_event(tmp_path / "elsewhere.txt") is None

    def test_own_log_file_is_ignored(self, watch_dir: Path):
        log_file = watch_dir / "daemon.log"
        daemon = _daemon(watch_dir, FakeEngine(), log_file=str(log_file))
        assert daemon.handle_event(log_file) is None

    def test_subdirectories_ignored_when_not_recursive(self, watch_dir: Path):
        daemon = _daemon(watch_dir, FakeEngine(), recursive=False)
        assert daemon.handle_event(watch_dir / "sub" / "file.txt") is None

    def test_events_ignored_after_stop(self, watch_dir: Path):
        daemon = _daemon(watch_dir, FakeEngine())
        daemon.stop()
        assert daemon.handle_event(watch_dir / "late.txt") is None


class TestFullSync:
    """Directory mode and the periodic timer."""

    def test_directory_mode_requests_full_sync(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine, transfer_mode=TransferMode.DIRECTORY)
        path = watch_dir / "a.txt"
        path.write_text("a")

        daemon.handle_event(path).join(timeout=5)

        syncs = engine.calls_for(TransferOperation.SYNC)
        assert len(syncs) == 1
        assert syncs[0]["source"] == str(watch_dir)
        assert syncs[0]["destination"] == "sftp:/remote/path"
        assert engine.calls_for(TransferOperation.UPLOAD) == []

    def test_timer_triggers_sync(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine, sync_interval_seconds=0.05)

        daemon.start()
        try:
            assert wait_until(lambda: engine.calls_for(TransferOperation.SYNC))
        finally:
            daemon.shutdown()

    def test_sync_failure_does_not_stop_timer(self, watch_dir: Path):
        engine = FakeEngine(fail_sources={str(watch_dir)})
        daemon = _daemon(watch_dir, engine, sync_interval_seconds=0.05)

        daemon.start()
        try:
            assert wait_until(lambda: len(engine.calls_for(TransferOperation.SYNC)) >= 2)
        finally:
            daemon.shutdown()


class TestLifecycle:
    """run() / stop() with a real filesystem observer."""

    def test_new_file_is_uploaded_then_stop_returns(self, watch_dir: Path):
        engine = FakeEngine()
        daemon = _daemon(watch_dir, engine)
        runner = threading.Thread(target=daemon.run)
        runner.start()
        try:
            assert wait_until(lambda: daemon._observer is not None)
            staged = watch_dir.parent / "staged.txt"
            staged.write_text("hello")
            os.replace(staged, watch_dir / "incoming.txt")
            assert wait_until(lambda: engine.calls_for(TransferOperation.UPLOAD))
        finally:
            daemon.stop()
            runner.join(timeout=15)

        assert not runner.is_alive()
        assert engine.calls_for(TransferOperation.UPLOAD)[0]["source"] == str(watch_dir / "incoming.txt")

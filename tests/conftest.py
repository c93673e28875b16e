import logging
import os
import stat
from pathlib import Path

import pytest

from sftpflow.jobs.store import TaskStatusStore

from fakes import FakeEngine


# Stand-in for the rclone binary: answers obscure/lsf and records the
# config it was handed, failing on demand via STUB_FAIL.
RCLONE_STUB = """#!/bin/sh
verb="$1"
if [ "$verb" = "obscure" ]; then
  cat > /dev/null
  echo "obscured-secret"
  exit 0
fi
cfg=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "--config" ]; then cfg="$arg"; fi
  prev="$arg"
done
if [ -n "$STUB_CAPTURE" ] && [ -n "$cfg" ]; then
  cat "$cfg" > "$STUB_CAPTURE"
fi
if [ "$verb" = "lsf" ]; then
  printf 'a.txt\\nsub/\\n'
  exit 0
fi
echo "transferring $2 -> $3"
if [ -n "$STUB_FAIL" ]; then
  echo "permission denied" >&2
  exit 3
fi
exit 0
"""


@pytest.fixture
def store(tmp_path: Path) -> TaskStatusStore:
    return TaskStatusStore(tmp_path / "status")


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def rclone_stub(tmp_path: Path) -> Path:
    """Executable stub named rclone."""
    path = tmp_path / "bin" / "rclone"
    path.parent.mkdir()
    path.write_text(RCLONE_STUB)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    """No SFTP_* variables and no stray .env file."""
    for key in list(os.environ):
        if key.startswith("SFTP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

"""
rclone transfer engine.

Real transfers via subprocess, one process per call.

Design rules:
- One subprocess per transfer
- Non-zero exit code = EngineExecutionError
- Passwords are obscured by rclone itself and fed over stdin
- Transient config files are removed on every exit path
- No progress parsing (the engine log file is the audit trail)
"""

import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..jobs.models import DEFAULT_REMOTE_NAME, TransferOperation, new_trace_id
from .base import SftpCredentials, TransferEngine, TransferResult
from .errors import (
    CredentialObscureError,
    EngineConfigError,
    EngineExecutionError,
    EngineNotAvailableError,
)

logger = logging.getLogger(__name__)


# rclone verb per operation
RCLONE_VERB_MAP: Dict[TransferOperation, str] = {
    TransferOperation.DOWNLOAD: "copy",
    TransferOperation.UPLOAD: "copy",
    TransferOperation.SYNC: "sync",
}

# Keep failure messages readable in status records
STDERR_TAIL_LINES = 20


class RcloneEngine(TransferEngine):
    """
    rclone-based transfer engine.

    Uses ``rclone copy`` / ``rclone sync`` against an SFTP remote
    described either by a pre-made config file or by credentials
    rendered into a per-call transient config.
    """

    def __init__(
        self,
        binary: str = "rclone",
        remote_name: str = DEFAULT_REMOTE_NAME,
        config_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize rclone engine.

        Args:
            binary: rclone executable name or path
            remote_name: Section name used in generated configs
            config_dir: Where transient configs are written (defaults to temp dir)
        """
        self.binary = binary
        self.remote_name = remote_name
        self.config_dir = Path(config_dir) if config_dir else Path(tempfile.gettempdir())
        self._binary_path: Optional[str] = None

    @property
    def name(self) -> str:
        return "rclone"

    @property
    def available(self) -> bool:
        """Check if rclone is installed and accessible."""
        return self._find_binary() is not None

    def _find_binary(self) -> Optional[str]:
        """Find rclone binary path."""
        if self._binary_path:
            return self._binary_path

        if os.path.isfile(self.binary) and os.access(self.binary, os.X_OK):
            self._binary_path = self.binary
            return self._binary_path

        found = shutil.which(self.binary)
        if found:
            self._binary_path = found
        return found

    def _require_binary(self) -> str:
        binary = self._find_binary()
        if not binary:
            raise EngineNotAvailableError(self.binary)
        return binary

    # =========================================================================
    # Credentials and transient configuration
    # =========================================================================

    def obscure(self, password: str) -> str:
        """
        Obscure a password with ``rclone obscure``.

        The password is passed on stdin so it never shows up in argv.

        Raises:
            CredentialObscureError: If rclone fails or is missing
        """
        try:
            binary = self._require_binary()
        except EngineNotAvailableError as e:
            raise CredentialObscureError(f"Failed to obscure password: {e}") from e

        try:
            proc = subprocess.run(
                [binary, "obscure", "-"],
                input=password,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise CredentialObscureError(f"Failed to obscure password: {e}") from e

        if proc.returncode != 0:
            raise CredentialObscureError(
                f"Failed to obscure password (exit code: {proc.returncode}): "
                f"{proc.stderr.strip()}"
            )

        obscured = proc.stdout.strip()
        if not obscured:
            raise CredentialObscureError("Failed to obscure password: empty output")
        return obscured

    def render_config(self, credentials: SftpCredentials) -> str:
        """Render an rclone config section for the SFTP remote."""
        lines = [
            f"[{self.remote_name}]",
            "type = sftp",
            f"host = {credentials.host}",
            f"user = {credentials.user}",
            f"port = {credentials.port}",
        ]
        if credentials.password:
            lines.append(f"pass = {self.obscure(credentials.password)}")
        if credentials.key_file:
            lines.append(f"key_file = {credentials.key_file}")
        return "\n".join(lines) + "\n"

    def config_path_for(self, trace_id: str) -> Path:
        """Transient config location for one job."""
        return self.config_dir / f"rclone_{trace_id}.conf"

    @contextmanager
    def transient_config(
        self, credentials: SftpCredentials, trace_id: str
    ) -> Iterator[Path]:
        """
        Write a per-job rclone config (mode 0600) and remove it on exit.

        Cleanup runs on success, on engine failure and on any exception
        raised while the config is in use.

        Raises:
            CredentialObscureError: If the password cannot be obscured
            EngineConfigError: If the file cannot be written
        """
        path = self.config_path_for(trace_id)
        try:
            content = self.render_config(credentials)
            try:
                fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
            except OSError as e:
                raise EngineConfigError(f"Failed to write config file {path}: {e}") from e

            yield path
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove transient config {path}: {e}")

    @contextmanager
    def _resolved_config(
        self,
        credentials: Optional[SftpCredentials],
        config_path: Optional[Union[str, Path]],
        trace_id: Optional[str],
    ) -> Iterator[Path]:
        """Yield the config to use: caller-supplied, or transient from credentials."""
        if config_path is not None:
            yield Path(config_path)
            return

        if credentials is None:
            raise EngineConfigError("Either credentials or a config path is required")

        with self.transient_config(credentials, trace_id or new_trace_id()) as path:
            yield path

    # =========================================================================
    # Engine operations
    # =========================================================================

    def build_command(
        self,
        operation: TransferOperation,
        source: str,
        destination: str,
        config_path: Union[str, Path],
        log_file: Optional[Union[str, Path]] = None,
        log_level: str = "INFO",
    ) -> List[str]:
        """Build rclone command line arguments."""
        cmd = [
            self._require_binary(),
            RCLONE_VERB_MAP[operation],
            source,
            destination,
            "--config",
            str(config_path),
        ]
        if log_file:
            cmd.extend(["--log-file", str(log_file), "--log-level", log_level])
        return cmd

    def transfer(
        self,
        operation: TransferOperation,
        source: str,
        destination: str,
        *,
        credentials: Optional[SftpCredentials] = None,
        config_path: Optional[Union[str, Path]] = None,
        log_file: Optional[Union[str, Path]] = None,
        log_level: str = "INFO",
        trace_id: Optional[str] = None,
    ) -> TransferResult:
        """Run one rclone copy/sync to completion."""
        operation = TransferOperation(operation)

        with self._resolved_config(credentials, config_path, trace_id) as cfg:
            cmd = self.build_command(
                operation, source, destination, cfg, log_file=log_file, log_level=log_level
            )
            logger.info(f"Executing command: {' '.join(cmd)}")

            started_at = datetime.now()
            if log_file:
                exit_code, stderr = self._run_captured(cmd, operation, source, destination)
            else:
                exit_code, stderr = self._run_streamed(cmd, operation, source, destination)
            completed_at = datetime.now()

        if exit_code != 0:
            raise EngineExecutionError(
                operation.value, source, destination, exit_code=exit_code, stderr=stderr
            )

        logger.info(
            f"Successfully completed {operation.value} from {source} to {destination} "
            f"({(completed_at - started_at).total_seconds():.1f}s)"
        )
        return TransferResult(
            operation=operation,
            source=source,
            destination=destination,
            started_at=started_at,
            completed_at=completed_at,
            exit_code=exit_code,
            log_file=str(log_file) if log_file else None,
            command=cmd,
        )

    def list_remote(
        self,
        remote: str,
        *,
        credentials: Optional[SftpCredentials] = None,
        config_path: Optional[Union[str, Path]] = None,
    ) -> List[str]:
        """List entry names under a remote path with ``rclone lsf``."""
        with self._resolved_config(credentials, config_path, None) as cfg:
            cmd = [self._require_binary(), "lsf", remote, "--config", str(cfg)]
            logger.debug(f"Executing command: {' '.join(cmd)}")
            try:
                proc = subprocess.run(cmd, capture_output=True, text=True)
            except OSError as e:
                raise EngineExecutionError("list", remote, "-", stderr=str(e)) from e

        if proc.returncode != 0:
            raise EngineExecutionError(
                "list", remote, "-", exit_code=proc.returncode,
                stderr=_tail(proc.stderr),
            )
        return [line for line in proc.stdout.splitlines() if line.strip()]

    def _run_captured(
        self,
        cmd: List[str],
        operation: TransferOperation,
        source: str,
        destination: str,
    ) -> Tuple[int, str]:
        """Run with output captured; rclone writes details to its own log file."""
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise EngineExecutionError(
                operation.value, source, destination, stderr=str(e)
            ) from e
        return proc.returncode, _tail(proc.stderr)

    def _run_streamed(
        self,
        cmd: List[str],
        operation: TransferOperation,
        source: str,
        destination: str,
    ) -> Tuple[int, str]:
        """Run with combined output forwarded to the module logger line by line."""
        tail: List[str] = []
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise EngineExecutionError(
                operation.value, source, destination, stderr=str(e)
            ) from e

        assert proc.stdout is not None
        with proc.stdout:
            for line in proc.stdout:
                line = line.rstrip()
                if not line:
                    continue
                logger.info(f"[rclone] {line}")
                tail.append(line)
                if len(tail) > STDERR_TAIL_LINES:
                    tail.pop(0)
        exit_code = proc.wait()
        return exit_code, "\n".join(tail)


def _tail(text: Optional[str], lines: int = STDERR_TAIL_LINES) -> str:
    """Last few non-empty lines of process output."""
    if not text:
        return ""
    kept = [line for line in text.splitlines() if line.strip()]
    return "\n".join(kept[-lines:])

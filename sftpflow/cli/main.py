"""
sftpflow CLI - thin entrypoint for operator commands.

Commands:
- download: Batch-download a job list (one remote path per line)
- status:   Print the status record of a batch job
- upload:   Upload one local path
- fetch:    Download one remote path
- list:     List a remote directory
- watch:    Mirror a local directory to the remote until stopped
- serve:    Serve the read-only status API

Design Principles:
==================
- CLI is a dispatcher only
- Flags override SFTP_* environment values
- Surface errors verbatim from the execution layer
- No interactive prompts, no retries

Exit Codes:
===========
- 0: Success (batch downloads exit 0 even if some jobs failed)
- 1: Setup error, or status record not found / unreadable
- 2: Engine error in an ad-hoc command
"""

import argparse
import os
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..execution.errors import EngineError
from ..jobs.errors import TaskNotFoundError, TaskParseError
from ..jobs.models import TransferOperation, remote_path
from ..jobs.store import TaskStatusStore
from ..monitoring.server import DEFAULT_HOST, DEFAULT_PORT
from ..observability.logs import setup_logging
from ..settings import TransferSettings
from ..watchfolders.models import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
    DEFAULT_STABILITY_INTERVAL_SECONDS,
    DEFAULT_SYNC_INTERVAL_SECONDS,
    TransferMode,
    WatchConfig,
)
from . import commands
from .errors import SetupError

EXIT_OK = 0
EXIT_SETUP = 1
EXIT_ENGINE = 2

DEFAULT_ENGINE_CONFIG = "./app.conf"
DEFAULT_WATCH_DIR = "./watch"

# argparse dest -> TransferSettings field
_SETTINGS_OVERRIDES = {
    "user": "username",
    "password": "password",
    "key": "cert_path",
    "local": "local_path",
    "file_list": "file_list",
    "log_dir": "log_dir",
    "max_concurrent": "max_concurrent",
    "status_dir": "status_dir",
    "host": "host",
    "port": "port",
    "rclone": "rclone_binary",
    "log_level": "log_level",
}


def load_settings(args: argparse.Namespace) -> TransferSettings:
    """Read SFTP_* settings, then apply every flag the operator gave."""
    try:
        settings = TransferSettings()
    except ValidationError as e:
        raise SetupError(f"Invalid SFTP_* environment: {e}") from e

    overrides: Dict[str, Any] = {}
    for dest, field in _SETTINGS_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[field] = value
    return settings.model_copy(update=overrides)


def _credentials_or_config(args: argparse.Namespace, settings: TransferSettings):
    """Ad-hoc commands use --config if given, else credentials."""
    if args.config:
        return None, args.config
    return commands.resolve_credentials(settings), None


# =============================================================================
# Command handlers
# =============================================================================


def cmd_download(args: argparse.Namespace, settings: TransferSettings) -> int:
    commands.run_download(settings)
    return EXIT_OK


def cmd_status(args: argparse.Namespace, settings: TransferSettings) -> int:
    if not args.id:
        raise SetupError("Please provide trace ID (--id)")
    commands.show_status(TaskStatusStore(settings.status_dir), args.id)
    return EXIT_OK


def cmd_upload(args: argparse.Namespace, settings: TransferSettings) -> int:
    credentials, config_path = _credentials_or_config(args, settings)
    commands.transfer_once(
        commands.build_engine(settings),
        TransferOperation.UPLOAD,
        args.local,
        remote_path(args.remote, settings.remote_name),
        credentials=credentials,
        config_path=config_path,
    )
    return EXIT_OK


def cmd_fetch(args: argparse.Namespace, settings: TransferSettings) -> int:
    credentials, config_path = _credentials_or_config(args, settings)
    commands.transfer_once(
        commands.build_engine(settings),
        TransferOperation.DOWNLOAD,
        remote_path(args.remote, settings.remote_name),
        args.local,
        credentials=credentials,
        config_path=config_path,
    )
    return EXIT_OK


def cmd_list(args: argparse.Namespace, settings: TransferSettings) -> int:
    credentials, config_path = _credentials_or_config(args, settings)
    commands.list_remote_entries(
        commands.build_engine(settings),
        remote_path(args.remote, settings.remote_name),
        credentials=credentials,
        config_path=config_path,
    )
    return EXIT_OK


def cmd_watch(args: argparse.Namespace, settings: TransferSettings) -> int:
    try:
        config = WatchConfig(
            watch_dir=os.path.abspath(args.dir),
            remote_root=args.remote,
            config_path=args.config,
            log_file=args.log_file,
            sync_interval_seconds=args.interval,
            debounce_seconds=args.debounce,
            stability_interval_seconds=args.stability_interval,
            transfer_mode=TransferMode(args.mode),
            recursive=not args.no_recursive,
            shutdown_timeout=args.shutdown_timeout,
        )
    except ValidationError as e:
        raise SetupError(f"Invalid watch configuration: {e}") from e

    if config.log_file:
        try:
            setup_logging(settings.log_level, log_file=config.log_file)
        except OSError as e:
            raise SetupError(f"Failed to open log file: {e}") from e

    commands.run_watch(config, commands.build_engine(settings))
    return EXIT_OK


def cmd_serve(args: argparse.Namespace, settings: TransferSettings) -> int:
    commands.serve_status(TaskStatusStore(settings.status_dir), args.bind, args.bind_port)
    return EXIT_OK


# =============================================================================
# Parser
# =============================================================================


def _add_credential_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--user", help="SFTP username (env: SFTP_USERNAME)")
    parser.add_argument("--pass", dest="password", help="SFTP password (env: SFTP_PASSWORD)")
    parser.add_argument("--key", help="Path to SSH private key (env: SFTP_CERT_PATH)")
    parser.add_argument("--host", help="SFTP host (env: SFTP_HOST, default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="SFTP port (env: SFTP_PORT, default: 22)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sftpflow",
        description="SFTP batch transfers and directory mirroring on top of rclone",
    )
    parser.add_argument("--log-level", help="Log level (env: SFTP_LOG_LEVEL, default: INFO)")
    parser.add_argument("--rclone", help="rclone executable (env: SFTP_RCLONE_BINARY)")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # Download command
    p = subparsers.add_parser("download", help="Download every remote path of a job list")
    _add_credential_args(p)
    p.add_argument("--local", help="Local destination path (env: SFTP_LOCAL_PATH)")
    p.add_argument("--log", dest="log_dir", help="Directory to store logs (default: ./logs)")
    p.add_argument("--file-list", help="File containing a list of remote paths (env: SFTP_FILE_LIST)")
    p.add_argument("--max-concurrent", type=int, help="Maximum parallel downloads (default: 3)")
    p.add_argument("--status-dir", help="Status record directory (env: SFTP_STATUS_DIR)")
    p.set_defaults(func=cmd_download)

    # Status command
    p = subparsers.add_parser("status", help="Show the status of a download task")
    p.add_argument("--id", help="Trace ID of the download task")
    p.add_argument("--status-dir", help="Status record directory (env: SFTP_STATUS_DIR)")
    p.set_defaults(func=cmd_status)

    # Ad-hoc commands
    p = subparsers.add_parser("upload", help="Upload a file to the SFTP server")
    _add_credential_args(p)
    p.add_argument("-l", "--local", required=True, help="Local file path")
    p.add_argument("-r", "--remote", required=True, help="Remote path on SFTP server")
    p.add_argument("--config", help="rclone config to use instead of credentials")
    p.set_defaults(func=cmd_upload)

    p = subparsers.add_parser("fetch", help="Download a file from the SFTP server")
    _add_credential_args(p)
    p.add_argument("-r", "--remote", required=True, help="Remote file path on SFTP server")
    p.add_argument("-l", "--local", required=True, help="Local destination path")
    p.add_argument("--config", help="rclone config to use instead of credentials")
    p.set_defaults(func=cmd_fetch)

    p = subparsers.add_parser("list", help="List files on the SFTP server")
    _add_credential_args(p)
    p.add_argument("-r", "--remote", required=True, help="Remote directory path")
    p.add_argument("--config", help="rclone config to use instead of credentials")
    p.set_defaults(func=cmd_list)

    # Watch command
    p = subparsers.add_parser("watch", help="Mirror a local directory to the remote")
    p.add_argument("--dir", default=DEFAULT_WATCH_DIR, help=f"Directory to watch (default: {DEFAULT_WATCH_DIR})")
    p.add_argument("--remote", required=True, help="Remote root, e.g. sftp:/remote/path")
    p.add_argument(
        "--config", default=DEFAULT_ENGINE_CONFIG,
        help=f"rclone config with the remote definition (default: {DEFAULT_ENGINE_CONFIG})",
    )
    p.add_argument("--log-file", help="Also write the log to this file")
    p.add_argument(
        "--interval", type=float, default=DEFAULT_SYNC_INTERVAL_SECONDS,
        help=f"Seconds between scheduled full syncs (default: {DEFAULT_SYNC_INTERVAL_SECONDS})",
    )
    p.add_argument(
        "--debounce", type=float, default=DEFAULT_DEBOUNCE_SECONDS,
        help=f"Seconds to wait after an event before checking a file (default: {DEFAULT_DEBOUNCE_SECONDS})",
    )
    p.add_argument(
        "--stability-interval", type=float, default=DEFAULT_STABILITY_INTERVAL_SECONDS,
        help=f"Seconds between the two size samples (default: {DEFAULT_STABILITY_INTERVAL_SECONDS})",
    )
    p.add_argument(
        "--mode", choices=[m.value for m in TransferMode], default=TransferMode.FILE.value,
        help="Upload each settled file, or sync the whole directory (default: file)",
    )
    p.add_argument("--no-recursive", action="store_true", help="Ignore subdirectories")
    p.add_argument(
        "--shutdown-timeout", type=float, default=DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        help="Seconds to wait for running transfers on shutdown",
    )
    p.set_defaults(func=cmd_watch)

    # Serve command
    p = subparsers.add_parser("serve", help="Serve the read-only status API")
    p.add_argument("--bind", default=DEFAULT_HOST, help=f"Bind address (default: {DEFAULT_HOST})")
    p.add_argument("--bind-port", type=int, default=DEFAULT_PORT, help=f"Port (default: {DEFAULT_PORT})")
    p.add_argument("--status-dir", help="Status record directory (env: SFTP_STATUS_DIR)")
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entrypoint.

    Parses arguments, sets up logging and dispatches to the command.
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
        setup_logging(settings.log_level)
        return args.func(args, settings)
    except SetupError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return EXIT_SETUP
    except (TaskNotFoundError, TaskParseError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SETUP
    except ValueError as e:
        # Unknown log level
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SETUP
    except EngineError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ENGINE


if __name__ == "__main__":
    sys.exit(main())

"""
Environment-driven settings for sftpflow.

Every value can be given as an SFTP_* environment variable (or in a
.env file). CLI flags override what is read here.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .execution.base import DEFAULT_SFTP_HOST, DEFAULT_SFTP_PORT, SftpCredentials
from .execution.orchestrator import DEFAULT_MAX_CONCURRENCY
from .jobs.models import DEFAULT_REMOTE_NAME
from .jobs.store import DEFAULT_STATUS_DIR


class TransferSettings(BaseSettings):
    """Settings shared by the batch and watch commands."""

    model_config = SettingsConfigDict(
        env_prefix="SFTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === CREDENTIALS ===
    username: Optional[str] = None  # SFTP_USERNAME
    password: Optional[str] = Field(default=None, repr=False)  # SFTP_PASSWORD
    cert_path: Optional[str] = None  # SFTP_CERT_PATH (private key file)

    # === ENDPOINT ===
    host: str = DEFAULT_SFTP_HOST
    port: int = Field(default=DEFAULT_SFTP_PORT, ge=1, le=65535)
    remote_name: str = DEFAULT_REMOTE_NAME

    # === BATCH ===
    local_path: Optional[str] = None  # SFTP_LOCAL_PATH
    file_list: Optional[str] = None  # SFTP_FILE_LIST
    max_concurrent: int = DEFAULT_MAX_CONCURRENCY

    # === STORAGE ===
    status_dir: str = str(DEFAULT_STATUS_DIR)
    log_dir: str = "./logs"

    # === ENGINE ===
    rclone_binary: str = "rclone"

    # === LOGGING ===
    log_level: str = "INFO"

    def credentials(self) -> SftpCredentials:
        """
        Build engine credentials.

        Raises pydantic.ValidationError if the username is missing or
        neither a password nor a key file is set.
        """
        return SftpCredentials(
            user=self.username or "",
            host=self.host,
            port=self.port,
            password=self.password or None,
            key_file=self.cert_path or None,
        )

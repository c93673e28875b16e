"""
Observability for sftpflow: logging setup.
"""

from .logs import setup_logging, LOG_FORMAT

__all__ = [
    "setup_logging",
    "LOG_FORMAT",
]

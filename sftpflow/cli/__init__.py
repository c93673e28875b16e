"""
Command-line interface.

Entry point: sftpflow.cli.main:main
"""

from .errors import CLIError, SetupError
from .main import main, build_parser

__all__ = [
    "CLIError",
    "SetupError",
    "main",
    "build_parser",
]

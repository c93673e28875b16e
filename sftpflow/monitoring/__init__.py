"""
Read-only status API.

Exposes persisted task records over HTTP. Observation only.
"""

from .server import create_status_app, run_status_server, DEFAULT_HOST, DEFAULT_PORT

__all__ = [
    "create_status_app",
    "run_status_server",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]

"""
Human-readable transfer reports.
"""

from .errors import ReportError, ReportWriteError
from .summary import format_size, render_summary, summary_path_for, write_download_summary

__all__ = [
    "ReportError",
    "ReportWriteError",
    "format_size",
    "render_summary",
    "summary_path_for",
    "write_download_summary",
]

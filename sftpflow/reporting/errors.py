"""
Reporting-specific errors.
"""


class ReportError(Exception):
    """Base exception for report generation."""

    pass


class ReportWriteError(ReportError):
    """Failed to write a report to disk."""

    pass

"""
CLI-specific error types.

All CLI errors inherit from CLIError for consistent handling.
"""


class CLIError(Exception):
    """Base exception for all CLI-related failures."""
    pass


class SetupError(CLIError):
    """
    Raised when a command cannot start.

    Missing credentials, an unreadable or empty job list, or an
    unwritable directory. No job has started when this is raised.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

"""
Watch daemon error hierarchy.

Only configuration errors surface from this package. Per-file failures
inside a running daemon are logged and the daemon keeps watching.
"""


class WatchFolderError(Exception):
    """Base exception for watch daemon failures."""

    pass


class WatchFolderNotFoundError(WatchFolderError):
    """Watched directory does not exist or is not accessible."""

    pass


class InvalidWatchFolderPathError(WatchFolderError):
    """Watched path is not an absolute directory."""

    pass

"""
In-flight path tracking for the watch daemon.

Filesystem watchers report many events per file while it is written.
Only the first event for a path starts a settle/transfer worker; later
events for the same path are dropped until that worker finishes.
"""

import threading
from typing import Iterator, Set


class InFlightSet:
    """Lock-protected set of paths currently being processed."""

    def __init__(self):
        self._paths: Set[str] = set()
        self._lock = threading.Lock()

    def try_add(self, path: str) -> bool:
        """
        Claim a path.

        Returns False if the path is already in flight (the caller drops
        the event).
        """
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def discard(self, path: str) -> None:
        with self._lock:
            self._paths.discard(path)

    def snapshot(self) -> Set[str]:
        with self._lock:
            return set(self._paths)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

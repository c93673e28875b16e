"""
Serialization of engine invocations against one watched root.

Two things can trigger a transfer: a settled file (per-file upload) and
the periodic full sync. Both go through one SyncGate, so the engine
never runs twice at once against the same remote tree.

Full-sync requests are coalesced: while one full sync is waiting for the
slot, further full-sync requests are dropped. A full sync that is
already running does not absorb new requests; those wait and run after
it, so changes made during a sync are picked up.
"""

import logging
import threading
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncGate:
    """Single-slot gate with full-sync coalescing."""

    def __init__(self):
        self._slot = threading.Lock()
        self._state_lock = threading.Lock()
        self._sync_waiting = False

    @property
    def busy(self) -> bool:
        """Whether an engine invocation currently holds the slot."""
        return self._slot.locked()

    @property
    def sync_waiting(self) -> bool:
        with self._state_lock:
            return self._sync_waiting

    def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run fn once the slot is free. Used for per-file uploads."""
        with self._slot:
            return fn(*args, **kwargs)

    def request_full_sync(self, fn: Callable[[], Any]) -> bool:
        """
        Run a full sync once the slot is free, unless one is already waiting.

        Returns:
            True if fn ran, False if the request was coalesced
        """
        with self._state_lock:
            if self._sync_waiting:
                logger.debug("Full sync already queued, coalescing request")
                return False
            self._sync_waiting = True

        entered = False
        try:
            with self._slot:
                entered = True
                with self._state_lock:
                    self._sync_waiting = False
                fn()
        finally:
            if not entered:
                with self._state_lock:
                    self._sync_waiting = False
        return True

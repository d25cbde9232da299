"""Coalescing change queue between the watcher and the collector.

The queue holds at most one pending signal.  A burst of filesystem events
collapses into that single slot, so the watcher never blocks and the
collector never falls behind by more than one pass.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

logger = logging.getLogger(__name__)

_CLOSED = None


class ChangeQueue:
    """Capacity-one, non-blocking signal queue.

    ``notify`` is called from watchdog's observer thread, ``get`` from the
    collector's debounce thread.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = False
        self._dropped = 0

    def notify(self, path: str = "") -> bool:
        """Signal that ``path`` changed.

        Returns:
            ``True`` if the signal was queued, ``False`` if one was already
            pending (coalesced) or the queue is closed.
        """
        with self._lock:
            if self._closed:
                return False
            try:
                self._queue.put_nowait(path)
            except queue.Full:
                self._dropped += 1
                return False
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for the next signal.

        Returns:
            The changed path, or ``None`` once the queue has been closed.

        Raises:
            queue.Empty: If ``timeout`` elapses with nothing pending.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Leave the sentinel for any other consumer.
            self._put_sentinel()
        return item

    def drain(self) -> int:
        """Discard any pending signal.  Returns how many were removed."""
        removed = 0
        with self._lock:
            if self._closed:
                return 0
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    return removed
                removed += 1

    def close(self) -> None:
        """Close the queue and wake any waiting consumer.  Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._put_sentinel()

    def _put_sentinel(self) -> None:
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        """Number of signals coalesced into an already-pending one."""
        return self._dropped

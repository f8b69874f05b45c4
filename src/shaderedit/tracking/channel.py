from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 1024


class NotificationChannel:
    """Thread-safe hand-off of changed pass names from watcher to consumer.

    Entries mean "re-check this pass", so duplicates are harmless and order is
    not preserved across passes. When more than `max_pending` entries pile up
    between drains the list is collapsed to distinct names. If the distinct
    names alone exceed the limit, the next collapse waits until the list has
    doubled again.
    """

    _lock: threading.Lock
    _pending: list[str]
    _max_pending: int
    _compact_above: int

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        if max_pending <= 0:
            raise ValueError(f"max_pending must be positive, got {max_pending}")
        self._lock = threading.Lock()
        self._pending = []
        self._max_pending = max_pending
        self._compact_above = max_pending

    def push(self, pass_name: str) -> None:
        with self._lock:
            self._pending.append(pass_name)
            self._compact_locked()

    def push_many(self, pass_names: Iterable[str]) -> None:
        names = list(pass_names)
        if not names:
            return
        with self._lock:
            self._pending.extend(names)
            self._compact_locked()

    def drain(self) -> list[str]:
        """Return and clear everything queued so far."""
        with self._lock:
            drained, self._pending = self._pending, []
            self._compact_above = self._max_pending
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def _compact_locked(self) -> None:
        if len(self._pending) <= self._compact_above:
            return
        before = len(self._pending)
        self._pending = list(dict.fromkeys(self._pending))
        self._compact_above = max(self._max_pending, 2 * len(self._pending))
        logger.debug(f"Collapsed {before} pending notifications to {len(self._pending)}")

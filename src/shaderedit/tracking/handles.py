from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Self

from shaderedit.exceptions import WatchAcquireError

if TYPE_CHECKING:
    import pathlib
    from types import TracebackType

    from shaderedit.tracking.notifier import ChangeNotifier
    from shaderedit.tracking.watch_set import WatchSet

logger = logging.getLogger(__name__)


class WatchHandleTable:
    """One notifier handle per watched directory.

    Only the worker thread touches the table. Use as a context manager so
    handles are released on every exit path.
    """

    _notifier: ChangeNotifier
    _directories: dict[int, pathlib.Path]

    def __init__(self, notifier: ChangeNotifier) -> None:
        self._notifier = notifier
        self._directories = {}

    def acquire(self, watch_set: WatchSet) -> int:
        """Watch every directory in `watch_set`, skipping the ones that fail.

        Returns the number of handles acquired.
        """
        acquired = 0
        for directory in watch_set.paths():
            try:
                handle = self._notifier.add_watch(directory)
            except WatchAcquireError as e:
                logger.warning(f"Cannot watch {directory}, skipping: {e}")
                continue
            self._directories[handle] = directory
            acquired += 1
        return acquired

    def release_all(self) -> None:
        handles = list(self._directories)
        self._directories.clear()
        for handle in handles:
            self._notifier.remove_watch(handle)

    def directory_for(self, handle: int) -> pathlib.Path | None:
        return self._directories.get(handle)

    @property
    def directories(self) -> list[pathlib.Path]:
        return list(self._directories.values())

    def __len__(self) -> int:
        return len(self._directories)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release_all()

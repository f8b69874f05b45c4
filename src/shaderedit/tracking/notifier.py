"""Platform change-notification primitive behind a single typed interface."""

from __future__ import annotations

import dataclasses
import enum
import itertools
import logging
import os
import pathlib
import threading
from typing import TYPE_CHECKING, Protocol

import watchfiles

from shaderedit.exceptions import EventReadError, NotifierInitError, WatchAcquireError
from shaderedit.tracking.index import normalize

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

    from watchfiles.main import FileChange

__all__ = ["ChangeKind", "ChangeNotifier", "NotifyEvent", "WatchfilesNotifier"]

logger = logging.getLogger(__name__)


class ChangeKind(enum.StrEnum):
    """Kind of raw change; only modifications are acted upon."""

    MODIFIED = "modified"
    OTHER = "other"


@dataclasses.dataclass(frozen=True)
class NotifyEvent:
    """One decoded change record.

    Attributes:
        handle: Watch handle the change was reported under.
        filename: Path relative to the handle's directory (POSIX separators,
            may include subdirectories since watches are recursive).
        is_directory: Whether the changed entry is a directory.
        kind: Modification or anything else.
    """

    handle: int
    filename: str
    is_directory: bool
    kind: ChangeKind


class ChangeNotifier(Protocol):
    """Directory watch primitive used by the tracking worker."""

    def add_watch(self, directory: pathlib.Path) -> int:
        """Start watching `directory`; raise WatchAcquireError if impossible."""
        ...

    def remove_watch(self, handle: int) -> None: ...

    def set_interest(self, files: Iterable[pathlib.Path]) -> None:
        """Report only changes to `files`; an empty collection reports everything."""
        ...

    def wait_for_events(self, timeout: float) -> list[NotifyEvent]:
        """Block up to `timeout` seconds; return [] on timeout.

        Raises EventReadError on transient failure and NotifierInitError when
        the notification mechanism cannot be used at all.
        """
        ...

    def close(self) -> None: ...


class WatchfilesNotifier:
    """ChangeNotifier backed by watchfiles (inotify, FSEvents, ReadDirectoryChangesW).

    watchfiles watches a fixed set of paths per stream, so any add/remove
    drops the current stream; the next wait opens a new one over the
    current directories.
    """

    _directories: dict[int, pathlib.Path]
    _interest: frozenset[str]
    _handles: itertools.count[int]
    _stream: Generator[set[FileChange]] | None
    _stream_timeout_ms: int | None
    _stop_event: threading.Event
    _debounce_ms: int
    _force_polling: bool | None
    _poll_delay_ms: int

    def __init__(
        self,
        stop_event: threading.Event | None = None,
        *,
        debounce_ms: int = 50,
        force_polling: bool | None = None,
        poll_delay_ms: int = 300,
    ) -> None:
        self._directories = {}
        self._interest = frozenset()
        self._handles = itertools.count(1)
        self._stream = None
        self._stream_timeout_ms = None
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._debounce_ms = debounce_ms
        self._force_polling = force_polling
        self._poll_delay_ms = poll_delay_ms

    @property
    def directories(self) -> list[pathlib.Path]:
        return list(self._directories.values())

    def add_watch(self, directory: pathlib.Path) -> int:
        directory = normalize(directory)
        try:
            is_dir = directory.is_dir()
        except OSError as e:
            raise WatchAcquireError(f"Cannot access {directory}: {e}") from e
        if not is_dir:
            raise WatchAcquireError(f"Not a directory: {directory}")
        handle = next(self._handles)
        self._directories[handle] = directory
        self._drop_stream()
        return handle

    def remove_watch(self, handle: int) -> None:
        if self._directories.pop(handle, None) is not None:
            self._drop_stream()

    def set_interest(self, files: Iterable[pathlib.Path]) -> None:
        # Read by the stream's filter on every batch, so no reopen is needed
        self._interest = frozenset(str(normalize(f)) for f in files)

    def wait_for_events(self, timeout: float) -> list[NotifyEvent]:
        if not self._directories or self._stop_event.is_set():
            return []

        timeout_ms = max(1, int(timeout * 1000))
        opening = self._stream is None or self._stream_timeout_ms != timeout_ms
        if opening:
            self._drop_stream()
            self._stream = watchfiles.watch(
                *self._directories.values(),
                watch_filter=self._accepts,
                debounce=self._debounce_ms,
                stop_event=self._stop_event,
                rust_timeout=timeout_ms,
                yield_on_timeout=True,
                raise_interrupt=False,
                force_polling=self._force_polling,
                poll_delay_ms=self._poll_delay_ms,
                recursive=True,
            )
            self._stream_timeout_ms = timeout_ms

        assert self._stream is not None
        try:
            changes = next(self._stream)
        except StopIteration:
            # Stop event set while waiting
            self._stream = None
            return []
        except (FileNotFoundError, PermissionError) as e:
            self._drop_stream()
            raise EventReadError(f"Watched directory became unavailable: {e}") from e
        except OSError as e:
            self._drop_stream()
            if opening:
                raise NotifierInitError(f"Cannot start file watcher: {e}") from e
            raise EventReadError(f"Failed reading change events: {e}") from e
        except RuntimeError as e:
            # watchfiles reports backend errors as WatchfilesRustInternalError
            self._drop_stream()
            raise EventReadError(f"File watcher backend error: {e}") from e

        return self._decode(changes)

    def close(self) -> None:
        self._drop_stream()
        self._directories.clear()
        self._interest = frozenset()

    def _accepts(self, change: watchfiles.Change, path: str) -> bool:
        interest = self._interest
        return not interest or os.path.normpath(path) in interest

    def _drop_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
            self._stream_timeout_ms = None

    def _decode(self, changes: set[FileChange]) -> list[NotifyEvent]:
        """Turn (Change, absolute path) pairs into handle-relative events."""
        events = list[NotifyEvent]()
        for change, raw_path in changes:
            path = normalize(raw_path)
            owner = self._owning_handle(path)
            if owner is None:
                logger.debug(f"Dropping change outside watched directories: {path}")
                continue
            handle, directory = owner
            events.append(
                NotifyEvent(
                    handle=handle,
                    filename=path.relative_to(directory).as_posix(),
                    is_directory=_is_dir(path),
                    kind=ChangeKind.MODIFIED
                    if change == watchfiles.Change.modified
                    else ChangeKind.OTHER,
                )
            )
        return events

    def _owning_handle(self, path: pathlib.Path) -> tuple[int, pathlib.Path] | None:
        # Watch sets are non-overlapping, so at most one directory matches
        for handle, directory in self._directories.items():
            if path.is_relative_to(directory) and path != directory:
                return handle, directory
        return None


def _is_dir(path: pathlib.Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False

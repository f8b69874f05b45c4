"""Test doubles for the tracking subsystem."""

from __future__ import annotations

import os
import pathlib
import queue
import threading
import time
from typing import TYPE_CHECKING

from shaderedit.exceptions import EventReadError, WatchAcquireError
from shaderedit.tracking.notifier import ChangeKind, NotifyEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from shaderedit.types import ShaderPass


class FakeProjectService:
    """ProjectService whose pass list and project path tests change between calls."""

    root: pathlib.Path
    _lock: threading.Lock
    _passes: tuple[ShaderPass, ...]
    _project_path: str
    calls: int

    def __init__(
        self, passes: list[ShaderPass], root: pathlib.Path, project_path: str = ""
    ) -> None:
        self.root = root
        self._lock = threading.Lock()
        self._passes = tuple(passes)
        self._project_path = project_path
        self.calls = 0

    def set_passes(self, passes: list[ShaderPass]) -> None:
        with self._lock:
            self._passes = tuple(passes)

    def set_project_path(self, project_path: str, root: pathlib.Path | None = None) -> None:
        with self._lock:
            self._project_path = project_path
            if root is not None:
                self.root = root

    def get_pass_list(self) -> list[ShaderPass]:
        with self._lock:
            self.calls += 1
            return list(self._passes)

    def get_active_project_path(self) -> str:
        with self._lock:
            return self._project_path

    def resolve_project_relative_path(self, path: str) -> pathlib.Path:
        with self._lock:
            return pathlib.Path(os.path.normpath(self.root / path))


class FakeNotifier:
    """In-memory ChangeNotifier; tests inject events with emit()."""

    missing: set[pathlib.Path]
    watched: dict[int, pathlib.Path]
    interest: list[pathlib.Path]
    added: list[pathlib.Path]
    removed: list[int]
    closed: bool
    _events: queue.Queue[NotifyEvent | EventReadError]
    _next_handle: int

    def __init__(self, missing: set[pathlib.Path] | None = None) -> None:
        self.missing = set(missing or ())
        self.watched = {}
        self.interest = []
        self.added = []
        self.removed = []
        self.closed = False
        self._events = queue.Queue()
        self._next_handle = 1

    def add_watch(self, directory: pathlib.Path) -> int:
        if directory in self.missing:
            raise WatchAcquireError(f"Not a directory: {directory}")
        handle = self._next_handle
        self._next_handle += 1
        self.watched[handle] = directory
        self.added.append(directory)
        return handle

    def remove_watch(self, handle: int) -> None:
        self.watched.pop(handle, None)
        self.removed.append(handle)

    def set_interest(self, files: Iterable[pathlib.Path]) -> None:
        self.interest = list(files)

    def handle_for(self, directory: pathlib.Path) -> int:
        for handle, watched in self.watched.items():
            if watched == directory:
                return handle
        raise KeyError(directory)

    def emit(
        self,
        directory: pathlib.Path,
        filename: str,
        kind: ChangeKind = ChangeKind.MODIFIED,
        is_directory: bool = False,
    ) -> None:
        self._events.put(
            NotifyEvent(
                handle=self.handle_for(directory),
                filename=filename,
                is_directory=is_directory,
                kind=kind,
            )
        )

    def fail_next_read(self, message: str = "read failed") -> None:
        self._events.put(EventReadError(message))

    def wait_for_events(self, timeout: float) -> list[NotifyEvent]:
        try:
            first = self._events.get(timeout=timeout)
        except queue.Empty:
            return []
        if isinstance(first, EventReadError):
            raise first
        events = [first]
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, EventReadError):
                self._events.put(item)
                break
            events.append(item)
        return events

    def close(self) -> None:
        self.closed = True


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll `predicate` until it holds or `timeout` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()

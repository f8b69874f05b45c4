"""Background worker keeping the watch set in step with the project."""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
from typing import TYPE_CHECKING

from shaderedit.config.models import TrackingConfig
from shaderedit.exceptions import EventReadError, NotifierInitError
from shaderedit.tracking import translator
from shaderedit.tracking.handles import WatchHandleTable
from shaderedit.tracking.index import PassFileIndex
from shaderedit.tracking.notifier import WatchfilesNotifier
from shaderedit.tracking.watch_set import WatchSet, build_watch_set

if TYPE_CHECKING:
    from collections.abc import Callable

    from shaderedit.project import ProjectService
    from shaderedit.tracking.channel import NotificationChannel
    from shaderedit.tracking.notifier import ChangeNotifier
    from shaderedit.types import ShaderPass

    NotifierFactory = Callable[[threading.Event], ChangeNotifier]

__all__ = ["ProjectSnapshot", "WatchSession", "WatchWorker", "WatcherState"]

logger = logging.getLogger(__name__)


class WatcherState(enum.StrEnum):
    """Lifecycle of the tracking worker."""

    STOPPED = "stopped"
    STARTING = "starting"
    WATCHING = "watching"
    REBUILDING = "rebuilding"
    STOPPING = "stopping"


@dataclasses.dataclass(frozen=True)
class ProjectSnapshot:
    """Point-in-time copy of what the watch set is derived from."""

    project_path: str
    passes: tuple[ShaderPass, ...]

    @classmethod
    def take(cls, service: ProjectService) -> ProjectSnapshot:
        return cls(
            project_path=service.get_active_project_path(),
            passes=tuple(service.get_pass_list()),
        )

    def rebuild_reason(self, previous: ProjectSnapshot | None) -> str | None:
        """Describe why the index must be rebuilt, or None if `previous` still holds."""
        if previous is None:
            return "initial scan"
        if self.project_path != previous.project_path:
            return f"project path changed to '{self.project_path or '<unsaved>'}'"
        if len(self.passes) != len(previous.passes):
            return f"pass count changed ({len(previous.passes)} -> {len(self.passes)})"
        for old, new in zip(previous.passes, self.passes, strict=True):
            if old.gs_used != new.gs_used:
                toggled = "enabled" if new.gs_used else "disabled"
                return f"geometry stage {toggled} on '{new.name}'"
        for old, new in zip(previous.passes, self.passes, strict=True):
            if old.name != new.name:
                return f"pass '{old.name}' renamed to '{new.name}'"
            if old.all_paths() != new.all_paths():
                return f"shader paths of '{new.name}' changed"
        return None


class WatchSession:
    """Index, watch set and handles for one tracking run.

    Not thread-safe: owned by the worker thread. Tests drive it directly.
    """

    _service: ProjectService
    _notifier: ChangeNotifier
    _channel: NotificationChannel
    _handles: WatchHandleTable
    _index: PassFileIndex
    _watch_set: WatchSet
    _snapshot: ProjectSnapshot | None
    _rebuild_count: int

    def __init__(
        self,
        service: ProjectService,
        notifier: ChangeNotifier,
        channel: NotificationChannel,
    ) -> None:
        self._service = service
        self._notifier = notifier
        self._channel = channel
        self._handles = WatchHandleTable(notifier)
        self._index = PassFileIndex()
        self._watch_set = WatchSet()
        self._snapshot = None
        self._rebuild_count = 0

    @property
    def index(self) -> PassFileIndex:
        return self._index

    @property
    def watch_set(self) -> WatchSet:
        return self._watch_set

    @property
    def handles(self) -> WatchHandleTable:
        return self._handles

    @property
    def rebuild_count(self) -> int:
        return self._rebuild_count

    @property
    def is_watching(self) -> bool:
        return len(self._handles) > 0

    def check(self) -> tuple[ProjectSnapshot, str] | None:
        """Snapshot the project and return (snapshot, reason) if a rebuild is due."""
        snapshot = ProjectSnapshot.take(self._service)
        reason = snapshot.rebuild_reason(self._snapshot)
        if reason is None and not self.is_watching:
            reason = "nothing watched"
        if reason is None:
            return None
        return snapshot, reason

    def rebuild(self, snapshot: ProjectSnapshot, reason: str) -> None:
        """Release every handle and derive index, watch set and handles afresh."""
        self._handles.release_all()
        self._index = PassFileIndex.build(
            snapshot.passes, self._service.resolve_project_relative_path
        )
        self._watch_set = build_watch_set(self._index.paths())
        self._notifier.set_interest(self._index.paths())
        acquired = self._handles.acquire(self._watch_set)
        self._snapshot = snapshot
        self._rebuild_count += 1

        message = (
            f"Tracking {len(self._index)} shader file(s) from {len(snapshot.passes)} pass(es) "
            + f"in {acquired}/{len(self._watch_set)} director(ies) ({reason})"
        )
        # Retries with nothing to watch happen every idle interval
        if reason == "nothing watched":
            logger.debug(message)
        else:
            logger.info(message)

    def reconcile(self) -> bool:
        """Rebuild if needed; return whether a rebuild happened."""
        pending = self.check()
        if pending is None:
            return False
        self.rebuild(*pending)
        return True

    def poll(self, timeout: float) -> int:
        """Wait up to `timeout` seconds for changes and publish affected passes.

        Returns the number of notifications pushed.
        """
        try:
            events = self._notifier.wait_for_events(timeout)
        except EventReadError as e:
            logger.warning(f"Failed to read file change events: {e}")
            # Force a fresh rebuild; the failing directory may be gone
            self._snapshot = None
            return 0

        pushed = 0
        for event in events:
            directory = self._handles.directory_for(event.handle)
            if directory is None:
                continue
            names = translator.translate_event(directory, event, self._index)
            if names:
                self._channel.push_many(names)
                pushed += len(names)
        return pushed

    def close(self) -> None:
        self._handles.release_all()


class WatchWorker:
    """Runs a WatchSession loop on a dedicated thread.

    start() while running is a no-op; stop() blocks until the thread has
    released its handles and exited.
    """

    _service: ProjectService
    _channel: NotificationChannel
    _config: TrackingConfig
    _notifier_factory: NotifierFactory
    _state: WatcherState
    _state_lock: threading.Lock
    _lifecycle_lock: threading.Lock
    _stop: threading.Event
    _thread: threading.Thread | None
    _session: WatchSession | None
    _error: Exception | None

    def __init__(
        self,
        service: ProjectService,
        channel: NotificationChannel,
        config: TrackingConfig | None = None,
        notifier_factory: NotifierFactory | None = None,
    ) -> None:
        self._service = service
        self._channel = channel
        self._config = config if config is not None else TrackingConfig()
        self._notifier_factory = (
            notifier_factory if notifier_factory is not None else self._create_notifier
        )
        self._state = WatcherState.STOPPED
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None
        self._session = None
        self._error = None

    @property
    def state(self) -> WatcherState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def error(self) -> Exception | None:
        """Fatal error that ended the last run, if any."""
        return self._error

    @property
    def rebuild_count(self) -> int:
        session = self._session
        return session.rebuild_count if session is not None else 0

    def start(self) -> bool:
        """Start watching; return False if a worker is already running."""
        with self._lifecycle_lock:
            if self._thread is not None:
                if self._thread.is_alive():
                    return False
                # Previous run ended on its own (fatal error)
                self._thread.join()
                self._thread = None

            logger.info("Starting to track file changes...")
            self._stop.clear()
            self._error = None
            self._set_state(WatcherState.STARTING)
            self._thread = threading.Thread(
                target=self._run,
                name="shaderedit-file-tracker",
                daemon=True,
            )
            self._thread.start()
            return True

    def stop(self) -> None:
        """Request shutdown and wait for the worker thread to finish."""
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            logger.info("Stopping file change tracking...")
            if thread.is_alive():
                self._set_state(WatcherState.STOPPING)
            self._stop.set()
            thread.join()
            self._thread = None
            self._set_state(WatcherState.STOPPED)

    def _create_notifier(self, stop_event: threading.Event) -> ChangeNotifier:
        return WatchfilesNotifier(
            stop_event,
            debounce_ms=self._config.debounce_ms,
            force_polling=self._config.force_polling,
            poll_delay_ms=self._config.poll_delay_ms,
        )

    def _set_state(self, state: WatcherState) -> None:
        with self._state_lock:
            # A pending stop wins over transitions reported by the loop
            if self._stop.is_set() and state in (WatcherState.WATCHING, WatcherState.REBUILDING):
                return
            self._state = state

    def _run(self) -> None:
        try:
            notifier = self._notifier_factory(self._stop)
        except NotifierInitError as e:
            self._fail(e)
            return

        session = WatchSession(self._service, notifier, self._channel)
        self._session = session
        try:
            self._set_state(WatcherState.WATCHING)
            self._loop(session)
        except NotifierInitError as e:
            self._fail(e)
        except Exception as e:
            logger.critical(f"File tracker thread failed: {e}")
            self._error = e
        finally:
            session.close()
            notifier.close()
            with self._state_lock:
                self._state = WatcherState.STOPPED

    def _loop(self, session: WatchSession) -> None:
        poll_interval = self._config.poll_interval_ms / 1000
        idle_interval = self._config.idle_interval_ms / 1000
        wait_timeout = self._config.wait_timeout_ms / 1000

        while not self._stop.is_set():
            if self._stop.wait(poll_interval):
                break

            pending = session.check()
            if pending is not None:
                self._set_state(WatcherState.REBUILDING)
                session.rebuild(*pending)
                self._set_state(WatcherState.WATCHING)

            if not session.is_watching:
                self._stop.wait(idle_interval)
                continue

            session.poll(wait_timeout)

    def _fail(self, error: NotifierInitError) -> None:
        logger.error(f"File change tracking disabled: {error}")
        self._error = error
        with self._state_lock:
            self._state = WatcherState.STOPPED

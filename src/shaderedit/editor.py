"""Editor surface for shader passes: panels, saving, compiling, disk sync.

Rendering and text editing belong to the UI toolkit; this module keeps the
state a UI needs each frame and applies the reload/recompile policy to the
passes reported by the file tracker.
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
from typing import TYPE_CHECKING, Protocol

import click

from shaderedit import exceptions
from shaderedit.config.models import ShaderEditConfig
from shaderedit.tracking.channel import NotificationChannel
from shaderedit.tracking.worker import WatcherState, WatchWorker
from shaderedit.types import ShaderPass, ShaderStage

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from shaderedit.project import ShaderProject
    from shaderedit.tracking.worker import NotifierFactory

logger = logging.getLogger(__name__)


class Compiler(Protocol):
    """Rebuilds the GPU programs of a pass from its sources on disk."""

    def recompile(self, pass_name: str) -> None: ...


@dataclasses.dataclass(eq=False)
class EditorPanel:
    """One open shader file."""

    pass_name: str
    stage: ShaderStage
    path: str
    text: str
    saved_text: str
    changed_on_disk: bool = False

    @property
    def is_dirty(self) -> bool:
        return self.text != self.saved_text

    @property
    def window_title(self) -> str:
        return f"{self.pass_name} ({self.stage.label})"

    def set_text(self, text: str) -> None:
        self.text = text

    def reset(self, text: str) -> None:
        """Replace contents and mark them as saved."""
        self.text = text
        self.saved_text = text
        self.changed_on_disk = False


@dataclasses.dataclass(frozen=True)
class FileChangeOutcome:
    """What process_file_changes() did for one changed pass."""

    pass_name: str
    reloaded: tuple[EditorPanel, ...] = ()
    conflicts: tuple[EditorPanel, ...] = ()
    recompiled: bool = False


class CodeEditor:
    """Open shader panels plus the external file-change tracker."""

    _project: ShaderProject
    _compiler: Compiler | None
    _config: ShaderEditConfig
    _opener: Callable[[pathlib.Path], object]
    _panels: list[EditorPanel]
    _focused: EditorPanel | None
    _save_echoes: dict[str, dict[pathlib.Path, str | None]]
    _channel: NotificationChannel
    _worker: WatchWorker
    _notifier_factory: NotifierFactory | None

    def __init__(
        self,
        project: ShaderProject,
        compiler: Compiler | None = None,
        config: ShaderEditConfig | None = None,
        *,
        notifier_factory: NotifierFactory | None = None,
        opener: Callable[[pathlib.Path], object] | None = None,
    ) -> None:
        self._project = project
        self._compiler = compiler
        self._config = config if config is not None else ShaderEditConfig.get_default()
        self._opener = opener if opener is not None else _launch
        self._panels = []
        self._focused = None
        self._save_echoes = {}
        self._channel = NotificationChannel(self._config.tracking.max_pending)
        self._notifier_factory = notifier_factory
        self._worker = WatchWorker(
            project, self._channel, self._config.tracking, notifier_factory
        )

    @property
    def panels(self) -> list[EditorPanel]:
        return list(self._panels)

    @property
    def focused(self) -> EditorPanel | None:
        return self._focused

    def focus(self, panel: EditorPanel) -> None:
        self._require_open(panel)
        self._focused = panel

    # --- opening and closing ---

    def open(self, shader_pass: ShaderPass | str, stage: ShaderStage) -> EditorPanel | None:
        """Open (or focus) the panel for one stage of a pass.

        Returns None when the file was handed to the external editor.
        """
        if isinstance(shader_pass, str):
            shader_pass = self._project.get_pass(shader_pass)
        path = shader_pass.path_for(stage)

        if self._config.editor.use_external_editor:
            self._opener(self._project.resolve_project_relative_path(path))
            return None

        for panel in self._panels:
            if panel.stage == stage and path in self._paths_of(panel):
                self._focused = panel
                return panel

        text = self._project.load_project_file(path)
        panel = EditorPanel(
            pass_name=shader_pass.name, stage=stage, path=path, text=text, saved_text=text
        )
        self._panels.append(panel)
        self._focused = panel
        logger.debug(f"Opened {panel.window_title}: {path}")
        return panel

    def open_vs(self, shader_pass: ShaderPass | str) -> EditorPanel | None:
        return self.open(shader_pass, ShaderStage.VERTEX)

    def open_ps(self, shader_pass: ShaderPass | str) -> EditorPanel | None:
        return self.open(shader_pass, ShaderStage.PIXEL)

    def open_gs(self, shader_pass: ShaderPass | str) -> EditorPanel | None:
        return self.open(shader_pass, ShaderStage.GEOMETRY)

    def close(self, panel: EditorPanel, save: bool | None = None) -> None:
        """Close a panel; `save` decides what happens to unsaved edits."""
        self._require_open(panel)
        if panel.is_dirty:
            if save is None:
                raise exceptions.UnsavedChangesError(f"{panel.window_title} has unsaved changes")
            if save:
                self.save(panel)
        self._panels.remove(panel)
        if self._focused is panel:
            self._focused = None

    def close_all(self) -> None:
        """Close every panel, discarding unsaved edits."""
        self._panels.clear()
        self._focused = None

    # --- saving and compiling ---

    def save(self, panel: EditorPanel) -> None:
        self._require_open(panel)
        self._project.save_project_file(panel.path, panel.text)
        panel.reset(panel.text)
        # Without a running tracker no echo of this save will arrive
        if self._worker.is_running:
            self._save_echoes[panel.pass_name] = self._disk_state(panel)

    def save_all(self) -> None:
        for panel in self._panels:
            self.save(panel)

    def compile(self, panel: EditorPanel) -> None:
        """Save the panel and recompile its pass."""
        self.save(panel)
        if self._compiler is not None:
            self._compiler.recompile(panel.pass_name)

    # --- bookkeeping used by project save/restore ---

    def rename_shader_pass(self, name: str, new_name: str) -> None:
        for panel in self._panels:
            if panel.pass_name == name:
                panel.pass_name = new_name

    def get_opened_files(self) -> list[tuple[str, ShaderStage]]:
        return [(panel.pass_name, panel.stage) for panel in self._panels]

    def get_opened_files_data(self) -> list[str]:
        return [panel.text for panel in self._panels]

    def set_opened_files_data(self, data: list[str]) -> None:
        for panel, text in zip(self._panels, data, strict=False):
            panel.set_text(text)

    # --- external change tracking ---

    @property
    def tracking_enabled(self) -> bool:
        return self._worker.is_running

    @property
    def tracking_state(self) -> WatcherState:
        return self._worker.state

    @property
    def tracking_error(self) -> Exception | None:
        """Why tracking stopped by itself, if it did."""
        return self._worker.error

    def set_track_file_changes(self, enabled: bool) -> None:
        """Enable or disable tracking; disabling waits for the watcher to exit."""
        if enabled:
            self._worker.start()
        else:
            self._worker.stop()
            self._save_echoes.clear()

    def apply_settings(self, config: ShaderEditConfig | None = None) -> None:
        """Adopt `config` (if given) and start or stop tracking per `tracking.enabled`.

        A changed tracking section takes effect on a fresh worker.
        """
        if config is not None and config != self._config:
            if config.tracking != self._config.tracking:
                self._worker.stop()
                self._save_echoes.clear()
                self._worker = WatchWorker(
                    self._project, self._channel, config.tracking, self._notifier_factory
                )
            self._config = config
        self.set_track_file_changes(self._config.tracking.enabled)

    def drain_changed_passes(self) -> list[str]:
        return self._channel.drain()

    def process_file_changes(self) -> list[FileChangeOutcome]:
        """Apply the reload/recompile policy to passes changed since the last tick.

        Clean panels whose file differs from disk are reloaded (auto_reload);
        dirty ones are flagged changed_on_disk for the UI to prompt. A pass is
        recompiled unless a conflict is pending or the change is the echo of
        our own save.
        """
        outcomes = list[FileChangeOutcome]()
        for name in dict.fromkeys(self.drain_changed_passes()):
            outcomes.append(self._apply_change(name))
        return outcomes

    def reload_from_disk(self, panel: EditorPanel) -> None:
        """Accept the on-disk version of a panel, dropping local edits."""
        self._require_open(panel)
        panel.reset(self._project.load_project_file(panel.path))

    def keep_local(self, panel: EditorPanel) -> None:
        """Dismiss the changed-on-disk flag, keeping the panel's text."""
        self._require_open(panel)
        panel.changed_on_disk = False

    def shutdown(self) -> None:
        self.set_track_file_changes(False)

    def _apply_change(self, pass_name: str) -> FileChangeOutcome:
        reloaded = list[EditorPanel]()
        conflicts = list[EditorPanel]()
        for panel in self._panels:
            if panel.pass_name != pass_name:
                continue
            try:
                disk_text = self._project.load_project_file(panel.path)
            except exceptions.ProjectFileError as e:
                logger.warning(f"Cannot re-read {panel.window_title}: {e}")
                continue
            if disk_text == panel.saved_text:
                continue
            if panel.is_dirty or not self._config.editor.auto_reload:
                panel.changed_on_disk = True
                conflicts.append(panel)
                logger.info(f"{panel.window_title} changed on disk")
            else:
                panel.reset(disk_text)
                reloaded.append(panel)
                logger.info(f"Reloaded {panel.window_title} from disk")

        expected = self._save_echoes.pop(pass_name, None)
        own_save = (
            expected is not None
            and not reloaded
            and self._read_disk(expected) == expected
        )

        recompiled = False
        if (
            self._compiler is not None
            and self._config.editor.auto_recompile
            and not conflicts
            and not own_save
        ):
            self._compiler.recompile(pass_name)
            recompiled = True

        return FileChangeOutcome(
            pass_name=pass_name,
            reloaded=tuple(reloaded),
            conflicts=tuple(conflicts),
            recompiled=recompiled,
        )

    def _disk_state(self, panel: EditorPanel) -> dict[pathlib.Path, str | None]:
        """Text on disk of the panel's file and every active source of its pass."""
        paths = [panel.path]
        try:
            shader_pass = self._project.get_pass(panel.pass_name)
        except exceptions.PassNotFoundError:
            pass
        else:
            paths.extend(path for _, path in shader_pass.active_sources() if path)
        return self._read_disk(
            self._project.resolve_project_relative_path(path) for path in dict.fromkeys(paths)
        )

    def _read_disk(self, paths: Iterable[pathlib.Path]) -> dict[pathlib.Path, str | None]:
        state = dict[pathlib.Path, str | None]()
        for path in paths:
            try:
                state[path] = self._project.load_project_file(str(path))
            except exceptions.ProjectFileError:
                state[path] = None
        return state

    def _paths_of(self, panel: EditorPanel) -> tuple[str, ...]:
        """Paths of the pass behind `panel`, or just its own path if the pass is gone."""
        try:
            return self._project.get_pass(panel.pass_name).all_paths()
        except exceptions.PassNotFoundError:
            return (panel.path,)

    def _require_open(self, panel: EditorPanel) -> None:
        if not any(p is panel for p in self._panels):
            raise ValueError(f"{panel.window_title} is not open in this editor")


def _launch(path: pathlib.Path) -> int:
    """Open `path` with the system's default application."""
    return click.launch(str(path))

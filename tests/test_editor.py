"""Tests for CodeEditor panels and the file-change policy."""

from __future__ import annotations

import pathlib
from typing import TYPE_CHECKING

import pytest

from helpers import FakeNotifier, wait_until
from shaderedit import exceptions
from shaderedit.config.models import EditorConfig, ShaderEditConfig
from shaderedit.editor import CodeEditor, EditorPanel
from shaderedit.tracking.worker import WatcherState
from shaderedit.types import ShaderPass, ShaderStage

if TYPE_CHECKING:
    from collections.abc import Generator
    from unittest.mock import MagicMock

    from pytest_mock import MockerFixture

    from shaderedit.config.models import TrackingConfig
    from shaderedit.project import ShaderProject


@pytest.fixture
def compiler(mocker: MockerFixture) -> MagicMock:
    return mocker.MagicMock()


@pytest.fixture
def editor(shader_project: ShaderProject, compiler: MagicMock) -> CodeEditor:
    return CodeEditor(shader_project, compiler)


def _changed(editor: CodeEditor, mocker: MockerFixture, *names: str) -> None:
    mocker.patch.object(editor, "drain_changed_passes", return_value=list(names))


# =============================================================================
# Opening and closing panels
# =============================================================================


def test_open_loads_file_and_focuses(editor: CodeEditor) -> None:
    panel = editor.open_vs("Simple")

    assert panel is not None
    assert panel.text == "void main() {}\n"
    assert panel.window_title == "Simple (VS)"
    assert editor.focused is panel
    assert not panel.is_dirty


def test_open_same_stage_twice_focuses_existing(
    editor: CodeEditor, shader_project: ShaderProject
) -> None:
    first = editor.open_ps("Simple")
    editor.open_ps("Post")

    again = editor.open(shader_project.get_pass("Simple"), ShaderStage.PIXEL)

    assert again is first
    assert editor.focused is first
    assert len(editor.panels) == 2


def test_open_unknown_pass(editor: CodeEditor) -> None:
    with pytest.raises(exceptions.PassNotFoundError):
        editor.open_vs("Missing")


def test_open_with_external_editor(shader_project: ShaderProject, shader_dir: pathlib.Path) -> None:
    opened = list[pathlib.Path]()
    config = ShaderEditConfig(editor=EditorConfig(use_external_editor=True))
    editor = CodeEditor(shader_project, config=config, opener=opened.append)

    assert editor.open_gs("Simple") is None

    assert opened == [shader_dir / "shaders" / "simple.geom"]
    assert editor.panels == []


def test_close_dirty_panel_requires_decision(editor: CodeEditor, shader_dir: pathlib.Path) -> None:
    panel = editor.open_vs("Simple")
    assert panel is not None
    panel.set_text("// edited\n")

    with pytest.raises(exceptions.UnsavedChangesError):
        editor.close(panel)

    editor.close(panel, save=True)
    assert editor.panels == []
    assert editor.focused is None
    assert (shader_dir / "shaders" / "simple.vert").read_text() == "// edited\n"


def test_close_discarding_edits(editor: CodeEditor, shader_dir: pathlib.Path) -> None:
    panel = editor.open_vs("Simple")
    assert panel is not None
    panel.set_text("// edited\n")

    editor.close(panel, save=False)

    assert (shader_dir / "shaders" / "simple.vert").read_text() == "void main() {}\n"


def test_panel_not_open_is_rejected(editor: CodeEditor) -> None:
    stray = EditorPanel("Simple", ShaderStage.VERTEX, "x", "", "")

    with pytest.raises(ValueError, match="not open"):
        editor.focus(stray)


def test_close_all(editor: CodeEditor) -> None:
    editor.open_vs("Simple")
    editor.open_ps("Post")

    editor.close_all()

    assert editor.panels == []
    assert editor.focused is None


# =============================================================================
# Saving, compiling, bookkeeping
# =============================================================================


def test_compile_saves_and_recompiles(
    editor: CodeEditor, compiler: MagicMock, shader_dir: pathlib.Path
) -> None:
    panel = editor.open_ps("Post")
    assert panel is not None
    panel.set_text("// post v2\n")

    editor.compile(panel)

    compiler.recompile.assert_called_once_with("Post")
    assert (shader_dir / "shaders" / "post.frag").read_text() == "// post v2\n"
    assert not panel.is_dirty


def test_opened_files_round_trip(editor: CodeEditor) -> None:
    editor.open_vs("Simple")
    editor.open_ps("Post")

    editor.set_opened_files_data(["a", "b"])

    assert editor.get_opened_files() == [
        ("Simple", ShaderStage.VERTEX),
        ("Post", ShaderStage.PIXEL),
    ]
    assert editor.get_opened_files_data() == ["a", "b"]


def test_rename_shader_pass_updates_panels(
    editor: CodeEditor, shader_project: ShaderProject
) -> None:
    panel = editor.open_ps("Post")
    assert panel is not None

    shader_project.rename_pass("Post", "Bloom")
    editor.rename_shader_pass("Post", "Bloom")

    assert panel.window_title == "Bloom (PS)"
    assert editor.open_ps("Bloom") is panel


# =============================================================================
# File change policy
# =============================================================================


def test_clean_panel_is_reloaded_and_pass_recompiled(
    editor: CodeEditor, compiler: MagicMock, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    panel = editor.open_ps("Post")
    assert panel is not None
    (shader_dir / "shaders" / "post.frag").write_text("// from outside\n")
    _changed(editor, mocker, "Post", "Post")

    outcomes = editor.process_file_changes()

    assert len(outcomes) == 1
    assert outcomes[0].reloaded == (panel,)
    assert outcomes[0].recompiled
    assert panel.text == "// from outside\n"
    compiler.recompile.assert_called_once_with("Post")


def test_dirty_panel_is_flagged_not_reloaded(
    editor: CodeEditor, compiler: MagicMock, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    panel = editor.open_ps("Post")
    assert panel is not None
    panel.set_text("// local edit\n")
    (shader_dir / "shaders" / "post.frag").write_text("// from outside\n")
    _changed(editor, mocker, "Post")

    (outcome,) = editor.process_file_changes()

    assert outcome.conflicts == (panel,)
    assert not outcome.recompiled
    assert panel.changed_on_disk
    assert panel.text == "// local edit\n"
    compiler.recompile.assert_not_called()


def test_conflict_resolution(
    editor: CodeEditor, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    vs_panel = editor.open_vs("Simple")
    ps_panel = editor.open_ps("Simple")
    assert vs_panel is not None and ps_panel is not None
    vs_panel.set_text("// mine\n")
    ps_panel.set_text("// mine too\n")
    (shader_dir / "shaders" / "simple.vert").write_text("// theirs\n")
    (shader_dir / "shaders" / "simple.frag").write_text("// theirs too\n")
    _changed(editor, mocker, "Simple")
    editor.process_file_changes()

    editor.reload_from_disk(vs_panel)
    editor.keep_local(ps_panel)

    assert vs_panel.text == "// theirs\n"
    assert not vs_panel.changed_on_disk
    assert ps_panel.text == "// mine too\n"
    assert not ps_panel.changed_on_disk


def test_auto_reload_disabled_flags_clean_panels(
    shader_project: ShaderProject, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    config = ShaderEditConfig(editor=EditorConfig(auto_reload=False))
    editor = CodeEditor(shader_project, config=config)
    panel = editor.open_ps("Post")
    assert panel is not None
    (shader_dir / "shaders" / "post.frag").write_text("// from outside\n")
    _changed(editor, mocker, "Post")

    (outcome,) = editor.process_file_changes()

    assert outcome.conflicts == (panel,)
    assert panel.text == "void main() {}\n"


def test_unopened_pass_is_recompiled(
    editor: CodeEditor, compiler: MagicMock, mocker: MockerFixture
) -> None:
    _changed(editor, mocker, "Simple", "Post")

    outcomes = editor.process_file_changes()

    assert [o.pass_name for o in outcomes] == ["Simple", "Post"]
    assert compiler.recompile.call_count == 2


@pytest.fixture
def tracked_editor(
    shader_project: ShaderProject, compiler: MagicMock, fast_tracking: TrackingConfig
) -> Generator[CodeEditor]:
    """Editor with tracking running against an in-memory notifier."""
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        compiler,
        ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )
    editor.set_track_file_changes(True)
    yield editor
    editor.shutdown()


def test_own_save_is_not_recompiled_twice(
    tracked_editor: CodeEditor, compiler: MagicMock, mocker: MockerFixture
) -> None:
    """The tracker echoes our own save; compile() already rebuilt the pass."""
    panel = tracked_editor.open_ps("Post")
    assert panel is not None
    panel.set_text("// saved\n")
    tracked_editor.compile(panel)
    _changed(tracked_editor, mocker, "Post")

    (outcome,) = tracked_editor.process_file_changes()

    assert not outcome.recompiled
    assert outcome.reloaded == ()
    compiler.recompile.assert_called_once_with("Post")


def test_save_echo_is_consumed_once(
    tracked_editor: CodeEditor, compiler: MagicMock, mocker: MockerFixture
) -> None:
    """Only the first notification after a save counts as its echo."""
    panel = tracked_editor.open_ps("Post")
    assert panel is not None
    tracked_editor.save(panel)
    _changed(tracked_editor, mocker, "Post")
    tracked_editor.process_file_changes()

    (outcome,) = tracked_editor.process_file_changes()

    assert outcome.recompiled
    compiler.recompile.assert_called_once_with("Post")


def test_external_edit_after_save_is_recompiled(
    tracked_editor: CodeEditor,
    compiler: MagicMock,
    shader_dir: pathlib.Path,
    mocker: MockerFixture,
) -> None:
    """Another file of the saved pass changing before the echo is a real change."""
    panel = tracked_editor.open_vs("Simple")
    assert panel is not None
    tracked_editor.save(panel)
    (shader_dir / "shaders" / "simple.frag").write_text("// edited elsewhere\n")
    _changed(tracked_editor, mocker, "Simple")

    (outcome,) = tracked_editor.process_file_changes()

    assert outcome.recompiled
    compiler.recompile.assert_called_once_with("Simple")


def test_save_without_tracking_leaves_no_echo(
    editor: CodeEditor, compiler: MagicMock, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    panel = editor.open_vs("Simple")
    assert panel is not None
    editor.save(panel)
    (shader_dir / "shaders" / "simple.frag").write_text("// edited elsewhere\n")
    _changed(editor, mocker, "Simple")

    (outcome,) = editor.process_file_changes()

    assert outcome.recompiled
    compiler.recompile.assert_called_once_with("Simple")


def test_disabling_tracking_forgets_pending_echoes(
    tracked_editor: CodeEditor, compiler: MagicMock, mocker: MockerFixture
) -> None:
    panel = tracked_editor.open_ps("Post")
    assert panel is not None
    tracked_editor.save(panel)

    tracked_editor.set_track_file_changes(False)
    _changed(tracked_editor, mocker, "Post")
    (outcome,) = tracked_editor.process_file_changes()

    assert outcome.recompiled


def test_auto_recompile_disabled(
    shader_project: ShaderProject, compiler: MagicMock, mocker: MockerFixture
) -> None:
    config = ShaderEditConfig(editor=EditorConfig(auto_recompile=False))
    editor = CodeEditor(shader_project, compiler, config)
    _changed(editor, mocker, "Post")

    (outcome,) = editor.process_file_changes()

    assert not outcome.recompiled
    compiler.recompile.assert_not_called()


def test_unreadable_file_is_skipped(
    editor: CodeEditor, shader_dir: pathlib.Path, mocker: MockerFixture
) -> None:
    panel = editor.open_ps("Post")
    assert panel is not None
    (shader_dir / "shaders" / "post.frag").unlink()
    _changed(editor, mocker, "Post")

    (outcome,) = editor.process_file_changes()

    assert outcome.reloaded == ()
    assert outcome.conflicts == ()
    assert panel.text == "void main() {}\n"


# =============================================================================
# Tracking toggle
# =============================================================================


def test_tracking_feeds_process_file_changes(
    shader_project: ShaderProject,
    shader_dir: pathlib.Path,
    compiler: MagicMock,
    fast_tracking: TrackingConfig,
) -> None:
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        compiler,
        ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )
    assert not editor.tracking_enabled

    editor.set_track_file_changes(True)
    try:
        assert editor.tracking_enabled
        assert wait_until(lambda: len(notifier.watched) == 1)
        assert editor.tracking_state == WatcherState.WATCHING
        notifier.emit(shader_dir / "shaders", "post.frag")
        assert wait_until(lambda: bool(editor.process_file_changes()))
    finally:
        editor.set_track_file_changes(False)

    compiler.recompile.assert_called_with("Post")
    assert editor.tracking_state == WatcherState.STOPPED
    assert editor.tracking_error is None


def test_shutdown_stops_tracking(
    shader_project: ShaderProject, fast_tracking: TrackingConfig
) -> None:
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        config=ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )
    editor.set_track_file_changes(True)

    editor.shutdown()

    assert not editor.tracking_enabled
    assert notifier.closed


def test_pass_added_while_tracking_is_watched(
    shader_project: ShaderProject, shader_dir: pathlib.Path, fast_tracking: TrackingConfig
) -> None:
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        config=ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )
    (shader_dir / "extra").mkdir()
    editor.set_track_file_changes(True)
    try:
        assert wait_until(lambda: len(notifier.watched) == 1)
        shader_project.add_pass(ShaderPass("Extra", "extra/e.vert", "shaders/post.frag"))
        assert wait_until(lambda: shader_dir / "extra" in notifier.watched.values())
    finally:
        editor.shutdown()


def test_apply_settings_starts_tracking_when_enabled(
    shader_project: ShaderProject, fast_tracking: TrackingConfig
) -> None:
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        config=ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )

    editor.apply_settings()
    try:
        assert editor.tracking_enabled
        assert wait_until(lambda: len(notifier.watched) == 1)
    finally:
        editor.shutdown()


def test_apply_settings_stops_tracking_when_disabled(
    shader_project: ShaderProject, fast_tracking: TrackingConfig
) -> None:
    notifier = FakeNotifier()
    editor = CodeEditor(
        shader_project,
        config=ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=lambda stop: notifier,
    )
    editor.set_track_file_changes(True)

    editor.apply_settings(
        ShaderEditConfig(tracking=fast_tracking.model_copy(update={"enabled": False}))
    )

    assert not editor.tracking_enabled
    assert editor.tracking_state == WatcherState.STOPPED
    assert notifier.closed


def test_apply_settings_restarts_with_new_tracking_config(
    shader_project: ShaderProject, fast_tracking: TrackingConfig, mocker: MockerFixture
) -> None:
    factory = mocker.Mock(side_effect=lambda stop: FakeNotifier())
    editor = CodeEditor(
        shader_project,
        config=ShaderEditConfig(tracking=fast_tracking),
        notifier_factory=factory,
    )
    editor.apply_settings()

    editor.apply_settings(
        ShaderEditConfig(tracking=fast_tracking.model_copy(update={"idle_interval_ms": 30}))
    )
    try:
        assert editor.tracking_enabled
        assert wait_until(lambda: factory.call_count == 2)
    finally:
        editor.shutdown()

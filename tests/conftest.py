from __future__ import annotations

import pathlib
import sys

import pytest

from shaderedit.config.models import TrackingConfig
from shaderedit.project import ShaderProject
from shaderedit.tracking.channel import NotificationChannel
from shaderedit.types import ShaderPass

# Add tests directory to sys.path so helpers.py can be imported
_tests_dir = pathlib.Path(__file__).parent
if str(_tests_dir) not in sys.path:
    sys.path.insert(0, str(_tests_dir))


@pytest.fixture(autouse=True)
def isolated_home(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> pathlib.Path:
    """Keep the user's ~/.config/shaderedit out of every test."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def fast_tracking() -> TrackingConfig:
    """Tracking intervals short enough for thread-based tests."""
    return TrackingConfig(
        wait_timeout_ms=50,
        idle_interval_ms=20,
        poll_interval_ms=1,
        debounce_ms=0,
    )


@pytest.fixture
def channel() -> NotificationChannel:
    return NotificationChannel()


@pytest.fixture
def shader_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Project directory with a few shader sources on disk."""
    shaders = tmp_path / "shaders"
    shaders.mkdir()
    (shaders / "simple.vert").write_text("void main() {}\n")
    (shaders / "simple.frag").write_text("out vec4 color;\nvoid main() { color = vec4(1); }\n")
    (shaders / "simple.geom").write_text("layout(triangles) in;\n")
    (shaders / "post.frag").write_text("void main() {}\n")
    return tmp_path


@pytest.fixture
def shader_project(shader_dir: pathlib.Path) -> ShaderProject:
    return ShaderProject(
        [
            ShaderPass(
                name="Simple",
                vs_path="shaders/simple.vert",
                ps_path="shaders/simple.frag",
                gs_path="shaders/simple.geom",
            ),
            ShaderPass(
                name="Post",
                vs_path="shaders/simple.vert",
                ps_path="shaders/post.frag",
            ),
        ],
        path=shader_dir / "project.yaml",
    )

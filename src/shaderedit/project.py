"""Shader project: pass list, project file location and shader file I/O.

The tracking worker only sees the ProjectService protocol. ShaderProject is
the concrete service; its pass list is an immutable tuple swapped under a
lock, so the worker always reads a consistent snapshot while the editor
thread edits passes.
"""

from __future__ import annotations

import contextlib
import logging
import os
import pathlib
import tempfile
import threading
from typing import Annotated, Any, Protocol

import pydantic
import ruamel.yaml

from shaderedit import exceptions
from shaderedit.types import ShaderPass

logger = logging.getLogger(__name__)


class ProjectService(Protocol):
    """What the tracker needs from the project."""

    def get_pass_list(self) -> list[ShaderPass]: ...

    def get_active_project_path(self) -> str:
        """Path of the opened project file, or "" for an unsaved project."""
        ...

    def resolve_project_relative_path(self, path: str) -> pathlib.Path: ...


class _PassEntry(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")  # pyright: ignore[reportUnannotatedClassAttribute]

    name: Annotated[str, pydantic.Field(min_length=1)]
    vs: str
    ps: str
    gs: str = ""
    gs_used: bool = False


class _ProjectFile(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")  # pyright: ignore[reportUnannotatedClassAttribute]

    passes: list[_PassEntry] = pydantic.Field(default_factory=list)


def canonicalize_shader_path(path: str, base: pathlib.Path) -> pathlib.Path:
    """Absolute, normalized path for a stored shader path.

    Backslashes are accepted so projects authored on Windows resolve on POSIX.
    """
    posix_path = path.replace("\\", "/")
    p = pathlib.Path(posix_path)
    abs_path = p if p.is_absolute() else base / p
    return pathlib.Path(os.path.normpath(abs_path))


class ShaderProject:
    """In-memory shader project backed by an optional YAML project file."""

    _lock: threading.Lock
    _passes: tuple[ShaderPass, ...]
    _path: pathlib.Path | None

    def __init__(
        self,
        passes: list[ShaderPass] | tuple[ShaderPass, ...] = (),
        path: pathlib.Path | None = None,
    ) -> None:
        self._lock = threading.Lock()
        names = [p.name for p in passes]
        if len(set(names)) != len(names):
            raise exceptions.DuplicatePassError(f"Duplicate pass names in {names}")
        self._passes = tuple(passes)
        self._path = path.absolute() if path is not None else None

    @classmethod
    def load(cls, path: pathlib.Path) -> ShaderProject:
        """Read a project file.

        Raises:
            ProjectFileError: If the file is missing, not YAML, or malformed.
        """
        try:
            yaml = ruamel.yaml.YAML(typ="safe")
            with path.open(encoding="utf-8") as f:
                data: Any = yaml.load(f)
        except FileNotFoundError:
            raise exceptions.ProjectFileError(f"Project file not found: {path}") from None
        except ruamel.yaml.YAMLError as e:
            raise exceptions.ProjectFileError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise exceptions.ProjectFileError(f"Error reading {path}: {e}") from e

        try:
            parsed = _ProjectFile.model_validate(data if data is not None else {})
        except pydantic.ValidationError as e:
            raise exceptions.ProjectFileError(f"Invalid project file {path}: {e}") from e

        passes = [
            ShaderPass(name=e.name, vs_path=e.vs, ps_path=e.ps, gs_path=e.gs, gs_used=e.gs_used)
            for e in parsed.passes
        ]
        logger.info(f"Loaded project {path} with {len(passes)} pass(es)")
        return cls(passes, path=path)

    @property
    def path(self) -> pathlib.Path | None:
        with self._lock:
            return self._path

    @property
    def directory(self) -> pathlib.Path:
        """Base for relative shader paths: project file directory, else cwd."""
        path = self.path
        return path.parent if path is not None else pathlib.Path.cwd()

    def set_project_path(self, path: pathlib.Path | None) -> None:
        with self._lock:
            self._path = path.absolute() if path is not None else None

    # --- ProjectService ---

    def get_pass_list(self) -> list[ShaderPass]:
        with self._lock:
            return list(self._passes)

    def get_active_project_path(self) -> str:
        path = self.path
        return str(path) if path is not None else ""

    def resolve_project_relative_path(self, path: str) -> pathlib.Path:
        return canonicalize_shader_path(path, self.directory)

    # --- pass editing ---

    def get_pass(self, name: str) -> ShaderPass:
        for shader_pass in self.get_pass_list():
            if shader_pass.name == name:
                return shader_pass
        raise exceptions.PassNotFoundError(name)

    def add_pass(self, shader_pass: ShaderPass) -> None:
        with self._lock:
            if any(p.name == shader_pass.name for p in self._passes):
                raise exceptions.DuplicatePassError(f"Pass '{shader_pass.name}' already exists")
            self._passes = (*self._passes, shader_pass)

    def remove_pass(self, name: str) -> None:
        with self._lock:
            remaining = tuple(p for p in self._passes if p.name != name)
            if len(remaining) == len(self._passes):
                raise exceptions.PassNotFoundError(name)
            self._passes = remaining

    def update_pass(self, shader_pass: ShaderPass) -> None:
        """Replace the pass with the same name, keeping its position."""
        with self._lock:
            if not any(p.name == shader_pass.name for p in self._passes):
                raise exceptions.PassNotFoundError(shader_pass.name)
            self._passes = tuple(
                shader_pass if p.name == shader_pass.name else p for p in self._passes
            )

    def rename_pass(self, name: str, new_name: str) -> ShaderPass:
        with self._lock:
            if any(p.name == new_name for p in self._passes):
                raise exceptions.DuplicatePassError(f"Pass '{new_name}' already exists")
            renamed: ShaderPass | None = None
            passes = list[ShaderPass]()
            for p in self._passes:
                if p.name == name:
                    renamed = ShaderPass(new_name, p.vs_path, p.ps_path, p.gs_path, p.gs_used)
                    passes.append(renamed)
                else:
                    passes.append(p)
            if renamed is None:
                raise exceptions.PassNotFoundError(name)
            self._passes = tuple(passes)
            return renamed

    # --- shader file I/O ---

    def load_project_file(self, path: str) -> str:
        """Read a shader file given its stored (project-relative) path."""
        full_path = self.resolve_project_relative_path(path)
        try:
            return full_path.read_text(encoding="utf-8")
        except OSError as e:
            raise exceptions.ProjectFileError(f"Cannot read shader {full_path}: {e}") from e

    def save_project_file(self, path: str, text: str) -> None:
        full_path = self.resolve_project_relative_path(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise exceptions.ProjectFileError(f"Cannot write shader {full_path}: {e}") from e

    def save(self, path: pathlib.Path | None = None) -> pathlib.Path:
        """Write the project file atomically (temp file + rename).

        Saving to a new path makes it the active project path.
        """
        target = path if path is not None else self.path
        if target is None:
            raise exceptions.ProjectError("Project has no file path; pass one to save()")

        data = {
            "passes": [
                {
                    "name": p.name,
                    "vs": p.vs_path,
                    "ps": p.ps_path,
                    "gs": p.gs_path,
                    "gs_used": p.gs_used,
                }
                for p in self.get_pass_list()
            ]
        }
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
            try:
                yaml = ruamel.yaml.YAML(typ="safe")
                yaml.default_flow_style = False
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.dump(data, f)
                os.replace(tmp_path, target)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise exceptions.ProjectFileError(f"Error writing {target}: {e}") from e

        self.set_project_path(target)
        return target

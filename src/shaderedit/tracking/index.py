from __future__ import annotations

import collections
import dataclasses
import logging
import os
import pathlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from shaderedit.types import ShaderPass, ShaderStage

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class WatchedFile:
    """One shader source the tracker cares about."""

    path: pathlib.Path
    pass_name: str
    stage: ShaderStage


def normalize(path: pathlib.Path | str) -> pathlib.Path:
    """Collapse `..` and duplicate separators without touching the filesystem."""
    return pathlib.Path(os.path.normpath(path))


class PassFileIndex:
    """Pass-to-file and file-to-pass mapping derived from a pass list.

    Immutable once built. A path shared by several passes (or by several
    stages of one pass) keeps one WatchedFile per use, so a change to it
    notifies every owner.
    """

    _files: tuple[WatchedFile, ...]
    _by_path: dict[pathlib.Path, list[WatchedFile]]
    _by_pass: dict[str, list[WatchedFile]]

    def __init__(self, files: Iterable[WatchedFile] = ()) -> None:
        self._files = tuple(files)
        by_path: collections.defaultdict[pathlib.Path, list[WatchedFile]] = (
            collections.defaultdict(list)
        )
        by_pass: collections.defaultdict[str, list[WatchedFile]] = collections.defaultdict(list)
        for watched in self._files:
            by_path[watched.path].append(watched)
            by_pass[watched.pass_name].append(watched)
        self._by_path = dict(by_path)
        self._by_pass = dict(by_pass)

    @classmethod
    def build(
        cls,
        passes: Iterable[ShaderPass],
        resolve: Callable[[str], pathlib.Path],
    ) -> PassFileIndex:
        """Collect vertex and pixel sources of every pass, plus geometry when active."""
        files = list[WatchedFile]()
        for shader_pass in passes:
            for stage, rel_path in shader_pass.active_sources():
                if not rel_path:
                    logger.debug(f"Pass '{shader_pass.name}' has no {stage.label} path, skipping")
                    continue
                files.append(
                    WatchedFile(
                        path=normalize(resolve(rel_path)),
                        pass_name=shader_pass.name,
                        stage=stage,
                    )
                )
        return cls(files)

    @property
    def files(self) -> tuple[WatchedFile, ...]:
        return self._files

    def paths(self) -> list[pathlib.Path]:
        """Distinct watched paths in first-occurrence order."""
        return list(self._by_path)

    def passes_for(self, path: pathlib.Path) -> list[str]:
        """Pass names owning `path`, one entry per matching WatchedFile."""
        return [watched.pass_name for watched in self._by_path.get(normalize(path), ())]

    def files_for(self, pass_name: str) -> list[WatchedFile]:
        return list(self._by_pass.get(pass_name, ()))

    def pass_names(self) -> list[str]:
        return list(self._by_pass)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, pathlib.Path)):
            return False
        return normalize(path) in self._by_path

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[WatchedFile]:
        return iter(self._files)

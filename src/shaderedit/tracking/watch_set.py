"""Reduce shader file paths to a minimal set of directories to watch."""

from __future__ import annotations

import dataclasses
import logging
import pathlib
from typing import TYPE_CHECKING

from pygtrie import Trie

from shaderedit.tracking.index import normalize

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class WatchDirectory:
    """A directory to watch and the input files it covers.

    Attributes:
        path: Absolute directory path.
        file_indices: Positions (in the builder's input order) of the files
            whose parent directory is this directory or one of its descendants.
    """

    path: pathlib.Path
    file_indices: tuple[int, ...]


class WatchSet:
    """Minimal, non-overlapping directories covering a list of files.

    No directory in the set equals or contains another one; containment is
    decided on path components, so `/proj/ab` is not inside `/proj/a`.
    """

    _directories: tuple[WatchDirectory, ...]
    _trie: Trie[pathlib.Path]

    def __init__(self, directories: Iterable[WatchDirectory] = ()) -> None:
        self._directories = tuple(directories)
        self._trie = Trie()
        for directory in self._directories:
            self._trie[directory.path.parts] = directory.path

    @property
    def directories(self) -> tuple[WatchDirectory, ...]:
        return self._directories

    def paths(self) -> list[pathlib.Path]:
        return [directory.path for directory in self._directories]

    def covering(self, path: pathlib.Path) -> pathlib.Path | None:
        """Return the watched directory equal to or containing `path`, if any."""
        prefix_item = self._trie.shortest_prefix(normalize(path).parts)
        if prefix_item:
            return prefix_item.value
        return None

    def directory_for(self, file: pathlib.Path) -> pathlib.Path | None:
        """Return the watched directory whose subtree holds `file`."""
        return self.covering(normalize(file).parent)

    def __len__(self) -> int:
        return len(self._directories)

    def __bool__(self) -> bool:
        return bool(self._directories)

    def __iter__(self) -> Iterator[WatchDirectory]:
        return iter(self._directories)


def build_watch_set(files: Iterable[pathlib.Path]) -> WatchSet:
    """Build the minimal watch set for `files`.

    Each file contributes its parent directory. Identical directories keep the
    first occurrence; a directory under one already kept is dropped, and a new
    directory that contains kept ones replaces them.

    Example:
        >>> ws = build_watch_set([Path("/p/a.vs"), Path("/p/sub/b.ps"), Path("/q/c.gs")])
        >>> ws.paths()
        [PosixPath('/p'), PosixPath('/q')]
    """
    file_list = [normalize(f) for f in files]
    kept: Trie[pathlib.Path] = Trie()
    order = list[tuple[str, ...]]()

    for file in file_list:
        directory = file.parent
        key = directory.parts

        if key in kept:
            continue

        # Already covered by an ancestor
        prefix_item = kept.shortest_prefix(key)
        if prefix_item:
            continue

        # New directory is an ancestor of kept ones: evict them
        if kept.has_subtrie(key):
            evicted = [tuple(k) for k in kept.keys(prefix=key)]
            for evicted_key in evicted:
                del kept[evicted_key]
            order = [k for k in order if k not in evicted]
            logger.debug(f"Watch directory {directory} replaces {len(evicted)} subdirectories")

        kept[key] = directory
        order.append(key)

    indices: dict[tuple[str, ...], list[int]] = {key: [] for key in order}
    for position, file in enumerate(file_list):
        prefix_item = kept.shortest_prefix(file.parent.parts)
        if prefix_item:
            indices[tuple(prefix_item.key)].append(position)

    return WatchSet(
        WatchDirectory(path=kept[key], file_indices=tuple(indices[key])) for key in order
    )

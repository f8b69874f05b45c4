from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shaderedit.tracking.notifier import ChangeKind

if TYPE_CHECKING:
    import pathlib

    from shaderedit.tracking.index import PassFileIndex
    from shaderedit.tracking.notifier import NotifyEvent

logger = logging.getLogger(__name__)


def translate_event(
    directory: pathlib.Path, event: NotifyEvent, index: PassFileIndex
) -> list[str]:
    """Map a raw change under `directory` to the passes that own the file.

    Only modifications of files count. A path shared by several watched
    entries yields one name per entry; unknown paths yield nothing.
    """
    if event.kind != ChangeKind.MODIFIED or event.is_directory:
        return []

    changed = directory / event.filename
    passes = index.passes_for(changed)
    if passes:
        logger.debug(f"{changed} changed, notifying {passes}")
    return passes

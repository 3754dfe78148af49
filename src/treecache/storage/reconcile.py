from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from treecache.schemas import CacheEntry
from treecache.utils.fs import list_dir, remove_paths

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    stale_keys: list[str] = field(default_factory=list)
    untracked_paths: list[Path] = field(default_factory=list)


def reconcile(
    entries: dict[str, CacheEntry],
    *,
    directory: Path,
    keep: Iterable[Path] = (),
) -> ReconcileResult:
    """Align ``entries`` with the containers that exist under ``directory``.

    Entries whose container is gone are dropped from ``entries`` in place.
    Anything in ``directory`` that is neither listed in ``keep`` nor owned by a
    remaining entry is deleted. Stat errors other than "not found" propagate.
    """
    result = ReconcileResult()
    valid_paths: set[Path] = set()
    for key, entry in list(entries.items()):
        try:
            entry.path.lstat()
        except FileNotFoundError:
            logger.info("remove missing cache item key=%s path=%s", key, entry.path)
            del entries[key]
            result.stale_keys.append(key)
            continue
        valid_paths.add(entry.path)

    keep_paths = set(keep)
    for path in list_dir(directory):
        if path in keep_paths or path in valid_paths:
            continue
        logger.info("remove untracked path path=%s", path)
        remove_paths(path)
        result.untracked_paths.append(path)

    return result

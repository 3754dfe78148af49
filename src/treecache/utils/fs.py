from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


def create_dirs(*paths: str | Path) -> None:
    for raw_path in paths:
        path = Path(raw_path)
        if path.exists():
            continue
        logger.info("create directory path=%s", path)
        path.mkdir(parents=True, exist_ok=True)


def list_dir(directory: str | Path) -> list[Path]:
    """Return the absolute paths of the immediate children of ``directory``."""
    root = Path(directory)
    return sorted(root / name for name in os.listdir(root))


def remove_paths(*paths: str | Path) -> None:
    """Recursively delete every path; missing paths are ignored."""
    for raw_path in paths:
        path = Path(raw_path)
        if path.is_symlink() or path.is_file():
            path.unlink(missing_ok=True)
        elif path.is_dir():
            shutil.rmtree(path)


def path_size(path: str | Path) -> int:
    """Return the total byte size of a file or of every file under a directory."""
    root = Path(path)
    stat = root.lstat()
    if not root.is_dir() or root.is_symlink():
        return stat.st_size

    total = 0
    for dirpath, dirnames, filenames in os.walk(root):
        for name in [*dirnames, *filenames]:
            child = Path(dirpath) / name
            child_stat = child.lstat()
            if child.is_symlink() or not child.is_dir():
                total += child_stat.st_size
    return total


@contextmanager
def temp_dir(prefix: str = "treecache-") -> Iterator[Path]:
    with tempfile.TemporaryDirectory(prefix=prefix) as raw:
        yield Path(raw)

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

from treecache.errors import TransportError
from treecache.utils.command import run_command
from treecache.utils.fs import create_dirs

logger = logging.getLogger(__name__)

CommandBuilder = Callable[[Path, Path], list[str]]

# Checked in order: longer suffixes first.
EXTRACTORS: list[tuple[str, CommandBuilder]] = [
    (".tar.gz", lambda src, dest: ["tar", "--overwrite", "-xzf", str(src), "-C", str(dest)]),
    (".tgz", lambda src, dest: ["tar", "--overwrite", "-xzf", str(src), "-C", str(dest)]),
    (".zip", lambda src, dest: ["unzip", "-o", str(src), "-d", str(dest)]),
    (".rar", lambda src, dest: ["unrar", "x", "-o+", str(src), f"{dest}{os.sep}"]),
    (".7z", lambda src, dest: ["7z", "x", "-y", str(src), f"-o{dest}"]),
]


def supported_suffixes() -> list[str]:
    return [suffix for suffix, _ in EXTRACTORS]


def extract(src: str | Path, dest: str | Path) -> None:
    """Extract a downloaded archive into ``dest`` using the tool for its suffix."""
    src_path = Path(src)
    dest_path = Path(dest)
    name = src_path.name.lower()
    for suffix, build_command in EXTRACTORS:
        if name.endswith(suffix):
            create_dirs(dest_path)
            logger.info("extract src=%s dest=%s", src_path, dest_path)
            run_command(build_command(src_path, dest_path))
            return

    raise TransportError(
        f"unimplemented archive extension: {src_path.name}",
        context={"src": str(src_path), "supported": supported_suffixes()},
    )

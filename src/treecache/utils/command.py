from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO

from treecache.errors import CommandError

logger = logging.getLogger(__name__)


def run_command(
    command: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    stdout: IO[bytes] | None = None,
) -> str:
    """Run ``command`` to completion and return its stdout.

    When ``stdout`` is given the output is written there instead and an empty
    string is returned.
    """
    args = [str(part) for part in command]
    logger.info("run cmd command=%s", args)
    completed = subprocess.run(
        args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=stdout if stdout is not None else subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )
    stderr = (completed.stderr or b"").decode("utf-8", errors="replace")
    if completed.returncode != 0:
        logger.error(
            "run cmd failed command=%s returncode=%d stderr=%s",
            args,
            completed.returncode,
            stderr.strip(),
        )
        raise CommandError(
            f"command failed: {args[0]}",
            context={
                "command": args,
                "returncode": completed.returncode,
                "stderr": stderr.strip(),
            },
        )
    if stdout is not None:
        return ""
    return (completed.stdout or b"").decode("utf-8", errors="replace")

"""Process and filesystem helpers."""

from .command import run_command
from .fs import create_dirs, list_dir, path_size, remove_paths, temp_dir

__all__ = [
    "create_dirs",
    "list_dir",
    "path_size",
    "remove_paths",
    "run_command",
    "temp_dir",
]

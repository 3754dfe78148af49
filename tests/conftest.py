"""
Pytest fixtures for the file cache tests.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import treecache.storage.cache as cache_module
from treecache.schemas import CacheEntry

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class CopyTransport:
    """Stores single files verbatim so container size equals raw size plus padding."""

    extension = "bin"

    def __init__(self, padding: int = 0) -> None:
        self.padding = padding

    def pack(self, src: Path, container: Path) -> None:
        shutil.copyfile(src, container)
        if self.padding:
            with container.open("ab") as fp:
                fp.write(b"\0" * self.padding)

    def unpack(self, container: Path, dest: Path, *, is_file: bool) -> None:
        assert is_file
        dest.parent.mkdir(parents=True, exist_ok=True)
        data = container.read_bytes()
        dest.write_bytes(data[: len(data) - self.padding] if self.padding else data)


@pytest.fixture(autouse=True)
def clear_cache_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CACHE_ENABLED", "CACHE_DIR", "CACHE_SIZE_LIMIT", "CACHE_ARCHIVE_FORMAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[[], datetime]]:
    """Make ``now_utc`` in the cache module advance one minute per call."""
    state = {"now": BASE_TIME}

    def _now() -> datetime:
        state["now"] = state["now"] + timedelta(minutes=1)
        return state["now"]

    monkeypatch.setattr(cache_module, "now_utc", _now)
    yield _now


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


def write_bytes_producer(size: int, fill: bytes = b"x") -> Callable[[Path], None]:
    def _produce(dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(fill * size)

    return _produce


def make_entry(
    key: str,
    *,
    size: int,
    session_id: str,
    minutes: int,
    directory: Path = Path("/cache"),
) -> CacheEntry:
    return CacheEntry(
        key=key,
        is_file=True,
        path=directory / f"{key}.bin",
        size=size,
        last_accessed=BASE_TIME + timedelta(minutes=minutes),
        last_session_id=session_id,
    )

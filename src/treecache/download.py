from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

import requests

from treecache.archive.extractors import extract
from treecache.storage.cache import Producer
from treecache.utils.fs import create_dirs, remove_paths, temp_dir

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 60.0


def download(
    url: str,
    dest: str | Path,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    """Stream ``url`` into ``dest``. A partially written file is removed on failure."""
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    dest_path = Path(dest)
    create_dirs(dest_path.parent)
    logger.info("download url=%s file=%s", url, dest_path)
    if session is None:
        with requests.Session() as http:
            _stream_to_file(http, url, dest_path, timeout_seconds, chunk_size)
    else:
        _stream_to_file(session, url, dest_path, timeout_seconds, chunk_size)
    return dest_path


def _stream_to_file(
    http: requests.Session,
    url: str,
    dest_path: Path,
    timeout_seconds: float,
    chunk_size: int,
) -> None:
    try:
        with http.get(url, stream=True, timeout=timeout_seconds) as response:
            response.raise_for_status()
            with dest_path.open("wb") as fp:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        fp.write(chunk)
    except Exception:
        remove_paths(dest_path)
        raise


def download_producer(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> Producer:
    def _produce(dest: Path) -> None:
        download(url, dest, session=session, timeout_seconds=timeout_seconds)

    return _produce


def download_and_extract_producer(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> Producer:
    """Download an archive to a scratch directory and extract it into ``dest``."""

    def _produce(dest: Path) -> None:
        with temp_dir() as staging:
            archive_path = staging / archive_name(url)
            download(url, archive_path, session=session, timeout_seconds=timeout_seconds)
            extract(archive_path, dest)

    return _produce


def archive_name(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "download"

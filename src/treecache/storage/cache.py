from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from treecache.archive.transport import (
    ArchiveTransport,
    SquashfsTransport,
    get_transport,
    transport_for_container,
)
from treecache.config import SIZE_HINT_FACTOR, CacheConfig
from treecache.errors import CacheConfigurationError, CacheKeyNotFoundError, TransportError
from treecache.schemas import CacheEntry, now_utc
from treecache.utils.fs import create_dirs, path_size, remove_paths

from .eviction import total_size, trim_entries
from .manifest import ManifestStore
from .reconcile import ReconcileResult, reconcile

logger = logging.getLogger(__name__)

# Materializes content (a file or a directory tree) at the given path.
Producer = Callable[[Path], None]


class FileCache:
    """Size-bounded cache of packed files and directory trees.

    One instance serves one session. Call :meth:`initialize` before use; every
    mutating operation persists the manifest before returning.
    """

    def __init__(
        self,
        directory: str | Path,
        *,
        session_id: str,
        size_limit: int = 0,
        transport: ArchiveTransport | None = None,
        size_hint_factor: float = SIZE_HINT_FACTOR,
    ) -> None:
        if size_limit < 0:
            raise ValueError("size_limit must be >= 0")
        if not 0.0 < size_hint_factor <= 1.0:
            raise ValueError("size_hint_factor must be in (0, 1]")
        if not session_id.strip():
            raise ValueError("session_id must not be empty")

        self.directory = Path(directory).absolute()
        self.session_id = session_id
        self.size_limit = size_limit
        self.transport = transport or SquashfsTransport()
        self.size_hint_factor = size_hint_factor
        self.store = ManifestStore(self.directory)
        self.entries: dict[str, CacheEntry] = {}

    @classmethod
    def from_config(cls, config: CacheConfig) -> FileCache:
        if config.directory is None:
            raise CacheConfigurationError("cache directory unset")
        return cls(
            config.directory,
            session_id=config.session_id,
            size_limit=config.size_limit_bytes,
            transport=get_transport(config.archive_format),
            size_hint_factor=config.size_hint_factor,
        )

    @property
    def manifest_path(self) -> Path:
        return self.store.path

    def initialize(self) -> ReconcileResult:
        create_dirs(self.directory)
        self.load()
        return self.clean()

    def load(self) -> None:
        self.entries = self.store.load()

    def save(self) -> None:
        self.store.save(self.entries)

    def clean(self) -> ReconcileResult:
        result = reconcile(self.entries, directory=self.directory, keep=[self.manifest_path])
        self.save()
        return result

    def cache_size(self) -> int:
        return total_size(self.entries.values())

    def has_key(self, key: str) -> bool:
        return key in self.entries

    def get(self, key: str, dest: str | Path) -> CacheEntry:
        dest_path = Path(dest)
        logger.info("file_cache get key=%s dest=%s", key, dest_path)
        entry = self.entries.get(key)
        if entry is None:
            logger.info("file_cache miss key=%s reason=not_found", key)
            raise CacheKeyNotFoundError("key not found", context={"key": key})

        self._transport_for(entry).unpack(entry.path, dest_path, is_file=entry.is_file)
        if not os.path.lexists(dest_path):
            raise TransportError(
                "unpacked path missing",
                context={"key": key, "container": str(entry.path), "dest": str(dest_path)},
            )

        touched = entry.touched(self.session_id, at=now_utc())
        self.entries[key] = touched
        self.save()
        logger.info("file_cache hit key=%s size=%d", key, entry.size)
        return touched

    def put(self, key: str, dest: str | Path, produce: Producer) -> CacheEntry:
        """Produce ``dest``, pack it and record it under ``key``.

        An existing entry for ``key`` stays intact until the new container is
        packed and fits; it is not counted or evicted while trimming for its
        replacement.
        """
        container = self._container_path(key)
        dest_path = Path(dest)
        logger.info("file_cache put key=%s dest=%s", key, dest_path)
        previous = self.entries.get(key)
        if previous is not None:
            logger.info("file_cache replace key=%s", key)

        produce(dest_path)
        is_file = dest_path.is_symlink() or not dest_path.is_dir()
        raw_size = path_size(dest_path)
        size_hint = round(raw_size * self.size_hint_factor)
        self.trim(size_hint, exclude=[key])

        staged = container.with_name(f".{container.name}.tmp")
        try:
            self.transport.pack(dest_path, staged)
            size = staged.lstat().st_size
            # The new entry is pinned to this session, so reserving its exact
            # size matches trimming with it already counted.
            self.trim(size, exclude=[key])
            os.replace(staged, container)
        except Exception:
            logger.warning("file_cache put failed key=%s container=%s", key, container)
            remove_paths(staged)
            raise

        if previous is not None and previous.path != container:
            remove_paths(previous.path)

        entry = CacheEntry(
            key=key,
            is_file=is_file,
            path=container,
            size=size,
            last_accessed=now_utc(),
            last_session_id=self.session_id,
        )
        self.entries[key] = entry
        self.save()
        logger.info(
            "file_cache set key=%s size=%d raw_size=%d size_hint=%d",
            key,
            size,
            raw_size,
            size_hint,
        )
        return entry

    def pop(self, key: str) -> bool:
        logger.info("file_cache pop key=%s", key)
        entry = self.entries.get(key)
        if entry is None:
            return False
        self._remove_entry(entry)
        self.save()
        return True

    def trim(self, offset: int = 0, *, exclude: Iterable[str] = ()) -> list[str]:
        """Evict entries until the cache fits ``size_limit - offset`` bytes.

        Keys in ``exclude`` are neither counted nor evicted.
        """
        evicted: list[str] = []
        skipped = set(exclude)
        candidates = {key: entry for key, entry in self.entries.items() if key not in skipped}

        def _evict(entry: CacheEntry) -> None:
            self._remove_entry(entry)
            evicted.append(entry.key)

        try:
            trim_entries(
                candidates,
                size_limit=self.size_limit,
                offset=offset,
                session_id=self.session_id,
                evict=_evict,
            )
        finally:
            if evicted:
                self.save()
        return evicted

    def _remove_entry(self, entry: CacheEntry) -> None:
        remove_paths(entry.path)
        del self.entries[entry.key]

    def _transport_for(self, entry: CacheEntry) -> ArchiveTransport:
        if entry.path.name.endswith(f".{self.transport.extension}"):
            return self.transport
        return transport_for_container(entry.path)

    def _container_path(self, key: str) -> Path:
        has_separator = os.sep in key or (os.altsep is not None and os.altsep in key)
        if not key.strip() or key in {".", ".."} or has_separator:
            raise ValueError(f"invalid cache key: {key!r}")
        return self.directory / f"{key}.{self.transport.extension}"


def passthrough(dest: str | Path, produce: Producer) -> None:
    """Produce ``dest`` directly, without touching any cache state."""
    dest_path = Path(dest)
    logger.info("cache passthrough dest=%s", dest_path)
    produce(dest_path)
    dest_path.lstat()


def cache_or_produce(
    config: CacheConfig,
    key: str,
    dest: str | Path,
    produce: Producer,
) -> bool:
    """Materialize ``dest`` from the cache, producing and caching it on a miss.

    Returns True when ``dest`` was served from the cache. With caching disabled
    or no cache directory configured, ``produce`` is called directly.
    """
    if not config.enabled:
        logger.info("cache disabled")
        passthrough(dest, produce)
        return False
    if config.directory is None:
        logger.info("cache directory unset")
        passthrough(dest, produce)
        return False

    cache = FileCache.from_config(config)
    cache.initialize()
    if cache.has_key(key):
        cache.get(key, dest)
        return True
    cache.put(key, dest, produce)
    return False

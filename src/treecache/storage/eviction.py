from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

from treecache.errors import CacheConfigurationError, EvictionError
from treecache.schemas import CacheEntry

logger = logging.getLogger(__name__)


def total_size(entries: Iterable[CacheEntry]) -> int:
    return sum(entry.size for entry in entries)


def eviction_order(entries: Iterable[CacheEntry], *, session_id: str) -> list[CacheEntry]:
    """Sort entries into eviction order.

    Entries touched by ``session_id`` always sort last. Everything else is
    oldest ``last_accessed`` first, with the key breaking ties.
    """
    return sorted(
        entries,
        key=lambda entry: (
            entry.last_session_id == session_id,
            entry.last_accessed,
            entry.key,
        ),
    )


def trim_entries(
    entries: Mapping[str, CacheEntry],
    *,
    size_limit: int,
    offset: int,
    session_id: str,
    evict: Callable[[CacheEntry], None],
) -> list[str]:
    """Evict entries until their total size fits in ``size_limit - offset``.

    ``evict`` is called once per victim and must delete its container.
    A ``size_limit`` of 0 disables eviction. The scan stops at the first entry
    stamped with ``session_id``; if the cache still does not fit, the call
    fails with :class:`EvictionError`. Returns the evicted keys in order.
    """
    if size_limit == 0:
        return []
    if offset < 0:
        raise ValueError("offset must be >= 0")

    desired_size = size_limit - offset
    if desired_size < 0:
        raise CacheConfigurationError(
            "reservation exceeds cache size limit",
            context={"size_limit": size_limit, "offset": offset},
        )

    current_size = total_size(entries.values())
    if current_size <= desired_size:
        return []

    evicted: list[str] = []
    for entry in eviction_order(list(entries.values()), session_id=session_id):
        if current_size <= desired_size:
            break
        logger.info(
            "trim cache iteration current=%d desired=%d key=%s",
            current_size,
            desired_size,
            entry.key,
        )
        if entry.last_session_id == session_id:
            logger.info("stop iteration - current session entry found key=%s", entry.key)
            break
        evict(entry)
        current_size -= entry.size
        evicted.append(entry.key)

    if current_size > desired_size:
        raise EvictionError(
            "trim failed - cache cannot fit without evicting current session entries",
            context={
                "current_size": current_size,
                "desired_size": desired_size,
                "size_limit": size_limit,
                "offset": offset,
            },
        )
    return evicted

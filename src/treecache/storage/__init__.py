"""Storage layer: manifest, reconciliation, eviction and the file cache."""

from .cache import FileCache, Producer, cache_or_produce, passthrough
from .eviction import eviction_order, total_size, trim_entries
from .manifest import MANIFEST_NAME, ManifestStore
from .reconcile import ReconcileResult, reconcile

__all__ = [
    "MANIFEST_NAME",
    "FileCache",
    "ManifestStore",
    "Producer",
    "ReconcileResult",
    "cache_or_produce",
    "eviction_order",
    "passthrough",
    "reconcile",
    "total_size",
    "trim_entries",
]

"""Exception hierarchy for the file cache.

Every error carries an optional ``context`` mapping (key, path, byte counts)
that is appended to ``str(error)`` so log lines stay meaningful.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class CacheConfigurationError(CacheError):
    """Raised when the cache is configured in a way it cannot honor.

    Examples:
        - A reservation larger than the whole size limit
        - An unknown archive format
    """


class CacheKeyNotFoundError(CacheError):
    """Raised by ``get`` when the key has no entry."""


class TransportError(CacheError):
    """Raised when packing, unpacking or extracting content fails."""


class CommandError(TransportError):
    """Raised when an external command exits with a non-zero status.

    Context includes the command, its return code and captured stderr.
    """


class EvictionError(CacheError):
    """Raised when the size limit cannot be met without evicting entries
    touched by the current session.

    Context includes current_size, desired_size, size_limit and offset.
    """

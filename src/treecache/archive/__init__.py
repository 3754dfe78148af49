"""Archive transports and download extraction."""

from .extractors import extract, supported_suffixes
from .transport import (
    FILE_MEMBER,
    TRANSPORTS,
    TRANSPORTS_BY_EXTENSION,
    ArchiveTransport,
    SquashfsTransport,
    TarTransport,
    get_transport,
    transport_for_container,
)

__all__ = [
    "FILE_MEMBER",
    "TRANSPORTS",
    "TRANSPORTS_BY_EXTENSION",
    "ArchiveTransport",
    "SquashfsTransport",
    "TarTransport",
    "extract",
    "get_transport",
    "supported_suffixes",
    "transport_for_container",
]

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from treecache.errors import CacheConfigurationError, TransportError
from treecache.utils.command import run_command
from treecache.utils.fs import create_dirs, temp_dir

logger = logging.getLogger(__name__)

# Name a single packed file is stored under inside a container.
FILE_MEMBER = "path"


@runtime_checkable
class ArchiveTransport(Protocol):
    """Packs a file or directory into one container and unpacks it back."""

    extension: str

    def pack(self, src: Path, container: Path) -> None:
        """Write the content at ``src`` into ``container``."""
        ...

    def unpack(self, container: Path, dest: Path, *, is_file: bool) -> None:
        """Restore ``container`` to ``dest``.

        File containers are written to ``dest`` itself (its parent is created);
        directory containers are expanded into ``dest``.
        """
        ...


class TarTransport:
    """Gzip-compressed tar containers written with :mod:`tarfile`."""

    extension = "tar.gz"

    def pack(self, src: Path, container: Path) -> None:
        src = Path(src)
        arcname = "." if src.is_dir() and not src.is_symlink() else FILE_MEMBER
        logger.info("tar pack src=%s container=%s", src, container)
        with tarfile.open(container, "w:gz") as archive:
            archive.add(src, arcname=arcname)

    def unpack(self, container: Path, dest: Path, *, is_file: bool) -> None:
        dest = Path(dest)
        logger.info("tar unpack container=%s dest=%s is_file=%s", container, dest, is_file)
        with tarfile.open(container, "r:gz") as archive:
            if not is_file:
                create_dirs(dest)
                archive.extractall(dest, filter="data")
                return

            create_dirs(dest.parent)
            try:
                member = archive.extractfile(FILE_MEMBER)
            except KeyError as exc:
                raise TransportError(
                    "container has no file member",
                    context={"container": str(container), "member": FILE_MEMBER},
                ) from exc
            if member is None:
                raise TransportError(
                    "container file member is not a regular file",
                    context={"container": str(container), "member": FILE_MEMBER},
                )
            with member, dest.open("wb") as fp:
                shutil.copyfileobj(member, fp)


class SquashfsTransport:
    """Squashfs containers built with ``mksquashfs`` and read with ``unsquashfs``."""

    extension = "squashfs"

    def pack(self, src: Path, container: Path) -> None:
        src = Path(src)
        if src.is_dir() and not src.is_symlink():
            run_command(["mksquashfs", src, container, "-no-xattrs", "-noappend"])
            return

        # A lone file lands in the image root under its own name.
        with temp_dir() as staging:
            staged = staging / FILE_MEMBER
            _link_or_copy(src, staged)
            run_command(["mksquashfs", staged, container, "-no-xattrs", "-noappend"])

    def unpack(self, container: Path, dest: Path, *, is_file: bool) -> None:
        dest = Path(dest)
        if not is_file:
            create_dirs(dest)
            run_command(
                ["unsquashfs", "-force", "-no-xattrs", "-dest", dest, container]
            )
            return

        create_dirs(dest.parent)
        with dest.open("wb") as fp:
            run_command(["unsquashfs", "-cat", container, FILE_MEMBER], stdout=fp)


TRANSPORTS: dict[str, type[ArchiveTransport]] = {
    "squashfs": SquashfsTransport,
    "tar.gz": TarTransport,
}


def get_transport(archive_format: str) -> ArchiveTransport:
    try:
        transport_cls = TRANSPORTS[archive_format]
    except KeyError as exc:
        raise CacheConfigurationError(
            f"unknown archive format: {archive_format}",
            context={"supported": sorted(TRANSPORTS)},
        ) from exc
    return transport_cls()


# Containers are read back with the transport that matches their suffix,
# whatever format new entries are written in.
TRANSPORTS_BY_EXTENSION: dict[str, type[ArchiveTransport]] = {
    transport_cls.extension: transport_cls for transport_cls in TRANSPORTS.values()
}


def transport_for_container(container: str | Path) -> ArchiveTransport:
    name = Path(container).name
    for extension, transport_cls in TRANSPORTS_BY_EXTENSION.items():
        if name.endswith(f".{extension}"):
            return transport_cls()
    raise TransportError(
        "unknown container format",
        context={"container": str(container), "supported": sorted(TRANSPORTS_BY_EXTENSION)},
    )


def _link_or_copy(src: Path, dest: Path) -> None:
    try:
        os.link(src, dest)
    except OSError:
        shutil.copy2(src, dest)

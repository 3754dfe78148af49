from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests
import typer
from pydantic import ValidationError

from treecache import __version__
from treecache.config import CacheConfig, load_config
from treecache.download import download_and_extract_producer, download_producer
from treecache.errors import CacheError
from treecache.schemas import CacheEntry
from treecache.storage import FileCache, ReconcileResult, cache_or_produce

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="treecache CLI")


@app.command()
def version() -> None:
    """Print the package version."""
    typer.echo(__version__)


@app.command()
def fetch(
    key: str = typer.Option(..., "--key", help="Cache key for the fetched content."),
    url: str = typer.Option(..., "--url", help="URL to download on a cache miss."),
    dest: Path = typer.Option(..., "--dest", help="Destination file or directory."),
    extract_archive: bool = typer.Option(
        False,
        "--extract",
        help="Treat the download as an archive and extract it into --dest.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (JSON or YAML). Defaults to CACHE_* environment variables.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory."),
    size_limit_mb: int | None = typer.Option(
        None,
        "--size-limit-mb",
        min=0,
        help="Cache size limit in megabytes. 0 is unbounded.",
    ),
    archive_format: str | None = typer.Option(
        None,
        "--archive-format",
        help="Container format: squashfs or tar.gz.",
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the cache entirely."),
) -> None:
    """Download --url into --dest, serving it from the cache when possible."""
    overrides: dict[str, Any] = {
        "directory": cache_dir,
        "size_limit_mb": size_limit_mb,
        "archive_format": archive_format,
    }
    if no_cache:
        overrides["enabled"] = False
    config = _resolve_config(config_path, overrides)

    if extract_archive:
        producer = download_and_extract_producer(url)
    else:
        producer = download_producer(url)

    try:
        hit = cache_or_produce(config, key, dest, producer)
    except (CacheError, requests.RequestException, OSError, ValueError) as exc:
        logging.exception("fetch failed key=%s url=%s", key, url)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    source = "cache" if hit else "download"
    typer.echo(f"key={key} source={source} dest={dest}")


@app.command("list")
def list_entries(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (JSON or YAML).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory."),
) -> None:
    """List cached entries, least recently used first."""
    cache, _ = _open_cache(_resolve_config(config_path, {"directory": cache_dir}))
    entries = sorted(cache.entries.values(), key=lambda entry: (entry.last_accessed, entry.key))
    typer.echo(_render_entry_table(entries))
    typer.echo(
        f"entries={len(entries)} size={cache.cache_size()} size_limit={cache.size_limit}"
    )


@app.command()
def pop(
    key: str = typer.Argument(..., help="Cache key to remove."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (JSON or YAML).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory."),
) -> None:
    """Remove one entry from the cache. Missing keys are not an error."""
    cache, _ = _open_cache(_resolve_config(config_path, {"directory": cache_dir}))
    removed = cache.pop(key)
    typer.echo(f"key={key} removed={str(removed).lower()}")


@app.command()
def clean(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (JSON or YAML).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory."),
) -> None:
    """Reconcile the manifest with the cache directory."""
    cache, result = _open_cache(_resolve_config(config_path, {"directory": cache_dir}))
    typer.echo(
        f"stale={len(result.stale_keys)} "
        f"untracked={len(result.untracked_paths)} "
        f"entries={len(cache.entries)}"
    )


@app.command()
def trim(
    offset: int = typer.Option(0, "--offset", min=0, help="Bytes to reserve below the limit."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (JSON or YAML).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Cache directory."),
    size_limit_mb: int | None = typer.Option(
        None,
        "--size-limit-mb",
        min=0,
        help="Cache size limit in megabytes. 0 is unbounded.",
    ),
) -> None:
    """Evict least recently used entries until the cache fits its size limit."""
    config = _resolve_config(
        config_path,
        {"directory": cache_dir, "size_limit_mb": size_limit_mb},
    )
    cache, _ = _open_cache(config)
    try:
        evicted = cache.trim(offset)
    except CacheError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"evicted={len(evicted)} size={cache.cache_size()}")


def _resolve_config(config_path: Path | None, overrides: dict[str, Any]) -> CacheConfig:
    present = {key: value for key, value in overrides.items() if value is not None}
    try:
        if config_path is None:
            return CacheConfig.from_env(**present)
        base = load_config(config_path)
        return CacheConfig.model_validate({**base.model_dump(), **present})
    except (ValueError, ValidationError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _open_cache(config: CacheConfig) -> tuple[FileCache, ReconcileResult]:
    if not config.caching_active:
        typer.echo("cache directory unset or caching disabled", err=True)
        raise typer.Exit(code=1)

    cache = FileCache.from_config(config)
    try:
        result = cache.initialize()
    except (CacheError, OSError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    return cache, result


def _render_entry_table(entries: list[CacheEntry]) -> str:
    if not entries:
        return "no entries found"

    headers = ("key", "kind", "size", "last_accessed")
    rows = [
        (
            _truncate(entry.key, limit=60),
            "file" if entry.is_file else "dir",
            str(entry.size),
            entry.last_accessed.isoformat(timespec="seconds"),
        )
        for entry in entries
    ]

    widths = [
        max(len(headers[column]), *(len(row[column]) for row in rows))
        for column in range(len(headers))
    ]

    def _line(values: tuple[str, str, str, str]) -> str:
        return " | ".join(
            value.ljust(widths[index]) for index, value in enumerate(values)
        )

    divider = "-+-".join("-" * width for width in widths)
    body = [_line(headers), divider]
    body.extend(_line(row) for row in rows)
    return "\n".join(body)


def _truncate(text: str, *, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3]}..."


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()

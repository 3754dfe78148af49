from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError

from treecache.schemas import MANIFEST_VERSION, CacheEntry, CacheManifest
from treecache.utils.fs import remove_paths

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


class ManifestStore:
    """Reads and writes ``manifest.json`` inside a cache directory.

    A manifest that cannot be parsed, carries another schema version, or fails
    validation is deleted and treated as empty. The cache then starts cold.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.path = self.directory / MANIFEST_NAME

    def load(self) -> dict[str, CacheEntry]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}

        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.info("manifest unparseable path=%s", self.path)
            return self._discard()

        if not isinstance(payload, dict):
            logger.info("manifest unparseable path=%s", self.path)
            return self._discard()

        version = payload.get("version")
        if version != MANIFEST_VERSION:
            logger.info(
                "manifest version mismatch manifest=%s current=%s",
                version,
                MANIFEST_VERSION,
            )
            return self._discard()

        try:
            manifest = CacheManifest.model_validate(payload)
        except ValidationError as exc:
            logger.info("manifest invalid path=%s error=%s", self.path, exc)
            return self._discard()

        return dict(manifest.contents)

    def save(self, entries: Mapping[str, CacheEntry]) -> None:
        manifest = CacheManifest(version=MANIFEST_VERSION, contents=dict(entries))
        tmp_path = self.path.with_name(f".{MANIFEST_NAME}.tmp")
        tmp_path.write_text(manifest.to_json(), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _discard(self) -> dict[str, CacheEntry]:
        remove_paths(self.path)
        return {}

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from treecache.archive.transport import TRANSPORTS

# Packed size is estimated as this fraction of the raw size before packing.
# Tuned by observation of squashfs images of game server installs; recalibrate
# when changing the default archive format.
SIZE_HINT_FACTOR = 0.85
BYTES_PER_MB = 10**6

_ENV_FIELDS = {
    "CACHE_ENABLED": "enabled",
    "CACHE_DIR": "directory",
    "CACHE_SIZE_LIMIT": "size_limit_mb",
    "CACHE_ARCHIVE_FORMAT": "archive_format",
}


def new_session_id() -> str:
    return str(uuid.uuid4())


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    directory: Path | None = None
    size_limit_mb: int = Field(default=0, ge=0)
    archive_format: str = "squashfs"
    size_hint_factor: float = Field(default=SIZE_HINT_FACTOR, gt=0.0, le=1.0)
    session_id: str = Field(default_factory=new_session_id)

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        if not str(value).strip():
            return None
        return value.expanduser().absolute()

    @field_validator("archive_format")
    @classmethod
    def validate_archive_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in TRANSPORTS:
            supported = ", ".join(sorted(TRANSPORTS))
            raise ValueError(f"archive_format must be one of: {supported}")
        return normalized

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("session_id must not be empty")
        return normalized

    @property
    def size_limit_bytes(self) -> int:
        return self.size_limit_mb * BYTES_PER_MB

    @property
    def caching_active(self) -> bool:
        return self.enabled and self.directory is not None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> CacheConfig:
        """Build config from CACHE_* environment variables plus explicit overrides.

        Environment variables (all optional):
            CACHE_ENABLED:        "true"/"false". Default true.
            CACHE_DIR:            Cache directory. Unset disables caching.
            CACHE_SIZE_LIMIT:     Size limit in megabytes. 0 (default) is unbounded.
            CACHE_ARCHIVE_FORMAT: "squashfs" (default) or "tar.gz".
        """
        env = os.environ if environ is None else environ
        payload: dict[str, Any] = {}
        for env_var, field_name in _ENV_FIELDS.items():
            raw = env.get(env_var, "").strip()
            if raw:
                payload[field_name] = raw
        payload.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path) -> CacheConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    cache_payload = payload.get("cache", payload)
    if not isinstance(cache_payload, dict):
        raise ValueError("Configuration key 'cache' must be an object.")
    try:
        return CacheConfig.model_validate(cache_payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ValueError(f"Configuration is neither JSON nor YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Bumped whenever the on-disk manifest layout changes.
MANIFEST_VERSION = "1"

TModel = TypeVar("TModel", bound=BaseModel)


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def _normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DTOBase(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CacheEntry(DTOBase):
    key: str
    is_file: bool = Field(alias="isFile")
    path: Path
    size: int = Field(ge=0)
    last_accessed: datetime = Field(alias="lastAccessed")
    last_session_id: str = Field(alias="lastUuid")

    @field_validator("last_accessed", mode="after")
    @classmethod
    def validate_last_accessed(cls, value: datetime) -> datetime:
        return _normalize_datetime(value)

    def touched(self, session_id: str, *, at: datetime | None = None) -> CacheEntry:
        return self.model_copy(
            update={"last_accessed": at or now_utc(), "last_session_id": session_id}
        )


class CacheManifest(DTOBase):
    version: str = MANIFEST_VERSION
    contents: dict[str, CacheEntry] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_contents(self) -> CacheManifest:
        seen_paths: dict[Path, str] = {}
        for key, entry in self.contents.items():
            if entry.key != key:
                raise ValueError(f"manifest key {key!r} does not match entry key {entry.key!r}")
            owner = seen_paths.get(entry.path)
            if owner is not None:
                raise ValueError(f"entries {owner!r} and {key!r} share path {entry.path}")
            seen_paths[entry.path] = key
        return self

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


def json_schema_for(model_cls: type[TModel]) -> dict[str, Any]:
    return model_cls.model_json_schema(by_alias=True)

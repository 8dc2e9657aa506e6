"""Manifest entries declaring the files mirrored for CI."""
from pathlib import Path
from typing import Any, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ci_mirrors.tools.errors import ValidationError

# Reserved for the digest objects written next to every upload.
SIDECAR_SUFFIX = ".sha256"


def _validate_name(v: str) -> str:
    if not v:
        raise ValueError('name must not be empty')
    if v.startswith('/') or v.endswith('/'):
        raise ValueError('name must not begin or end with "/"')
    if '\\' in v:
        raise ValueError('name must use "/" as its only separator')
    if any(segment in ('', '.', '..') for segment in v.split('/')):
        raise ValueError('name must not contain empty, "." or ".." path segments')
    return v


class LegacyFile(BaseModel):
    """A file uploaded before hash verification existed. Documented, never synced."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    legacy: Literal[True] = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)


class DeclaredFile(BaseModel):
    """A mirrored file with a verifiable source."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str  # remote object key and permanent public path
    source: str
    sha256: str
    license: str  # freeform, e.g. an SPDX expression
    legacy: Literal[False] = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = _validate_name(v)
        if v.endswith(SIDECAR_SUFFIX):
            raise ValueError(f'names ending in "{SIDECAR_SUFFIX}" are reserved for digest sidecars')
        return v

    @field_validator('source')
    @classmethod
    def validate_source(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as exc:
            raise ValueError(f'source is not a valid URL: {exc}') from exc
        if url.scheme not in ('http', 'https') or not url.host:
            raise ValueError('source must be an absolute http(s) URL')
        return v

    @field_validator('sha256')
    @classmethod
    def validate_sha256(cls, v: str) -> str:
        """Ensure SHA256 is valid hex string of correct length."""
        if len(v) != 64:
            raise ValueError('SHA256 must be 64 characters')
        if not all(c in '0123456789abcdef' for c in v.lower()):
            raise ValueError('SHA256 must be valid hex')
        return v.lower()

    @field_validator('license')
    @classmethod
    def validate_license(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('license must not be empty')
        return v


ManifestEntry = Union[DeclaredFile, LegacyFile]


class Manifest(BaseModel):
    """Entries declared by one TOML manifest file."""
    path: Optional[Path] = None
    files: list[ManifestEntry] = Field(default_factory=list)


def parse_entry(raw: Any) -> ManifestEntry:
    """Build the right entry variant for a raw ``[[file]]`` table.

    ``legacy = true`` selects LegacyFile, which rejects source/sha256/license;
    anything else must be a complete DeclaredFile.

    Raises:
        ValidationError: if the table does not form a valid entry.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"manifest entry must be a table, got {type(raw).__name__}")

    model = LegacyFile if raw.get("legacy") is True else DeclaredFile
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(raw, exc)) from exc


def _describe(raw: dict, exc: PydanticValidationError) -> str:
    label = raw.get("name") or "<unnamed>"
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "entry"
        problems.append(f"{field}: {err['msg']}")
    return f"invalid entry {label!r}: " + "; ".join(problems)

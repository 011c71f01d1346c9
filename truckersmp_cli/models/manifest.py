"""
Typed representation of the remote content manifest (files.json).

The remote document looks like::

    {"Files": [{"Md5": "...", "Type": "system", "FilePath": "/data/core.scs"}, ...]}
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from truckersmp_cli.exceptions import MalformedManifestError
from truckersmp_cli.utils.path import normalize_manifest_path

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")


class ContentCategory(str, Enum):
    """The bucket a manifest entry belongs to."""

    ETS2 = "ets2"
    ATS = "ats"
    SHARED = "system"


class ManifestEntry(BaseModel):
    """A single file the content directory is expected to hold."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content_hash: str = Field(alias="Md5")
    category: ContentCategory = Field(alias="Type")
    relative_path: str = Field(alias="FilePath")

    @field_validator("content_hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        """Requires a hex digest and stores it lowercased."""
        v = v.strip()
        if not _HEX_PATTERN.match(v):
            raise ValueError(f"Content hash must be a hex digest, got: {v!r}")
        return v.lower()

    @field_validator("relative_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return normalize_manifest_path(v)


class _RawManifest(BaseModel):
    files: list[ManifestEntry] = Field(alias="Files")


def partition_by_category(
    entries: Iterable[ManifestEntry],
) -> dict[ContentCategory, tuple[ManifestEntry, ...]]:
    """
    Splits entries into one bucket per category, preserving manifest order.
    """
    buckets: dict[ContentCategory, list[ManifestEntry]] = {
        category: [] for category in ContentCategory
    }
    for entry in entries:
        buckets[entry.category].append(entry)
    return {category: tuple(items) for category, items in buckets.items()}


@dataclass(frozen=True)
class Manifest:
    """The full remote catalog, partitioned by category at load time."""

    entries: tuple[ManifestEntry, ...]
    _buckets: dict[ContentCategory, tuple[ManifestEntry, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        object.__setattr__(self, "_buckets", partition_by_category(self.entries))

    def bucket(self, category: ContentCategory) -> tuple[ManifestEntry, ...]:
        return self._buckets[category]

    @property
    def shared(self) -> tuple[ManifestEntry, ...]:
        return self._buckets[ContentCategory.SHARED]

    @property
    def ets2(self) -> tuple[ManifestEntry, ...]:
        return self._buckets[ContentCategory.ETS2]

    @property
    def ats(self) -> tuple[ManifestEntry, ...]:
        return self._buckets[ContentCategory.ATS]

    def __len__(self) -> int:
        return len(self.entries)


def parse_manifest(raw: bytes | str | dict[str, Any]) -> Manifest:
    """
    Parses the remote manifest document into a Manifest.

    Args:
        raw: The response body as bytes or text, or an already decoded JSON object.

    Returns:
        A Manifest with every entry validated and normalized.

    Raises:
        MalformedManifestError: If the document is not JSON, lacks the file list,
        or any entry is missing a field or has an invalid value.
    """
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedManifestError(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise MalformedManifestError(
            f"Manifest must be a JSON object, got {type(raw).__name__}."
        )

    try:
        parsed = _RawManifest.model_validate(raw)
    except ValidationError as e:
        raise MalformedManifestError(f"Manifest validation failed:\n{e}") from e

    return Manifest(entries=tuple(parsed.files))

"""Comic metadata parsing and precedence rules."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from .errors import MetadataParseError

ARCHIVE_EXTENSION_RE = re.compile(r"\.(cbz|zip)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Metadata:
    """Optional title/author/publisher fields from an ``index.json`` document."""

    title: str | None = None
    author: str | None = None
    publisher: str | None = None


@dataclass(frozen=True, slots=True)
class EffectiveMetadata:
    """Resolved fields written into one output document."""

    title: str
    author: str | None = None
    publisher: str | None = None


def _field(payload: dict[str, object], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def parse_metadata(data: bytes) -> Metadata:
    try:
        payload = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataParseError(f"Malformed metadata document: {exc}") from exc
    if not isinstance(payload, dict):
        raise MetadataParseError("Metadata document must be a JSON object")
    return Metadata(
        title=_field(payload, "title"),
        author=_field(payload, "author"),
        publisher=_field(payload, "publisher"),
    )


def load_metadata(data: bytes) -> Metadata | None:
    """Parse metadata, treating a malformed document as absent."""

    try:
        return parse_metadata(data)
    except MetadataParseError:
        return None


def strip_archive_extension(file_name: str) -> str:
    return ARCHIVE_EXTENSION_RE.sub("", file_name)


def resolve_metadata(
    chapter: Metadata | None,
    collection: Metadata | None,
    file_name: str,
) -> EffectiveMetadata:
    """Apply chapter-over-collection precedence.

    The title never comes from the collection: it is the chapter's own title
    or the archive file name without its extension.
    """

    chapter = chapter or Metadata()
    collection = collection or Metadata()
    return EffectiveMetadata(
        title=chapter.title or strip_archive_extension(file_name),
        author=chapter.author or collection.author,
        publisher=chapter.publisher or collection.publisher,
    )


__all__ = [
    "EffectiveMetadata",
    "Metadata",
    "load_metadata",
    "parse_metadata",
    "resolve_metadata",
    "strip_archive_extension",
]

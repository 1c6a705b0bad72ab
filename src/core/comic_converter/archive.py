from __future__ import annotations

import logging
import re
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from .errors import ArchiveError, MetadataParseError
from .metadata import Metadata, parse_metadata

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp")
IMAGE_NAME_RE = re.compile(r".*\.(%s)" % "|".join(IMAGE_EXTENSIONS), re.IGNORECASE | re.DOTALL)
METADATA_NAME = "index.json"

METADATA_INVALID = "METADATA_INVALID"


@dataclass(frozen=True, slots=True)
class RawEntry:
    name: str
    data: bytes


@dataclass(slots=True)
class ClassifiedContent:
    """Pages and metadata of one archive, in archive iteration order."""

    pages: list[tuple[str, bytes]] = field(default_factory=list)
    metadata: Metadata | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def is_metadata_name(name: str) -> bool:
    return name.lower() == METADATA_NAME


def is_image_name(name: str) -> bool:
    return IMAGE_NAME_RE.fullmatch(name) is not None


def iter_entries(source: Path | BinaryIO) -> Iterator[RawEntry]:
    """Yield file entries one at a time.

    A path is opened and closed here; a stream stays owned by the caller.
    """

    label = str(source) if isinstance(source, Path) else getattr(source, "name", "<stream>")
    try:
        with zipfile.ZipFile(source) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                with archive.open(info) as handle:
                    data = handle.read()
                yield RawEntry(name=info.filename, data=data)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as exc:
        raise ArchiveError(f"Not a valid ZIP archive: {label}") from exc
    except (RuntimeError, OSError) as exc:
        raise ArchiveError(f"Cannot read archive {label}: {exc}") from exc


def classify_entries(entries: Iterable[RawEntry]) -> ClassifiedContent:
    pages: dict[str, bytes] = {}
    content = ClassifiedContent()
    for entry in entries:
        if is_metadata_name(entry.name):
            try:
                content.metadata = parse_metadata(entry.data)
            except MetadataParseError as exc:
                logger.warning("Ignoring metadata in %s: %s", entry.name, exc)
                content.metadata = None
                if METADATA_INVALID not in content.warnings:
                    content.warnings.append(METADATA_INVALID)
        elif is_image_name(entry.name):
            pages[entry.name] = entry.data
    content.pages = list(pages.items())
    return content


def read_archive(source: Path | BinaryIO) -> ClassifiedContent:
    content = classify_entries(iter_entries(source))
    logger.debug("Classified %s pages from %s", content.page_count, source)
    return content


__all__ = [
    "ClassifiedContent",
    "IMAGE_EXTENSIONS",
    "METADATA_INVALID",
    "RawEntry",
    "classify_entries",
    "is_image_name",
    "is_metadata_name",
    "iter_entries",
    "read_archive",
]

from __future__ import annotations

import pytest

from core.comic_converter.errors import MetadataParseError
from core.comic_converter.metadata import (
    EffectiveMetadata,
    Metadata,
    load_metadata,
    parse_metadata,
    resolve_metadata,
    strip_archive_extension,
)


def test_parse_metadata_reads_known_fields():
    metadata = parse_metadata(b'{"title": "Vol 1", "author": "Ann", "publisher": "Pub", "extra": 1}')
    assert metadata == Metadata(title="Vol 1", author="Ann", publisher="Pub")


def test_parse_metadata_handles_bom():
    assert parse_metadata(b'\xef\xbb\xbf{"title": "Bom"}').title == "Bom"


def test_parse_metadata_treats_blank_and_non_string_values_as_absent():
    metadata = parse_metadata(b'{"title": "  ", "author": null, "publisher": true}')
    assert metadata == Metadata()


def test_parse_metadata_coerces_numbers():
    assert parse_metadata(b'{"title": 42}').title == "42"


@pytest.mark.parametrize("payload", [b"{broken", b"[1, 2]", b"\xff\xfe\x00"])
def test_parse_metadata_rejects_malformed_documents(payload):
    with pytest.raises(MetadataParseError):
        parse_metadata(payload)
    assert load_metadata(payload) is None


def test_chapter_value_overrides_collection():
    resolved = resolve_metadata(Metadata(author="Y"), Metadata(author="X"), "c.cbz")
    assert resolved.author == "Y"


def test_empty_chapter_value_falls_back_to_collection():
    chapter = parse_metadata(b'{"author": ""}')
    resolved = resolve_metadata(chapter, Metadata(author="X", publisher="P"), "c.cbz")
    assert resolved == EffectiveMetadata(title="c", author="X", publisher="P")


def test_title_falls_back_to_file_name():
    assert resolve_metadata(None, None, "chapter01.cbz").title == "chapter01"


def test_collection_title_is_never_used():
    resolved = resolve_metadata(None, Metadata(title="Series"), "chapter02.cbz")
    assert resolved.title == "chapter02"


@pytest.mark.parametrize(
    ("name", "expected"),
    [("a.cbz", "a"), ("b.CBZ", "b"), ("c.zip", "c"), ("d.tar", "d.tar"), ("e.cbz.cbz", "e.cbz")],
)
def test_strip_archive_extension(name, expected):
    assert strip_archive_extension(name) == expected

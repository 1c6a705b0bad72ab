from __future__ import annotations

import pytest

from conftest import image_bytes, write_archive
from core.comic_converter.archive import (
    METADATA_INVALID,
    RawEntry,
    classify_entries,
    is_image_name,
    iter_entries,
    read_archive,
)
from core.comic_converter.errors import ArchiveError
from core.comic_converter.metadata import Metadata


@pytest.mark.parametrize("name", ["001.JPG", "001.jpg", "001.JPEG", "001.jpeg", "a.PnG", "x.webp", "y.Gif", "z.bmp"])
def test_image_extensions_match_regardless_of_case(name):
    assert is_image_name(name)


@pytest.mark.parametrize("name", ["notes.txt", "ComicInfo.xml", "jpg", "image.jpg.bak", "thumbs.db"])
def test_other_entries_are_not_pages(name):
    assert not is_image_name(name)


def test_classify_entries_keeps_pages_and_metadata():
    content = classify_entries(
        [
            RawEntry("002.JPG", b"two"),
            RawEntry("readme.txt", b"ignored"),
            RawEntry("INDEX.JSON", b'{"title": "Saga", "author": "BKV"}'),
            RawEntry("001.jpg", b"one"),
        ]
    )
    assert content.pages == [("002.JPG", b"two"), ("001.jpg", b"one")]
    assert content.metadata == Metadata(title="Saga", author="BKV")
    assert content.warnings == []


def test_duplicate_page_names_are_last_write_wins():
    content = classify_entries([RawEntry("a.png", b"old"), RawEntry("b.png", b"b"), RawEntry("a.png", b"new")])
    assert content.pages == [("a.png", b"new"), ("b.png", b"b")]


def test_malformed_metadata_is_recovered():
    content = classify_entries([RawEntry("index.json", b"{not json"), RawEntry("1.png", b"x")])
    assert content.metadata is None
    assert content.warnings == [METADATA_INVALID]
    assert content.page_count == 1


def test_nested_index_json_is_ignored():
    content = classify_entries([RawEntry("extras/index.json", b'{"title": "Nope"}')])
    assert content.metadata is None
    assert content.pages == []


def test_read_archive_from_path(tmp_path):
    page = image_bytes()
    archive = write_archive(
        tmp_path / "issue.cbz",
        {
            "pages/001.png": page,
            "pages/": b"",
            "index.json": {"publisher": "Image"},
            "cover.txt": "ignored",
        },
    )
    content = read_archive(archive)
    assert content.pages == [("pages/001.png", page)]
    assert content.metadata == Metadata(publisher="Image")


def test_read_archive_from_stream(tmp_path):
    archive = write_archive(tmp_path / "issue.cbz", {"001.png": image_bytes()})
    with archive.open("rb") as handle:
        content = read_archive(handle)
        assert not handle.closed
    assert content.page_count == 1


def test_iter_entries_is_lazy(tmp_path):
    archive = write_archive(tmp_path / "issue.cbz", {"a.png": b"a", "b.png": b"b"})
    entries = iter_entries(archive)
    assert next(entries) == RawEntry("a.png", b"a")
    entries.close()


def test_invalid_zip_raises_archive_error(tmp_path):
    bogus = tmp_path / "broken.cbz"
    bogus.write_bytes(b"this is not a zip file")
    with pytest.raises(ArchiveError) as exc:
        read_archive(bogus)
    assert exc.value.code == "ARCHIVE_INVALID"


def test_missing_archive_raises_archive_error(tmp_path):
    with pytest.raises(ArchiveError):
        read_archive(tmp_path / "missing.cbz")

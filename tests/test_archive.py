"""Tests for archive packaging and ZIP input extraction."""
from __future__ import annotations

import io
import logging
import zipfile

import pytest

from imaging.archive import collect_entries, create_archive, entry_name, extract_images
from imaging.models import BatchResult, ProcessedItem
from resizer.errors import ConfigurationError, DecodeError


def _item(name: str, data: bytes = b"data") -> ProcessedItem:
    return ProcessedItem(name=name, data=data, format="webp", mime_type="image/webp", quality=90)


def _zip(entries) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.mark.parametrize(
    "name, fmt, expected",
    [
        ("photo.jpg", "webp", "photo.webp"),
        ("archive.tar.png", "jpg", "archive.tar.jpg"),
        ("no_extension", "png", "no_extension.png"),
        ("folder/sub/pic.JPEG", "webp", "pic.webp"),
        ("C:\\users\\pic.bmp", "png", "pic.png"),
        (".hidden", "jpg", ".hidden.jpg"),
        ("photo.gif", None, "photo.gif"),
        ("no_extension", None, "no_extension.jpg"),
    ],
)
def test_entry_name(name, fmt, expected):
    assert entry_name(name, fmt) == expected


def test_archive_has_one_flat_entry_per_item_in_order():
    result = BatchResult(items=(_item("b.png", b"B"), _item("dir/a.jpg", b"A")))
    archive = create_archive(result, "webp")
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert zf.namelist() == ["b.webp", "a.webp"]
        assert zf.read("a.webp") == b"A"
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


def test_archive_bytes_are_deterministic():
    items = [_item("x.png", b"x" * 100), _item("y.png", b"y" * 100)]
    assert create_archive(items, "png") == create_archive(items, "png")


def test_duplicate_names_overwrite_by_default(caplog):
    items = [_item("a.png", b"first"), _item("b.png", b"middle"), _item("a.jpg", b"second")]
    with caplog.at_level(logging.WARNING, logger="imaging.archive"):
        entries = collect_entries(items, "webp")
    assert list(entries) == ["a.webp", "b.webp"]
    assert entries["a.webp"] == b"second"
    assert "overwritten" in caplog.text


def test_duplicate_names_can_be_renamed():
    items = [_item("a.png", b"1"), _item("a.jpg", b"2"), _item("x/a.gif", b"3")]
    archive = create_archive(items, "webp", collision_policy="rename")
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        assert zf.namelist() == ["a.webp", "a_1.webp", "a_2.webp"]
        assert zf.read("a_2.webp") == b"3"


def test_unknown_collision_policy_is_rejected():
    with pytest.raises(ConfigurationError):
        collect_entries([_item("a.png")], "webp", collision_policy="skip")


def test_extract_images_skips_non_images(caplog):
    archive = _zip(
        [
            ("photos/", b""),
            ("photos/a.JPG", b"jpeg bytes"),
            ("readme.txt", b"hello"),
            ("__MACOSX/photos/._a.JPG", b"fork"),
            ("empty.png", b""),
            ("b.webp", b"webp bytes"),
        ]
    )
    with caplog.at_level(logging.WARNING, logger="imaging.archive"):
        images = extract_images(archive)
    assert [(i.name, i.data) for i in images] == [
        ("photos/a.JPG", b"jpeg bytes"),
        ("b.webp", b"webp bytes"),
    ]
    assert "empty.png" in caplog.text


def test_extract_images_rejects_non_zip():
    with pytest.raises(DecodeError):
        extract_images(b"not a zip")

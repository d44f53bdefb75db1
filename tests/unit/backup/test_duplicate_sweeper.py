"""Unit tests for backup.duplicate_sweeper module."""

import pytest
from unittest.mock import Mock

from src.backup.duplicate_sweeper import DuplicateSweeper, canonical_key, file_digest


@pytest.fixture
def pool(tmp_path):
    attachments = tmp_path / "Attachments"
    attachments.mkdir()
    return attachments


def put(directory, name, content=b"same"):
    (directory / name).write_bytes(content)


class TestCanonicalKey:
    """Test cases for canonical_key function."""

    @pytest.mark.parametrize("name,expected", [
        ("image_1705312200000_3.png", "image_1705312200000.png"),
        ("image_1_1.JPG", "image_1.JPG"),
        ("diagram.png", None),
        ("image_1705312200000.png", None),
        ("image_1_1.png.part", None),
        (".attachment-index.json", None),
    ])
    def test_keys(self, name, expected):
        assert canonical_key(name) == expected

    def test_file_digest(self, tmp_path):
        put(tmp_path, "a", b"abc")
        put(tmp_path, "b", b"abc")
        put(tmp_path, "c", b"abd")

        assert file_digest(tmp_path / "a") == file_digest(tmp_path / "b")
        assert file_digest(tmp_path / "a") != file_digest(tmp_path / "c")


class TestGroup:
    """Test cases for DuplicateSweeper.group."""

    def test_groups_only_shared_keys(self, pool):
        for name in ("image_5_2.png", "image_5_1.png", "image_5_1.gif", "image_6_1.png", "notes.txt"):
            put(pool, name)

        assert DuplicateSweeper().group(pool) == {"image_5.png": ["image_5_1.png", "image_5_2.png"]}


class TestSweep:
    """Test cases for DuplicateSweeper.sweep."""

    def test_removes_identical_copies(self, pool):
        put(pool, "image_5_1.png")
        put(pool, "image_5_2.png")
        put(pool, "image_5_3.png")

        removed = DuplicateSweeper().sweep(pool)

        assert removed == 2
        assert [p.name for p in pool.iterdir()] == ["image_5_1.png"]

    def test_keeps_different_content(self, pool):
        put(pool, "image_5_1.png", b"one")
        put(pool, "image_5_2.png", b"two")

        assert DuplicateSweeper().sweep(pool) == 0
        assert sorted(p.name for p in pool.iterdir()) == ["image_5_1.png", "image_5_2.png"]

    def test_dryrun_keeps_files(self, pool):
        put(pool, "image_5_1.png")
        put(pool, "image_5_2.png")

        assert DuplicateSweeper().sweep(pool, dryrun=True) == 1
        assert len(list(pool.iterdir())) == 2

    def test_missing_pool(self, tmp_path):
        assert DuplicateSweeper().sweep(tmp_path / "nowhere") == 0

    def test_rewrites_references_and_cache(self, pool, tmp_path):
        put(pool, "image_5_1.png")
        put(pool, "image_5_2.png")
        notes = tmp_path / "Notes"
        notes.mkdir()
        doc = notes / "A.md"
        doc.write_text(
            "![image_5_2.png](Attachments/image_5_2.png)\n"
            "![image_5_20.png](Attachments/image_5_20.png)\n"
        )
        materializer = Mock()

        DuplicateSweeper(materializer).sweep(pool, tmp_path)

        assert doc.read_text() == (
            "![image_5_1.png](Attachments/image_5_1.png)\n"
            "![image_5_20.png](Attachments/image_5_20.png)\n"
        )
        materializer.rename.assert_called_once_with("image_5_2.png", "image_5_1.png")

    def test_dryrun_leaves_references(self, pool, tmp_path):
        put(pool, "image_5_1.png")
        put(pool, "image_5_2.png")
        doc = tmp_path / "A.md"
        doc.write_text("![x](Attachments/image_5_2.png)\n")
        materializer = Mock()

        DuplicateSweeper(materializer).sweep(pool, tmp_path, dryrun=True)

        assert doc.read_text() == "![x](Attachments/image_5_2.png)\n"
        materializer.rename.assert_not_called()

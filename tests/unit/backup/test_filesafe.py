"""Unit tests for backup.filesafe_converter module."""

import pytest
from src.backup.filesafe_converter import FilesafeConverter


class TestSanitize:
    """Test cases for FilesafeConverter.sanitize method."""

    def test_case_and_spaces_preserved(self):
        """Readable titles pass through unchanged."""
        assert FilesafeConverter.sanitize("Weekly Team Notes") == "Weekly Team Notes"

    @pytest.mark.parametrize("title,expected", [
        ("Meeting: 2024/01/15", "Meeting 20240115"),
        ('Plans: "Q1" <draft>', "Plans Q1 draft"),
        ("Path\\To|File", "PathToFile"),
        ("What is REST?", "What is REST"),
        ("Stars * and * more", "Stars and more"),
    ])
    def test_illegal_characters_removed(self, title, expected):
        assert FilesafeConverter.sanitize(title) == expected

    def test_control_characters_removed(self):
        assert FilesafeConverter.sanitize("Tab\x00bed\x1f") == "Tabbed"

    def test_whitespace_collapsed_and_trimmed(self):
        assert FilesafeConverter.sanitize("  Q&A \t  Session\n ") == "Q&A Session"

    def test_trailing_dots_trimmed(self):
        """Windows drops trailing dots, so they are never emitted."""
        assert FilesafeConverter.sanitize("Version 2...") == "Version 2"

    @pytest.mark.parametrize("title", ["", "???", "  ", "..."])
    def test_empty_result_becomes_untitled(self, title):
        assert FilesafeConverter.sanitize(title) == "untitled"

    @pytest.mark.parametrize("title", ["CON", "nul", "Com1", "LPT9"])
    def test_reserved_device_names_suffixed(self, title):
        assert FilesafeConverter.sanitize(title) == f"{title}_"

    def test_reserved_name_inside_title_untouched(self):
        assert FilesafeConverter.sanitize("CON notes") == "CON notes"

    def test_default_length_cap(self):
        assert len(FilesafeConverter.sanitize("a" * 500)) == 200

    def test_custom_length_cap_strips_cut_whitespace(self):
        assert FilesafeConverter.sanitize("abcd efgh", max_length=5) == "abcd"

    def test_unicode_kept(self):
        assert FilesafeConverter.sanitize("Café ☕ Notizen") == "Café ☕ Notizen"


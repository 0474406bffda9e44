"""Tests for scalar parsers and markup helpers."""

import pytest
from bs4 import BeautifulSoup

from catalog_miner.models import FileEntry
from catalog_miner.utils import (
    first_non_blank_text,
    first_text,
    joined_text,
    parse_file_entry,
    parse_relative_time,
    parse_size,
)

NOW = 1_700_000_000


class TestParseRelativeTime:
    def test_zero_seconds(self):
        assert parse_relative_time(NOW, "0 seconds ago") == NOW

    def test_one_year(self):
        assert parse_relative_time(NOW, "1 year ago") == NOW - 365 * 86400

    @pytest.mark.parametrize("text, offset", [
        ("1 second ago", 1),
        ("5 minutes ago", 5 * 60),
        ("3 hours ago", 3 * 3600),
        ("2 days ago", 2 * 86400),
        ("1 week ago", 7 * 86400),
        ("4 months ago", 4 * 30 * 86400),
        ("1 decade ago", 3650 * 86400),
    ])
    def test_units(self, text, offset):
        assert parse_relative_time(NOW, text) == NOW - offset

    def test_surrounding_whitespace_ignored(self):
        assert parse_relative_time(NOW, "  2 hours ago \n") == NOW - 7200

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "ago",
        "5 ago",
        "5 fortnights ago",
        "five days ago",
        "5 days later",
        "-5 days ago",
        "1.5 days ago",
        "5  days ago",
        "about 5 days ago",
    ])
    def test_invalid(self, text):
        assert parse_relative_time(NOW, text) is None

    def test_result_never_negative(self):
        assert parse_relative_time(100, "1 day ago") is None


class TestParseSize:
    def test_kilobyte(self):
        assert parse_size("1 KB") == 1024

    def test_fractional_megabytes(self):
        assert parse_size("1.5 MB") == 1572864

    def test_grouping_commas(self):
        assert parse_size("1,024 B") == 1024

    def test_plural_unit(self):
        assert parse_size("3 Bs") == 3

    def test_truncates_to_whole_bytes(self):
        assert parse_size("742.2 KB") == int(742.2 * 1024)

    def test_terabytes(self):
        assert parse_size("2 TB") == 2 * 1024 ** 4

    @pytest.mark.parametrize("text", [
        "1 PB",
        "",
        "1KB",
        "MB",
        "abc MB",
        "-1 MB",
        "nan MB",
        "1 2 MB",
        "1_024 B",
    ])
    def test_invalid(self, text):
        assert parse_size(text) is None


class TestParseFileEntry:
    def test_name_with_parentheses(self):
        entry = parse_file_entry("Movie (Part 1) (1.2 GB)")
        assert entry == FileEntry(name="Movie (Part 1)", size_bytes=int(1.2 * 1024 ** 3))

    def test_simple(self):
        assert parse_file_entry("readme.txt (12 B)") == FileEntry(name="readme.txt", size_bytes=12)

    def test_broken(self):
        assert parse_file_entry("broken") is None

    def test_missing_name(self):
        assert parse_file_entry("(1 MB)") is None

    def test_bad_size(self):
        assert parse_file_entry("file.bin (lots)") is None

    def test_no_opening_parenthesis(self):
        assert parse_file_entry("file.bin 1 MB)") is None


class TestMarkupHelpers:
    def _tag(self, html):
        return BeautifulSoup(html, "lxml").select_one("span")

    def test_first_text(self):
        assert first_text(self._tag("<span>one<b>two</b></span>")) == "one"

    def test_first_text_empty(self):
        assert first_text(self._tag("<span></span>")) == ""

    def test_first_non_blank_text(self):
        tag = self._tag("<span> \n <a> bob </a> </span>")
        assert first_non_blank_text(tag) == "bob"

    def test_joined_text(self):
        assert joined_text(self._tag("<span> a<b>b</b>c </span>")) == "abc"

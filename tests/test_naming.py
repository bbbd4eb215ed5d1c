"""Tests for file name resolution."""
import io

import pytest

from filesaver.errors import MissingFilenameError
from filesaver.models import Entry
from filesaver.use_cases.naming import resolve_file_name, sanitize_file_name


def test_forbidden_characters_are_removed_not_replaced():
    assert sanitize_file_name("a/b?c") == "abc"
    assert sanitize_file_name('bill<2024>:"jan"*|.pdf') == "bill2024jan.pdf"
    assert sanitize_file_name("back\\slash.txt") == "backslash.txt"


def test_name_made_only_of_dots_is_emptied():
    assert sanitize_file_name(".") == ""
    assert sanitize_file_name("...") == ""


def test_leading_dots_are_kept_when_name_has_other_characters():
    assert sanitize_file_name("..hidden") == "..hidden"
    assert sanitize_file_name(".env") == ".env"


def test_explicit_filename_wins_over_url():
    entry = Entry(fileurl="https://example.com/files/download.php", filename="bill.pdf")
    assert resolve_file_name(entry) == "bill.pdf"


def test_explicit_filename_is_sanitized():
    assert resolve_file_name(Entry(filename="a/b?c", filestream=b"x")) == "abc"


def test_name_derived_from_url_path():
    entry = Entry(fileurl="https://example.com/bills/2024/bill_01.pdf?token=abc#top")
    assert resolve_file_name(entry) == "bill_01.pdf"


def test_url_name_is_not_decoded():
    entry = Entry(fileurl="https://example.com/my%20bill.pdf")
    assert resolve_file_name(entry) == "my%20bill.pdf"


def test_trailing_slash_uses_last_segment():
    assert resolve_file_name(Entry(fileurl="https://example.com/docs/report/")) == "report"


def test_name_derived_from_request_options_url():
    entry = Entry(request_options={"uri": "https://example.com/export/statement.csv", "method": "POST"})
    assert resolve_file_name(entry) == "statement.csv"


def test_stream_without_filename_fails():
    with pytest.raises(MissingFilenameError):
        resolve_file_name(Entry(filestream=io.BytesIO(b"content")))


def test_stream_without_filename_fails_even_with_url():
    entry = Entry(fileurl="https://example.com/bill.pdf", filestream=b"content")
    with pytest.raises(MissingFilenameError):
        resolve_file_name(entry)


def test_entry_without_any_source_fails():
    with pytest.raises(MissingFilenameError):
        resolve_file_name(Entry())

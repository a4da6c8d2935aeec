import pytest

from tools.validators import (
    MAX_QUESTION_LENGTH,
    mask_api_key,
    sanitize_insights,
    sanitize_question,
    validate_api_key_format,
    validate_dataset,
    validate_file_extension,
)


@pytest.mark.parametrize("filename", ["data.csv", "Report.XLSX", "old.xls", "a.b.csv"])
def test_allowed_extensions(filename):
    assert validate_file_extension(filename) == (True, None)


@pytest.mark.parametrize("filename", ["notes.txt", "noextension", ""])
def test_rejected_extensions(filename):
    is_valid, error = validate_file_extension(filename)
    assert not is_valid
    assert error


@pytest.mark.parametrize("dataset,error", [
    (None, "No data provided"),
    ("a,b", "Data is not a list of rows"),
    ([], "Dataset has no rows"),
    ([{"a": 1}, "row"], "Every row must be a mapping of column name to value"),
    ([{}], "Dataset has no columns"),
])
def test_invalid_datasets(dataset, error):
    assert validate_dataset(dataset) == (False, error)


def test_valid_dataset():
    assert validate_dataset([{"a": 1}]) == (True, None)


def test_sanitize_insights_strips_markers_and_blanks():
    raw = "1. First finding\n\n- Second finding\n* Third\n• Fourth\n2) Fifth\nSixth"
    assert sanitize_insights(raw) == [
        "First finding", "Second finding", "Third", "Fourth", "Fifth",
    ]


def test_sanitize_insights_keeps_plain_text_and_drops_non_strings():
    assert sanitize_insights(["  ok  ", None, 3, "", "-5% drop"]) == ["ok", "-5% drop"]


def test_sanitize_insights_limit():
    assert sanitize_insights([str(i) + "x" for i in range(10)], limit=2) == ["0x", "1x"]
    assert sanitize_insights(None) == []


def test_sanitize_question():
    assert sanitize_question("  why?  ") == "why?"
    assert sanitize_question("   ") is None
    assert sanitize_question(None) is None
    assert len(sanitize_question("q" * 1000)) == MAX_QUESTION_LENGTH


def test_api_key_format():
    assert validate_api_key_format("gsk_abcdefghijkl") == (True, None)
    assert validate_api_key_format("") == (False, "No API key provided")
    assert validate_api_key_format("short") == (False, "API key is too short")
    assert validate_api_key_format("gsk_abc defghij") == (False, "API key must not contain whitespace")


def test_mask_api_key():
    assert mask_api_key(None) == "<none>"
    assert mask_api_key("abc") == "***"
    assert mask_api_key("gsk_abcdefghijkl9xyz") == "gsk_a...9xyz"

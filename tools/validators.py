# validators.py — Input sanitization & validation
# File type checks, dataset shape validation, insight list guards
"""
validators.py — Input Sanitization & Validation

Production implementation for:
- File type validation
- Dataset validation
- Insight list sanitization (shared contract for local and remote sources)
- API key format checks
"""

from __future__ import annotations

import re
from typing import Any


# =============================================================================
# CONSTANTS
# =============================================================================

ALLOWED_EXTENSIONS = {".csv", ".xlsx", ".xls"}
MAX_INSIGHTS = 5
MIN_API_KEY_LENGTH = 10
MAX_QUESTION_LENGTH = 500

# Leading list markers an LLM may add despite instructions ("1.", "-", "*", "•")
LIST_MARKER_PATTERN = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+")


# =============================================================================
# FILE VALIDATION
# =============================================================================

def validate_file_extension(filename: str) -> tuple[bool, str | None]:
    """
    Validate that file has an allowed extension.

    Returns:
        (is_valid, error_message)
    """
    if not filename:
        return False, "No filename provided"

    ext = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext not in ALLOWED_EXTENSIONS:
        return False, f"Invalid file type: {ext}. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"

    return True, None


def validate_dataset(dataset: Any) -> tuple[bool, str | None]:
    """
    Validate that a dataset is suitable for analysis.

    Returns:
        (is_valid, error_message)
    """
    if dataset is None:
        return False, "No data provided"

    if not isinstance(dataset, list):
        return False, "Data is not a list of rows"

    if len(dataset) == 0:
        return False, "Dataset has no rows"

    if not all(isinstance(row, dict) for row in dataset):
        return False, "Every row must be a mapping of column name to value"

    if len(dataset[0]) == 0:
        return False, "Dataset has no columns"

    return True, None


# =============================================================================
# INSIGHT VALIDATION
# =============================================================================

def sanitize_insights(insights: Any, limit: int = MAX_INSIGHTS) -> list[str]:
    """
    Normalize an insight list from any source.

    Accepts a list of strings or a newline-separated block of text. Blank
    entries and list markers are removed; the result is capped at `limit`.
    """
    if insights is None:
        return []

    if isinstance(insights, str):
        insights = insights.split("\n")

    cleaned = []
    for item in insights:
        if not isinstance(item, str):
            continue
        text = LIST_MARKER_PATTERN.sub("", item).strip()
        if text:
            cleaned.append(text)

    return cleaned[:limit]


def sanitize_question(question: str | None) -> str | None:
    """
    Sanitize a user question about the data.

    Returns:
        Cleaned question or None if empty
    """
    if not question or not isinstance(question, str):
        return None

    question = question.strip()[:MAX_QUESTION_LENGTH]
    return question or None


# =============================================================================
# API KEY VALIDATION
# =============================================================================

def validate_api_key_format(api_key: str | None) -> tuple[bool, str | None]:
    """
    Check that an API key has a plausible shape before using it.

    Returns:
        (is_valid, error_message)
    """
    if not api_key:
        return False, "No API key provided"

    if len(api_key.strip()) < MIN_API_KEY_LENGTH:
        return False, "API key is too short"

    if any(ch.isspace() for ch in api_key.strip()):
        return False, "API key must not contain whitespace"

    return True, None


def mask_api_key(api_key: str | None) -> str:
    """Masked form of a key for logs and UI ("gsk_a...9xyz")."""
    if not api_key:
        return "<none>"
    if len(api_key) <= 9:
        return "*" * len(api_key)
    return f"{api_key[:5]}...{api_key[-4:]}"

# data_loader.py — File & pasted-text ingestion
# Handles upload, encoding detection, Excel sheets, pasted CSV/JSON
"""
data_loader.py — Dataset Ingestion

Production implementation for safe loading with:
- Encoding detection (CSV)
- Excel workbooks (first sheet)
- Pasted CSV or JSON text
- Size limits
- Basic cleaning

Every loader returns (dataset, None) on success or (None, error) on failure.
"""

from __future__ import annotations

import io
import json
import logging
import math
from typing import Any, BinaryIO

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_FILE_SIZE_MB = 100
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
SUPPORTED_ENCODINGS = ["utf-8", "latin-1", "cp1252", "iso-8859-1"]
MAX_ROWS = 100_000  # Safety limit
EXCEL_EXTENSIONS = {".xlsx", ".xls"}


# =============================================================================
# CONVERSION
# =============================================================================

def _to_python(value: Any) -> Any:
    """Turn pandas/numpy cell values into plain Python (NaN → None)."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return value


def dataframe_to_dataset(df: pd.DataFrame) -> list[dict]:
    """
    Convert a DataFrame into a list of row dicts.

    Column names are stripped, fully empty rows and columns dropped.
    """
    df = df.copy()
    df.columns = [str(col).strip() for col in df.columns]
    df = df.dropna(how="all")
    df = df.dropna(axis=1, how="all")

    columns = list(df.columns)
    return [
        {col: _to_python(value) for col, value in zip(columns, row)}
        for row in df.itertuples(index=False, name=None)
    ]


def _extension(filename: str) -> str:
    return "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


# =============================================================================
# FILE LOADING
# =============================================================================

def _read_bytes(file: BinaryIO | bytes | str) -> bytes:
    if isinstance(file, str):
        with open(file, "rb") as f:
            return f.read()
    if isinstance(file, bytes):
        return file
    # File-like object (e.g., Streamlit UploadedFile)
    raw_bytes = file.read()
    if hasattr(file, "seek"):
        file.seek(0)
    return raw_bytes


def _load_csv_bytes(raw_bytes: bytes) -> tuple[pd.DataFrame | None, str | None]:
    last_error = None

    for encoding in SUPPORTED_ENCODINGS:
        try:
            text_io = io.StringIO(raw_bytes.decode(encoding))
            df = pd.read_csv(
                text_io,
                on_bad_lines="warn",
                low_memory=False,
                nrows=MAX_ROWS,
            )
            logger.debug("Parsed CSV with encoding %s", encoding)
            return df, None
        except UnicodeDecodeError:
            last_error = f"Encoding {encoding} failed"
            continue
        except pd.errors.EmptyDataError:
            return None, "CSV file contains no data"
        except pd.errors.ParserError as e:
            last_error = f"CSV parsing error: {str(e)}"
            continue

    return None, last_error or "Failed to parse CSV with any supported encoding"


def _load_excel_bytes(raw_bytes: bytes) -> tuple[pd.DataFrame | None, str | None]:
    # pandas picks the engine from the content: openpyxl for .xlsx, xlrd for legacy .xls
    try:
        df = pd.read_excel(io.BytesIO(raw_bytes), sheet_name=0, nrows=MAX_ROWS)
    except Exception as e:
        logger.warning("Excel parsing failed: %s", e)
        return None, f"Excel parsing error: {str(e)}"
    return df, None


def safe_load_file(
    file: BinaryIO | bytes | str,
    filename: str = "unknown.csv",
) -> tuple[list[dict] | None, str | None]:
    """
    Safely load a CSV or Excel file into a dataset.

    Args:
        file: File-like object, bytes, or file path
        filename: Original filename (its extension selects the parser)

    Returns:
        Tuple of (dataset or None, error_message or None)
    """
    try:
        raw_bytes = _read_bytes(file)
    except OSError as e:
        return None, f"Failed to read file: {str(e)}"

    if len(raw_bytes) > MAX_FILE_SIZE_BYTES:
        return None, f"File exceeds {MAX_FILE_SIZE_MB}MB limit ({len(raw_bytes) / 1024 / 1024:.1f}MB)"

    if len(raw_bytes) == 0:
        return None, "File is empty"

    if _extension(filename) in EXCEL_EXTENSIONS:
        df, error = _load_excel_bytes(raw_bytes)
    else:
        df, error = _load_csv_bytes(raw_bytes)

    if df is None:
        return None, error

    dataset = dataframe_to_dataset(df)
    if not dataset or not dataset[0]:
        return None, "File contains only empty rows/columns"

    logger.info("Loaded %s: %d rows × %d columns", filename, len(dataset), len(dataset[0]))
    return dataset, None


# =============================================================================
# PASTED TEXT
# =============================================================================

def _parse_json_text(text: str) -> tuple[list[dict] | None, str | None]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON: {e.msg}"

    if isinstance(parsed, dict):
        parsed = [parsed]

    if not isinstance(parsed, list) or not all(isinstance(item, dict) for item in parsed):
        return None, "JSON data must be an object or an array of objects"

    if not parsed:
        return None, "JSON array is empty"

    dataset = dataframe_to_dataset(pd.DataFrame.from_records(parsed))
    if not dataset or not dataset[0]:
        return None, "JSON data contains only empty values"
    return dataset, None


def parse_pasted_text(text: str | None) -> tuple[list[dict] | None, str | None]:
    """
    Parse pasted CSV (with header row) or JSON into a dataset.

    CSV is tried first unless the text looks like JSON; JSON is the fallback.

    Returns:
        Tuple of (dataset or None, error_message or None)
    """
    if not text or not text.strip():
        return None, "No data pasted"

    stripped = text.strip()
    if stripped[0] in "[{":
        dataset, error = _parse_json_text(stripped)
        if dataset:
            return dataset, None
        return None, error

    df, _ = _load_csv_bytes(stripped.encode("utf-8"))
    if df is not None and len(df) > 0 and len(df.columns) > 0:
        dataset = dataframe_to_dataset(df)
        if dataset and dataset[0]:
            return dataset, None

    dataset, _ = _parse_json_text(stripped)
    if dataset:
        return dataset, None

    return None, "Could not parse pasted data. Please ensure it's valid CSV or JSON."


def get_file_info(file: BinaryIO | bytes, filename: str = "unknown.csv") -> dict:
    """
    Get basic file information without parsing.

    Returns:
        dict with file metadata
    """
    if isinstance(file, bytes):
        size_bytes = len(file)
    else:
        file.seek(0, 2)  # Seek to end
        size_bytes = file.tell()
        file.seek(0)

    return {
        "filename": filename,
        "extension": _extension(filename),
        "size_bytes": size_bytes,
        "size_mb": round(size_bytes / 1024 / 1024, 2),
        "is_valid_size": size_bytes <= MAX_FILE_SIZE_BYTES,
    }

"""
statistics.py — Local Statistical Analysis Engine

Pure functions over an in-memory dataset (a list of row dicts).
Implements: Column Classification, Descriptive Statistics, Missing-Data
            Detection, Correlations, Trend and Seasonality Detection

Every function reads the dataset and never mutates it. Results are
recomputed on each call; nothing is cached between calls.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

import numpy as np


logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
Dataset = Sequence[Row]


# =============================================================================
# CONSTANTS
# =============================================================================

# Outlier rule
IQR_MULTIPLIER = 1.5
Q1_FRACTION = 0.25
Q3_FRACTION = 0.75

# Correlation
CORRELATION_THRESHOLD = 0.5  # Keep |r| > 0.5

# Trend detection
MIN_TREND_OBSERVATIONS = 5
TREND_DIRECTION_THRESHOLD = 60.0  # Percent of changes in one direction

# Seasonality detection
MIN_SEASONALITY_OBSERVATIONS = 10
MIN_PATTERN_LENGTH = 2
MAX_PATTERN_LENGTH = 4
SEASONALITY_CONFIDENCE_THRESHOLD = 0.3

# Leading numeric prefix, the way a lenient float parser reads "12.5kg"
NUMERIC_PREFIX_PATTERN = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class ColumnStatistics:
    """Descriptive statistics for one numeric column."""
    count: int
    min: float
    max: float
    range: float
    sum: float
    mean: float
    median: float
    mode: float
    std_dev: float
    q1: float
    q3: float
    iqr: float
    outliers: list[float] = field(default_factory=list)

    @property
    def has_outliers(self) -> bool:
        return len(self.outliers) > 0


@dataclass(frozen=True)
class CorrelationPair:
    col1: str
    col2: str
    coefficient: float


@dataclass(frozen=True)
class TrendResult:
    """
    Sequential behavior of a numeric column.

    direction == "upward" | "downward": consistency and rate are set
    (rate is None when the first value is zero).
    direction == "fluctuating": up_percent and down_percent are set.
    """
    direction: Literal["upward", "downward", "fluctuating"]
    consistency: float | None = None
    rate: float | None = None
    up_percent: float | None = None
    down_percent: float | None = None


@dataclass(frozen=True)
class SeasonalityResult:
    pattern_length: int
    confidence: float


# =============================================================================
# CELL COERCION & COLUMN CLASSIFICATION
# =============================================================================

def coerce_number(value: Any) -> float | None:
    """
    Coerce a cell value to a finite float.

    Numbers pass through, strings are read by their leading numeric prefix.
    Returns None for anything that does not yield a finite number.
    """
    if value is None or isinstance(value, (bool, np.bool_)):
        return None

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
        return number if math.isfinite(number) else None

    if isinstance(value, str):
        match = NUMERIC_PREFIX_PATTERN.match(value)
        if not match:
            return None
        try:
            number = float(match.group(1))
        except (ValueError, OverflowError):
            return None
        return number if math.isfinite(number) else None

    return None


def get_columns(dataset: Dataset) -> list[str]:
    """Column names, taken from the first row."""
    if not dataset:
        return []
    return [str(col) for col in dataset[0].keys()]


def numeric_values(dataset: Dataset, column: str) -> list[float]:
    """Row-ordered subsequence of a column's cells that coerce to a number."""
    values = []
    for row in dataset:
        number = coerce_number(row.get(column))
        if number is not None:
            values.append(number)
    return values


def is_numeric_column(dataset: Dataset, column: str) -> bool:
    """
    Classify a column using its first row's value as the type signal.

    A blank or malformed first cell makes the column non-numeric even when
    later rows hold numbers.
    """
    if not dataset:
        return False
    return coerce_number(dataset[0].get(column)) is not None


def classify_columns(dataset: Dataset) -> dict[str, bool]:
    """Map every column to whether it is numeric."""
    return {col: is_numeric_column(dataset, col) for col in get_columns(dataset)}


def get_numeric_columns(dataset: Dataset) -> list[str]:
    """Numeric columns in column order."""
    return [col for col, numeric in classify_columns(dataset).items() if numeric]


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

def _median(sorted_values: np.ndarray) -> float:
    n = len(sorted_values)
    mid = n // 2
    if n % 2 == 0:
        return float((sorted_values[mid - 1] + sorted_values[mid]) / 2)
    return float(sorted_values[mid])


def _mode(sorted_values: np.ndarray) -> float:
    """First value to reach the maximum frequency in a left-to-right scan."""
    frequency: dict[float, int] = {}
    max_freq = 0
    mode = float(sorted_values[0])
    for value in sorted_values.tolist():
        frequency[value] = frequency.get(value, 0) + 1
        if frequency[value] > max_freq:
            max_freq = frequency[value]
            mode = value
    return mode


def compute_statistics(dataset: Dataset, column: str) -> ColumnStatistics | None:
    """
    Compute descriptive statistics for a column.

    Args:
        dataset: Rows to read
        column: Column name

    Returns:
        ColumnStatistics, or None if the column holds no numeric values
    """
    values = numeric_values(dataset, column)
    if not values:
        return None

    sorted_values = np.sort(np.asarray(values, dtype=float), kind="stable")
    n = len(sorted_values)

    total = float(sorted_values.sum())
    mean = total / n
    variance = float(np.sum((sorted_values - mean) ** 2)) / n
    min_val = float(sorted_values[0])
    max_val = float(sorted_values[-1])

    # Index-based quartiles, no interpolation
    q1 = float(sorted_values[int(math.floor(n * Q1_FRACTION))])
    q3 = float(sorted_values[int(math.floor(n * Q3_FRACTION))])
    iqr = q3 - q1

    lower_bound = q1 - IQR_MULTIPLIER * iqr
    upper_bound = q3 + IQR_MULTIPLIER * iqr
    outliers = [
        v for v in sorted_values.tolist()
        if v < lower_bound or v > upper_bound
    ]

    return ColumnStatistics(
        count=n,
        min=min_val,
        max=max_val,
        range=max_val - min_val,
        sum=total,
        mean=mean,
        median=_median(sorted_values),
        mode=_mode(sorted_values),
        std_dev=math.sqrt(variance),
        q1=q1,
        q3=q3,
        iqr=iqr,
        outliers=outliers,
    )


def compute_all_statistics(dataset: Dataset) -> dict[str, ColumnStatistics]:
    """Statistics for every column that holds at least one numeric value."""
    results = {}
    for col in get_columns(dataset):
        stats = compute_statistics(dataset, col)
        if stats is not None:
            results[col] = stats
    return results


# =============================================================================
# MISSING DATA
# =============================================================================

def is_missing(value: Any) -> bool:
    """True for None, NaN, empty and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def find_missing_data(dataset: Dataset) -> dict[str, int]:
    """
    Count missing cells per column.

    Absent keys count as missing. Columns without missing cells are omitted.
    """
    missing = {}
    for col in get_columns(dataset):
        count = sum(1 for row in dataset if is_missing(row.get(col)))
        if count > 0:
            missing[col] = count
    return missing


# =============================================================================
# CORRELATIONS
# =============================================================================

def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float | None:
    """
    Pearson's r via mean-centered sums.

    Returns None for mismatched or too-short input, or a zero denominator.
    """
    if len(x) != len(y) or len(x) <= 1:
        return None

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()

    denominator = math.sqrt(float(np.sum(dx * dx))) * math.sqrt(float(np.sum(dy * dy)))
    if denominator == 0:
        return None

    r = float(np.sum(dx * dy)) / denominator
    if not math.isfinite(r):
        return None
    # Guard float drift past the theoretical bounds
    return max(-1.0, min(1.0, r))


def find_correlations(dataset: Dataset) -> list[CorrelationPair]:
    """
    Find strong pairwise correlations between numeric columns.

    Pairs whose filtered value sequences differ in length (different
    missing/invalid patterns) are skipped rather than realigned.

    Returns:
        CorrelationPair list with |r| > 0.5, strongest first
    """
    columns = list(compute_all_statistics(dataset).keys())
    values = {col: numeric_values(dataset, col) for col in columns}

    correlations = []
    for i in range(len(columns)):
        for j in range(i + 1, len(columns)):
            col1, col2 = columns[i], columns[j]
            values1, values2 = values[col1], values[col2]

            if len(values1) != len(values2):
                logger.debug(
                    "Skipping correlation %s/%s: %d vs %d numeric values",
                    col1, col2, len(values1), len(values2),
                )
                continue

            r = pearson_correlation(values1, values2)
            if r is not None and abs(r) > CORRELATION_THRESHOLD:
                correlations.append(CorrelationPair(col1, col2, r))

    correlations.sort(key=lambda pair: abs(pair.coefficient), reverse=True)
    return correlations


# =============================================================================
# TREND & SEASONALITY
# =============================================================================

def direction_sequence(values: Sequence[float]) -> list[str]:
    """Classify consecutive pairs as "up", "down" or "same"."""
    directions = []
    for prev, curr in zip(values, values[1:]):
        if curr > prev:
            directions.append("up")
        elif curr < prev:
            directions.append("down")
        else:
            directions.append("same")
    return directions


def detect_trend(dataset: Dataset, column: str) -> TrendResult | None:
    """
    Classify a column's sequential behavior.

    Returns:
        TrendResult, or None with fewer than 5 values or no changes at all
    """
    if len(dataset) < MIN_TREND_OBSERVATIONS:
        return None

    values = numeric_values(dataset, column)
    if len(values) < MIN_TREND_OBSERVATIONS:
        return None

    directions = direction_sequence(values)
    increases = directions.count("up")
    decreases = directions.count("down")

    total_changes = increases + decreases
    if total_changes == 0:
        return None

    increase_percent = increases / total_changes * 100
    decrease_percent = decreases / total_changes * 100
    first, last = values[0], values[-1]

    if increase_percent > TREND_DIRECTION_THRESHOLD:
        rate = (last / first - 1) * 100 if first != 0 else None
        return TrendResult("upward", consistency=increase_percent, rate=rate)

    if decrease_percent > TREND_DIRECTION_THRESHOLD:
        rate = (1 - last / first) * 100 if first != 0 else None
        return TrendResult("downward", consistency=decrease_percent, rate=rate)

    return TrendResult(
        "fluctuating",
        up_percent=increase_percent,
        down_percent=decrease_percent,
    )


def _pattern_confidence(directions: list[str], period: int) -> float:
    matches = 0
    for i in range(len(directions) - 2 * period + 1):
        if directions[i:i + period] == directions[i + period:i + 2 * period]:
            matches += 1

    occurrences = len(directions) // period
    denominator = occurrences - 1
    if denominator <= 0:
        return 0.0
    return matches / denominator


def detect_seasonality(dataset: Dataset, column: str) -> SeasonalityResult | None:
    """
    Look for a repeating up/down/same pattern of length 2 to 4.

    Returns:
        SeasonalityResult for the best period, or None when nothing
        exceeds the confidence threshold
    """
    if len(dataset) < MIN_SEASONALITY_OBSERVATIONS:
        return None

    values = numeric_values(dataset, column)
    if len(values) < MIN_SEASONALITY_OBSERVATIONS:
        return None

    directions = direction_sequence(values)

    best_length = 0
    best_confidence = 0.0
    for period in range(MIN_PATTERN_LENGTH, MAX_PATTERN_LENGTH + 1):
        if len(directions) < period * 2:
            continue
        confidence = _pattern_confidence(directions, period)
        if confidence > best_confidence:
            best_confidence = confidence
            best_length = period

    if best_confidence > SEASONALITY_CONFIDENCE_THRESHOLD:
        return SeasonalityResult(pattern_length=best_length, confidence=best_confidence)
    return None

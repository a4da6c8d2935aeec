"""
insights.py — Insight Synthesizer

Turns local statistical results into at most five natural-language insights,
in a fixed priority order:
    extremes → trend → seasonality → missing data → outliers → correlation

Also provides the canned fallback insights the pipeline substitutes when
analysis cannot run.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal

from tools.statistics import (
    ColumnStatistics,
    Dataset,
    coerce_number,
    compute_all_statistics,
    detect_seasonality,
    detect_trend,
    find_correlations,
    find_missing_data,
    get_columns,
    get_numeric_columns,
)
from tools.validators import MAX_INSIGHTS


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

SIGNIFICANT_MISSING_RATIO = 0.2  # Any column > 20% missing
SUBSTANTIAL_MEAN_SHIFT_PCT = 10.0

CORRELATION_STRENGTH_LABELS = [
    (0.9, "very strong"),
    (0.7, "strong"),
    (0.5, "moderate"),
]

GENERIC_FALLBACK_INSIGHTS = [
    "Your data has been processed but insights couldn't be generated automatically.",
    "Try exploring the data visually using the chart options available.",
    "Consider checking for trends and patterns in the numerical columns.",
    "Look for relationships between different variables in your dataset.",
    "Data quality is important - verify your data is clean and consistent for best results.",
]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class AnalysisError(ValueError):
    """Raised when a dataset cannot be analyzed at all."""
    pass


# =============================================================================
# FORMATTING
# =============================================================================

def _to_fixed(value: float, digits: int) -> str:
    """Fixed-point text with ties rounded away from zero (1.25 → "1.3")."""
    if not math.isfinite(value):
        return "N/A"
    quantum = Decimal(10) ** -digits
    return format(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def format_number(value: float) -> str:
    """Format a raw value with thousands separators and up to 3 decimals."""
    if not math.isfinite(value):
        return "N/A"
    if float(value).is_integer():
        return f"{int(value):,}"
    rounded = Decimal(value).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    formatted = f"{rounded:,f}"
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return "0" if formatted in ("-0", "") else formatted


def describe_correlation_strength(coefficient: float) -> str:
    """Qualitative label for |r|."""
    abs_coef = abs(coefficient)
    for threshold, label in CORRELATION_STRENGTH_LABELS:
        if abs_coef > threshold:
            return label
    return "weak"


# =============================================================================
# INSIGHT BUILDERS
# =============================================================================

def _extremes_insight(column: str, stats: ColumnStatistics) -> str:
    z_score = (stats.max - stats.mean) / stats.std_dev if stats.std_dev != 0 else 0.0

    text = (
        f'The column "{column}" has the highest value at {format_number(stats.max)}, '
        f"with an average of {_to_fixed(stats.mean, 2)}. "
    )
    if stats.mean != 0:
        percent_above = (stats.max / stats.mean - 1) * 100
        text += f"This is {_to_fixed(percent_above, 0)}% above the average and represents "
    else:
        text += "This represents "
    text += (
        f"a z-score of {_to_fixed(z_score, 2)}, indicating how many standard deviations "
        f"it is from the mean."
    )
    return text


def _trend_insight(dataset: Dataset, column: str) -> str | None:
    trend = detect_trend(dataset, column)
    if trend is None:
        return None

    if trend.direction == "upward":
        text = (
            f'Trend analysis of "{column}" shows a clear upward trend with '
            f"{_to_fixed(trend.consistency, 1)}% of data points increasing. "
        )
        if trend.rate is not None:
            text += f"The overall growth rate is approximately {_to_fixed(trend.rate, 1)}%. "
        return text + (
            "To visualize this trend effectively, we recommend using a line chart "
            "with a trend line overlay."
        )

    if trend.direction == "downward":
        text = (
            f'Trend analysis of "{column}" reveals a downward trend with '
            f"{_to_fixed(trend.consistency, 1)}% of data points decreasing. "
        )
        if trend.rate is not None:
            text += f"The overall decline rate is approximately {_to_fixed(trend.rate, 1)}%. "
        return text + (
            "A line chart with forecasting extensions would help visualize this "
            "declining pattern."
        )

    return (
        f'Trend analysis of "{column}" indicates a fluctuating pattern with mixed '
        f"increases ({_to_fixed(trend.up_percent, 1)}%) and "
        f"decreases ({_to_fixed(trend.down_percent, 1)}%). "
        "This suggests cyclical behavior or volatility in your data. Consider using "
        "an area chart with moving averages to smooth out the variations."
    )


def _seasonality_insight(dataset: Dataset, column: str) -> str | None:
    pattern = detect_seasonality(dataset, column)
    if pattern is None:
        return None

    return (
        f'We\'ve detected a potential cyclical pattern in "{column}" with a period '
        f"of approximately {pattern.pattern_length} data points "
        f"(confidence: {_to_fixed(pattern.confidence * 100, 0)}%). This could indicate "
        "seasonality or recurring patterns in your data that may be valuable for "
        "predictive modeling."
    )


def _missing_data_insight(dataset: Dataset, columns: list[str]) -> str:
    row_count = len(dataset)
    missing = find_missing_data(dataset)

    if not missing:
        return (
            "Data quality analysis: Excellent! No missing or incomplete data detected "
            f"across all {len(columns)} columns and {row_count} rows. This complete "
            "dataset will provide the most reliable analysis results and is ideal for "
            "advanced statistical methods."
        )

    details = ", ".join(
        f'"{col}" ({count} rows, {_to_fixed(count / row_count * 100, 1)}%)'
        for col, count in missing.items()
    )
    significant = any(
        count / row_count > SIGNIFICANT_MISSING_RATIO for count in missing.values()
    )
    impact_level = "significant" if significant else "minimal"
    advice = (
        "Consider imputation techniques or removing affected columns for more "
        "reliable insights."
        if significant else
        "For completeness, you might want to address these gaps, though they "
        "shouldn't significantly affect results."
    )

    return (
        "Data quality analysis: Missing or incomplete data detected in columns: "
        f"{details}. The impact on analysis is likely {impact_level}. {advice}"
    )


def _outlier_insight(
    row_count: int,
    numeric_columns: list[str],
    column_stats: dict[str, ColumnStatistics],
) -> str | None:
    outlier_columns = [col for col in numeric_columns if column_stats[col].has_outliers]

    if not outlier_columns:
        if not numeric_columns:
            return None
        return (
            "Outlier analysis: No significant outliers detected in any numerical "
            "columns using the 1.5 × IQR method. Your data appears to be consistently "
            "distributed within expected ranges, which is ideal for statistical "
            "analysis and indicates strong data quality or effective pre-processing."
        )

    # First column wins ties
    column = outlier_columns[0]
    for col in outlier_columns[1:]:
        if len(column_stats[col].outliers) > len(column_stats[column].outliers):
            column = col

    stats = column_stats[column]
    outlier_count = len(stats.outliers)
    outlier_percentage = outlier_count / row_count * 100
    most_extreme = max(abs(v) for v in stats.outliers)

    non_outlier_count = stats.count - outlier_count
    non_outlier_mean = (stats.sum - sum(stats.outliers)) / non_outlier_count
    if non_outlier_mean != 0:
        mean_impact = abs((stats.mean - non_outlier_mean) / non_outlier_mean * 100)
        impact_text = f"which causes a {_to_fixed(mean_impact, 1)}% shift in the mean"
    else:
        mean_impact = math.inf
        impact_text = "which pulls the mean away from an otherwise zero average"

    advice = (
        "These outliers substantially impact your statistics and should be "
        "addressed before drawing conclusions."
        if mean_impact > SUBSTANTIAL_MEAN_SHIFT_PCT else
        "The overall impact on your statistics is relatively small, but addressing "
        "them would still improve precision."
    )

    return (
        f'Outlier analysis for "{column}": Detected {outlier_count} outliers '
        f"({_to_fixed(outlier_percentage, 1)}% of data). The most extreme value is "
        f"{format_number(most_extreme)}, {impact_text}. {advice}"
    )


def _correlation_insight(dataset: Dataset, numeric_columns: list[str]) -> str | None:
    correlations = find_correlations(dataset)

    if not correlations:
        if len(numeric_columns) < 2:
            return None
        return (
            "Correlation analysis: No strong linear correlations found between "
            "numerical columns. Your variables appear to be independent, which could "
            "indicate diverse, unrelated factors in your dataset. Consider exploring "
            "non-linear relationships or performing principal component analysis to "
            "uncover more complex interactions."
        )

    strongest = correlations[0]
    correlation_type = "positive" if strongest.coefficient > 0 else "negative"
    strength = describe_correlation_strength(strongest.coefficient)
    r_squared = strongest.coefficient ** 2

    if correlation_type == "positive":
        recommendation = (
            "A scatter plot with a linear trend line would effectively visualize "
            "this relationship."
        )
    else:
        recommendation = (
            "A scatter plot with a decreasing trend line would effectively visualize "
            "this inverse relationship."
        )

    return (
        f"Correlation analysis: Discovered a {strength} {correlation_type} correlation "
        f"(r = {_to_fixed(strongest.coefficient, 2)}, R² = {_to_fixed(r_squared, 2)}) between "
        f'"{strongest.col1}" and "{strongest.col2}". This means approximately '
        f"{_to_fixed(r_squared * 100, 0)}% of the variation in one variable can be explained "
        f"by the other. {recommendation}"
    )


# =============================================================================
# SYNTHESIZER
# =============================================================================

def analyze(dataset: Dataset) -> list[str]:
    """
    Generate up to five insights from a dataset.

    Args:
        dataset: Non-empty list of row dicts

    Returns:
        Insight strings in priority order

    Raises:
        AnalysisError: If the dataset has no rows or no columns
    """
    if not dataset:
        raise AnalysisError("No data available for analysis")

    columns = get_columns(dataset)
    if not columns:
        raise AnalysisError("Dataset has no columns")

    # Any column holding a parseable value takes part, whatever its first cell
    column_stats = compute_all_statistics(dataset)
    numeric_columns = list(column_stats)

    logger.debug(
        "Analyzing %d rows, %d columns (%d numeric)",
        len(dataset), len(columns), len(numeric_columns),
    )

    insights: list[str | None] = []

    # 1. Extremes
    if numeric_columns:
        highest = numeric_columns[0]
        for col in numeric_columns[1:]:
            if column_stats[col].max > column_stats[highest].max:
                highest = col
        insights.append(_extremes_insight(highest, column_stats[highest]))

    # 2. Trend and seasonality on the first numeric column
    if numeric_columns:
        trend_column = numeric_columns[0]
        insights.append(_trend_insight(dataset, trend_column))
        insights.append(_seasonality_insight(dataset, trend_column))

    # 3. Missing data (always reported)
    insights.append(_missing_data_insight(dataset, columns))

    # 4. Outliers
    insights.append(_outlier_insight(len(dataset), numeric_columns, column_stats))

    # 5. Correlations
    insights.append(_correlation_insight(dataset, numeric_columns))

    return [text for text in insights if text is not None][:MAX_INSIGHTS]


# =============================================================================
# FALLBACK
# =============================================================================

def fallback_insights(dataset: Dataset | None = None) -> list[str]:
    """
    Canned insights for when analysis cannot produce its own.

    With a usable dataset the text mentions its shape and first numeric
    columns; otherwise the generic list is returned.
    """
    if not dataset or not get_columns(dataset):
        return list(GENERIC_FALLBACK_INSIGHTS)

    columns = get_columns(dataset)
    numeric_columns = get_numeric_columns(dataset)

    insights = [
        f"Your dataset contains {len(dataset)} rows and {len(columns)} columns "
        f"including {', '.join(columns)}."
    ]

    if numeric_columns:
        column = numeric_columns[0]
        values = [
            v for v in (coerce_number(row.get(column)) for row in dataset)
            if v is not None
        ]
        insights.append(
            f'The "{column}" column shows a range of values from '
            f"{format_number(min(values))} to {format_number(max(values))}, "
            "suggesting potential trends worth exploring."
        )

    if len(numeric_columns) > 1:
        insights.append(
            f'Consider investigating the relationship between "{numeric_columns[0]}" '
            f'and "{numeric_columns[1]}" as they may reveal important correlations '
            "in your data."
        )

    insights.append(
        "To gain deeper insights, try visualizing your data using different chart "
        "types like bar charts, scatter plots, or line graphs."
    )
    insights.append(
        "Regular data validation and cleaning will help ensure accurate analysis "
        "results and meaningful insights from your dataset."
    )
    return insights[:MAX_INSIGHTS]

import pytest

from tools.insights import (
    GENERIC_FALLBACK_INSIGHTS,
    MAX_INSIGHTS,
    AnalysisError,
    _to_fixed,
    analyze,
    describe_correlation_strength,
    fallback_insights,
    format_number,
)


def _columns(**columns):
    names = list(columns)
    length = len(columns[names[0]])
    return [{name: columns[name][i] for name in names} for i in range(length)]


LINEAR = _columns(x=[1, 2, 3, 4, 5], y=[2, 4, 6, 8, 10])


# -----------------------
# Formatting
# -----------------------

@pytest.mark.parametrize("value,expected", [
    (1000, "1,000"),
    (1234.5, "1,234.5"),
    (0.12345, "0.123"),
    (-5.0, "-5"),
    (2.0000001, "2"),
    (float("inf"), "N/A"),
    (1.0625, "1.063"),
    (-1.0625, "-1.063"),
    (float("nan"), "N/A"),
])
def test_format_number(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize("coefficient,label", [
    (0.95, "very strong"),
    (-0.8, "strong"),
    (0.6, "moderate"),
    (0.5, "weak"),
])
def test_describe_correlation_strength(coefficient, label):
    assert describe_correlation_strength(coefficient) == label


# -----------------------
# Synthesizer
# -----------------------

def test_linear_dataset_produces_five_insights_in_priority_order():
    insights = analyze(LINEAR)

    assert len(insights) == 5
    assert insights[0].startswith('The column "y" has the highest value at 10, with an average of 6.00.')
    assert "67% above the average" in insights[0]
    assert "z-score of 1.41" in insights[0]
    assert insights[1].startswith('Trend analysis of "x" shows a clear upward trend with 100.0%')
    assert "growth rate is approximately 400.0%" in insights[1]
    assert "No missing or incomplete data detected across all 2 columns and 5 rows" in insights[2]
    assert insights[3].startswith("Outlier analysis: No significant outliers")
    assert "very strong positive correlation" in insights[4]
    assert "R² = 1.00" in insights[4]
    assert '"x" and "y"' in insights[4]


def test_negative_correlation_wording():
    insights = analyze(_columns(x=[1, 2, 3, 4, 5], y=[10, 8, 6, 4, 2]))
    assert "very strong negative correlation" in insights[-1]
    assert "decreasing trend line" in insights[-1]


def test_weakly_related_columns_report_no_strong_correlation():
    insights = analyze(_columns(x=[1, 2, 3, 4, 5], y=[1, 3, 2, 1, 3]))
    assert insights[-1].startswith("Correlation analysis: No strong linear correlations")


def test_list_is_truncated_to_five():
    # Ten rising values trigger every insight kind
    dataset = _columns(x=list(range(1, 11)), y=[v * 2 for v in range(1, 11)])
    insights = analyze(dataset)

    assert len(insights) == MAX_INSIGHTS
    assert insights[2].startswith("We've detected a potential cyclical pattern in \"x\"")
    assert not any(text.startswith("Correlation analysis") for text in insights)


def test_outlier_insight_for_age_column():
    insights = analyze([{"age": v} for v in [10, 20, 30, 40, 1000]])
    outlier = next(text for text in insights if text.startswith("Outlier analysis"))
    assert outlier.startswith(
        'Outlier analysis for "age": Detected 1 outliers (20.0% of data). '
        "The most extreme value is 1,000, which causes a 780.0% shift in the mean."
    )
    assert "substantially impact" in outlier


def test_missing_data_is_always_reported():
    text_only = [{"name": "a"}, {"name": "b"}]
    assert analyze(text_only) == [
        "Data quality analysis: Excellent! No missing or incomplete data detected "
        "across all 1 columns and 2 rows. This complete dataset will provide the "
        "most reliable analysis results and is ideal for advanced statistical methods."
    ]


def test_significant_missing_data():
    dataset = _columns(a=[1, 2, 3, 4, 5], b=["x", "", "y", None, "z"])
    missing = next(text for text in analyze(dataset) if text.startswith("Data quality"))
    assert '"b" (2 rows, 40.0%)' in missing
    assert "likely significant" in missing


def test_minimal_missing_data():
    dataset = _columns(a=list(range(10)), b=["v"] * 9 + [""])
    missing = next(text for text in analyze(dataset) if text.startswith("Data quality"))
    assert '"b" (1 rows, 10.0%)' in missing
    assert "likely minimal" in missing


def test_single_row_has_no_division_artifacts():
    insights = analyze([{"v": 0}])
    assert len(insights) == 3
    assert "z-score of 0.00" in insights[0]
    for text in insights:
        assert "nan" not in text.lower()
        assert "inf" not in text.lower()


def test_zero_first_value_omits_growth_rate():
    insights = analyze([{"x": v} for v in [0, 1, 2, 3, 4]])
    trend = next(text for text in insights if text.startswith("Trend analysis"))
    assert "growth rate" not in trend


def test_analysis_is_deterministic():
    dataset = _columns(a=[3, 1, 4, 1, 5, 9, 2, 6], b=["x", "", "y", "z", "", "w", "v", "u"])
    assert analyze(dataset) == analyze(dataset)


@pytest.mark.parametrize("dataset", [
    LINEAR,
    [{"v": 1}],
    [{"a": i, "b": i * i, "c": -i} for i in range(30)],
    [{"name": "n", "city": ""}] * 3,
])
def test_never_more_than_five_strings(dataset):
    insights = analyze(dataset)
    assert 1 <= len(insights) <= MAX_INSIGHTS
    assert all(isinstance(text, str) and text for text in insights)


def test_empty_dataset_raises():
    with pytest.raises(AnalysisError, match="No data available for analysis"):
        analyze([])


def test_dataset_without_columns_raises():
    with pytest.raises(AnalysisError):
        analyze([{}])


# -----------------------
# Fallback
# -----------------------

def test_generic_fallback_without_dataset():
    assert fallback_insights() == GENERIC_FALLBACK_INSIGHTS
    assert fallback_insights([]) == GENERIC_FALLBACK_INSIGHTS
    assert fallback_insights([{}]) == GENERIC_FALLBACK_INSIGHTS


def test_fallback_mentions_dataset_shape():
    insights = fallback_insights(LINEAR)
    assert len(insights) == 5
    assert insights[0] == "Your dataset contains 5 rows and 2 columns including x, y."
    assert "from 1 to 5" in insights[1]
    assert '"x" and "y"' in insights[2]


# -----------------------
# Rounding
# -----------------------

@pytest.mark.parametrize("value,digits,expected", [
    (2.5, 0, "3"),
    (-2.5, 0, "-3"),
    (0.125, 2, "0.13"),
    (81.25, 1, "81.3"),
    (66.666, 0, "67"),
    (4.0, 2, "4.00"),
    (float("nan"), 1, "N/A"),
])
def test_fixed_decimals_round_ties_away_from_zero(value, digits, expected):
    assert _to_fixed(value, digits) == expected


def test_missing_percentage_tie_rounds_up():
    dataset = [{"a": i, "b": "v"} for i in range(16)]
    dataset[7]["b"] = ""
    missing = next(text for text in analyze(dataset) if text.startswith("Data quality"))
    assert '"b" (1 rows, 6.3%)' in missing


def test_trend_consistency_tie_rounds_up():
    values = [1, 2, 3, 4, 3, 4, 5, 6, 5, 6, 7, 8, 7, 8, 9, 10, 11]
    trend = next(
        text for text in analyze([{"x": v} for v in values])
        if text.startswith("Trend analysis")
    )
    assert "81.3% of data points increasing" in trend


# -----------------------
# Column selection
# -----------------------

def test_blank_first_cell_does_not_hide_a_column():
    dataset = [
        {"a": 1, "b": ""},
        {"a": 2, "b": 20},
        {"a": 3, "b": 30},
        {"a": 4, "b": 40},
        {"a": 5, "b": 1000},
    ]
    insights = analyze(dataset)
    assert insights[0].startswith('The column "b" has the highest value at 1,000')
    assert insights[1].startswith('Trend analysis of "a"')

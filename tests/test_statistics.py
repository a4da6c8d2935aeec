import math

import numpy as np
import pytest
from scipy import stats as scipy_stats

from tools.statistics import (
    _pattern_confidence,
    classify_columns,
    coerce_number,
    compute_statistics,
    detect_seasonality,
    detect_trend,
    direction_sequence,
    find_correlations,
    find_missing_data,
    get_numeric_columns,
    pearson_correlation,
)


def _column(name, values):
    return [{name: v} for v in values]


def _columns(**columns):
    names = list(columns)
    length = len(columns[names[0]])
    return [{name: columns[name][i] for name in names} for i in range(length)]


# -----------------------
# Coercion & classification
# -----------------------

@pytest.mark.parametrize("value,expected", [
    (5, 5.0),
    (2.5, 2.5),
    ("3.5", 3.5),
    ("  12kg", 12.0),
    ("-2", -2.0),
    ("1e3", 1000.0),
    (".5", 0.5),
    (np.int64(7), 7.0),
])
def test_coerce_number_parses_numbers_and_numeric_prefixes(value, expected):
    assert coerce_number(value) == expected


@pytest.mark.parametrize("value", [
    None, "", "   ", "abc", "n/a", True, False, float("nan"), float("inf"), "Infinity",
])
def test_coerce_number_rejects_non_finite_and_non_numeric(value):
    assert coerce_number(value) is None


def test_classification_uses_first_row_only():
    dataset = [
        {"a": "", "b": 1, "c": "x"},
        {"a": 5, "b": "oops", "c": 3},
    ]
    assert classify_columns(dataset) == {"a": False, "b": True, "c": False}
    assert get_numeric_columns(dataset) == ["b"]


# -----------------------
# Descriptive statistics
# -----------------------

def test_statistics_for_age_column_flag_large_outlier():
    s = compute_statistics(_column("age", [10, 20, 30, 40, 1000]), "age")
    assert s.count == 5
    assert s.min == 10 and s.max == 1000
    assert s.range == 990
    assert s.sum == 1100
    assert s.mean == 220
    assert s.median == 30
    assert s.q1 == 20 and s.q3 == 40 and s.iqr == 20
    assert s.outliers == [1000]
    assert s.has_outliers


def test_statistics_sort_numerically_not_lexically():
    s = compute_statistics(_column("v", ["10", "9", "100", "2"]), "v")
    assert s.min == 2 and s.max == 100
    assert s.median == pytest.approx(9.5)


def test_even_count_median_averages_middle_values():
    s = compute_statistics(_column("v", [4, 1, 3, 2]), "v")
    assert s.median == 2.5


def test_mode_prefers_lowest_value_reaching_max_frequency():
    s = compute_statistics(_column("v", [3, 1, 3, 1, 2]), "v")
    assert s.mode == 1


def test_mode_with_all_unique_values_is_minimum():
    s = compute_statistics(_column("v", [5, 3, 9]), "v")
    assert s.mode == 3


def test_standard_deviation_uses_population_formula():
    s = compute_statistics(_column("v", [2, 4, 4, 4, 5, 5, 7, 9]), "v")
    assert s.mean == 5
    assert s.std_dev == pytest.approx(2.0)


def test_duplicate_outliers_are_each_counted():
    s = compute_statistics(_column("v", [1] * 8 + [50, 50]), "v")
    assert s.iqr == 0
    assert s.outliers == [50, 50]


def test_single_row_statistics():
    s = compute_statistics([{"v": 7}], "v")
    assert s.count == 1
    assert s.min == s.max == s.mean == 7
    assert s.std_dev == 0
    assert s.iqr == 0
    assert s.range == 0
    assert s.outliers == []
    assert not s.has_outliers


def test_unparseable_values_are_dropped():
    s = compute_statistics(_column("v", [1, "x", "", None, "3"]), "v")
    assert s.count == 2
    assert s.sum == 4


def test_no_numeric_values_returns_none():
    assert compute_statistics(_column("v", ["a", "", None]), "v") is None
    assert compute_statistics([], "v") is None


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_statistics_invariants_hold(seed):
    rng = np.random.RandomState(seed)
    values = list(rng.randn(rng.randint(1, 60)) * 100)
    s = compute_statistics(_column("v", values), "v")

    assert s.min <= s.q1 <= s.median <= s.q3 <= s.max
    assert s.std_dev >= 0

    lower = s.q1 - 1.5 * s.iqr
    upper = s.q3 + 1.5 * s.iqr
    assert set(s.outliers) <= set(values)
    assert sorted(s.outliers) == sorted(v for v in values if v < lower or v > upper)


def test_std_dev_zero_iff_all_values_equal():
    assert compute_statistics(_column("v", [4, 4, 4]), "v").std_dev == 0
    assert compute_statistics(_column("v", [4, 4, 5]), "v").std_dev > 0


# -----------------------
# Missing data
# -----------------------

def test_blank_name_column_reports_every_row():
    dataset = [{"name": "", "v": i} for i in range(4)]
    assert find_missing_data(dataset) == {"name": 4}


def test_missing_data_counts_absent_none_nan_and_whitespace():
    dataset = [
        {"a": 1, "b": "x", "c": "ok"},
        {"a": None, "b": "   ", "c": "n/a"},
        {"b": "y", "c": float("nan")},
    ]
    assert find_missing_data(dataset) == {"a": 2, "b": 1, "c": 1}


def test_complete_dataset_has_no_missing_entries():
    assert find_missing_data(_columns(x=[1, 2], y=["a", "b"])) == {}


# -----------------------
# Correlations
# -----------------------

def test_perfectly_linear_columns_correlate_at_one():
    dataset = _columns(x=[1, 2, 3, 4, 5], y=[2, 4, 6, 8, 10])
    pairs = find_correlations(dataset)
    assert len(pairs) == 1
    assert (pairs[0].col1, pairs[0].col2) == ("x", "y")
    assert pairs[0].coefficient == pytest.approx(1.0)


def test_pearson_is_symmetric_and_bounded():
    rng = np.random.RandomState(7)
    a = list(rng.randn(30))
    b = list(np.asarray(a) * 0.5 + rng.randn(30))
    r_ab = pearson_correlation(a, b)
    r_ba = pearson_correlation(b, a)
    assert r_ab == pytest.approx(r_ba)
    assert -1 <= r_ab <= 1


def test_pearson_matches_scipy():
    rng = np.random.RandomState(11)
    a = rng.randn(50)
    b = a * 2 + rng.randn(50)
    expected = scipy_stats.pearsonr(a, b)[0]
    assert pearson_correlation(list(a), list(b)) == pytest.approx(expected)


def test_pearson_guards_degenerate_input():
    assert pearson_correlation([1, 1, 1], [1, 2, 3]) is None
    assert pearson_correlation([1], [2]) is None
    assert pearson_correlation([1, 2], [1, 2, 3]) is None


def test_weak_correlations_are_filtered_out():
    dataset = _columns(x=[1, 2, 3, 4, 5], y=[1, 3, 2, 1, 3])
    assert find_correlations(dataset) == []


def test_negative_correlation_is_kept():
    dataset = _columns(x=[1, 2, 3, 4, 5], y=[10, 8, 6, 4, 2])
    pairs = find_correlations(dataset)
    assert pairs[0].coefficient == pytest.approx(-1.0)


def test_pairs_with_different_missing_patterns_are_skipped():
    dataset = _columns(x=[1, 2, 3, 4], y=[2, "", 6, 8])
    assert find_correlations(dataset) == []


def test_correlations_sorted_strongest_first():
    dataset = _columns(
        a=[1, 2, 3, 4, 5],
        b=[2, 4, 6, 8, 10],
        c=[1, 3, 2, 5, 4],
    )
    pairs = find_correlations(dataset)
    assert [(p.col1, p.col2) for p in pairs] == [("a", "b"), ("a", "c"), ("b", "c")]
    assert pairs[1].coefficient == pytest.approx(0.8)
    magnitudes = [abs(p.coefficient) for p in pairs]
    assert magnitudes == sorted(magnitudes, reverse=True)


# -----------------------
# Trend
# -----------------------

def test_upward_trend_with_full_consistency():
    trend = detect_trend(_column("x", [1, 2, 3, 4, 5]), "x")
    assert trend.direction == "upward"
    assert trend.consistency == 100
    assert trend.rate == pytest.approx(400)


def test_downward_trend_rate():
    trend = detect_trend(_column("x", [10, 8, 6, 4, 2]), "x")
    assert trend.direction == "downward"
    assert trend.consistency == 100
    assert trend.rate == pytest.approx(80)


def test_sixty_percent_is_still_fluctuating():
    trend = detect_trend(_column("x", [1, 3, 2, 4, 3, 5]), "x")
    assert trend.direction == "fluctuating"
    assert trend.up_percent == pytest.approx(60)
    assert trend.down_percent == pytest.approx(40)


def test_trend_rate_is_none_when_first_value_is_zero():
    trend = detect_trend(_column("x", [0, 1, 2, 3, 4]), "x")
    assert trend.direction == "upward"
    assert trend.rate is None


def test_flat_series_has_no_trend():
    assert detect_trend(_column("x", [5, 5, 5, 5, 5]), "x") is None


def test_trend_requires_five_rows_and_five_values():
    assert detect_trend(_column("x", [1, 2, 3, 4]), "x") is None
    assert detect_trend(_column("x", [1, 2, "", "", 3]), "x") is None
    assert detect_trend([{"x": 1}], "x") is None


# -----------------------
# Seasonality
# -----------------------

def test_direction_sequence():
    assert direction_sequence([1, 2, 2, 1]) == ["up", "same", "down"]


def test_alternating_series_has_period_two():
    result = detect_seasonality(_column("x", [1, 2] * 5), "x")
    assert result.pattern_length == 2
    assert result.confidence == pytest.approx(2.0)


def test_irregular_series_has_no_seasonality():
    values = [1, 2, 3, 1, 1, 0, 4, 4, 4, 2]
    assert detect_seasonality(_column("x", values), "x") is None


def test_seasonality_requires_ten_values():
    assert detect_seasonality(_column("x", [1, 2] * 4), "x") is None
    assert detect_seasonality([{"x": 1}], "x") is None


def test_pattern_confidence_guards_zero_denominator():
    assert _pattern_confidence(["up", "down", "up"], 2) == 0.0
    assert not math.isnan(_pattern_confidence(["up"], 4))

"""Tests for regression, calibration and lift metrics."""

import numpy as np
import pytest

from analysis.metrics import (
    LIFT_PERCENTS,
    pearson_correlation,
    rank_array,
    spearman_correlation,
    regression_metrics,
    calibration_table,
    calibration_error,
    lift_curve
)


class TestCorrelation:
    """Pearson and rank correlations with degenerate-input fallbacks"""

    def test_pearson_perfect(self):
        assert pearson_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert pearson_correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

    def test_pearson_degenerate(self):
        assert pearson_correlation([], []) == 0
        assert pearson_correlation([1, 1, 1], [1, 2, 3]) == 0
        assert pearson_correlation([1, 2], [1, 2, 3]) == 0

    def test_rank_array_stable_ties(self):
        assert list(rank_array([5, 1, 5, 3])) == [3, 1, 4, 2]

    def test_spearman_monotone(self):
        x = np.arange(50, dtype=float)
        assert spearman_correlation(x, np.exp(x / 10)) == pytest.approx(1.0)


class TestRegressionMetrics:
    """MAE, RMSE, R2 and Spearman"""

    def test_perfect_predictions(self):
        m = regression_metrics([1, 2, 3, 4], [1, 2, 3, 4])
        assert m['mae'] == 0
        assert m['rmse'] == 0
        assert m['r2'] == pytest.approx(1.0)
        assert m['spearman'] == pytest.approx(1.0)

    def test_known_errors(self):
        m = regression_metrics([0, 0], [3, -3])
        assert m['mae'] == pytest.approx(3.0)
        assert m['rmse'] == pytest.approx(3.0)

    def test_empty(self):
        assert regression_metrics([], []) == {'mae': 0.0, 'rmse': 0.0, 'r2': 0.0, 'spearman': 0.0}

    def test_constant_actuals_no_nan(self):
        m = regression_metrics([2, 2, 2], [1, 2, 3])
        assert np.isfinite(m['r2'])


class TestCalibration:
    """Decile calibration"""

    def test_perfect_calibration(self):
        values = np.arange(100, dtype=float)
        table = calibration_table(values, values)
        assert len(table) == 10
        assert calibration_error(table) == 0

    def test_buckets_sorted_by_prediction(self):
        rng = np.random.default_rng(4)
        predicted = rng.random(95)
        table = calibration_table(predicted * 2, predicted)
        assert list(table['bucket'])[0] == 'D1'
        assert table['predicted'].is_monotonic_increasing
        assert table['count'].sum() == 95

    def test_trailing_empty_buckets_dropped(self):
        table = calibration_table(np.ones(11), np.arange(11, dtype=float))
        # ceil(11 / 10) = 2 rows per bucket, so six buckets
        assert len(table) == 6

    def test_error_counts_empty_buckets_in_denominator(self):
        predicted = np.arange(11, dtype=float)
        table = calibration_table(predicted + 1, predicted)
        # six filled buckets each off by one, averaged over ten
        assert len(table) == 6
        assert calibration_error(table) == pytest.approx(0.6)

    def test_empty(self):
        table = calibration_table([], [])
        assert table.empty
        assert calibration_error(table) == 0


class TestLiftCurve:
    """Top-K% lift, precision, recall and value captured"""

    def test_full_population_lift_is_one(self):
        rng = np.random.default_rng(5)
        actual = rng.exponential(10, size=300)
        curve = lift_curve(actual, rng.random(300))
        last = curve.iloc[-1]
        assert last['top_percent'] == 100
        assert last['lift'] == pytest.approx(1.0)
        assert last['value_captured'] == pytest.approx(1.0)
        assert last['recall'] == pytest.approx(1.0)

    def test_oracle_ranking_beats_random(self):
        actual = np.concatenate([np.zeros(90), np.full(10, 100.0)])
        curve = lift_curve(actual, actual)
        top10 = curve[curve['top_percent'] == 10].iloc[0]
        assert top10['lift'] == pytest.approx(10.0)
        assert top10['value_captured'] == pytest.approx(1.0)

    def test_value_captured_monotone(self):
        rng = np.random.default_rng(6)
        curve = lift_curve(rng.random(200), rng.random(200))
        assert curve['value_captured'].is_monotonic_increasing
        assert list(curve['top_percent']) == LIFT_PERCENTS

    def test_zero_actuals(self):
        curve = lift_curve(np.zeros(50), np.arange(50, dtype=float))
        assert (curve['lift'] == 1.0).all()
        assert (curve['value_captured'] == 0).all()

    def test_empty(self):
        assert lift_curve([], []).empty

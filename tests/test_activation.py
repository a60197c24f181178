"""Tests for activation simulation and economic impact."""

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from analysis import ActivationConfig, simulate_activation, compute_economic_impact
from analysis.activation import DAY_FRACTIONS, ECONOMIC_PERCENTS


def scored(predicted, actual):
    """Minimal stand-in for a trained model's prediction output."""
    return SimpleNamespace(
        run_id='stub',
        model_label='Stub',
        all_predictions=pd.DataFrame({'predicted': predicted, 'actual': actual}),
    )


NO_NOISE = ActivationConfig(cpi=2.0, revenue_multiplier=1.5, conversion_noise=0.0, delivery_rate=1.0)


class TestSimulateActivation:
    """Top-K targeting over 90 days"""

    def test_day_fractions_sum_to_one(self):
        assert DAY_FRACTIONS.sum() == pytest.approx(1.0)
        assert len(DAY_FRACTIONS) == 91

    def test_full_delivery_recovers_total_value(self, gbt_model):
        run = simulate_activation(gbt_model, 100, NO_NOISE)
        total = gbt_model.all_predictions['actual'].sum()

        assert run.users_delivered == len(gbt_model.all_predictions)
        assert run.revenue_90d == pytest.approx(total * 1.5)
        assert run.revenue_curve.iloc[-1]['day'] == 90
        assert run.revenue_curve.iloc[-1]['revenue'] == pytest.approx(total * 1.5)

    def test_targets_highest_predicted(self):
        model = scored([1, 5, 3, 4, 2, 0, 0, 0, 0, 0], [10, 50, 30, 40, 20, 0, 0, 0, 0, 0])
        run = simulate_activation(model, 20, NO_NOISE)
        assert run.top_k == 2
        assert run.revenue_90d == pytest.approx((50 + 40) * 1.5)

    def test_cost_and_roi(self):
        model = scored(np.arange(100, dtype=float), np.ones(100))
        run = simulate_activation(model, 10, ActivationConfig(cpi=3.0, delivery_rate=0.8))
        assert run.users_sent == 10
        assert run.users_delivered == 8
        assert run.cost == pytest.approx(24.0)
        assert run.profit == pytest.approx(run.revenue_90d - run.cost)
        assert run.roi == pytest.approx((run.revenue_90d - run.cost) / run.cost)

    def test_curve_is_cumulative(self, gbt_model):
        run = simulate_activation(gbt_model, 30)
        assert run.revenue_curve['revenue'].is_monotonic_increasing
        assert list(run.revenue_curve['day'][:3]) == [0, 5, 10]

    def test_noise_is_seeded(self, gbt_model):
        a = simulate_activation(gbt_model, 10, seed=1)
        b = simulate_activation(gbt_model, 10, seed=1)
        assert a.revenue_90d == b.revenue_90d

    def test_at_least_one_user(self):
        run = simulate_activation(scored([1.0, 2.0], [3.0, 4.0]), 1, NO_NOISE)
        assert run.top_k == 1

    def test_summary(self, gbt_model):
        summary = simulate_activation(gbt_model, 10).summary()
        assert summary['top_k_percent'] == 10
        assert 'revenue_curve' not in summary


class TestEconomicImpact:
    """Economics across targeting depths vs a random-slice baseline"""

    def test_one_row_per_depth(self, gbt_model):
        table = compute_economic_impact(gbt_model)
        assert list(table['top_k_percent']) == ECONOMIC_PERCENTS

    def test_full_depth_matches_baseline(self, gbt_model):
        table = compute_economic_impact(gbt_model, NO_NOISE)
        full = table[table['top_k_percent'] == 100].iloc[0]
        assert full['uplift_vs_baseline'] == pytest.approx(0.0, abs=1e-9)
        assert full['incremental_revenue'] == pytest.approx(0.0, abs=1e-6)

    def test_oracle_ranking_beats_baseline_at_top(self):
        actual = np.concatenate([np.full(10, 100.0), np.zeros(90)])
        table = compute_economic_impact(scored(actual, actual), NO_NOISE)
        top = table[table['top_k_percent'] == 10].iloc[0]
        assert top['uplift_vs_baseline'] == pytest.approx(9.0)
        assert top['roas'] == pytest.approx(1500 / 20)

    def test_empty_predictions(self):
        assert compute_economic_impact(scored([], [])).empty

"""Tests for the randomized uplift simulation."""

import pytest

from analysis import simulate_uplift
from analysis.uplift import UPLIFT_PERCENTS, treatment_effect
from simulation import SeededRandom


class TestTreatmentEffect:
    """Per-user effect multiplier"""

    def test_base_range(self):
        rng = SeededRandom(1)
        effects = [treatment_effect(rng, 0.0) for _ in range(500)]
        assert min(effects) >= 0.82
        assert max(effects) < 1.42

    def test_high_value_boost(self):
        low = treatment_effect(SeededRandom(2), 1.0)
        assert treatment_effect(SeededRandom(2), 6.0) == pytest.approx(low * 1.1)
        assert treatment_effect(SeededRandom(2), 20.0) == pytest.approx(low * 1.2)


class TestSimulateUplift:
    """Treatment/control split, ATE and CATE by decile"""

    def test_groups_partition_users(self, gbt_model):
        result = simulate_uplift(gbt_model)
        assert result.treatment_size + result.control_size == len(gbt_model.all_predictions)
        assert result.treatment_size > 0
        assert result.control_size > 0

    def test_ate_is_difference_of_means(self, gbt_model):
        result = simulate_uplift(gbt_model)
        assert result.ate == pytest.approx(result.treatment_avg_ltv - result.control_avg_ltv)

    def test_decile_and_curve_shapes(self, gbt_model):
        result = simulate_uplift(gbt_model)
        assert list(result.cate_by_decile['decile']) == list(range(1, 11))
        assert list(result.uplift_curve['top_percent']) == UPLIFT_PERCENTS

    def test_seeded(self, gbt_model):
        a = simulate_uplift(gbt_model, seed=5)
        b = simulate_uplift(gbt_model, seed=5)
        assert a.summary() == b.summary()

    def test_treatment_fraction(self, gbt_model):
        result = simulate_uplift(gbt_model, treatment_fraction=0.2)
        n = len(gbt_model.all_predictions)
        assert result.treatment_size == pytest.approx(0.2 * n, abs=0.1 * n)

    def test_everyone_treated(self, gbt_model):
        result = simulate_uplift(gbt_model, treatment_fraction=1.0)
        assert result.control_size == 0
        assert result.control_avg_ltv == 0

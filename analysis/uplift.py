"""
Uplift Simulator

Randomly splits scored users into treatment and control. Treated outcomes are
the actual value times a randomized effect that is biased upward for users
with higher predicted value, so a good ranker shows larger uplift at the top.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd

from simulation.rng import SeededRandom

logger = logging.getLogger(__name__)


UPLIFT_PERCENTS = [5, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
N_DECILES = 10


@dataclass
class UpliftResult:
    treatment_size: int
    control_size: int
    treatment_avg_ltv: float
    control_avg_ltv: float
    ate: float
    cate_by_decile: pd.DataFrame
    uplift_curve: pd.DataFrame

    def summary(self) -> Dict:
        return {
            'treatment_size': self.treatment_size,
            'control_size': self.control_size,
            'treatment_avg_ltv': round(self.treatment_avg_ltv, 2),
            'control_avg_ltv': round(self.control_avg_ltv, 2),
            'ate': round(self.ate, 2),
        }


def _mean(values: np.ndarray) -> float:
    return float(values.mean()) if len(values) else 0.0


def treatment_effect(rng: SeededRandom, predicted: float) -> float:
    """Multiplier in [0.82, 1.42) scaled by 1.2 above $10 predicted, 1.1 above $5."""
    base = 1 + (rng.next() - 0.3) * 0.6
    if predicted > 10:
        return base * 1.2
    if predicted > 5:
        return base * 1.1
    return base


def simulate_uplift(model, treatment_fraction: float = 0.5, seed: int = 42) -> UpliftResult:
    """Simulate a randomized treatment over all scored users.

    CATE per predicted-value decile compares the d-th positional slice of the
    treatment group with the proportionally sized d-th slice of the control
    group; the groups are not paired.
    """
    rng = SeededRandom(seed)
    preds = model.all_predictions
    order = np.argsort(-preds['predicted'].to_numpy(dtype=float), kind='stable')
    predicted = preds['predicted'].to_numpy(dtype=float)[order]
    actual = preds['actual'].to_numpy(dtype=float)[order]

    in_treatment = np.array([rng.next() < treatment_fraction for _ in range(len(actual))], dtype=bool)
    t_pred, t_actual = predicted[in_treatment], actual[in_treatment]
    control = actual[~in_treatment]
    treated = np.array([a * treatment_effect(rng, p) for p, a in zip(t_pred, t_actual)])

    treatment_avg = _mean(treated)
    control_avg = _mean(control)

    n_t, n_c = len(treated), len(control)
    size = math.ceil(n_t / N_DECILES)
    deciles = []
    for d in range(N_DECILES):
        t_slice = treated[d * size:(d + 1) * size]
        c_slice = control[math.floor(d * n_c / N_DECILES):math.floor((d + 1) * n_c / N_DECILES)]
        t_avg, c_avg = _mean(t_slice), _mean(c_slice)
        deciles.append({'decile': d + 1, 'cate': t_avg - c_avg,
                        'treatment_ltv': t_avg, 'control_ltv': c_avg})

    curve = []
    for pct in UPLIFT_PERCENTS:
        k_t = max(1, math.floor(n_t * pct / 100))
        k_c = max(1, math.floor(n_c * pct / 100))
        curve.append({'top_percent': pct,
                      'cumulative_uplift': _mean(treated[:k_t]) - _mean(control[:k_c])})

    logger.info("Uplift: %d treated, %d control, ATE %.2f", n_t, n_c, treatment_avg - control_avg)
    return UpliftResult(
        treatment_size=n_t,
        control_size=n_c,
        treatment_avg_ltv=treatment_avg,
        control_avg_ltv=control_avg,
        ate=treatment_avg - control_avg,
        cate_by_decile=pd.DataFrame(deciles, columns=['decile', 'cate', 'treatment_ltv', 'control_ltv']),
        uplift_curve=pd.DataFrame(curve, columns=['top_percent', 'cumulative_uplift']),
    )

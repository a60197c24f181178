"""
Model comparison helpers.

Checks that two runs share an evaluation protocol before their metrics are
compared, summarizes lift curves and coverage, and picks a recommended model
per decision criterion.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List

import numpy as np
import pandas as pd


INFERENCE_BASE_COST = {'dummy': 0.01, 'linear': 0.05, 'rf': 1.2, 'gbt': 0.8}
INFERENCE_COST_PER_FEATURE = 0.02


@dataclass
class EvalProtocol:
    target: str
    split_strategy: str
    feature_set_hash: str
    dataset_size: int
    leakage_enabled: bool
    train_size: int
    test_size: int


@dataclass
class Recommendation:
    model_index: int
    badge: str
    reason: str


def extract_protocol(model) -> EvalProtocol:
    return EvalProtocol(
        target=model.target,
        split_strategy=model.split_strategy,
        feature_set_hash='|'.join(sorted(model.features)),
        dataset_size=model.train_size + model.test_size,
        leakage_enabled=model.leakage_enabled,
        train_size=model.train_size,
        test_size=model.test_size,
    )


def protocols_match(a: EvalProtocol, b: EvalProtocol) -> Dict:
    """Whether two runs are comparable, with a list of human-readable differences."""
    diffs = []
    if a.target != b.target:
        diffs.append(f"target: {a.target} vs {b.target}")
    if a.split_strategy != b.split_strategy:
        diffs.append(f"split: {a.split_strategy} vs {b.split_strategy}")
    if a.feature_set_hash != b.feature_set_hash:
        diffs.append("different feature set")
    if a.dataset_size != b.dataset_size:
        diffs.append(f"dataset size: {a.dataset_size} vs {b.dataset_size}")
    if a.leakage_enabled != b.leakage_enabled:
        diffs.append("leakage mismatch")
    return {'match': not diffs, 'differences': diffs}


def compute_aulc(lift: pd.DataFrame) -> float:
    """Trapezoid area under the lift curve over the top-percent fraction axis."""
    if len(lift) < 2:
        return 0.0
    x = lift['top_percent'].to_numpy(dtype=float) / 100
    y = lift['lift'].to_numpy(dtype=float)
    return float(np.sum(np.diff(x) * (y[1:] + y[:-1]) / 2))


def compute_coverage(matrix: pd.DataFrame, features: List[str]) -> float:
    """Fraction of rows where every feature is present and finite."""
    if matrix.empty or not features:
        return 0.0
    missing = [f for f in features if f not in matrix.columns]
    if missing:
        return 0.0
    values = matrix[features].apply(pd.to_numeric, errors='coerce')
    covered = np.isfinite(values.to_numpy(dtype=float)).all(axis=1)
    return float(covered.mean())


def compute_overprediction_rate(predictions: pd.DataFrame, threshold_pct: float = 50) -> float:
    """Share of payers whose prediction exceeds actual by more than ``threshold_pct``%."""
    if predictions.empty:
        return 0.0
    actual = predictions['actual'].to_numpy(dtype=float)
    predicted = predictions['predicted'].to_numpy(dtype=float)
    payers = actual > 0
    over = np.zeros(len(actual), dtype=bool)
    over[payers] = (predicted[payers] - actual[payers]) / actual[payers] > threshold_pct / 100
    return float(over.sum() / len(actual))


def estimate_inference_cost(model) -> float:
    """Relative per-user scoring cost by model kind and feature count."""
    return INFERENCE_BASE_COST.get(model.model_type, 0.0) + len(model.features) * INFERENCE_COST_PER_FEATURE


def _lift_at(model, top_k_pct: float) -> float:
    lift = model.lift_curve
    if lift.empty:
        return 0.0
    nearest = (lift['top_percent'] - top_k_pct).abs().to_numpy().argmin()
    return float(lift['lift'].iloc[nearest])


def generate_recommendations(models: List, top_k_pct: float) -> List[Recommendation]:
    """Best model for top-K targeting, calibration, balance and ranking.

    A model already recommended for an earlier criterion is not repeated.
    """
    if not models:
        return []

    lifts = [_lift_at(m, top_k_pct) for m in models]
    best_lift = int(np.argmax(lifts))
    best_calib = int(np.argmin([m.calibration_error for m in models]))
    best_rank = int(np.argmax([m.spearman for m in models]))
    composite = [m.spearman * 0.4 + (lifts[i] / 10) * 0.3 + (1 / (1 + m.calibration_error)) * 0.3
                 for i, m in enumerate(models)]
    best_balanced = int(np.argmax(composite))

    recs = [Recommendation(
        best_lift, f"Best for Top-{top_k_pct:g}% Targeting",
        f"Highest lift at {top_k_pct:g}% ({lifts[best_lift]:.2f}x). Concentrates value in the top slice.",
    )]
    if best_calib != best_lift:
        recs.append(Recommendation(
            best_calib, "Best Calibrated for Bidding",
            f"Lowest calibration error (${models[best_calib].calibration_error:.2f}). "
            "Predictions closely match actuals, safe for bid optimization.",
        ))
    if best_balanced not in (best_lift, best_calib):
        recs.append(Recommendation(
            best_balanced, f"Best Balanced at K={top_k_pct:g}%",
            "Strongest composite of ranking (Spearman), lift, and calibration.",
        ))
    if best_rank not in (best_lift, best_calib, best_balanced):
        recs.append(Recommendation(
            best_rank, "Best Ranker (Spearman)",
            f"Highest Spearman correlation ({models[best_rank].spearman:.3f}). "
            "Best at ordering users by true value.",
        ))
    return recs


def feature_importance_delta(model_a, model_b) -> pd.DataFrame:
    """Importance in each run and B minus A, sorted by absolute delta."""
    imp_a = dict(zip(model_a.feature_importance['feature'], model_a.feature_importance['importance']))
    imp_b = dict(zip(model_b.feature_importance['feature'], model_b.feature_importance['importance']))
    features = list(dict.fromkeys(list(imp_a) + list(imp_b)))
    frame = pd.DataFrame({
        'feature': features,
        'importance_a': [imp_a.get(f, 0.0) for f in features],
        'importance_b': [imp_b.get(f, 0.0) for f in features],
    })
    frame['delta'] = frame['importance_b'] - frame['importance_a']
    order = frame['delta'].abs().sort_values(ascending=False, kind='stable').index
    return frame.reindex(order).reset_index(drop=True)


def lift_delta(model_a, model_b) -> pd.DataFrame:
    """Lift and value captured per top-percent point of A, joined with B's."""
    a = model_a.lift_curve[['top_percent', 'lift', 'value_captured']]
    b = model_b.lift_curve[['top_percent', 'lift', 'value_captured']]
    merged = a.merge(b, on='top_percent', how='left', suffixes=('_a', '_b')).fillna(0.0)
    merged['delta'] = merged['lift_b'] - merged['lift_a']
    return merged[['top_percent', 'lift_a', 'lift_b', 'delta', 'value_captured_a', 'value_captured_b']]


def recommendations_to_dicts(recs: List[Recommendation]) -> List[Dict]:
    return [asdict(r) for r in recs]

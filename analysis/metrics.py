"""
Evaluation metrics for pLTV regressors.

Regression accuracy (MAE, RMSE, R^2, Spearman), decile calibration and the
top-K% lift curve. Every ratio has a defined fallback so empty or constant
inputs never produce NaN or infinity.
"""

from typing import Dict

import numpy as np
import pandas as pd


LIFT_PERCENTS = [1, 2, 5, 10, 15, 20, 30, 50, 75, 100]
CALIBRATION_BUCKETS = 10
TOP_DECILE = 0.1


def pearson_correlation(a, b) -> float:
    """Pearson r; 0 for empty, mismatched or zero-variance input."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if len(a) == 0 or len(a) != len(b):
        return 0.0
    da = a - a.mean()
    db = b - b.mean()
    denom = np.sqrt(np.sum(da * da) * np.sum(db * db))
    if denom == 0:
        return 0.0
    return float(np.sum(da * db) / denom)


def rank_array(values) -> np.ndarray:
    """1-based ranks from a stable ascending sort; ties keep input order."""
    values = np.asarray(values, dtype=float)
    order = np.argsort(values, kind='stable')
    ranks = np.empty(len(values), dtype=float)
    ranks[order] = np.arange(1, len(values) + 1)
    return ranks


def spearman_correlation(a, b) -> float:
    """Pearson correlation of stable-sort ranks (no tie averaging)."""
    return pearson_correlation(rank_array(a), rank_array(b))


def regression_metrics(actual, predicted) -> Dict[str, float]:
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    n = len(actual)
    if n == 0:
        return {'mae': 0.0, 'rmse': 0.0, 'r2': 0.0, 'spearman': 0.0}

    err = predicted - actual
    ss_res = float(np.sum(err ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    return {
        'mae': float(np.mean(np.abs(err))),
        'rmse': float(np.sqrt(ss_res / n)),
        'r2': 1 - ss_res / (ss_tot or 1),
        'spearman': spearman_correlation(predicted, actual),
    }


def calibration_table(actual, predicted, n_buckets: int = CALIBRATION_BUCKETS) -> pd.DataFrame:
    """Mean predicted vs mean actual per prediction-sorted bucket (D1 = lowest).

    Buckets hold ``ceil(n / n_buckets)`` rows each; trailing buckets that
    would be empty are omitted.
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    order = np.argsort(predicted, kind='stable')
    p_sorted, a_sorted = predicted[order], actual[order]
    size = int(np.ceil(len(predicted) / n_buckets)) if len(predicted) else 0

    rows = []
    for b in range(n_buckets):
        p_slice = p_sorted[b * size:(b + 1) * size]
        if len(p_slice) == 0:
            continue
        a_slice = a_sorted[b * size:(b + 1) * size]
        rows.append({
            'bucket': f"D{b + 1}",
            'predicted': float(p_slice.mean()),
            'actual': float(a_slice.mean()),
            'count': len(p_slice),
        })
    return pd.DataFrame(rows, columns=['bucket', 'predicted', 'actual', 'count'])


def calibration_error(table: pd.DataFrame, n_buckets: int = CALIBRATION_BUCKETS) -> float:
    """Summed absolute predicted-vs-actual gap over ``n_buckets``.

    Omitted (empty) buckets contribute nothing but still count in the
    denominator, so small test partitions score lower.
    """
    if table.empty:
        return 0.0
    return float((table['predicted'] - table['actual']).abs().sum() / n_buckets)


def lift_curve(actual, predicted) -> pd.DataFrame:
    """Lift, precision, recall and value captured for each top-K% slice.

    The ground-truth "top" label is ``actual >= p90`` where p90 is the value at
    index ``floor(n * 0.1)`` of the actuals sorted descending.
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    n = len(actual)
    columns = ['top_percent', 'k', 'lift', 'precision', 'recall', 'value_captured']
    if n == 0:
        return pd.DataFrame(columns=columns)

    order = np.argsort(-predicted, kind='stable')
    a_sorted = actual[order]
    total = float(a_sorted.sum())
    p90 = float(np.sort(actual)[::-1][int(np.floor(n * TOP_DECILE))])
    is_top = a_sorted >= p90
    top_true = int(is_top.sum())

    rows = []
    for pct in LIFT_PERCENTS:
        k = max(1, int(np.floor(n * pct / 100)))
        top_value = float(a_sorted[:k].sum())
        top_in_slice = int(is_top[:k].sum())
        expected = total * (k / n)
        rows.append({
            'top_percent': pct,
            'k': k,
            'lift': top_value / expected if expected > 0 else 1.0,
            'precision': top_in_slice / k if top_true > 0 else 0.0,
            'recall': top_in_slice / top_true if top_true > 0 else 0.0,
            'value_captured': top_value / total if total > 0 else 0.0,
        })
    return pd.DataFrame(rows, columns=columns)

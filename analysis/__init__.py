"""Evaluation, activation and uplift analysis for trained pLTV models."""

from .metrics import (
    pearson_correlation,
    spearman_correlation,
    regression_metrics,
    calibration_table,
    calibration_error,
    lift_curve
)
from .activation import (
    ActivationConfig,
    ActivationRun,
    simulate_activation,
    compute_economic_impact
)
from .uplift import (
    UpliftResult,
    simulate_uplift
)
from .comparison import (
    EvalProtocol,
    Recommendation,
    extract_protocol,
    protocols_match,
    compute_aulc,
    compute_coverage,
    compute_overprediction_rate,
    estimate_inference_cost,
    generate_recommendations,
    feature_importance_delta,
    lift_delta
)

__all__ = [
    'pearson_correlation',
    'spearman_correlation',
    'regression_metrics',
    'calibration_table',
    'calibration_error',
    'lift_curve',
    'ActivationConfig',
    'ActivationRun',
    'simulate_activation',
    'compute_economic_impact',
    'UpliftResult',
    'simulate_uplift',
    'EvalProtocol',
    'Recommendation',
    'extract_protocol',
    'protocols_match',
    'compute_aulc',
    'compute_coverage',
    'compute_overprediction_rate',
    'estimate_inference_cost',
    'generate_recommendations',
    'feature_importance_delta',
    'lift_delta'
]

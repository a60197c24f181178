"""
pLTV Model Trainer

Trains one of four regressors on a feature matrix and evaluates it on a
held-out partition:
- gbt: gradient-boosted trees with row bagging and column subsampling
- rf: random forest of bootstrap trees, averaged
- linear: gradient-descent linear regression
- dummy: fixed heuristic on D7 revenue (sanity floor)

All randomness comes from one ``SeededRandom`` created from the call's seed,
so identical inputs reproduce identical predictions and metrics.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from analysis.metrics import (
    regression_metrics, calibration_table, calibration_error, lift_curve, pearson_correlation,
)
from models.linear import fit_linear
from models.trees import Node, TreeParams, build_tree, predict_tree, scale_tree
from simulation.errors import MalformedInputError, OperationCancelled
from simulation.rng import SeededRandom

logger = logging.getLogger(__name__)


MODEL_KINDS = ('gbt', 'rf', 'linear', 'dummy')
MODEL_LABELS = {
    'gbt': 'Gradient Boosted Trees',
    'linear': 'Linear Regression',
    'rf': 'Random Forest',
    'dummy': 'Dummy Baseline (LTV7)',
}
TARGET_COLUMNS = {'ltv30': 'target_ltv30', 'ltv90': 'target_ltv90'}
SPLIT_STRATEGIES = ('random', 'time')

# Baseline multipliers: (payment-sum column, {target: multiplier})
BASELINE_RULES = {
    'ltv3d': ('payment_sum_3d', {'ltv30': 5.0, 'ltv90': 12.0}),
    'ltv7d': ('payment_sum_7d', {'ltv30': 2.5, 'ltv90': 6.0}),
}

PREDICTION_COLUMNS = ['user_id', 'install_time', 'predicted', 'actual']


@dataclass
class TrainerParams:
    """Hyperparameters for every model kind."""
    gbt_trees: int = 80
    gbt_learning_rate: float = 0.08
    gbt_max_depth: int = 4
    gbt_min_leaf: int = 10
    gbt_bag_fraction: float = 0.8

    rf_trees: int = 50
    rf_max_depth: int = 5
    rf_min_leaf: int = 5

    linear_epochs: int = 200
    linear_learning_rate: float = 0.01
    linear_log_every: int = 2

    max_threshold_candidates: int = 32
    min_gain_fraction: float = 0.005
    train_fraction: float = 0.75


@dataclass
class TrainedModelResult:
    """One training run: protocol, held-out metrics, importances and predictions."""
    run_id: str
    model_type: str
    model_label: str
    target: str
    features: List[str]
    split_strategy: str
    leakage_enabled: bool
    mae: float
    rmse: float
    r2: float
    spearman: float
    calibration_error: float
    train_size: int
    test_size: int
    feature_importance: pd.DataFrame
    shap_values: pd.DataFrame
    training_loss: List[float]
    test_predictions: pd.DataFrame
    all_predictions: pd.DataFrame
    calibration: pd.DataFrame
    lift_curve: pd.DataFrame
    seed: int = 42

    def summary(self) -> Dict:
        """Scalar fields, for reports and JSON export."""
        return {
            'run_id': self.run_id,
            'model_type': self.model_type,
            'model_label': self.model_label,
            'target': self.target,
            'features': list(self.features),
            'split_strategy': self.split_strategy,
            'leakage_enabled': self.leakage_enabled,
            'mae': round(self.mae, 2),
            'rmse': round(self.rmse, 2),
            'r2': round(self.r2, 3),
            'spearman': round(self.spearman, 3),
            'calibration_error': round(self.calibration_error, 2),
            'train_size': self.train_size,
            'test_size': self.test_size,
        }

    def to_dict(self) -> Dict:
        data = self.summary()
        data['feature_importance'] = self.feature_importance.to_dict('records')
        data['shap_values'] = self.shap_values.to_dict('records')
        data['training_loss'] = [round(v, 4) for v in self.training_loss]
        data['calibration'] = self.calibration.to_dict('records')
        data['lift_curve'] = self.lift_curve.to_dict('records')
        return data


# ---------------------------------------------------------------------------
# Split and matrix extraction
# ---------------------------------------------------------------------------

def split_matrix(matrix: pd.DataFrame, strategy: str, rng: SeededRandom,
                 train_fraction: float = 0.75) -> Tuple[pd.DataFrame, int]:
    """Order rows for splitting and return (ordered, split index).

    ``time`` sorts by install time (stable, unparseable times last) so the
    test set is the latest cohort; ``random`` applies a seeded Fisher-Yates
    shuffle.
    """
    if strategy == 'time':
        times = pd.to_datetime(matrix['install_time'], utc=True, errors='coerce')
        keys = times.map(lambda t: t.value if not pd.isna(t) else np.iinfo(np.int64).max)
        order = np.argsort(keys.to_numpy(dtype=np.int64), kind='stable')
    elif strategy == 'random':
        order = rng.shuffle(list(range(len(matrix))))
    else:
        raise ValueError(f"Unknown split strategy: {strategy}. Available: {', '.join(SPLIT_STRATEGIES)}")

    ordered = matrix.iloc[order].reset_index(drop=True)
    return ordered, math.floor(len(ordered) * train_fraction)


def _numeric(frame: pd.DataFrame, columns: List[str]) -> np.ndarray:
    if not columns:
        return np.zeros((len(frame), 0))
    return frame[columns].apply(pd.to_numeric, errors='coerce').fillna(0).to_numpy(dtype=float)


def _check_columns(matrix: pd.DataFrame, required: List[str]):
    missing = [c for c in required if c not in matrix.columns]
    if missing:
        raise MalformedInputError('feature_matrix', missing)


def _inverse_log(raw: np.ndarray) -> np.ndarray:
    return np.expm1(np.maximum(raw, 0))


# ---------------------------------------------------------------------------
# Learners
# ---------------------------------------------------------------------------

def _train_gbt(X: np.ndarray, y: np.ndarray, params: TrainerParams, rng: SeededRandom,
               feature_gain: np.ndarray, should_cancel=None) -> Tuple[List[Node], List[float]]:
    n, n_features = X.shape
    residuals = y.copy()
    predictions = np.zeros(n)
    trees: List[Node] = []
    losses: List[float] = []
    tree_params = TreeParams(params.gbt_max_depth, params.gbt_min_leaf,
                             params.max_threshold_candidates, params.min_gain_fraction)
    n_cols = min(n_features, max(2, math.ceil(math.sqrt(n_features))))
    bag_size = math.floor(n * params.gbt_bag_fraction)

    for t in range(params.gbt_trees):
        if should_cancel is not None and should_cancel():
            raise OperationCancelled('gbt training', t)

        bag = np.array([math.floor(rng.next() * n) for _ in range(bag_size)], dtype=int)
        columns = rng.shuffle(list(range(n_features)))[:n_cols]

        tree = scale_tree(build_tree(X, residuals, bag, tree_params, feature_gain, columns),
                          params.gbt_learning_rate)
        trees.append(tree)

        step = predict_tree(tree, X)
        residuals -= step
        predictions += step
        losses.append(float(np.mean((predictions - y) ** 2)))
        logger.debug("GBT tree %d/%d: loss %.4f", t + 1, params.gbt_trees, losses[-1])

    return trees, losses


def _train_rf(X: np.ndarray, y: np.ndarray, params: TrainerParams, rng: SeededRandom,
              feature_gain: np.ndarray, should_cancel=None) -> Tuple[List[Node], List[float]]:
    n = len(X)
    trees: List[Node] = []
    losses: List[float] = []
    tree_params = TreeParams(params.rf_max_depth, params.rf_min_leaf,
                             params.max_threshold_candidates, params.min_gain_fraction)
    cumulative = np.zeros(n)

    for t in range(params.rf_trees):
        if should_cancel is not None and should_cancel():
            raise OperationCancelled('rf training', t)

        bag = np.array([math.floor(rng.next() * n) for _ in range(n)], dtype=int)
        tree = build_tree(X, y, bag, tree_params, feature_gain)
        trees.append(tree)

        # Convergence diagnostic: MSE of the running ensemble average
        cumulative += predict_tree(tree, X)
        losses.append(float(np.mean((cumulative / (t + 1) - y) ** 2)))

    return trees, losses


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _prediction_frame(rows: pd.DataFrame, predicted: np.ndarray, actual: np.ndarray) -> pd.DataFrame:
    return pd.DataFrame({
        'user_id': rows['user_id'].to_numpy(),
        'install_time': rows['install_time'].to_numpy(),
        'predicted': predicted,
        'actual': actual,
    }, columns=PREDICTION_COLUMNS)


def _importance_frame(features: List[str], feature_gain: np.ndarray) -> pd.DataFrame:
    gain = np.abs(np.asarray(feature_gain, dtype=float))
    total = gain.sum() or 1
    frame = pd.DataFrame({'feature': features, 'importance': gain / total})
    return frame.sort_values('importance', ascending=False, kind='stable').reset_index(drop=True)


def _shap_frame(importance: pd.DataFrame, test_rows: pd.DataFrame,
                test_actual: np.ndarray) -> pd.DataFrame:
    """SHAP-like direction table: importance magnitude with the sign of the
    feature's Pearson correlation with the held-out target.

    Not Shapley values; a cheap approximation for display only.
    """
    rows = []
    for _, fi in importance.head(10).iterrows():
        values = _numeric(test_rows, [fi['feature']])[:, 0] if len(test_rows) else np.zeros(0)
        corr = pearson_correlation(values, test_actual)
        if corr > 0.1:
            direction = 'positive'
        elif corr < -0.1:
            direction = 'negative'
        else:
            direction = 'mixed'
        rows.append({'feature': fi['feature'], 'mean_abs_shap': fi['importance'], 'direction': direction})
    return pd.DataFrame(rows, columns=['feature', 'mean_abs_shap', 'direction'])


def _evaluate(run_id: str, model_type: str, model_label: str, target: str, features: List[str],
              split_strategy: str, leakage_enabled: bool, ordered: pd.DataFrame, split_idx: int,
              all_preds: np.ndarray, importance: pd.DataFrame, shap: pd.DataFrame,
              training_loss: List[float], seed: int) -> TrainedModelResult:
    target_col = TARGET_COLUMNS[target]
    actual_all = _numeric(ordered, [target_col])[:, 0]
    test_rows = ordered.iloc[split_idx:]
    test_pred, test_actual = all_preds[split_idx:], actual_all[split_idx:]

    if len(test_rows) == 0:
        logger.warning("Empty test partition (%d rows); metrics default to 0", len(ordered))

    metrics = regression_metrics(test_actual, test_pred)
    calibration = calibration_table(test_actual, test_pred)

    return TrainedModelResult(
        run_id=run_id,
        model_type=model_type,
        model_label=model_label,
        target=target,
        features=list(features),
        split_strategy=split_strategy,
        leakage_enabled=leakage_enabled,
        mae=metrics['mae'],
        rmse=metrics['rmse'],
        r2=metrics['r2'],
        spearman=metrics['spearman'],
        calibration_error=calibration_error(calibration),
        train_size=split_idx,
        test_size=len(test_rows),
        feature_importance=importance,
        shap_values=shap if shap is not None else _shap_frame(importance, test_rows, test_actual),
        training_loss=training_loss,
        test_predictions=_prediction_frame(test_rows, test_pred, test_actual),
        all_predictions=_prediction_frame(ordered, all_preds, actual_all),
        calibration=calibration,
        lift_curve=lift_curve(test_actual, test_pred),
        seed=seed,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def train_model(matrix: pd.DataFrame, features: List[str], target: str = 'ltv90',
                model_type: str = 'gbt', split_strategy: str = 'random',
                leakage_enabled: bool = False, seed: int = 42,
                params: Optional[TrainerParams] = None,
                should_cancel: Optional[Callable[[], bool]] = None) -> TrainedModelResult:
    """Train ``model_type`` on ``matrix[features]`` and evaluate on the held-out split.

    Tree and linear models fit ``log1p(target)`` and predict
    ``expm1(max(raw, 0))``. The dummy baseline predicts
    ``payment_sum_7d * 3.5 + (5 if payer_flag > 0 else 0)`` without fitting.
    Metrics, calibration and lift come from the test partition only.
    """
    if model_type not in MODEL_KINDS:
        raise ValueError(f"Unknown model type: {model_type}. Available: {', '.join(MODEL_KINDS)}")
    if target not in TARGET_COLUMNS:
        raise ValueError(f"Unknown target: {target}. Available: {', '.join(TARGET_COLUMNS)}")
    params = params or TrainerParams()
    _check_columns(matrix, ['user_id', 'install_time', TARGET_COLUMNS[target]] + list(features))

    rng = SeededRandom(seed)
    ordered, split_idx = split_matrix(matrix, split_strategy, rng, params.train_fraction)

    X_all = _numeric(ordered, list(features))
    raw_target = _numeric(ordered, [TARGET_COLUMNS[target]])[:, 0]
    X_train = X_all[:split_idx]
    y_train = np.log1p(raw_target[:split_idx]) if model_type != 'dummy' else raw_target[:split_idx]

    feature_gain = np.zeros(len(features))
    training_loss: List[float] = []

    if model_type != 'dummy' and (split_idx == 0 or not features):
        logger.warning("Nothing to fit (%d train rows, %d features); predicting 0",
                       split_idx, len(features))
        all_preds = np.zeros(len(ordered))
    elif model_type == 'gbt':
        trees, training_loss = _train_gbt(X_train, y_train, params, rng, feature_gain, should_cancel)
        raw = np.zeros(len(ordered))
        for tree in trees:
            raw += predict_tree(tree, X_all)
        all_preds = _inverse_log(raw)
    elif model_type == 'rf':
        trees, training_loss = _train_rf(X_train, y_train, params, rng, feature_gain, should_cancel)
        raw = np.zeros(len(ordered))
        for tree in trees:
            raw += predict_tree(tree, X_all)
        all_preds = _inverse_log(raw / len(trees)) if trees else np.zeros(len(ordered))
    elif model_type == 'linear':
        model = fit_linear(X_train, y_train, params.linear_epochs, params.linear_learning_rate,
                           params.linear_log_every, should_cancel)
        feature_gain = np.abs(model.weights)
        training_loss = model.losses
        all_preds = _inverse_log(model.predict(X_all))
    else:
        all_preds = _dummy_predictions(ordered, list(features), feature_gain)
        training_loss = [5.0, 5.0, 5.0]

    importance = _importance_frame(list(features), feature_gain)
    result = _evaluate(
        run_id=f"sim_{model_type}_{target}_{split_strategy}_s{seed}",
        model_type=model_type,
        model_label=MODEL_LABELS[model_type],
        target=target,
        features=list(features),
        split_strategy=split_strategy,
        leakage_enabled=leakage_enabled,
        ordered=ordered,
        split_idx=split_idx,
        all_preds=all_preds,
        importance=importance,
        shap=None,
        training_loss=training_loss,
        seed=seed,
    )

    logger.info("Trained %s on %s (%s split): MAE %.2f, R2 %.3f, Spearman %.3f",
                model_type, target, split_strategy, result.mae, result.r2, result.spearman)
    return result


def _dummy_predictions(ordered: pd.DataFrame, features: List[str],
                       feature_gain: np.ndarray) -> np.ndarray:
    """``payment_sum_7d * 3.5 + 5 * [payer_flag > 0]`` read straight from the matrix."""
    n = len(ordered)
    if 'payment_sum_7d' in ordered.columns:
        ltv7 = _numeric(ordered, ['payment_sum_7d'])[:, 0]
    else:
        logger.warning("Dummy baseline: no payment_sum_7d column, using 0")
        ltv7 = np.zeros(n)
    if 'payer_flag' in ordered.columns:
        payer = _numeric(ordered, ['payer_flag'])[:, 0]
    else:
        logger.warning("Dummy baseline: no payer_flag column, using 0")
        payer = np.zeros(n)

    if 'payment_sum_7d' in features:
        feature_gain[features.index('payment_sum_7d')] = 1.0
    if 'payer_flag' in features:
        feature_gain[features.index('payer_flag')] = 0.5
    return ltv7 * 3.5 + np.where(payer > 0, 5.0, 0.0)


def generate_baseline_model(matrix: pd.DataFrame, baseline_type: str = 'ltv7d',
                            target: str = 'ltv90', split_strategy: str = 'random',
                            seed: int = 42, params: Optional[TrainerParams] = None
                            ) -> TrainedModelResult:
    """Early-revenue multiplier baseline evaluated on the same split protocol.

    ``ltv3d`` scales D3 revenue by 5.0 (ltv30) or 12.0 (ltv90); ``ltv7d``
    scales D7 revenue by 2.5 or 6.0.
    """
    if baseline_type not in BASELINE_RULES:
        raise ValueError(f"Unknown baseline: {baseline_type}. Available: {', '.join(BASELINE_RULES)}")
    if target not in TARGET_COLUMNS:
        raise ValueError(f"Unknown target: {target}. Available: {', '.join(TARGET_COLUMNS)}")
    params = params or TrainerParams()
    feature_col, multipliers = BASELINE_RULES[baseline_type]
    _check_columns(matrix, ['user_id', 'install_time', TARGET_COLUMNS[target]])

    rng = SeededRandom(seed)
    ordered, split_idx = split_matrix(matrix, split_strategy, rng, params.train_fraction)

    if feature_col in ordered.columns:
        early = _numeric(ordered, [feature_col])[:, 0]
    else:
        logger.warning("Baseline %s: no %s column, using 0", baseline_type, feature_col)
        early = np.zeros(len(ordered))
    all_preds = np.maximum(0, early * multipliers[target])

    actual = _numeric(ordered, [TARGET_COLUMNS[target]])[:, 0]
    test_err = all_preds[split_idx:] - actual[split_idx:]
    test_mse = float(np.mean(test_err ** 2)) if len(test_err) else 0.0

    return _evaluate(
        run_id=f"baseline_{baseline_type}_{target}_{split_strategy}_s{seed}",
        model_type='dummy',
        model_label=f"Baseline ({baseline_type.upper()})",
        target=target,
        features=[feature_col],
        split_strategy=split_strategy,
        leakage_enabled=False,
        ordered=ordered,
        split_idx=split_idx,
        all_preds=all_preds,
        importance=pd.DataFrame({'feature': [feature_col], 'importance': [1.0]}),
        shap=pd.DataFrame(columns=['feature', 'mean_abs_shap', 'direction']),
        training_loss=[test_mse],
        seed=seed,
    )

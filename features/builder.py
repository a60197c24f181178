"""
Feature Matrix Builder

Turns raw player/event/payment/label tables into one training row per labeled
user: selected template x window aggregates plus the two regression targets.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from analysis.metrics import pearson_correlation
from features.templates import FEATURE_TEMPLATES, DEFAULT_TEMPLATES, DEFAULT_WINDOWS
from simulation.schema import PlayerRow, EventRow, PaymentRow, LabelRow

logger = logging.getLogger(__name__)

BASE_COLUMNS = ['user_id', 'install_time', 'install_date', 'target_ltv30', 'target_ltv90']
UNPARSEABLE_DAYS = 999.0
OBSERVATION_DAYS = 7

DEVICE_TIER_ORDINAL = {'high': 2, 'mid': 1}
EVENT_COUNT_TEMPLATES = {
    'quest_complete_count': 'quest_complete',
    'dungeon_clear_count': 'dungeon_clear',
    'chat_count': 'chat_message',
    'guild_activity_count': 'guild_activity',
}


@dataclass
class FeatureBuildConfig:
    """Which templates and windows to materialize."""
    selected_templates: List[str] = field(default_factory=lambda: list(DEFAULT_TEMPLATES))
    selected_windows: List[int] = field(default_factory=lambda: list(DEFAULT_WINDOWS))
    include_leakage_feature: bool = False
    use_events: bool = True
    use_payments: bool = True

    def includes(self, template_id: str) -> bool:
        return template_id in self.selected_templates


def _epoch_seconds(ts: str, cache: Optional[Dict[str, Optional[float]]] = None) -> Optional[float]:
    if cache is not None and ts in cache:
        return cache[ts]
    try:
        seconds = datetime.fromisoformat(ts.replace('Z', '+00:00')).timestamp()
    except (AttributeError, ValueError):
        seconds = None
    if cache is not None:
        cache[ts] = seconds
    return seconds


def days_between(later: str, earlier: str, cache: Optional[Dict[str, Optional[float]]] = None) -> float:
    """Fractional days from ``earlier`` to ``later``; 999 if either is unparseable.

    ``cache`` memoizes parsed timestamps for the lifetime of one build.
    """
    a, b = _epoch_seconds(later, cache), _epoch_seconds(earlier, cache)
    if a is None or b is None:
        return UNPARSEABLE_DAYS
    return (a - b) / 86400


def feature_columns(config: FeatureBuildConfig) -> List[str]:
    """Feature column names produced for ``config``, in matrix order."""
    windows = sorted(config.selected_windows)
    columns = []
    for d in windows:
        for t in FEATURE_TEMPLATES:
            if t.requires_window and config.includes(t.id):
                columns.append(f"{t.id}_{d}d")
    for t in FEATURE_TEMPLATES:
        if t.requires_window:
            continue
        if config.includes(t.id) or (t.id == 'future_payment_d8_30' and config.include_leakage_feature):
            columns.extend(t.column_names(windows))
    return columns


def _window_features(row: Dict, d: int, w_events: List[EventRow], w_pays: List[PaymentRow],
                     config: FeatureBuildConfig):
    if config.includes('session_count'):
        row[f'session_count_{d}d'] = len({e.session_id for e in w_events
                                         if e.event_name == 'session_start'})
    if config.includes('active_days'):
        row[f'active_days_{d}d'] = len({e.event_time.split('T')[0] for e in w_events})
    if config.includes('payment_sum'):
        row[f'payment_sum_{d}d'] = round(sum(p.amount_usd for p in w_pays), 2)
    if config.includes('payment_count'):
        row[f'payment_count_{d}d'] = len(w_pays)
    if config.includes('battle_win_rate'):
        battles = [e for e in w_events if e.event_name == 'pvp_match']
        wins = sum(1 for e in battles if e.params_dict.get('result') == 'win')
        row[f'battle_win_rate_{d}d'] = round(wins / len(battles), 3) if battles else 0
    for template_id, event_name in EVENT_COUNT_TEMPLATES.items():
        if config.includes(template_id):
            row[f'{template_id}_{d}d'] = sum(1 for e in w_events if e.event_name == event_name)


def build_feature_matrix(players: List[PlayerRow], events: List[EventRow],
                         payments: List[PaymentRow], labels: List[LabelRow],
                         config: Optional[FeatureBuildConfig] = None) -> pd.DataFrame:
    """Build the feature matrix, one row per labeled user that joins to a player."""
    config = config or FeatureBuildConfig()
    player_by_user = {p.game_user_id: p for p in players}

    events_by_user: Dict[str, List[EventRow]] = {}
    if config.use_events:
        for e in events:
            events_by_user.setdefault(e.game_user_id, []).append(e)

    pays_by_user: Dict[str, List[PaymentRow]] = {}
    if config.use_payments:
        for p in payments:
            pays_by_user.setdefault(p.game_user_id, []).append(p)

    # One row per user: a repeated label replaces the earlier one in place
    label_by_user: Dict[str, LabelRow] = {}
    for label in labels:
        label_by_user[label.game_user_id] = label
    if len(label_by_user) < len(labels):
        logger.warning("Collapsed %d duplicate label row(s)", len(labels) - len(label_by_user))

    windows = sorted(config.selected_windows)
    parsed: Dict[str, Optional[float]] = {}
    rows = []
    skipped = 0

    for label in label_by_user.values():
        player = player_by_user.get(label.game_user_id)
        if player is None:
            skipped += 1
            continue
        install_ts = player.install_time

        row = {
            'user_id': label.game_user_id,
            'install_time': install_ts,
            'install_date': label.install_date,
            'target_ltv30': label.ltv_d30 or 0,
            'target_ltv90': label.ltv_d90 or 0,
        }

        user_events = [(days_between(e.event_time, install_ts, parsed), e)
                       for e in events_by_user.get(label.game_user_id, [])]
        user_pays = [(days_between(p.txn_time, install_ts, parsed), p)
                     for p in pays_by_user.get(label.game_user_id, []) if not p.is_refund]

        for d in windows:
            w_events = [e for dd, e in user_events if 0 <= dd <= d]
            w_pays = [p for dd, p in user_pays if 0 <= dd <= d]
            _window_features(row, d, w_events, w_pays, config)

        if config.includes('last_login_gap'):
            d7_days = [dd for dd, _ in user_events if 0 <= dd <= OBSERVATION_DAYS]
            if d7_days:
                row['last_login_gap'] = max(0, round(OBSERVATION_DAYS - max(max(d7_days), 0), 2))
            else:
                row['last_login_gap'] = OBSERVATION_DAYS
        if config.includes('payer_flag'):
            row['payer_flag'] = label.is_payer_by_d7
        if config.includes('first_purchase_hours'):
            # D7 purchases only so the feature never looks past the observation window
            d7_pays = [dd for dd, _ in user_pays if 0 <= dd <= OBSERVATION_DAYS]
            row['first_purchase_hours'] = max(0, round(min(d7_pays) * 24, 1)) if d7_pays else -1
        if config.includes('max_level'):
            row['max_level'] = label.max_level_w7d
        if config.includes('ua_cost'):
            row['ua_cost'] = label.ua_cost
        if config.includes('device_tier'):
            row['device_tier_num'] = DEVICE_TIER_ORDINAL.get(player.device_tier, 0)
        if config.includes('os_flag'):
            row['os_flag'] = 1 if player.os == 'ios' else 0

        if config.includes('future_payment_d8_30') or config.include_leakage_feature:
            row['future_payment_d8_30'] = round(
                sum(p.amount_usd for dd, p in user_pays if OBSERVATION_DAYS < dd <= 30), 2)
        if config.includes('ltv_d30_raw'):
            row['ltv_d30_raw'] = label.ltv_d30

        rows.append(row)

    if skipped:
        logger.warning("Skipped %d label row(s) with no matching player", skipped)

    columns = BASE_COLUMNS + feature_columns(config)
    matrix = pd.DataFrame(rows, columns=columns)
    logger.info("Built feature matrix: %d rows x %d features", len(matrix), len(columns) - len(BASE_COLUMNS))
    return matrix


# ---------------------------------------------------------------------------
# Matrix exploration helpers
# ---------------------------------------------------------------------------

def numeric_feature_columns(matrix: pd.DataFrame) -> List[str]:
    """Numeric columns excluding identifiers and targets."""
    return [c for c in matrix.columns
            if c not in BASE_COLUMNS and pd.api.types.is_numeric_dtype(matrix[c])]


def correlation_matrix(matrix: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Pairwise Pearson correlations (rounded to 3 decimals), 0 for constant columns."""
    vectors = {c: matrix[c].fillna(0).astype(float).to_numpy() for c in columns}
    data = [[round(pearson_correlation(vectors[a], vectors[b]), 3) for b in columns] for a in columns]
    return pd.DataFrame(data, index=columns, columns=columns)


def feature_distribution(matrix: pd.DataFrame, column: str, buckets: int = 20) -> pd.DataFrame:
    """Equal-width histogram of one column with bucket lower-bound labels."""
    values = matrix[column].fillna(0).astype(float)
    values = values[np.isfinite(values)].to_numpy()
    if len(values) == 0:
        return pd.DataFrame(columns=['label', 'count'])

    low, high = values.min(), values.max()
    if low == high:
        return pd.DataFrame([{'label': str(low), 'count': len(values)}])

    step = (high - low) / buckets
    idx = np.minimum(np.floor((values - low) / step).astype(int), buckets - 1)
    counts = np.bincount(idx, minlength=buckets)
    return pd.DataFrame({
        'label': [f"{low + i * step:.1f}" for i in range(buckets)],
        'count': counts,
    })


def correlation_report(matrix: pd.DataFrame, config=None) -> Dict:
    """Per-feature target correlations and payer / non-payer separation.

    Payers are rows with ``target_ltv30 > 0``. ``separation_ratio`` is the
    payer mean over the non-payer mean; it is None when the non-payer mean is
    0 while the payer mean is positive, and 1 when both are 0.
    """
    config_dict = config.to_dict() if config is not None else None
    if matrix.empty:
        return {
            'dataset_rows': 0,
            'payer_count': 0,
            'payer_rate_pct': 0.0,
            'target_corr_ltv7_vs_ltv30': 0.0,
            'synth_config': config_dict,
            'features': pd.DataFrame(columns=['feature', 'corr_ltv_d30', 'corr_ltv_d90',
                                              'mean_payer', 'mean_nonpayer', 'separation_ratio']),
        }

    n = len(matrix)
    ltv30 = matrix['target_ltv30'].astype(float).to_numpy()
    ltv90 = matrix['target_ltv90'].astype(float).to_numpy()
    payer = ltv30 > 0

    ltv7_proxy = (matrix['payment_sum_7d'].astype(float).to_numpy()
                  if 'payment_sum_7d' in matrix.columns else np.zeros(n))

    entries = []
    for col in numeric_feature_columns(matrix):
        vals = matrix[col].fillna(0).astype(float).to_numpy()
        mean_payer = float(vals[payer].mean()) if payer.any() else 0.0
        mean_nonpayer = float(vals[~payer].mean()) if (~payer).any() else 0.0
        if mean_nonpayer != 0:
            separation = round(mean_payer / mean_nonpayer, 2)
        else:
            separation = None if mean_payer > 0 else 1.0
        entries.append({
            'feature': col,
            'corr_ltv_d30': round(pearson_correlation(vals, ltv30), 4),
            'corr_ltv_d90': round(pearson_correlation(vals, ltv90), 4),
            'mean_payer': round(mean_payer, 2),
            'mean_nonpayer': round(mean_nonpayer, 2),
            'separation_ratio': separation,
        })

    features = pd.DataFrame(entries, columns=['feature', 'corr_ltv_d30', 'corr_ltv_d90',
                                              'mean_payer', 'mean_nonpayer', 'separation_ratio'])
    if not features.empty:
        features = features.reindex(
            features['corr_ltv_d30'].abs().sort_values(ascending=False, kind='stable').index
        ).reset_index(drop=True)

    return {
        'dataset_rows': n,
        'payer_count': int(payer.sum()),
        'payer_rate_pct': round(payer.sum() / n * 100, 2),
        'target_corr_ltv7_vs_ltv30': round(pearson_correlation(ltv7_proxy, ltv30), 4),
        'synth_config': config_dict,
        'features': features,
    }

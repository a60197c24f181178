"""Row types for the five raw tables and their wire column orders."""

from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd


PLAYER_COLUMNS = [
    'game_user_id', 'install_id', 'install_time', 'campaign_id', 'adset_id',
    'creative_id', 'channel', 'country', 'os', 'device_model', 'device_tier',
    'consent_tracking', 'consent_marketing',
]
EVENT_COLUMNS = ['game_user_id', 'event_time', 'event_name', 'session_id', 'params']
PAYMENT_COLUMNS = [
    'game_user_id', 'txn_time', 'amount_usd', 'product_sku', 'payment_channel', 'is_refund',
]
UA_COST_COLUMNS = ['campaign_id', 'date', 'spend', 'impressions', 'clicks', 'installs']
LABEL_COLUMNS = [
    'game_user_id', 'install_date', 'ua_cost', 'ltv_d3', 'ltv_d7', 'ltv_d30', 'ltv_d90',
    'is_payer_by_d3', 'is_payer_by_d7', 'is_payer_by_d30', 'is_payer_by_d90',
    'profit_d90', 'late_monetizer_flag', 'false_early_payer_flag',
    'active_days_w7d', 'sessions_cnt_w7d', 'max_level_w7d',
]

TABLE_COLUMNS = {
    'players': PLAYER_COLUMNS,
    'events': EVENT_COLUMNS,
    'payments': PAYMENT_COLUMNS,
    'ua_costs': UA_COST_COLUMNS,
    'labels': LABEL_COLUMNS,
}

# Columns a parsed table cannot do without
REQUIRED_COLUMNS = {
    'players': ['game_user_id', 'install_time'],
    'events': ['game_user_id', 'event_time', 'event_name'],
    'payments': ['game_user_id', 'txn_time', 'amount_usd'],
    'ua_costs': ['campaign_id', 'date', 'spend'],
    'labels': ['game_user_id', 'ltv_d30', 'ltv_d90'],
}


def parse_event_params(raw: str) -> Dict[str, str]:
    """Parse the ``key=value;key=value`` event parameter micro-format."""
    out = {}
    if not raw:
        return out
    for part in raw.split(';'):
        key, sep, value = part.partition('=')
        if sep and key.strip():
            out[key.strip()] = value.strip()
    return out


@dataclass
class PlayerRow:
    game_user_id: str
    install_id: str
    install_time: str
    campaign_id: str
    adset_id: str
    creative_id: str
    channel: str
    country: str
    os: str
    device_model: str
    device_tier: str
    consent_tracking: bool
    consent_marketing: bool


@dataclass
class EventRow:
    game_user_id: str
    event_time: str
    event_name: str
    session_id: str
    params: str = ''
    params_dict: Dict[str, str] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.params_dict is None:
            self.params_dict = parse_event_params(self.params)


@dataclass
class PaymentRow:
    game_user_id: str
    txn_time: str
    amount_usd: float
    product_sku: str
    payment_channel: str
    is_refund: bool


@dataclass
class UACostRow:
    campaign_id: str
    date: str
    spend: float
    impressions: int
    clicks: int
    installs: int


@dataclass
class LabelRow:
    game_user_id: str
    install_date: str
    ua_cost: float
    ltv_d3: float
    ltv_d7: float
    ltv_d30: float
    ltv_d90: float
    is_payer_by_d3: int
    is_payer_by_d7: int
    is_payer_by_d30: int
    is_payer_by_d90: int
    profit_d90: float
    late_monetizer_flag: int
    false_early_payer_flag: int
    active_days_w7d: int
    sessions_cnt_w7d: int
    max_level_w7d: int


def rows_to_frame(rows: List, columns: List[str]) -> pd.DataFrame:
    """Convert a list of row dataclasses into a DataFrame in wire column order."""
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([{c: getattr(r, c) for c in columns} for r in rows], columns=columns)

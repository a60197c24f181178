"""
Feature template registry.

A template is either windowed (one column per selected day-window, named
``<template>_<d>d``) or computed once per user. Templates carrying a
``leakage_risk`` read data from after the observation window and exist only
to demonstrate how leakage distorts model quality.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FeatureTemplate:
    """One selectable feature definition."""
    id: str
    description: str
    category: str  # session | monetization | engagement | progression | ua
    requires_window: bool
    leakage_risk: Optional[str] = None

    @property
    def is_leaky(self) -> bool:
        return self.leakage_risk is not None

    def column_names(self, windows: List[int]) -> List[str]:
        """Matrix column(s) this template produces for the given windows."""
        if self.requires_window:
            return [f"{self.id}_{d}d" for d in sorted(windows)]
        if self.id == 'device_tier':
            return ['device_tier_num']
        return [self.id]


FEATURE_TEMPLATES: List[FeatureTemplate] = [
    # Windowed
    FeatureTemplate('session_count', 'Number of sessions within window', 'session', True),
    FeatureTemplate('active_days', 'Distinct active days within window', 'session', True),
    FeatureTemplate('payment_sum', 'Total payment amount within window', 'monetization', True),
    FeatureTemplate('payment_count', 'Number of payments within window', 'monetization', True),
    FeatureTemplate('battle_win_rate', 'PvP win ratio within window', 'engagement', True),
    FeatureTemplate('quest_complete_count', 'Quest completions within window', 'progression', True),
    FeatureTemplate('dungeon_clear_count', 'Dungeon clears within window', 'progression', True),
    FeatureTemplate('chat_count', 'Chat messages sent within window', 'engagement', True),
    FeatureTemplate('guild_activity_count', 'Guild activities within window', 'engagement', True),

    # Per user
    FeatureTemplate('last_login_gap', 'Days between D7 and last login', 'session', False),
    FeatureTemplate('payer_flag', 'Paid at least once by D7', 'monetization', False),
    FeatureTemplate('first_purchase_hours', 'Hours from install to first purchase', 'monetization', False),
    FeatureTemplate('max_level', 'Max level reached by D7', 'progression', False),
    FeatureTemplate('ua_cost', 'UA acquisition cost for this user', 'ua', False),
    FeatureTemplate('device_tier', 'Device tier (0=low, 1=mid, 2=high)', 'ua', False),
    FeatureTemplate('os_flag', 'iOS=1, Android=0', 'ua', False),

    # Leakage
    FeatureTemplate('future_payment_d8_30', 'LEAKAGE: Payments from D8-D30', 'monetization', False,
                    leakage_risk='Uses future data beyond observation window'),
    FeatureTemplate('ltv_d30_raw', 'LEAKAGE: Raw LTV D30 from labels', 'monetization', False,
                    leakage_risk='Directly includes target-correlated future info'),
]

TEMPLATES_BY_ID: Dict[str, FeatureTemplate] = {t.id: t for t in FEATURE_TEMPLATES}

DEFAULT_TEMPLATES = ['session_count', 'payment_sum', 'payer_flag', 'ua_cost',
                     'first_purchase_hours', 'last_login_gap']
DEFAULT_WINDOWS = [3, 7]


def get_template(template_id: str) -> FeatureTemplate:
    if template_id not in TEMPLATES_BY_ID:
        raise ValueError(f"Unknown feature template: {template_id}. "
                         f"Available: {', '.join(TEMPLATES_BY_ID)}")
    return TEMPLATES_BY_ID[template_id]


def leakage_templates() -> List[FeatureTemplate]:
    return [t for t in FEATURE_TEMPLATES if t.is_leaky]


def templates_by_category() -> Dict[str, List[FeatureTemplate]]:
    grouped: Dict[str, List[FeatureTemplate]] = {}
    for t in FEATURE_TEMPLATES:
        grouped.setdefault(t.category, []).append(t)
    return grouped

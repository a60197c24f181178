"""
Generator configuration for the pLTV synthetic cohort.

Five namespaces (population, monetization, behavioral, noise, simulation)
composed into ``SynthConfig``. Presets are constant instances; ``get_preset``
hands out deep copies so callers can override fields freely.
"""

from copy import deepcopy
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, List

from .errors import InvalidConfigError


COHORT_SKEWS = ('uniform', 'campaign')
REVENUE_DISTRIBUTIONS = ('uniform', 'lognormal', 'pareto')
CORRELATION_LEVELS = ('weak', 'medium', 'strong')

# engagement -> payment coupling strength per named level
CORRELATION_STRENGTH = {'weak': 0.15, 'medium': 0.45, 'strong': 0.75}


@dataclass
class PopulationConfig:
    """Cohort size and acquisition attributes."""
    total_users: int = 2000
    install_window_days: int = 90
    cohort_skew: str = 'campaign'  # 'uniform' | 'campaign'
    pct_returning: float = 0.15  # 0-1
    geo_enabled: bool = True
    device_mix_enabled: bool = True


@dataclass
class MonetizationConfig:
    """Payer rate and revenue-distribution controls."""
    payer_rate: float = 0.08  # 0-1
    revenue_distribution: str = 'lognormal'  # 'uniform' | 'lognormal' | 'pareto'
    whale_top1_share: float = 0.35  # share of revenue from the top 1%
    gini_coefficient: float = 0.75  # 0-1
    heavy_tail_intensity: float = 2.0  # 1-5
    avg_txn_per_payer: float = 5.0
    purchase_decay: float = 0.06  # 0-1, how fast purchase rate drops
    burst_behavior: bool = False
    price_tiers: List[float] = field(
        default_factory=lambda: [0.99, 4.99, 9.99, 19.99, 49.99, 99.99])


@dataclass
class BehavioralConfig:
    """Session, progression and engagement dynamics."""
    session_count_mean: float = 12.0
    level_progression_speed: float = 0.5  # 0-1
    engagement_decay: float = 0.08  # 0-1
    activity_volatility: float = 0.3  # 0-1
    engage_pay_correlation: str = 'medium'  # 'weak' | 'medium' | 'strong'

    @property
    def correlation_strength(self) -> float:
        return CORRELATION_STRENGTH.get(self.engage_pay_correlation, 0.15)


@dataclass
class NoiseConfig:
    """Data-quality injections. All off means clean, conserved labels."""
    label_noise_pct: float = 0.0  # 0-1
    missing_features_pct: float = 0.0  # 0-1
    delayed_revenue: bool = False
    inject_leakage: bool = False
    payer_rate_shift: bool = False  # payer rate drops for late cohorts
    economy_shift: bool = False  # whale concentration drops for late cohorts


@dataclass
class SimulationConfig:
    max_events_per_user: int = 150
    seed: int = 42


@dataclass
class SynthConfig:
    """Complete generator configuration."""
    population: PopulationConfig = field(default_factory=PopulationConfig)
    monetization: MonetizationConfig = field(default_factory=MonetizationConfig)
    behavioral: BehavioralConfig = field(default_factory=BehavioralConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SynthConfig':
        """Build a config from a (possibly partial) nested dict.

        Missing namespaces and fields keep their defaults; unknown keys are
        rejected so typos in JSON config files do not pass silently.
        """
        sections = {
            'population': PopulationConfig,
            'monetization': MonetizationConfig,
            'behavioral': BehavioralConfig,
            'noise': NoiseConfig,
            'simulation': SimulationConfig,
        }
        unknown = [f"{k}" for k in data if k not in sections]
        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name, {}) or {}
            known = {f.name for f in fields(section_cls)}
            unknown.extend(f"{name}.{k}" for k in values if k not in known)
            kwargs[name] = section_cls(**{k: v for k, v in values.items() if k in known})
        if unknown:
            raise InvalidConfigError(unknown, {'reason': 'unknown keys'})
        return cls(**kwargs)

    def validate(self) -> 'SynthConfig':
        """Fail fast on out-of-range values. Returns self for chaining."""
        bad = []
        pop, mon, beh, noise = self.population, self.monetization, self.behavioral, self.noise

        if pop.total_users < 0:
            bad.append('population.total_users')
        if pop.install_window_days < 1:
            bad.append('population.install_window_days')
        if pop.cohort_skew not in COHORT_SKEWS:
            bad.append('population.cohort_skew')
        if not 0 <= pop.pct_returning <= 1:
            bad.append('population.pct_returning')

        if not 0 < mon.payer_rate < 1:
            bad.append('monetization.payer_rate')
        if mon.revenue_distribution not in REVENUE_DISTRIBUTIONS:
            bad.append('monetization.revenue_distribution')
        if not 0 <= mon.gini_coefficient <= 1:
            bad.append('monetization.gini_coefficient')
        if not 0 <= mon.whale_top1_share <= 1:
            bad.append('monetization.whale_top1_share')
        if mon.heavy_tail_intensity < 0:
            bad.append('monetization.heavy_tail_intensity')
        if mon.avg_txn_per_payer <= 0:
            bad.append('monetization.avg_txn_per_payer')
        if not 0 <= mon.purchase_decay <= 1:
            bad.append('monetization.purchase_decay')
        if not mon.price_tiers or any(p <= 0 for p in mon.price_tiers):
            bad.append('monetization.price_tiers')

        if beh.session_count_mean <= 0:
            bad.append('behavioral.session_count_mean')
        for name in ('level_progression_speed', 'engagement_decay', 'activity_volatility'):
            if not 0 <= getattr(beh, name) <= 1:
                bad.append(f'behavioral.{name}')
        if beh.engage_pay_correlation not in CORRELATION_LEVELS:
            bad.append('behavioral.engage_pay_correlation')

        if not 0 <= noise.label_noise_pct <= 1:
            bad.append('noise.label_noise_pct')
        if not 0 <= noise.missing_features_pct <= 1:
            bad.append('noise.missing_features_pct')

        if self.simulation.seed < 0:
            bad.append('simulation.seed')
        if self.simulation.max_events_per_user < 0:
            bad.append('simulation.max_events_per_user')

        if bad:
            raise InvalidConfigError(bad)
        return self


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

PRESETS: Dict[str, Dict[str, Any]] = {
    'balanced': {
        'label': 'Balanced',
        'description': 'Standard mobile game economy with moderate whale concentration',
        'config': SynthConfig(),
    },
    'hyper_casual': {
        'label': 'Hyper Casual Low Monetization',
        'description': 'High volume, low payer rate, very small transactions',
        'config': SynthConfig(
            population=PopulationConfig(total_users=5000, install_window_days=60,
                                        cohort_skew='uniform', pct_returning=0.05,
                                        device_mix_enabled=False),
            monetization=MonetizationConfig(payer_rate=0.02, revenue_distribution='uniform',
                                            whale_top1_share=0.15, gini_coefficient=0.45,
                                            heavy_tail_intensity=1, avg_txn_per_payer=2,
                                            purchase_decay=0.15,
                                            price_tiers=[0.99, 1.99, 2.99, 4.99]),
            behavioral=BehavioralConfig(session_count_mean=6, level_progression_speed=0.8,
                                        engagement_decay=0.20, activity_volatility=0.5,
                                        engage_pay_correlation='weak'),
            noise=NoiseConfig(missing_features_pct=0.02),
            simulation=SimulationConfig(max_events_per_user=80),
        ),
    },
    'whale_mmo': {
        'label': 'Whale Heavy MMO',
        'description': 'Deep spenders dominate revenue with an extreme Pareto tail',
        'config': SynthConfig(
            population=PopulationConfig(install_window_days=120, pct_returning=0.25),
            monetization=MonetizationConfig(payer_rate=0.06, revenue_distribution='pareto',
                                            whale_top1_share=0.55, gini_coefficient=0.90,
                                            heavy_tail_intensity=4, avg_txn_per_payer=10,
                                            purchase_decay=0.03, burst_behavior=True,
                                            price_tiers=[4.99, 9.99, 19.99, 49.99, 99.99]),
            behavioral=BehavioralConfig(session_count_mean=20, level_progression_speed=0.3,
                                        engagement_decay=0.04, activity_volatility=0.2,
                                        engage_pay_correlation='strong'),
            simulation=SimulationConfig(max_events_per_user=200),
        ),
    },
    'midcore': {
        'label': 'Mobile Midcore Realistic',
        'description': 'Midcore RPG with campaign-driven cohorts and moderate whales',
        'config': SynthConfig(
            population=PopulationConfig(install_window_days=122, pct_returning=0.20),
            monetization=MonetizationConfig(payer_rate=0.07, whale_top1_share=0.40,
                                            gini_coefficient=0.82, heavy_tail_intensity=3,
                                            avg_txn_per_payer=6, purchase_decay=0.05,
                                            burst_behavior=True),
            behavioral=BehavioralConfig(session_count_mean=15, level_progression_speed=0.4,
                                        engagement_decay=0.06, activity_volatility=0.25,
                                        engage_pay_correlation='strong'),
            noise=NoiseConfig(label_noise_pct=0.02, missing_features_pct=0.01,
                              delayed_revenue=True),
            simulation=SimulationConfig(max_events_per_user=180),
        ),
    },
}


def get_preset(name: str = 'balanced') -> SynthConfig:
    """Return an independent copy of a named preset config."""
    if name not in PRESETS:
        raise ValueError(f"Unknown preset: {name}. Available: {', '.join(PRESETS)}")
    return deepcopy(PRESETS[name]['config'])


def get_default_config() -> SynthConfig:
    return get_preset('balanced')

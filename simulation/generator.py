"""
pLTV Synthetic Cohort Generator

Simulates a cohort of acquired players and emits five correlated tables:
- players (acquisition / device attributes)
- events (session and gameplay telemetry)
- payments (transactions, including refunds)
- UA costs (daily spend and installs per campaign)
- labels (ground-truth LTV at D3/D7/D30/D90 plus behavioral summaries)

Every draw comes from one ``SeededRandom`` owned by the generation call, so a
fixed config and seed always reproduces identical tables.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import SynthConfig
from .errors import OperationCancelled
from .rng import SeededRandom
from .schema import (
    PlayerRow, EventRow, PaymentRow, UACostRow, LabelRow,
    TABLE_COLUMNS, rows_to_frame,
)

logger = logging.getLogger(__name__)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
BASE_DATE = datetime(2024, 10, 1, tzinfo=timezone.utc)
DAY_MS = 86_400_000
HOUR_MS = 3_600_000
SESSION_LENGTH_MS = 30 * 60_000

CHANNELS = ['meta_ads', 'google_uac', 'tiktok', 'unity_ads', 'organic', 'influencer']
COUNTRIES = ['US', 'KR', 'JP', 'TW', 'TH', 'BR', 'DE', 'RU']
OS_LIST = ['android', 'ios']
DEVICES_ANDROID = ['Samsung Galaxy S24', 'Xiaomi 14', 'OPPO Find X7', 'Pixel 8', 'OnePlus 12']
DEVICES_IOS = ['iPhone 15 Pro', 'iPhone 14', 'iPhone 13', 'iPad Pro 12.9']
DEVICE_TIERS = ['low', 'mid', 'high']
CAMPAIGNS = ['l2m_launch_kr', 'l2m_retarget_us', 'l2m_broad_sea', 'l2m_lookalike_jp',
             'l2m_video_tw', 'l2m_brand_global']
ADSETS = ['high_spender_lal', 'broad_male_25_44', 'rpg_interest', 'mmorpg_gamers',
          'new_installer_ret']
CREATIVES = ['cinematic_trailer', 'gameplay_boss', 'pvp_highlight', 'gacha_reveal',
             'guild_war_cg']
SKU_CATEGORIES = ['monthly_card', 'battle_pass', 'gacha_pack', 'gem_bundle', 'starter_pack',
                  'costume_box']
PAYMENT_CHANNELS = ['google_play', 'app_store', 'paypal', 'carrier_billing']
EVENT_NAMES = ['session_start', 'session_end', 'quest_complete', 'dungeon_clear', 'pvp_match',
               'combat_hit', 'mob_kill', 'item_loot', 'soft_earn', 'soft_spend', 'chat_message',
               'guild_join', 'guild_activity', 'gacha_open', 'shop_view', 'level_up', 'friend_add']
SEMANTIC_EVENTS = EVENT_NAMES[2:]

CHANNEL_SPEND_SHIFT = {'influencer': 0.25, 'meta_ads': 0.15, 'google_uac': -0.05}
COUNTRY_ARPPU_SHIFT = {'KR': 0.35, 'JP': 0.25, 'US': 0.15, 'BR': -0.10, 'TH': -0.05}
DEVICE_SHIFT = {'high': 0.20, 'mid': 0.05}

REFUND_PROBABILITY = 0.01
LEAKAGE_PROBABILITY = 0.3
MAX_TXN_PER_PAYER = 25


@dataclass
class Archetype:
    """Latent behavioral class carrying per-user simulation priors."""
    name: str
    weight: float
    level_range: Tuple[int, int]
    retention_base: float
    retention_decay: float
    spend_prior: float
    engage_prior: float


@dataclass
class SynthOutputStats:
    users: int = 0
    transactions: int = 0
    events: int = 0
    total_revenue: float = 0.0
    payer_rate: float = 0.0
    arpu: float = 0.0
    arppu: float = 0.0
    gini_coefficient: float = 0.0
    players_rows: int = 0
    events_rows: int = 0
    payments_rows: int = 0
    labels_rows: int = 0
    ua_costs_rows: int = 0
    revenue_distribution: List[int] = field(default_factory=lambda: [0] * 10)
    txn_per_payer_distribution: List[int] = field(default_factory=lambda: [0] * 10)
    ltv_distribution: List[int] = field(default_factory=lambda: [0] * 10)


@dataclass
class GenerationResult:
    players: List[PlayerRow]
    events: List[EventRow]
    payments: List[PaymentRow]
    ua_costs: List[UACostRow]
    labels: List[LabelRow]
    stats: SynthOutputStats

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        """All five tables as DataFrames in wire column order."""
        tables = {
            'players': self.players,
            'events': self.events,
            'payments': self.payments,
            'ua_costs': self.ua_costs,
            'labels': self.labels,
        }
        return {name: rows_to_frame(rows, TABLE_COLUMNS[name]) for name, rows in tables.items()}


def clamp(x: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, x))


def round_half_up(x: float) -> int:
    """Nearest integer with .5 rounding toward +inf (``round`` goes to even)."""
    return math.floor(x + 0.5)


def sigmoid(x: float) -> float:
    return 1 / (1 + math.exp(-x))


def format_timestamp(ms: int) -> str:
    """UTC ISO-8601 with second precision, e.g. ``2024-10-01T05:00:00Z``."""
    return (EPOCH + timedelta(milliseconds=ms)).strftime('%Y-%m-%dT%H:%M:%SZ')


def base_epoch_ms() -> int:
    return int((BASE_DATE - EPOCH).total_seconds()) * 1000


def gini_coefficient(values) -> float:
    """Rank-weighted Gini on sorted values; 0 for empty or zero-total input."""
    arr = np.sort(np.asarray(values, dtype=float))
    n = len(arr)
    total = arr.sum() if n else 0.0
    if n == 0 or total <= 0:
        return 0.0
    weights = 2 * np.arange(1, n + 1) - n - 1
    return clamp(float(np.dot(weights, arr)) / (n * total))


def histogram(values, bins: int = 10) -> List[int]:
    """Equal-width histogram over [min, max]; all zeros for empty input."""
    out = [0] * bins
    if len(values) == 0:
        return out
    low, high = min(values), max(values)
    span = (high - low) or 1
    for v in values:
        out[min(bins - 1, math.floor((v - low) / span * bins))] += 1
    return out


def default_archetypes(heavy_tail_intensity: float) -> List[Archetype]:
    """The six latent classes with weights renormalized to sum to 1."""
    archetypes = [
        Archetype('whale', 0.03 * (1 + heavy_tail_intensity * 0.1), (40, 70), 0.95, 0.02, 1.7, 1.2),
        Archetype('dolphin', 0.12, (25, 50), 0.80, 0.05, 0.9, 0.8),
        Archetype('minnow', 0.15, (15, 35), 0.65, 0.08, 0.3, 0.5),
        Archetype('free_engaged', 0.25, (20, 45), 0.70, 0.06, -0.6, 0.9),
        Archetype('free_casual', 0.30, (5, 20), 0.45, 0.12, -1.2, -0.2),
        Archetype('churned', 0.15, (2, 10), 0.20, 0.25, -1.5, -1.0),
    ]
    total = sum(a.weight for a in archetypes)
    for a in archetypes:
        a.weight /= total
    return archetypes


class CohortGenerator:
    """Generates players, events, payments, UA costs and labels for one config."""

    def __init__(self, config: SynthConfig):
        self.config = config
        self.rng = SeededRandom(config.simulation.seed)
        self.base_ms = base_epoch_ms()

        self.correlation_strength = config.behavioral.correlation_strength
        self.archetypes = default_archetypes(config.monetization.heavy_tail_intensity)

        # Pay model weights: weak=0.22, medium=0.35, strong=0.49 on engagement
        self.engage_weight = 0.15 + self.correlation_strength * 0.45
        self.spend_weight = 1 - self.engage_weight
        self.expected_pay_latent = self._expected_pay_latent()

        self.mid_period_day = config.population.install_window_days // 2

    def _expected_pay_latent(self) -> float:
        """Population-mean pay latent estimated from archetype priors.

        Centers the logistic pay model so the average payer probability lands
        near the target rate. Approximate: shift terms and noise are ignored.
        """
        c = self.correlation_strength
        expected = 0.0
        for a in self.archetypes:
            spend_latent = a.spend_prior + c * a.engage_prior * 1.2
            expected += a.weight * (self.spend_weight * spend_latent
                                    + self.engage_weight * a.engage_prior)
        return expected

    def _pick_archetype(self) -> Archetype:
        r = self.rng.next()
        cumulative = 0.0
        for a in self.archetypes:
            cumulative += a.weight
            if r < cumulative:
                return a
        return self.archetypes[4]

    def _sample_revenue(self, spender: float, country: str, heavy_tail: float) -> float:
        mon = self.config.monetization
        tier = self.rng.choice(mon.price_tiers or [0.99])
        mult = 1 + (spender - 0.5) * 0.35 + COUNTRY_ARPPU_SHIFT.get(country, 0) * 0.15

        if mon.revenue_distribution == 'pareto':
            alpha = max(1.1, 5 - heavy_tail)
            amount = tier * mult * self.rng.pareto(alpha, 0.8) * 0.5
        elif mon.revenue_distribution == 'lognormal':
            sigma = 0.3 + mon.gini_coefficient * 0.5
            amount = tier * mult * self.rng.lognormal(0, sigma)
        else:
            amount = tier * mult * (1 + self.rng.normal() * 0.06)
        return max(0.99, round(amount, 2))

    def _install_offset(self) -> int:
        pop = self.config.population
        if pop.cohort_skew == 'campaign':
            # Cluster installs around four evenly spaced campaign launches
            cluster = self.rng.randint(0, 3)
            center = math.floor(pop.install_window_days * (cluster + 0.5) / 4)
            return int(clamp(round_half_up(center + self.rng.normal() * 10), 0, pop.install_window_days - 1))
        return self.rng.randint(0, pop.install_window_days - 1)

    def _simulate_user(self, i: int, out: Dict[str, list]) -> float:
        """Simulate one user, append their rows to ``out`` and return LTV@90."""
        rng = self.rng
        cfg = self.config
        pop, mon, beh, noise = cfg.population, cfg.monetization, cfg.behavioral, cfg.noise
        c = self.correlation_strength

        user_id = f"player_{i + 1:05d}"
        install_offset = self._install_offset()
        install_hour = rng.randint(0, 23)
        install_ms = self.base_ms + install_offset * DAY_MS + install_hour * HOUR_MS
        install_time = format_timestamp(install_ms)
        days_available = min(90, pop.install_window_days - install_offset)

        os_name = rng.choice(OS_LIST)
        device = rng.choice(DEVICES_IOS if os_name == 'ios' else DEVICES_ANDROID)
        channel = rng.choice(CHANNELS)
        country = rng.choice(COUNTRIES) if pop.geo_enabled else 'US'
        device_tier = rng.choice(DEVICE_TIERS) if pop.device_mix_enabled else 'mid'
        consent_tracking = rng.next() > 0.15
        consent_marketing = rng.next() > 0.25
        campaign_id = rng.choice(CAMPAIGNS) if consent_tracking else 'unknown'
        adset_id = rng.choice(ADSETS) if consent_tracking else 'unknown'
        creative_id = rng.choice(CREATIVES) if consent_tracking else 'unknown'

        out['players'].append(PlayerRow(
            game_user_id=user_id,
            install_id=f"i_{rng.randint(100000, 999999)}",
            install_time=install_time,
            campaign_id=campaign_id,
            adset_id=adset_id,
            creative_id=creative_id,
            channel=channel,
            country=country,
            os=os_name,
            device_model=device,
            device_tier=device_tier,
            consent_tracking=consent_tracking,
            consent_marketing=consent_marketing,
        ))

        # Latent scores; engagement feeds the spend latent via correlation strength
        arche = self._pick_archetype()
        engage_latent = arche.engage_prior + rng.normal() * 0.35
        spend_latent = (arche.spend_prior + rng.normal() * 0.45
                        + CHANNEL_SPEND_SHIFT.get(channel, 0.05)
                        + COUNTRY_ARPPU_SHIFT.get(country, 0)
                        + DEVICE_SHIFT.get(device_tier, -0.10)
                        + c * engage_latent * 1.2)
        engagement = clamp(sigmoid(engage_latent))
        spender = clamp(sigmoid(spend_latent))

        # Day-by-day retention; engaged users decay slower
        active_days = []
        streak = 0
        engage_boost = (engagement - 0.5) * c * 0.7
        ret_decay = clamp(arche.retention_decay + beh.engagement_decay * 0.5 - engage_boost, 0.01, 0.5)
        ret_base = clamp(arche.retention_base + engage_boost * 0.5, 0.1, 0.98)
        for day in range(min(30, days_available) + 1):
            base = clamp(ret_base + rng.uniform(-0.05, 0.05), 0.05, 0.99)
            hazard = 1 / (1 + 0.35 * (streak - 1)) if streak >= 2 else 1
            jitter = beh.activity_volatility * rng.normal() * 0.1
            p = clamp(base * math.pow(1 - ret_decay, day) * hazard + jitter, 0.01, 1)
            if rng.next() < p:
                active_days.append(day)
                streak = 0
            else:
                streak += 1

        sessions_per_day = max(1, round_half_up((beh.session_count_mean / 7) * (0.3 + 1.4 * engagement)))
        max_level = rng.randint(*arche.level_range)
        max_level_w7 = min(max_level, round_half_up(max_level * beh.level_progression_speed))
        active_days_w7 = sum(1 for d in active_days if d <= 6)
        sessions_w7 = self._emit_sessions(i, user_id, install_ms, active_days, sessions_per_day,
                                          engagement, max_level, out['events'])

        # Payments: logistic pay model calibrated to the (possibly shifted) target rate
        payer_rate = mon.payer_rate
        heavy_tail = mon.heavy_tail_intensity
        if noise.payer_rate_shift and install_offset >= self.mid_period_day:
            payer_rate *= 0.6
        if noise.economy_shift and install_offset >= self.mid_period_day:
            heavy_tail = max(1, heavy_tail - 1.5)

        pay_latent = self.spend_weight * spend_latent + self.engage_weight * engage_latent
        payer_rate = clamp(payer_rate, 1e-9, 1 - 1e-9)
        intercept = math.log(payer_rate / (1 - payer_rate))
        pay_prob = sigmoid(intercept + 0.8 * (pay_latent - self.expected_pay_latent))
        will_pay = rng.next() < pay_prob

        ltv3 = ltv7 = ltv30 = ltv90 = 0.0
        if will_pay:
            txn_count = min(max(1, round_half_up(mon.avg_txn_per_payer * spender + rng.normal())),
                            MAX_TXN_PER_PAYER)

            # Late monetizers buy only after d7 so early revenue windows miss them;
            # most of those ("deep") wait past d14 as well
            late_prob = c * 0.7 * (0.4 + engagement)
            is_late = rng.next() < late_prob
            is_deep_late = is_late and rng.next() < 0.85
            burst_fraction = 0.6 if mon.burst_behavior else 0.3

            for t in range(txn_count):
                if is_deep_late:
                    day_offset = rng.randint(15, max(15, min(days_available, 60)))
                elif is_late:
                    day_offset = rng.randint(8, 14)
                elif t < txn_count * burst_fraction:
                    day_offset = rng.randint(0, 3)
                else:
                    engage_spread = round_half_up(engagement * c * 30)
                    latest_day = max(5, round_half_up(90 * (1 - mon.purchase_decay)) + engage_spread)
                    day_offset = min(days_available, rng.randint(4, latest_day))
                txn_ms = install_ms + day_offset * DAY_MS + rng.randint(0, 86399) * 1000

                reported_ms = txn_ms
                if noise.delayed_revenue and rng.next() < 0.15:
                    reported_ms += rng.randint(1, 7) * DAY_MS

                product_sku = rng.choice(SKU_CATEGORIES)
                payment_channel = rng.choice(PAYMENT_CHANNELS)
                amount = self._sample_revenue(spender, country, heavy_tail)
                is_refund = rng.next() < REFUND_PROBABILITY
                net = 0.0 if is_refund else amount

                out['payments'].append(PaymentRow(
                    game_user_id=user_id,
                    txn_time=format_timestamp(reported_ms),
                    amount_usd=amount,
                    product_sku=product_sku,
                    payment_channel=payment_channel,
                    is_refund=is_refund,
                ))

                days = (txn_ms - install_ms) // DAY_MS
                if days <= 2:
                    ltv3 += net
                if days <= 6:
                    ltv7 += net
                if days <= 29:
                    ltv30 += net
                if days <= 89:
                    ltv90 += net

        if noise.label_noise_pct > 0 and rng.next() < noise.label_noise_pct:
            noise_mult = 1 + rng.normal() * 0.5
            ltv7 = max(0.0, round(ltv7 * noise_mult, 2))
            ltv30 = max(0.0, round(ltv30 * noise_mult, 2))
            ltv90 = max(0.0, round(ltv90 * noise_mult, 2))

        ltv3, ltv7, ltv30, ltv90 = (round(v, 2) for v in (ltv3, ltv7, ltv30, ltv90))
        ua_cost = round(rng.uniform(1.5, 8), 2) if consent_tracking else 0.0
        missing = noise.missing_features_pct > 0 and rng.next() < noise.missing_features_pct

        label = LabelRow(
            game_user_id=user_id,
            install_date=install_time[:10],
            ua_cost=ua_cost,
            ltv_d3=ltv3,
            ltv_d7=0.0 if missing else ltv7,
            ltv_d30=ltv30,
            ltv_d90=ltv90,
            is_payer_by_d3=int(ltv3 > 0),
            is_payer_by_d7=0 if missing else int(ltv7 > 0),
            is_payer_by_d30=int(ltv30 > 0),
            is_payer_by_d90=int(ltv90 > 0),
            profit_d90=round(ltv90 - ua_cost, 2),
            late_monetizer_flag=int(will_pay and ltv7 == 0 and ltv30 > 0),
            false_early_payer_flag=int(will_pay and ltv3 > ltv90 * 0.8 and ltv90 > 0),
            active_days_w7d=0 if missing else active_days_w7,
            sessions_cnt_w7d=0 if missing else sessions_w7,
            max_level_w7d=0 if missing else max_level_w7,
        )

        # Simulated leakage: post-D7 revenue bleeds into the D7 label
        if noise.inject_leakage and rng.next() < LEAKAGE_PROBABILITY:
            label.ltv_d7 = round(label.ltv_d7 + ltv30 * 0.5, 2)

        out['labels'].append(label)
        return ltv90

    def _emit_sessions(self, i: int, user_id: str, install_ms: int, active_days: List[int],
                       sessions_per_day: int, engagement: float, max_level: int,
                       events: List[EventRow]) -> int:
        """Emit session and gameplay events; returns sessions within the first week.

        session_start / session_end are never capped since downstream features
        depend on them. Only semantic gameplay events count toward the cap.
        """
        rng = self.rng
        max_semantic = self.config.simulation.max_events_per_user
        semantic_count = 0
        sessions_w7 = 0
        intensity = 0.15 + 0.55 * engagement
        events_per_session = max(2, math.floor(3 + 10 * engagement))

        for day_offset in active_days:
            n_sessions = min(6, max(1, sessions_per_day + (1 if rng.next() < 0.15 else 0)))
            for s in range(n_sessions):
                hour = rng.randint(6, 23)
                start_ms = install_ms + day_offset * DAY_MS + hour * HOUR_MS + rng.randint(0, 3599) * 1000
                session_id = f"s{i}_{s}_d{day_offset}"
                if day_offset <= 6:
                    sessions_w7 += 1

                events.append(EventRow(user_id, format_timestamp(start_ms), 'session_start',
                                       session_id, ''))

                for e in range(events_per_session):
                    if semantic_count >= max_semantic:
                        break
                    offset_ms = round_half_up((e + 1) / (events_per_session + 2) * SESSION_LENGTH_MS)
                    name = rng.choice(SEMANTIC_EVENTS)
                    params = self._event_params(name, max_level)
                    if rng.next() < intensity:
                        events.append(EventRow(user_id, format_timestamp(start_ms + offset_ms),
                                               name, session_id, params))
                        semantic_count += 1

                events.append(EventRow(user_id, format_timestamp(start_ms + SESSION_LENGTH_MS),
                                       'session_end', session_id,
                                       f"duration_seconds={rng.randint(300, 3600)}"))
        return sessions_w7

    def _event_params(self, name: str, max_level: int) -> str:
        rng = self.rng
        if name == 'quest_complete':
            return f"quest=mq_{rng.randint(1, 80)};xp={rng.randint(100, 5000)}"
        if name == 'pvp_match':
            return f"result={'win' if rng.next() < 0.52 else 'lose'}"
        if name == 'level_up':
            return f"level={min(max_level, rng.randint(2, max_level))}"
        if name == 'dungeon_clear':
            return f"dungeon=d_{rng.randint(1, 6)}"
        if name == 'combat_hit':
            return f"dmg={rng.randint(20, 500)}"
        if name == 'mob_kill':
            return f"xp={rng.randint(50, 5000)}"
        if name == 'soft_earn':
            return f"amount={rng.randint(500, 5000)}"
        if name == 'soft_spend':
            return f"amount={rng.randint(200, 4000)}"
        if name == 'chat_message':
            return f"channel={rng.choice(['world', 'guild', 'party'])}"
        if name == 'gacha_open':
            return f"type={rng.choice(['weapon', 'armor', 'pet'])}"
        return ''

    def _generate_ua_costs(self) -> List[UACostRow]:
        rng = self.rng
        rows = []
        for campaign in CAMPAIGNS:
            for d in range(self.config.population.install_window_days):
                date = (BASE_DATE + timedelta(days=d)).strftime('%Y-%m-%d')
                daily_spend = rng.uniform(800, 7000)
                cpi = rng.uniform(1.2, 10)
                if 'launch_kr' in campaign:
                    daily_spend *= 1.25
                    cpi *= 1.15
                if 'retarget' in campaign:
                    daily_spend *= 0.85
                    cpi *= 1.05
                daily_spend = round(daily_spend, 2)
                cpi = max(0.6, round(cpi, 2))
                installs = max(0, round_half_up(daily_spend / cpi))
                rows.append(UACostRow(
                    campaign_id=campaign,
                    date=date,
                    spend=daily_spend,
                    impressions=installs * rng.randint(40, 220),
                    clicks=installs * rng.randint(2, 18),
                    installs=installs,
                ))
        return rows

    def generate(self, should_cancel: Optional[Callable[[], bool]] = None) -> GenerationResult:
        out: Dict[str, list] = {'players': [], 'events': [], 'payments': [], 'labels': []}
        user_revenues = []

        for i in range(max(0, self.config.population.total_users)):
            if should_cancel is not None and should_cancel():
                raise OperationCancelled('generation', i)
            user_revenues.append(self._simulate_user(i, out))

        ua_costs = self._generate_ua_costs()
        stats = compute_stats(len(user_revenues), user_revenues, out['players'], out['events'],
                              out['payments'], ua_costs, out['labels'])

        logger.info(
            "Generated %d users: %d events, %d payments, payer rate %.2f%%, gini %.2f",
            stats.users, stats.events_rows, stats.payments_rows,
            stats.payer_rate * 100, stats.gini_coefficient,
        )
        return GenerationResult(
            players=out['players'],
            events=out['events'],
            payments=out['payments'],
            ua_costs=ua_costs,
            labels=out['labels'],
            stats=stats,
        )


def compute_stats(n_users: int, user_revenues: List[float], players: List[PlayerRow],
                  events: List[EventRow], payments: List[PaymentRow],
                  ua_costs: List[UACostRow], labels: List[LabelRow]) -> SynthOutputStats:
    """Cohort statistics with every ratio guarded against empty input."""
    total_revenue = float(sum(user_revenues))
    payer_revenues = [v for v in user_revenues if v > 0]
    txn_counts = Counter(p.game_user_id for p in payments if not p.is_refund)

    return SynthOutputStats(
        users=n_users,
        transactions=len(payments),
        events=len(events),
        total_revenue=total_revenue,
        payer_rate=len(payer_revenues) / n_users if n_users else 0.0,
        arpu=total_revenue / n_users if n_users else 0.0,
        arppu=total_revenue / len(payer_revenues) if payer_revenues else 0.0,
        gini_coefficient=gini_coefficient(user_revenues),
        players_rows=len(players),
        events_rows=len(events),
        payments_rows=len(payments),
        labels_rows=len(labels),
        ua_costs_rows=len(ua_costs),
        revenue_distribution=histogram(payer_revenues),
        txn_per_payer_distribution=histogram(list(txn_counts.values())),
        ltv_distribution=histogram(user_revenues),
    )


def compute_stats_from_tables(players: List[PlayerRow], events: List[EventRow],
                              payments: List[PaymentRow], ua_costs: List[UACostRow],
                              labels: List[LabelRow]) -> SynthOutputStats:
    """Recompute output statistics from parsed tables (e.g. files read back from disk)."""
    return compute_stats(len(players), [l.ltv_d90 for l in labels], players, events,
                         payments, ua_costs, labels)


def generate_synthetic_data(config: SynthConfig,
                            should_cancel: Optional[Callable[[], bool]] = None) -> GenerationResult:
    """Generate a full synthetic cohort for ``config``."""
    return CohortGenerator(config).generate(should_cancel)


def compute_preview(config: SynthConfig) -> Dict[str, float]:
    """Fast analytical expectations for a config without running generation."""
    pop, mon, beh = config.population, config.monetization, config.behavioral
    n = pop.total_users
    payer_count = round_half_up(n * mon.payer_rate)

    avg_price = sum(mon.price_tiers) / (len(mon.price_tiers) or 1)
    expected_arppu = avg_price * mon.avg_txn_per_payer
    if mon.revenue_distribution == 'pareto':
        expected_arppu *= 1 + mon.heavy_tail_intensity * 0.5
    elif mon.revenue_distribution == 'lognormal':
        expected_arppu *= 1 + mon.gini_coefficient * 0.3

    total_revenue = payer_count * expected_arppu
    txn_count = round_half_up(payer_count * mon.avg_txn_per_payer)

    # ~200 bytes/player, ~80 bytes/event, ~60 bytes/payment
    est_events = n * beh.session_count_mean * config.simulation.max_events_per_user * 0.15
    est_size_kb = round_half_up((n * 200 + est_events * 80 + txn_count * 60) / 1024)

    return {
        'expected_total_revenue': total_revenue,
        'expected_arpu': total_revenue / n if n > 0 else 0.0,
        'expected_arppu': expected_arppu,
        'expected_payer_pct': mon.payer_rate * 100,
        'expected_gini': mon.gini_coefficient,
        'expected_txn_count': txn_count,
        'estimated_file_size_kb': max(100, est_size_kb),
    }

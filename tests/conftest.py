"""
Pytest configuration and shared fixtures.

Cohorts are generated once per session: generation is deterministic, so
every test sees identical tables.
"""

import pytest

from simulation import SynthConfig, PlayerRow, EventRow, PaymentRow, LabelRow, generate_synthetic_data
from features import FeatureBuildConfig, build_feature_matrix, numeric_feature_columns
from models import TrainerParams, train_model


def small_config(users: int = 600, seed: int = 7) -> SynthConfig:
    """A fast, payer-rich config with all noise off."""
    config = SynthConfig()
    config.population.total_users = users
    config.monetization.payer_rate = 0.2
    config.simulation.max_events_per_user = 30
    config.simulation.seed = seed
    return config


@pytest.fixture(scope="session")
def cohort():
    return generate_synthetic_data(small_config())


@pytest.fixture(scope="session")
def feature_matrix(cohort):
    return build_feature_matrix(cohort.players, cohort.events, cohort.payments, cohort.labels)


@pytest.fixture(scope="session")
def leaky_matrix(cohort):
    config = FeatureBuildConfig(include_leakage_feature=True)
    return build_feature_matrix(cohort.players, cohort.events, cohort.payments, cohort.labels, config)


@pytest.fixture(scope="session")
def fast_params():
    return TrainerParams(gbt_trees=20, rf_trees=10, linear_epochs=60)


@pytest.fixture(scope="session")
def gbt_model(feature_matrix, fast_params):
    return train_model(feature_matrix, numeric_feature_columns(feature_matrix), target='ltv90',
                       model_type='gbt', seed=7, params=fast_params)


@pytest.fixture(scope="session")
def dummy_model(feature_matrix):
    return train_model(feature_matrix, numeric_feature_columns(feature_matrix), target='ltv90',
                       model_type='dummy', seed=7)


@pytest.fixture
def tiny_tables():
    """One hand-built player with known event and payment timing."""
    players = [PlayerRow('u1', 'i_1', '2024-10-01T00:00:00Z', 'c1', 'a1', 'cr1', 'organic',
                         'US', 'ios', 'iPhone 15 Pro', 'high', True, True)]
    events = [
        EventRow('u1', '2024-10-01T10:00:00Z', 'session_start', 's0'),
        EventRow('u1', '2024-10-01T10:05:00Z', 'pvp_match', 's0', 'result=win'),
        EventRow('u1', '2024-10-01T10:30:00Z', 'session_end', 's0', 'duration_seconds=1800'),
        EventRow('u1', '2024-10-03T09:00:00Z', 'session_start', 's1'),
        EventRow('u1', '2024-10-03T09:10:00Z', 'pvp_match', 's1', 'result=lose'),
        EventRow('u1', '2024-10-06T09:00:00Z', 'session_start', 's2'),
        EventRow('u1', '2024-10-20T09:00:00Z', 'session_start', 's3'),
    ]
    payments = [
        PaymentRow('u1', '2024-10-02T00:00:00Z', 9.99, 'gem_bundle', 'app_store', True),
        PaymentRow('u1', '2024-10-03T00:00:00Z', 4.99, 'starter_pack', 'app_store', False),
        PaymentRow('u1', '2024-10-06T00:00:00Z', 9.99, 'battle_pass', 'app_store', False),
        PaymentRow('u1', '2024-10-11T00:00:00Z', 20.0, 'gacha_pack', 'app_store', False),
    ]
    labels = [LabelRow('u1', '2024-10-01', 3.5, 4.99, 14.98, 34.98, 34.98, 1, 1, 1, 1, 31.48,
                       0, 0, 3, 3, 12)]
    return players, events, payments, labels

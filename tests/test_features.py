"""
Tests for the feature template registry and the feature matrix builder.

The hand-built tiny_tables fixture installs one player at 2024-10-01T00:00Z
with purchases on days 1 (refunded), 2, 5 and 10.
"""

import logging
from dataclasses import replace

import pytest

from features import (
    FeatureBuildConfig,
    FEATURE_TEMPLATES,
    build_feature_matrix,
    feature_columns,
    numeric_feature_columns,
    correlation_matrix,
    feature_distribution,
    correlation_report,
    get_template,
    leakage_templates
)
from features.builder import BASE_COLUMNS, days_between
from features.templates import templates_by_category
from simulation import LabelRow


class TestTemplates:
    """Template registry lookups"""

    def test_leakage_templates(self):
        assert {t.id for t in leakage_templates()} == {'future_payment_d8_30', 'ltv_d30_raw'}

    def test_column_names(self):
        assert get_template('payment_sum').column_names([7, 3]) == ['payment_sum_3d', 'payment_sum_7d']
        assert get_template('device_tier').column_names([3]) == ['device_tier_num']
        assert get_template('ua_cost').column_names([3]) == ['ua_cost']

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            get_template('nope')

    def test_categories_cover_registry(self):
        grouped = templates_by_category()
        assert sum(len(v) for v in grouped.values()) == len(FEATURE_TEMPLATES)


class TestFeatureColumns:
    """Column layout of the matrix for a build config"""

    def test_default_columns(self):
        assert feature_columns(FeatureBuildConfig()) == [
            'session_count_3d', 'payment_sum_3d',
            'session_count_7d', 'payment_sum_7d',
            'last_login_gap', 'payer_flag', 'first_purchase_hours', 'ua_cost',
        ]

    def test_matrix_columns_match_config(self, feature_matrix):
        assert list(feature_matrix.columns) == BASE_COLUMNS + feature_columns(FeatureBuildConfig())

    def test_leakage_column_only_when_requested(self, feature_matrix, leaky_matrix):
        assert 'future_payment_d8_30' not in feature_matrix.columns
        assert 'future_payment_d8_30' in leaky_matrix.columns

    def test_windows_sorted(self):
        config = FeatureBuildConfig(selected_templates=['active_days'], selected_windows=[14, 1])
        assert feature_columns(config) == ['active_days_1d', 'active_days_14d']

    def test_numeric_columns_exclude_targets(self, feature_matrix):
        numeric = numeric_feature_columns(feature_matrix)
        assert 'target_ltv90' not in numeric
        assert 'user_id' not in numeric
        assert 'payment_sum_7d' in numeric


class TestFeatureValues:
    """Aggregates computed for a hand-built player"""

    @pytest.fixture
    def row(self, tiny_tables):
        config = FeatureBuildConfig(
            selected_templates=['session_count', 'payment_sum', 'payment_count', 'battle_win_rate',
                                'last_login_gap', 'payer_flag', 'first_purchase_hours',
                                'device_tier', 'os_flag', 'ua_cost', 'max_level'],
            selected_windows=[3, 7],
            include_leakage_feature=True,
        )
        matrix = build_feature_matrix(*tiny_tables, config)
        assert len(matrix) == 1
        return matrix.iloc[0]

    def test_payment_windows_skip_refunds(self, row):
        assert row['payment_sum_3d'] == pytest.approx(4.99)
        assert row['payment_sum_7d'] == pytest.approx(14.98)
        assert row['payment_count_7d'] == 2

    def test_sessions_by_window(self, row):
        assert row['session_count_3d'] == 2
        assert row['session_count_7d'] == 3

    def test_battle_win_rate(self, row):
        assert row['battle_win_rate_3d'] == pytest.approx(0.5)

    def test_first_purchase_hours(self, row):
        assert row['first_purchase_hours'] == pytest.approx(48.0)

    def test_last_login_gap(self, row):
        assert row['last_login_gap'] == pytest.approx(1.625, abs=0.01)

    def test_leakage_feature_reads_d8_to_d30(self, row):
        assert row['future_payment_d8_30'] == pytest.approx(20.0)

    def test_player_attributes(self, row):
        assert row['device_tier_num'] == 2
        assert row['os_flag'] == 1
        assert row['payer_flag'] == 1
        assert row['max_level'] == 12
        assert row['ua_cost'] == pytest.approx(3.5)

    def test_targets(self, row):
        assert row['target_ltv30'] == pytest.approx(34.98)
        assert row['target_ltv90'] == pytest.approx(34.98)

    def test_no_purchase_defaults(self, tiny_tables):
        players, events, _, labels = tiny_tables
        matrix = build_feature_matrix(players, events, [], labels)
        assert matrix.iloc[0]['first_purchase_hours'] == -1
        assert matrix.iloc[0]['payment_sum_7d'] == 0


class TestMatrixBuild:
    """Joining labels to players"""

    def test_one_row_per_label(self, cohort, feature_matrix):
        assert len(feature_matrix) == len(cohort.labels)

    def test_orphan_labels_skipped(self, tiny_tables, caplog):
        players, events, payments, labels = tiny_tables
        orphan = LabelRow('ghost', '2024-10-01', 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)
        with caplog.at_level(logging.WARNING):
            matrix = build_feature_matrix(players, events, payments, labels + [orphan])
        assert list(matrix['user_id']) == ['u1']
        assert 'Skipped 1 label' in caplog.text

    def test_duplicate_labels_collapse_to_last(self, tiny_tables, caplog):
        players, events, payments, labels = tiny_tables
        restated = replace(labels[0], ltv_d90=99.0)
        with caplog.at_level(logging.WARNING):
            matrix = build_feature_matrix(players, events, payments, labels + [restated])
        assert list(matrix['user_id']) == ['u1']
        assert matrix.iloc[0]['target_ltv90'] == 99.0
        assert 'Collapsed 1 duplicate' in caplog.text

    def test_empty_inputs(self):
        matrix = build_feature_matrix([], [], [], [])
        assert matrix.empty
        assert list(matrix.columns) == BASE_COLUMNS + feature_columns(FeatureBuildConfig())

    def test_days_between_unparseable(self):
        assert days_between('garbage', '2024-10-01T00:00:00Z') == 999
        assert days_between('2024-10-02T12:00:00Z', '2024-10-01T00:00:00Z') == pytest.approx(1.5)

    def test_days_between_memoizes_into_given_cache(self):
        cache = {}
        days_between('2024-10-02T00:00:00Z', '2024-10-01T00:00:00Z', cache)
        days_between('garbage', '2024-10-01T00:00:00Z', cache)
        assert set(cache) == {'2024-10-02T00:00:00Z', '2024-10-01T00:00:00Z', 'garbage'}
        assert cache['garbage'] is None
        # a stale entry wins over reparsing
        cache['garbage'] = cache['2024-10-02T00:00:00Z']
        assert days_between('garbage', '2024-10-01T00:00:00Z', cache) == pytest.approx(1.0)


class TestExploration:
    """Correlation report and distribution helpers"""

    def test_correlation_report(self, feature_matrix):
        report = correlation_report(feature_matrix)
        assert report['dataset_rows'] == len(feature_matrix)
        assert set(report['features']['feature']) == set(numeric_feature_columns(feature_matrix))
        assert -1 <= report['target_corr_ltv7_vs_ltv30'] <= 1

    def test_correlation_report_empty(self):
        report = correlation_report(build_feature_matrix([], [], [], []))
        assert report['dataset_rows'] == 0
        assert report['features'].empty

    def test_correlation_matrix_diagonal(self, feature_matrix):
        cols = ['payment_sum_7d', 'session_count_7d']
        corr = correlation_matrix(feature_matrix, cols)
        assert corr.loc['payment_sum_7d', 'payment_sum_7d'] == pytest.approx(1.0)

    def test_feature_distribution(self, feature_matrix):
        dist = feature_distribution(feature_matrix, 'session_count_7d')
        assert dist['count'].sum() == len(feature_matrix)

"""Tests for CLI argument handling."""

import pytest

from cli import build_parser, build_config, build_feature_config
from simulation import InvalidConfigError


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestLeakageFlags:
    """Feature leakage and label leakage are chosen independently"""

    def test_defaults_off(self):
        args = parse('train')
        assert not build_config(args).noise.inject_leakage
        assert not build_feature_config(args).include_leakage_feature

    def test_inject_leakage_only_touches_generation(self):
        args = parse('generate', '--inject-leakage')
        assert build_config(args).noise.inject_leakage
        assert not build_feature_config(args).include_leakage_feature

    def test_leakage_feature_only_touches_features(self):
        args = parse('train', '--leakage-feature')
        assert not build_config(args).noise.inject_leakage
        assert build_feature_config(args).include_leakage_feature


class TestConfigOverrides:
    """Preset plus single-field overrides"""

    def test_overrides_applied(self):
        config = build_config(parse('generate', '--preset', 'midcore', '--users', '300',
                                    '--payer-rate', '0.05', '--seed', '9'))
        assert config.population.total_users == 300
        assert config.monetization.payer_rate == 0.05
        assert config.simulation.seed == 9

    def test_negative_seed_rejected(self):
        with pytest.raises(InvalidConfigError):
            build_config(parse('generate', '--seed', '-3'))

    def test_windows_and_templates_parsed(self):
        feature_config = build_feature_config(
            parse('features', '--windows', '3,14', '--templates', 'payment_sum, payer_flag'))
        assert feature_config.selected_windows == [3, 14]
        assert feature_config.selected_templates == ['payment_sum', 'payer_flag']

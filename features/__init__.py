"""Feature templates and the feature matrix builder."""

from .templates import (
    FeatureTemplate,
    FEATURE_TEMPLATES,
    get_template,
    leakage_templates
)
from .builder import (
    FeatureBuildConfig,
    build_feature_matrix,
    feature_columns,
    numeric_feature_columns,
    correlation_matrix,
    feature_distribution,
    correlation_report
)
from .sweep import default_sweep_configs, sweep_configs

__all__ = [
    'FeatureTemplate',
    'FEATURE_TEMPLATES',
    'get_template',
    'leakage_templates',
    'FeatureBuildConfig',
    'build_feature_matrix',
    'feature_columns',
    'numeric_feature_columns',
    'correlation_matrix',
    'feature_distribution',
    'correlation_report',
    'default_sweep_configs',
    'sweep_configs'
]

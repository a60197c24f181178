"""pLTV regressors: trees, linear regression and the training pipeline."""

from .trees import (
    Leaf,
    Split,
    TreeParams,
    build_tree,
    predict_tree
)
from .linear import (
    LinearModel,
    fit_linear
)
from .trainer import (
    TrainerParams,
    TrainedModelResult,
    train_model,
    generate_baseline_model,
    MODEL_KINDS
)

__all__ = [
    'Leaf',
    'Split',
    'TreeParams',
    'build_tree',
    'predict_tree',
    'LinearModel',
    'fit_linear',
    'TrainerParams',
    'TrainedModelResult',
    'train_model',
    'generate_baseline_model',
    'MODEL_KINDS'
]

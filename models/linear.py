"""Batch gradient-descent linear regression on std-scaled features."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from simulation.errors import OperationCancelled

logger = logging.getLogger(__name__)


@dataclass
class LinearModel:
    weights: np.ndarray  # on the original feature scale
    bias: float
    losses: List[float] = field(default_factory=list)

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.bias + X @ self.weights


def fit_linear(X: np.ndarray, y: np.ndarray, epochs: int = 200, learning_rate: float = 0.01,
               log_every: int = 2,
               should_cancel: Optional[Callable[[], bool]] = None) -> LinearModel:
    """Fit by full-batch gradient descent.

    Features are divided by their population std (zero std counts as 1) but
    not centered; weights are de-standardized on return. The training MSE of
    every ``log_every``-th epoch is recorded before that epoch's update.
    """
    n, n_features = X.shape
    std = X.std(axis=0) if n else np.ones(n_features)
    std = np.where(std == 0, 1.0, std)
    Xs = X / std

    weights = np.zeros(n_features)
    bias = 0.0
    losses = []

    for epoch in range(epochs):
        if should_cancel is not None and should_cancel():
            raise OperationCancelled('linear training', epoch)
        if n == 0:
            break
        err = bias + Xs @ weights - y
        weights = weights - learning_rate * (Xs.T @ err) / n
        bias -= learning_rate * err.sum() / n
        if epoch % log_every == 0:
            losses.append(float(np.mean(err ** 2)))

    logger.debug("Linear regression: %d epochs, final loss %s", epochs,
                 f"{losses[-1]:.4f}" if losses else "n/a")
    return LinearModel(weights=weights / std, bias=bias, losses=losses)

"""
Regression trees shared by the gradient-boosted and random-forest learners.

A tree is a strict binary structure of ``Leaf`` and ``Split`` nodes. Split
search is exhaustive over quantile threshold candidates per feature, scoring
every candidate of a feature at once with cumulative sums over the sorted
column.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Union

import numpy as np


@dataclass(frozen=True)
class Leaf:
    value: float


@dataclass(frozen=True)
class Split:
    feature_index: int
    threshold: float
    left: 'Node'
    right: 'Node'
    gain: float
    min_gain: float  # floor this split had to beat


Node = Union[Leaf, Split]


@dataclass
class TreeParams:
    max_depth: int = 4
    min_leaf: int = 10
    max_candidates: int = 32
    min_gain_fraction: float = 0.005  # of parent SSE


def candidate_thresholds(values: np.ndarray, max_candidates: int = 32) -> np.ndarray:
    """Split thresholds for one feature column.

    All distinct values but the largest when there are few of them, otherwise
    up to ``max_candidates`` evenly spaced quantile picks.
    """
    uniq = np.unique(values)
    if len(uniq) <= max_candidates + 1:
        return uniq[:-1]
    picks = np.floor(np.arange(1, max_candidates + 1) / (max_candidates + 1) * len(uniq)).astype(int)
    return uniq[np.unique(picks)]


def _best_threshold(col: np.ndarray, ys: np.ndarray, parent_sse: float, min_leaf: int,
                    max_candidates: int):
    """Highest-gain valid threshold for one column as (gain, threshold) or None."""
    thresholds = candidate_thresholds(col, max_candidates)
    if len(thresholds) == 0:
        return None

    order = np.argsort(col, kind='stable')
    col_sorted = col[order]
    y_sorted = ys[order]
    cum_y = np.cumsum(y_sorted)
    cum_y2 = np.cumsum(y_sorted ** 2)
    n = len(ys)

    n_left = np.searchsorted(col_sorted, thresholds, side='right')
    n_right = n - n_left
    valid = (n_left >= min_leaf) & (n_right >= min_leaf)
    if not valid.any():
        return None

    idx = np.clip(n_left - 1, 0, n - 1)
    sum_l, sq_l = cum_y[idx], cum_y2[idx]
    sum_r, sq_r = cum_y[-1] - sum_l, cum_y2[-1] - sq_l
    with np.errstate(divide='ignore', invalid='ignore'):
        sse_l = sq_l - sum_l ** 2 / n_left
        sse_r = sq_r - sum_r ** 2 / n_right
    gains = np.where(valid, parent_sse - sse_l - sse_r, -np.inf)

    best = int(np.argmax(gains))  # first maximum keeps the lowest threshold on ties
    return float(gains[best]), float(thresholds[best])


def build_tree(X: np.ndarray, y: np.ndarray, indices: np.ndarray, params: TreeParams,
               feature_gain: np.ndarray, features: Optional[Sequence[int]] = None,
               depth: int = 0) -> Node:
    """Grow a regression tree on ``X[indices]``, accumulating split gain per feature.

    A split is accepted only when its SSE reduction beats 0.5% of the parent
    SSE (``min_gain_fraction``) and both children keep ``min_leaf`` rows.
    Earlier features win ties.
    """
    ys = y[indices]
    value = float(ys.mean()) if len(ys) else 0.0
    if depth >= params.max_depth or len(indices) < params.min_leaf * 2:
        return Leaf(value)

    parent_sse = float(np.sum((ys - value) ** 2))
    if parent_sse <= 0:
        return Leaf(value)

    min_gain = parent_sse * params.min_gain_fraction
    best_gain, best_feature, best_threshold = min_gain, -1, 0.0
    if features is None:
        features = range(X.shape[1])

    for f in features:
        found = _best_threshold(X[indices, f], ys, parent_sse, params.min_leaf,
                                params.max_candidates)
        if found is not None and found[0] > best_gain:
            best_gain, best_threshold = found
            best_feature = f

    if best_feature < 0:
        return Leaf(value)

    feature_gain[best_feature] += best_gain
    go_left = X[indices, best_feature] <= best_threshold
    return Split(
        feature_index=best_feature,
        threshold=best_threshold,
        left=build_tree(X, y, indices[go_left], params, feature_gain, features, depth + 1),
        right=build_tree(X, y, indices[~go_left], params, feature_gain, features, depth + 1),
        gain=best_gain,
        min_gain=min_gain,
    )


def scale_tree(node: Node, factor: float) -> Node:
    """Copy of ``node`` with every leaf value multiplied by ``factor``."""
    if isinstance(node, Leaf):
        return Leaf(node.value * factor)
    return Split(node.feature_index, node.threshold, scale_tree(node.left, factor),
                 scale_tree(node.right, factor), node.gain, node.min_gain)


def predict_tree(node: Node, X: np.ndarray) -> np.ndarray:
    """Predict every row of ``X`` by routing row subsets down the tree."""
    out = np.empty(len(X), dtype=float)
    _route(node, X, np.arange(len(X)), out)
    return out


def _route(node: Node, X: np.ndarray, rows: np.ndarray, out: np.ndarray):
    if isinstance(node, Leaf):
        out[rows] = node.value
        return
    go_left = X[rows, node.feature_index] <= node.threshold
    _route(node.left, X, rows[go_left], out)
    _route(node.right, X, rows[~go_left], out)


def iter_splits(node: Node) -> Iterator[Split]:
    if isinstance(node, Split):
        yield node
        yield from iter_splits(node.left)
        yield from iter_splits(node.right)


def tree_depth(node: Node) -> int:
    if isinstance(node, Leaf):
        return 0
    return 1 + max(tree_depth(node.left), tree_depth(node.right))

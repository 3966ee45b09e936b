#!/usr/bin/env python3
"""
Scoring for binary risk predictions.

Metrics take ground-truth labels (0/1) and predicted probabilities and return
a single float. They are held in a small registry so the resampling engine
can report any registered metric by name.

Example Usage
-------------
>>> from utils.scoring import auroc, accuracy, score_predictions
>>> auroc([0, 0, 1, 1], [0.1, 0.4, 0.35, 0.8])
0.75
>>> score_predictions([0, 1], [0.2, 0.9])
{'auroc': 1.0, 'accuracy': 1.0}

>>> @register_metric('sensitivity')
... def sensitivity(labels, scores, threshold=0.5):
...     ...
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

import numpy as np
from sklearn.metrics import accuracy_score, roc_auc_score

# Metric registry: name -> callable(labels, scores, threshold) -> float
_metric_registry: Dict[str, Callable[..., float]] = {}

DEFAULT_METRICS = ('auroc', 'accuracy')


def register_metric(name: str):
    """
    Decorator to register a metric under a name.

    The metric is called as ``metric(labels, scores, threshold=...)``.
    """
    def decorator(func):
        _metric_registry[name] = func
        return func
    return decorator


def get_metric(name: str) -> Callable[..., float]:
    """
    Look up a registered metric.

    Raises
    ------
    ValueError
        If no metric is registered under that name.
    """
    if name not in _metric_registry:
        available = ', '.join(sorted(_metric_registry))
        raise ValueError(f"Unknown metric: '{name}'. Available metrics: {available}")
    return _metric_registry[name]


def list_metrics() -> list[str]:
    """Names of all registered metrics."""
    return sorted(_metric_registry)


def _as_arrays(labels, scores) -> tuple[np.ndarray, np.ndarray]:
    labels = np.asarray(labels, dtype=int).ravel()
    scores = np.asarray(scores, dtype=float).ravel()
    if labels.shape != scores.shape:
        raise ValueError(
            f"labels and scores differ in length: {labels.size} vs {scores.size}"
        )
    if labels.size == 0:
        raise ValueError("Cannot score an empty prediction set")
    return labels, scores


def to_classes(scores, threshold: float = 0.5) -> np.ndarray:
    """Class predictions: 1 where the score reaches the threshold."""
    return (np.asarray(scores, dtype=float) >= threshold).astype(int)


@register_metric('auroc')
def auroc(labels, scores, threshold: float = 0.5) -> float:
    """
    Area under the ROC curve.

    The probability that a random positive record scores above a random
    negative one, with ties counting one half. The threshold is ignored.

    Returns
    -------
    float
        Value in [0, 1], or NaN when only one class is present.
    """
    labels, scores = _as_arrays(labels, scores)
    if np.unique(labels).size < 2:
        return float('nan')
    return float(roc_auc_score(labels, scores))


@register_metric('accuracy')
def accuracy(labels, scores, threshold: float = 0.5) -> float:
    """Fraction of records whose thresholded class equals the label."""
    labels, scores = _as_arrays(labels, scores)
    return float(accuracy_score(labels, to_classes(scores, threshold)))


def score_predictions(
    labels,
    scores,
    metrics: Optional[Iterable[str]] = None,
    threshold: float = 0.5,
) -> Dict[str, float]:
    """
    Compute several metrics at once.

    Parameters
    ----------
    labels : array-like
        Ground-truth 0/1 labels.
    scores : array-like
        Predicted probabilities of the positive class.
    metrics : iterable of str, optional
        Metric names (default: auroc and accuracy).
    threshold : float, default=0.5
        Probability cut-off for class-based metrics.

    Returns
    -------
    dict
        Metric name -> value.
    """
    names = DEFAULT_METRICS if metrics is None else tuple(metrics)
    return {
        name: get_metric(name)(labels, scores, threshold=threshold)
        for name in names
    }

"""
Random forest variant.

Options
-------
n_trees : int
    Number of trees in the ensemble.
max_features : float, int, 'sqrt', 'log2' or None
    Features sampled per split; a float in (0, 1] is a fraction of all
    features (the ``mtry`` rate).
importance : bool
    Attach impurity and permutation (mean decrease in accuracy)
    importances to the trained model.
random_state : int or None
    Seed; with a fixed seed fitting is deterministic.
"""
from __future__ import annotations

from numbers import Integral, Real

import numpy as np
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import permutation_importance

from config import PERMUTATION_REPEATS, RF_DEFAULTS

from ..base import BaseClassifier, TrainedModel
from ..factory import register_model


@register_model('random_forest')
class RandomForestModel(BaseClassifier):
    """Random forest ensemble with optional importance tracking."""

    name = 'random_forest'
    default_config = dict(RF_DEFAULTS)

    def _validate_config(self) -> None:
        n_trees = self.config['n_trees']
        if not isinstance(n_trees, Integral) or n_trees < 1:
            raise ValueError(f"n_trees must be a positive integer: {n_trees!r}")

        max_features = self.config['max_features']
        if max_features is None or max_features in ('sqrt', 'log2'):
            return
        if isinstance(max_features, Integral):
            if max_features < 1:
                raise ValueError(f"max_features must be at least 1: {max_features}")
        elif isinstance(max_features, Real):
            if not 0 < max_features <= 1:
                raise ValueError(
                    f"max_features fraction must be in (0, 1]: {max_features}"
                )
        else:
            raise ValueError(f"Invalid max_features: {max_features!r}")

    def _build_estimator(self) -> RandomForestClassifier:
        return RandomForestClassifier(
            n_estimators=self.config['n_trees'],
            max_features=self.config['max_features'],
            random_state=self.config['random_state'],
        )

    def _after_fit(self, model: TrainedModel, X: np.ndarray, y: np.ndarray) -> None:
        if not self.config['importance']:
            return

        model.importances = dict(
            zip(model.feature_names, map(float, model.estimator.feature_importances_))
        )
        result = permutation_importance(
            model.estimator,
            X,
            y,
            scoring='accuracy',
            n_repeats=PERMUTATION_REPEATS,
            random_state=self.config['random_state'],
        )
        model.permutation_importances = dict(
            zip(model.feature_names, map(float, result.importances_mean))
        )

"""
Base Protocol and Types for Classification Models.

Defines the fit/predict interface shared by every model variant and the
trained-model artifact they produce. Variants differ only in the
scikit-learn estimator they build; input validation, probability
extraction and feature alignment live here.

Usage
-----
    from classify.base import BaseClassifier, TrainedModel

    @register_model('my_model')
    class MyModel(BaseClassifier):
        name = 'my_model'
        default_config = {'alpha': 1.0}

        def _build_estimator(self):
            return SomeSklearnClassifier(alpha=self.config['alpha'])
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd

from utils.errors import FitError, SchemaError
from utils.scoring import to_classes


PredictionKind = Literal['probability', 'class']


@dataclass
class TrainedModel:
    """
    Fitted parameters plus the feature set they were trained on.

    Attributes
    ----------
    variant : str
        Name of the model variant that produced this artifact.
    feature_names : tuple of str
        Ordered features the estimator expects.
    estimator : object
        The fitted scikit-learn estimator.
    config : dict
        Configuration used for the fit.
    n_train : int
        Number of training records.
    class_counts : dict
        Training records per class (0 and 1).
    importances : dict, optional
        Impurity-based importance per feature (ensemble variant only).
    permutation_importances : dict, optional
        Mean decrease in accuracy per feature (ensemble variant only).
    warnings : list of str
        Warnings raised by the fitter, e.g. convergence notices.
    """

    variant: str
    feature_names: tuple[str, ...]
    estimator: Any = field(repr=False)
    config: dict = field(default_factory=dict)
    n_train: int = 0
    class_counts: dict = field(default_factory=dict)
    importances: Optional[dict] = None
    permutation_importances: Optional[dict] = None
    warnings: list = field(default_factory=list)

    def predict(
        self,
        features,
        kind: PredictionKind = 'probability',
        threshold: float = 0.5,
    ) -> np.ndarray:
        """Shortcut for :func:`predict`."""
        return predict(self, features, kind=kind, threshold=threshold)

    def coefficients(self) -> Optional[dict]:
        """Intercept and per-feature coefficients for linear variants."""
        if not hasattr(self.estimator, 'coef_'):
            return None
        coefs = {'(intercept)': float(self.estimator.intercept_[0])}
        coefs.update(zip(self.feature_names, map(float, self.estimator.coef_[0])))
        return coefs


@runtime_checkable
class ClassificationModel(Protocol):
    """
    Protocol implemented by every model variant.

    Methods
    -------
    fit(features, labels)
        Train on a feature matrix and 0/1 labels.
    predict(model, features, kind, threshold)
        Probabilities (or classes) from a trained model.
    """

    @property
    def name(self) -> str:
        ...

    def fit(self, features, labels, feature_names: Optional[Sequence[str]] = None) -> TrainedModel:
        ...

    def predict(
        self,
        model: TrainedModel,
        features,
        kind: PredictionKind = 'probability',
        threshold: float = 0.5,
    ) -> np.ndarray:
        ...


# ============================================================
# INPUT VALIDATION
# ============================================================

def _check_finite(X: np.ndarray, names: Sequence[str]) -> None:
    """Raise FitError naming the first non-finite value."""
    bad = ~np.isfinite(X)
    if bad.any():
        row, col = map(int, np.argwhere(bad)[0])
        raise FitError(
            f"Non-finite value in feature '{names[col]}' at record {row} "
            f"({int(bad.sum())} non-finite values in total)"
        )


def _training_matrix(
    features,
    feature_names: Optional[Sequence[str]] = None,
) -> tuple[np.ndarray, tuple[str, ...]]:
    """Convert fit input into a float matrix and its column names."""
    if isinstance(features, pd.DataFrame):
        names = tuple(str(c) for c in features.columns)
        if feature_names is not None:
            names = tuple(feature_names)
            features = features[list(names)]
        X = features.to_numpy(dtype=float)
    else:
        X = np.asarray(features, dtype=float)
        if X.ndim != 2:
            raise FitError(f"Feature matrix must be 2-D, got shape {X.shape}")
        if feature_names is None:
            names = tuple(f"x{i}" for i in range(X.shape[1]))
        else:
            names = tuple(feature_names)
            if len(names) != X.shape[1]:
                raise SchemaError(
                    f"{len(names)} feature names given for {X.shape[1]} columns"
                )
    return X, names


def _prediction_matrix(features, feature_names: Sequence[str]) -> np.ndarray:
    """Align prediction input with the trained feature order."""
    if isinstance(features, pd.DataFrame):
        missing = [n for n in feature_names if n not in features.columns]
        if missing:
            raise SchemaError(
                f"Feature '{missing[0]}' required by the model is missing",
                column=missing[0],
            )
        return features[list(feature_names)].to_numpy(dtype=float)

    X = np.asarray(features, dtype=float)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.ndim != 2 or X.shape[1] != len(feature_names):
        raise SchemaError(
            f"Expected {len(feature_names)} feature columns, got shape {X.shape}"
        )
    return X


def _label_vector(labels, n_rows: int) -> np.ndarray:
    y = np.asarray(labels).ravel()
    if y.size != n_rows:
        raise FitError(f"{n_rows} feature rows but {y.size} labels")
    if pd.isna(y).any():
        raise FitError("Labels contain missing values")
    if not np.isin(y, [0, 1]).all():
        raise FitError("Labels must be binary (0/1 or booleans)")
    return y.astype(int)


# ============================================================
# PREDICTION
# ============================================================

def predict(
    model: TrainedModel,
    features,
    kind: PredictionKind = 'probability',
    threshold: float = 0.5,
) -> np.ndarray:
    """
    Predict with a trained model.

    Parameters
    ----------
    model : TrainedModel
        Output of a variant's ``fit``.
    features : pd.DataFrame or array-like
        DataFrame columns are matched by name (order-free); arrays must
        already be in ``model.feature_names`` order.
    kind : {'probability', 'class'}
        Return positive-class probabilities or thresholded 0/1 classes.
    threshold : float, default=0.5
        Cut-off used when ``kind='class'``.

    Returns
    -------
    np.ndarray
        One value per record.

    Raises
    ------
    SchemaError
        If required feature columns are missing.
    FitError
        If any feature value is non-finite.
    """
    if kind not in ('probability', 'class'):
        raise ValueError(f"Unknown prediction kind: '{kind}'")

    X = _prediction_matrix(features, model.feature_names)
    _check_finite(X, model.feature_names)

    positive_col = list(model.estimator.classes_).index(1)
    proba = model.estimator.predict_proba(X)[:, positive_col]

    if kind == 'class':
        return to_classes(proba, threshold)
    return proba


# ============================================================
# BASE IMPLEMENTATION
# ============================================================

class BaseClassifier:
    """
    Shared fit/predict behaviour for model variants.

    Subclasses set ``name`` and ``default_config`` and implement
    ``_build_estimator``; they may override ``_after_fit`` to attach
    extra artifacts (importances) to the trained model.
    """

    name: str = 'base'
    default_config: dict = {}

    def __init__(self, **config):
        unknown = sorted(set(config) - set(self.default_config))
        if unknown:
            raise ValueError(
                f"Unknown option(s) for model '{self.name}': {', '.join(unknown)}"
            )
        self.config = {**self.default_config, **config}
        self._validate_config()

    def __repr__(self) -> str:
        options = ', '.join(f"{k}={v!r}" for k, v in self.config.items())
        return f"{type(self).__name__}({options})"

    def _validate_config(self) -> None:
        """Check option values (override in subclasses)."""

    def _build_estimator(self):
        """Return an unfitted scikit-learn classifier (must be overridden)."""
        raise NotImplementedError

    def _after_fit(self, model: TrainedModel, X: np.ndarray, y: np.ndarray) -> None:
        """Hook for attaching extra artifacts to a trained model."""

    def fit(
        self,
        features,
        labels,
        feature_names: Optional[Sequence[str]] = None,
    ) -> TrainedModel:
        """
        Train the variant.

        Parameters
        ----------
        features : pd.DataFrame or array-like
            Training feature matrix.
        labels : array-like
            0/1 labels, one per row.
        feature_names : sequence of str, optional
            Column names for array input, or a column subset/order for
            DataFrame input.

        Returns
        -------
        TrainedModel

        Raises
        ------
        FitError
            If the matrix is empty or has non-finite values, or if the
            labels hold a single class.
        """
        X, names = _training_matrix(features, feature_names)
        if X.shape[0] == 0 or X.shape[1] == 0:
            raise FitError(f"Cannot fit on an empty feature matrix (shape {X.shape})")
        _check_finite(X, names)

        y = _label_vector(labels, X.shape[0])
        classes = np.unique(y)
        if classes.size < 2:
            raise FitError(
                f"Labels contain a single class ({int(classes[0])}); "
                "both classes are needed to fit"
            )

        estimator = self._build_estimator()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            estimator.fit(X, y)

        model = TrainedModel(
            variant=self.name,
            feature_names=names,
            estimator=estimator,
            config=dict(self.config),
            n_train=int(X.shape[0]),
            class_counts={0: int((y == 0).sum()), 1: int((y == 1).sum())},
            warnings=[str(w.message) for w in caught],
        )
        self._after_fit(model, X, y)
        return model

    def predict(
        self,
        model: TrainedModel,
        features,
        kind: PredictionKind = 'probability',
        threshold: float = 0.5,
    ) -> np.ndarray:
        """Predict with a trained model (see :func:`predict`)."""
        return predict(model, features, kind=kind, threshold=threshold)

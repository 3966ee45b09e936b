#!/usr/bin/env python3
"""
K-Fold Cross-Validation Manager
===============================

Evaluates a binary risk model by k-fold cross-validation: records are
split into k disjoint folds with a seeded shuffle, the model is trained on
k-1 folds and scored on the held-out fold, k times, and the per-fold
scores are averaged.

Fold Assignment
---------------
Every record lands in exactly one fold and fold sizes differ by at most
one record. With ``stratify=True`` each fold also keeps the overall class
ratio to within one record of rounding. The same seed always gives the
same assignment.

Aggregation
-----------
The aggregate of a metric is the unweighted mean of its per-fold values,
so every fold counts once regardless of size. A held-out fold containing
a single class has no defined AUROC; it is reported as NaN and left out
of the AUROC mean.

Example Usage
-------------
>>> from utils.resampling import CrossValidationManager
>>> from classify import get_model
>>> manager = CrossValidationManager(n_folds=5, stratify=True)
>>> report = manager.cross_validate(get_model('logistic'), X, y)
>>> print(f"AUROC: {report.mean['auroc']:.3f} +/- {report.std['auroc']:.3f}")
"""

from __future__ import annotations

import json
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold

from config import PARALLEL_MAX_WORKERS
from utils.errors import FitError, ResamplingError
from utils.scoring import DEFAULT_METRICS, get_metric, score_predictions


# ============================================================
# RESULT CONTAINERS
# ============================================================

@dataclass
class FoldResult:
    """Outcome of training on k-1 folds and scoring the held-out one."""

    fold: int
    n_train: int
    n_test: int
    scores: Dict[str, float]
    test_indices: np.ndarray = field(repr=False)
    labels: np.ndarray = field(repr=False)
    predictions: np.ndarray = field(repr=False)


def _finite_mean(values: Sequence[float]) -> float:
    finite = [v for v in values if np.isfinite(v)]
    return float(np.mean(finite)) if finite else float('nan')


def _finite_std(values: Sequence[float]) -> float:
    finite = [v for v in values if np.isfinite(v)]
    return float(np.std(finite)) if finite else float('nan')


@dataclass
class ScoreReport:
    """
    Per-fold and aggregate scores from one cross-validation run.

    Attributes
    ----------
    model : str
        Name of the evaluated model variant.
    n_folds : int
        Number of folds.
    metrics : tuple of str
        Metric names, in report order.
    folds : list of FoldResult
        Results ordered by fold index.
    stratified : bool
        Whether folds were stratified by label.
    random_state : int or None
        Seed of the fold assignment.
    threshold : float
        Probability cut-off used by class-based metrics.
    """

    model: str
    n_folds: int
    metrics: Tuple[str, ...]
    folds: List[FoldResult]
    stratified: bool = False
    random_state: Optional[int] = None
    threshold: float = 0.5

    def scores(self, metric: str) -> List[float]:
        """Per-fold values of one metric, in fold order."""
        return [f.scores[metric] for f in self.folds]

    @property
    def mean(self) -> Dict[str, float]:
        """Unweighted mean over folds with a defined value."""
        return {m: _finite_mean(self.scores(m)) for m in self.metrics}

    @property
    def std(self) -> Dict[str, float]:
        return {m: _finite_std(self.scores(m)) for m in self.metrics}

    @property
    def n_scored(self) -> Dict[str, int]:
        """Number of folds contributing to each mean."""
        return {m: int(np.isfinite(self.scores(m)).sum()) for m in self.metrics}

    def to_frame(self) -> pd.DataFrame:
        """One row per fold: fold, n_train, n_test and one column per metric."""
        rows = [
            {'fold': f.fold, 'n_train': f.n_train, 'n_test': f.n_test, **f.scores}
            for f in self.folds
        ]
        return pd.DataFrame(rows, columns=['fold', 'n_train', 'n_test', *self.metrics])

    def predictions_frame(self) -> pd.DataFrame:
        """Held-out prediction for every record, with its fold and label."""
        frames = [
            pd.DataFrame({
                'record': f.test_indices,
                'fold': f.fold,
                'label': f.labels,
                'prediction': f.predictions,
            })
            for f in self.folds
        ]
        return pd.concat(frames).sort_values('record').reset_index(drop=True)

    def to_dict(self) -> dict:
        return {
            'model': self.model,
            'n_folds': self.n_folds,
            'stratified': self.stratified,
            'random_state': self.random_state,
            'threshold': self.threshold,
            'metrics': list(self.metrics),
            'mean': self.mean,
            'std': self.std,
            'n_scored': self.n_scored,
            'folds': self.to_frame().to_dict(orient='records'),
        }

    def to_json(self, path: Path) -> None:
        """Write the report summary to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)


# ============================================================
# FOLD ASSIGNMENT
# ============================================================

def assign_folds(
    labels: Sequence[int],
    n_folds: int = 5,
    stratify: bool = False,
    random_state: Optional[int] = 42,
) -> np.ndarray:
    """
    Assign each record to one of ``n_folds`` folds.

    Parameters
    ----------
    labels : array-like
        0/1 labels, one per record (used for stratification and size).
    n_folds : int, default=5
        Number of folds, at least 2 and at most the number of records.
    stratify : bool, default=False
        Keep the class ratio in every fold.
    random_state : int, default=42
        Seed of the shuffle.

    Returns
    -------
    np.ndarray
        Fold number in [0, n_folds) for every record.

    Raises
    ------
    ResamplingError
        If the fold count is out of range, or stratification is
        impossible because no class has n_folds members.
    """
    labels = np.asarray(labels).ravel()
    n = labels.size

    if n_folds < 2:
        raise ResamplingError(f"At least 2 folds are required, got {n_folds}")
    if n_folds > n:
        raise ResamplingError(f"{n_folds} folds requested for only {n} records")

    if stratify:
        splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    else:
        splitter = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)

    folds = np.empty(n, dtype=int)
    try:
        for fold, (_, test_idx) in enumerate(splitter.split(np.zeros((n, 1)), labels)):
            folds[test_idx] = fold
    except ValueError as exc:
        raise ResamplingError(f"Cannot build {n_folds} stratified folds: {exc}") from exc

    return folds


def _binary_labels(labels) -> np.ndarray:
    """0/1 integer labels; booleans are accepted, anything else is rejected."""
    y = np.asarray(labels).ravel()
    if pd.isna(y).any():
        raise FitError("Labels contain missing values")
    if not np.isin(y, [0, 1]).all():
        raise FitError("Labels must be binary (0/1 or booleans)")
    return y.astype(int)


def _worker_count(n_jobs: Optional[int], n_folds: int) -> int:
    """Worker processes for fold evaluation, never more than the folds."""
    n_workers = n_jobs or PARALLEL_MAX_WORKERS or multiprocessing.cpu_count()
    return max(1, min(n_folds, n_workers))


def _evaluate_fold(
    model: Any,
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Tuple[str, ...],
    fold: int,
    train_idx: np.ndarray,
    test_idx: np.ndarray,
    metrics: Tuple[str, ...],
    threshold: float,
) -> FoldResult:
    """Train on the training indices and score the held-out fold."""
    trained = model.fit(X[train_idx], y[train_idx], feature_names=feature_names)
    predictions = model.predict(trained, X[test_idx])
    scores = score_predictions(y[test_idx], predictions, metrics=metrics, threshold=threshold)

    return FoldResult(
        fold=fold,
        n_train=len(train_idx),
        n_test=len(test_idx),
        scores=scores,
        test_indices=test_idx,
        labels=y[test_idx],
        predictions=predictions,
    )


# ============================================================
# CROSS-VALIDATION MANAGER
# ============================================================

class CrossValidationManager:
    """
    Manager for k-fold cross-validation of binary risk models.

    Parameters
    ----------
    n_folds : int, default=5
        Number of folds.
    stratify : bool, default=False
        Stratify folds by label.
    random_state : int, default=42
        Random seed for reproducible fold assignment.
    threshold : float, default=0.5
        Probability cut-off for class-based metrics.
    metrics : iterable of str, optional
        Registered metric names (default: auroc and accuracy).
    n_jobs : int, default=1
        Worker processes for fold evaluation; None uses PARALLEL_MAX_WORKERS
        (or every core). Folds share nothing but the
        read-only data; results are merged in fold order.

    Attributes
    ----------
    fold_assignment : np.ndarray or None
        Fold number for each record, set by ``create_folds``.

    Examples
    --------
    >>> manager = CrossValidationManager(n_folds=5, stratify=True)
    >>> report = manager.cross_validate(get_model('random_forest'), X, y)
    """

    def __init__(
        self,
        n_folds: int = 5,
        stratify: bool = False,
        random_state: Optional[int] = 42,
        threshold: float = 0.5,
        metrics: Optional[Iterable[str]] = None,
        n_jobs: int = 1,
    ):
        self.n_folds = n_folds
        self.stratify = stratify
        self.random_state = random_state
        self.threshold = threshold
        self.metrics = DEFAULT_METRICS if metrics is None else tuple(metrics)
        self.n_jobs = n_jobs
        self.fold_assignment: Optional[np.ndarray] = None

        for name in self.metrics:
            get_metric(name)

    def create_folds(self, labels: Sequence[int], verbose: bool = False) -> np.ndarray:
        """
        Assign records to folds (see :func:`assign_folds`).

        Raises
        ------
        ResamplingError
            If the fold configuration is invalid.
        """
        self.fold_assignment = assign_folds(
            labels,
            n_folds=self.n_folds,
            stratify=self.stratify,
            random_state=self.random_state,
        )

        if verbose:
            self._print_fold_summary(np.asarray(labels).ravel())

        return self.fold_assignment

    def _print_fold_summary(self, labels: np.ndarray) -> None:
        """Print size and class balance of each fold."""
        if self.fold_assignment is None:
            return

        print(f"   Created {self.n_folds} folds:")
        for fold in range(self.n_folds):
            in_fold = self.fold_assignment == fold
            n_pos = int(labels[in_fold].sum())
            print(f"      Fold {fold}: {int(in_fold.sum())} records ({n_pos} positive)")

    def check_folds(self, labels: Sequence[int]) -> None:
        """
        Require every training subset to contain both classes.

        Raises
        ------
        ResamplingError
            Naming the first fold whose training subset has one class.
        """
        if self.fold_assignment is None:
            raise ResamplingError("Folds must be created before they can be checked")

        labels = np.asarray(labels).ravel()
        for fold in range(self.n_folds):
            train_labels = labels[self.fold_assignment != fold]
            if np.unique(train_labels).size < 2:
                raise ResamplingError(
                    f"Training subset for fold {fold} holds a single class",
                    fold=fold,
                )

    def _check_finite(self, X: np.ndarray, names: Sequence[str]) -> None:
        """
        Require finite feature values for every record.

        Raises
        ------
        FitError
            Naming the first offending record, its feature and its fold.
        """
        bad = ~np.isfinite(X)
        if bad.any():
            row, col = map(int, np.argwhere(bad)[0])
            raise FitError(
                f"Non-finite value in feature '{names[col]}' at record {row} "
                f"(fold {int(self.fold_assignment[row])}; "
                f"{int(bad.sum())} non-finite values in total)"
            )

    def split(
        self,
        X: Any = None,
        y: Any = None,
    ) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """
        Generate (train_idx, test_idx) for folds 0..k-1 in order.

        Raises
        ------
        ResamplingError
            If folds haven't been created yet.
        """
        if self.fold_assignment is None:
            raise ResamplingError("Must create folds before splitting")

        for fold in range(self.n_folds):
            yield (
                np.flatnonzero(self.fold_assignment != fold),
                np.flatnonzero(self.fold_assignment == fold),
            )

    def cross_validate(
        self,
        model: Any,
        X: Any,
        y: Any,
        feature_names: Optional[Sequence[str]] = None,
        verbose: bool = False,
    ) -> ScoreReport:
        """
        Perform k-fold cross-validation.

        Parameters
        ----------
        model : ClassificationModel
            Unfitted model variant; it is fitted once per fold.
        X : pd.DataFrame or np.ndarray
            Feature matrix.
        y : array-like
            0/1 labels.
        feature_names : sequence of str, optional
            Names for array input (DataFrame columns are used otherwise).
        verbose : bool, default=False
            Print fold composition and per-fold scores.

        Returns
        -------
        ScoreReport

        Raises
        ------
        ResamplingError
            If the fold count is invalid or a training subset is
            degenerate; raised before any fold is fitted.
        FitError
            If labels are not binary, a feature value is non-finite
            (reported by record and fold), or a fold's fit fails.
        """
        if isinstance(X, pd.DataFrame):
            names = tuple(str(c) for c in X.columns) if feature_names is None else tuple(feature_names)
            X = X[list(names)].to_numpy(dtype=float)
        else:
            X = np.asarray(X, dtype=float)
            names = (
                tuple(f"x{i}" for i in range(X.shape[1]))
                if feature_names is None else tuple(feature_names)
            )
        y = _binary_labels(y)

        self.create_folds(y, verbose=verbose)
        self._check_finite(X, names)
        self.check_folds(y)

        tasks = [
            (model, X, y, names, fold, train_idx, test_idx, self.metrics, self.threshold)
            for fold, (train_idx, test_idx) in enumerate(self.split())
        ]

        if self.n_jobs is None or self.n_jobs > 1:
            n_workers = _worker_count(self.n_jobs, self.n_folds)
            results = []
            with ProcessPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(_evaluate_fold, *task) for task in tasks]
                for future in as_completed(futures):
                    results.append(future.result())
            results.sort(key=lambda r: r.fold)
        else:
            results = [_evaluate_fold(*task) for task in tasks]

        if verbose:
            for r in results:
                formatted = ', '.join(f"{k}={v:.3f}" for k, v in r.scores.items())
                print(f"      Fold {r.fold}: n_train={r.n_train}, n_test={r.n_test}, {formatted}")

        return ScoreReport(
            model=getattr(model, 'name', type(model).__name__),
            n_folds=self.n_folds,
            metrics=self.metrics,
            folds=results,
            stratified=self.stratify,
            random_state=self.random_state,
            threshold=self.threshold,
        )

    def get_fold_statistics(self) -> Optional[Dict[str, Any]]:
        """
        Get statistics about the fold assignment.

        Returns
        -------
        dict or None
            Fold sizes and balance, or None if folds haven't been created.
        """
        if self.fold_assignment is None:
            return None

        unique, counts = np.unique(self.fold_assignment, return_counts=True)

        return {
            'n_folds': len(unique),
            'fold_sizes': dict(zip(unique.tolist(), counts.tolist())),
            'min_size': int(counts.min()),
            'max_size': int(counts.max()),
            'balance_ratio': float(counts.min() / counts.max()),
        }


def cross_validate_sample(
    sample: Any,
    features: Iterable[str],
    model: Any,
    n_folds: int = 5,
    stratify: bool = False,
    random_state: Optional[int] = 42,
    threshold: float = 0.5,
    metrics: Optional[Iterable[str]] = None,
    n_jobs: int = 1,
    verbose: bool = False,
) -> ScoreReport:
    """
    Cross-validate a model on a labeled spatial sample.

    Convenience wrapper around CrossValidationManager.

    Parameters
    ----------
    sample : LabeledSample
        Labeled records.
    features : iterable of str
        Feature columns (e.g. a FeatureSet).
    model : str or ClassificationModel
        Variant name or configured variant.

    Examples
    --------
    >>> features = select_features(sample, exclude=['x', 'y', 'label'])
    >>> report = cross_validate_sample(sample, features, 'random_forest', stratify=True)
    >>> report.mean['auroc']
    """
    if isinstance(model, str):
        from classify.factory import get_model
        model = get_model(model)

    feature_names = list(features)
    manager = CrossValidationManager(
        n_folds=n_folds,
        stratify=stratify,
        random_state=random_state,
        threshold=threshold,
        metrics=metrics,
        n_jobs=n_jobs,
    )
    return manager.cross_validate(
        model,
        sample.feature_matrix(feature_names),
        sample.labels,
        verbose=verbose,
    )

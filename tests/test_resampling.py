#!/usr/bin/env python3
"""
Tests for k-fold cross-validation.

Tests cover:
- Fold assignment (partition, sizes, stratification, seeding)
- Validation of fold configurations before any fit
- Aggregation of per-fold scores
- Parallel and sequential evaluation giving identical reports
"""
from __future__ import annotations

import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from classify import get_model
from spatial.core.sample import bind_sample
from utils.errors import FitError, ResamplingError
from utils.resampling import (
    CrossValidationManager,
    FoldResult,
    ScoreReport,
    _worker_count,
    assign_folds,
    cross_validate_sample,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def labels() -> np.ndarray:
    """37 labels, 12 positive."""
    return np.array([1] * 12 + [0] * 25)


@pytest.fixture
def small_sample(small_df):
    return bind_sample(small_df, x='x', y='y', label='label', crs='EPSG:32633')


class RecordingModel:
    """Logistic variant that records each fit call."""

    name = 'recording'

    def __init__(self):
        self.inner = get_model('logistic')
        self.fit_calls = 0

    def fit(self, features, labels, feature_names=None):
        self.fit_calls += 1
        return self.inner.fit(features, labels, feature_names=feature_names)

    def predict(self, model, features, kind='probability', threshold=0.5):
        return self.inner.predict(model, features, kind=kind, threshold=threshold)


# ============================================================
# FOLD ASSIGNMENT
# ============================================================

class TestAssignFolds:
    """Tests for assign_folds function."""

    def test_partition(self, labels):
        """Every record lands in exactly one fold."""
        folds = assign_folds(labels, n_folds=5)

        assert folds.shape == labels.shape
        assert set(folds.tolist()) == {0, 1, 2, 3, 4}

    def test_balanced_sizes(self, labels):
        """Fold sizes differ by at most one."""
        sizes = np.bincount(assign_folds(labels, n_folds=5))
        assert sizes.max() - sizes.min() <= 1

    def test_stratified_class_ratio(self, labels):
        """Positives per fold differ by at most one."""
        folds = assign_folds(labels, n_folds=4, stratify=True)
        positives = np.bincount(folds[labels == 1], minlength=4)
        assert positives.max() - positives.min() <= 1

    def test_same_seed_same_folds(self, labels):
        first = assign_folds(labels, n_folds=5, random_state=7)
        second = assign_folds(labels, n_folds=5, random_state=7)
        np.testing.assert_array_equal(first, second)

    def test_different_seed_different_folds(self, labels):
        first = assign_folds(labels, n_folds=5, random_state=7)
        second = assign_folds(labels, n_folds=5, random_state=8)
        assert not np.array_equal(first, second)

    def test_too_few_folds(self, labels):
        with pytest.raises(ResamplingError, match="At least 2"):
            assign_folds(labels, n_folds=1)

    def test_more_folds_than_records(self):
        with pytest.raises(ResamplingError, match="only 3 records"):
            assign_folds([0, 1, 0], n_folds=4)

    def test_leave_one_out(self):
        folds = assign_folds([0, 1, 0, 1, 1], n_folds=5)
        assert sorted(folds.tolist()) == [0, 1, 2, 3, 4]

    def test_stratify_impossible(self):
        """No class has as many members as there are folds."""
        with pytest.raises(ResamplingError):
            assign_folds([0, 0, 1, 1], n_folds=3, stratify=True)


# ============================================================
# CROSS-VALIDATION
# ============================================================

class TestCrossValidationManager:
    """Tests for CrossValidationManager class."""

    def test_stratified_ten_records(self, small_sample):
        """10 records, 5 stratified folds: five folds of two, one per class."""
        manager = CrossValidationManager(n_folds=5, stratify=True, random_state=42)
        report = manager.cross_validate(
            get_model('logistic'),
            small_sample.feature_matrix(['slope', 'elevation']),
            small_sample.labels,
        )

        assert report.n_folds == 5
        assert [f.fold for f in report.folds] == [0, 1, 2, 3, 4]
        assert all(f.n_test == 2 for f in report.folds)
        assert all(f.n_train == 8 for f in report.folds)
        assert all(sorted(f.labels.tolist()) == [0, 1] for f in report.folds)

        auroc = report.scores('auroc')
        assert len(auroc) == 5
        assert report.mean['auroc'] == pytest.approx(np.mean(auroc))
        assert report.n_scored['auroc'] == 5

    def test_every_record_predicted_once(self, sample):
        report = cross_validate_sample(sample, ['slope', 'elevation'], 'logistic', n_folds=4)

        predictions = report.predictions_frame()
        assert predictions['record'].tolist() == list(range(len(sample)))
        assert predictions['label'].tolist() == sample.labels.tolist()
        assert predictions['prediction'].between(0, 1).all()

    def test_fits_once_per_fold(self, sample):
        model = RecordingModel()
        cross_validate_sample(sample, ['slope', 'elevation'], model, n_folds=6)
        assert model.fit_calls == 6

    def test_scores_in_range(self, sample):
        report = cross_validate_sample(sample, ['slope', 'elevation'], 'random_forest', n_folds=3)
        for metric in ('auroc', 'accuracy'):
            assert all(0 <= v <= 1 for v in report.scores(metric))

    def test_informative_feature_beats_chance(self, sample):
        report = cross_validate_sample(
            sample, ['slope', 'elevation'], 'logistic', n_folds=5, stratify=True
        )
        assert report.mean['auroc'] > 0.6

    def test_reproducible(self, sample):
        first = cross_validate_sample(sample, ['slope'], 'logistic', n_folds=5, random_state=3)
        second = cross_validate_sample(sample, ['slope'], 'logistic', n_folds=5, random_state=3)
        assert first.scores('auroc') == second.scores('auroc')

    def test_degenerate_training_fold(self):
        """A class confined to one fold leaves that fold's training subset single-class."""
        X = np.arange(6, dtype=float).reshape(-1, 1)
        y = np.array([0, 0, 0, 0, 0, 1])
        model = RecordingModel()

        manager = CrossValidationManager(n_folds=6)
        with pytest.raises(ResamplingError) as exc_info:
            manager.cross_validate(model, X, y)

        assert exc_info.value.fold == manager.fold_assignment[5]
        assert model.fit_calls == 0

    def test_fold_count_checked_before_fit(self, small_sample):
        model = RecordingModel()
        with pytest.raises(ResamplingError):
            cross_validate_sample(small_sample, ['slope'], model, n_folds=11)
        assert model.fit_calls == 0

    def test_single_class_test_folds_are_nan(self):
        """Leave-one-out folds hold one class each, so AUROC is undefined everywhere."""
        rng = np.random.default_rng(0)
        X = rng.normal(size=(12, 1))
        y = np.array([0, 1, 1] * 4)

        report = CrossValidationManager(n_folds=12).cross_validate(get_model('logistic'), X, y)

        assert all(np.isnan(report.scores('auroc')))
        assert report.n_scored['auroc'] == 0
        assert np.isnan(report.mean['auroc'])
        assert report.n_scored['accuracy'] == 12

    def test_fit_error_propagates(self, small_df):
        df = small_df.copy()
        df.loc[3, 'slope'] = np.inf
        sample = bind_sample(df, x='x', y='y', label='label', crs='EPSG:32633')

        with pytest.raises(FitError):
            cross_validate_sample(sample, ['slope'], 'logistic', n_folds=2, stratify=True)

    def test_non_finite_feature_names_record_and_fold(self, points_df):
        df = points_df.copy()
        df.loc[7, 'slope'] = np.nan
        sample = bind_sample(df, x='x', y='y', label='landslide', crs='EPSG:32633')
        model = RecordingModel()
        manager = CrossValidationManager(n_folds=5, stratify=True)

        with pytest.raises(FitError, match="feature 'slope' at record 7 ") as exc_info:
            manager.cross_validate(model, sample.feature_matrix(['slope', 'elevation']), sample.labels)

        assert f"fold {manager.fold_assignment[7]}" in str(exc_info.value)
        assert model.fit_calls == 0

    @pytest.mark.parametrize('labels', [
        [0.2, 0.9, 0.4, 1.7, 0.0, 1.0],
        [0, 1, 2, 0, 1, 0],
    ])
    def test_non_binary_labels(self, labels):
        X = np.arange(6, dtype=float).reshape(-1, 1)
        model = RecordingModel()
        with pytest.raises(FitError, match="binary"):
            CrossValidationManager(n_folds=2).cross_validate(model, X, labels)
        assert model.fit_calls == 0

    def test_boolean_labels(self, small_df):
        X = small_df[['slope']]
        labels = small_df['label'].astype(bool)
        report = CrossValidationManager(n_folds=5, stratify=True).cross_validate(
            get_model('logistic'), X, labels
        )
        assert report.predictions_frame()['label'].tolist() == small_df['label'].tolist()

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown metric"):
            CrossValidationManager(metrics=['f1'])

    def test_parallel_matches_sequential(self, sample):
        features = ['slope', 'elevation']
        sequential = cross_validate_sample(sample, features, 'logistic', n_folds=4, n_jobs=1)
        parallel = cross_validate_sample(sample, features, 'logistic', n_folds=4, n_jobs=2)

        assert [f.fold for f in parallel.folds] == [0, 1, 2, 3]
        for metric in ('auroc', 'accuracy'):
            np.testing.assert_allclose(parallel.scores(metric), sequential.scores(metric))

    @pytest.mark.parametrize('n_jobs, configured, expected', [
        (2, None, 2),
        (8, None, 4),
        (None, 3, 3),
        (None, 16, 4),
    ])
    def test_worker_count(self, monkeypatch, n_jobs, configured, expected):
        monkeypatch.setattr('utils.resampling.PARALLEL_MAX_WORKERS', configured)
        assert _worker_count(n_jobs, n_folds=4) == expected

    def test_worker_count_defaults_to_cores(self, monkeypatch):
        monkeypatch.setattr('utils.resampling.PARALLEL_MAX_WORKERS', None)
        monkeypatch.setattr('utils.resampling.multiprocessing.cpu_count', lambda: 3)
        assert _worker_count(None, n_folds=10) == 3

    def test_fold_statistics(self, labels):
        manager = CrossValidationManager(n_folds=5)
        assert manager.get_fold_statistics() is None

        manager.create_folds(labels)
        stats = manager.get_fold_statistics()
        assert stats['n_folds'] == 5
        assert sum(stats['fold_sizes'].values()) == len(labels)

    def test_split_requires_folds(self):
        with pytest.raises(ResamplingError):
            list(CrossValidationManager().split())


# ============================================================
# REPORT EXPORT
# ============================================================

class TestScoreReport:
    """Tests for ScoreReport export."""

    @pytest.fixture
    def report(self, sample):
        return cross_validate_sample(sample, ['slope', 'elevation'], 'logistic', n_folds=3)

    def test_to_frame(self, report):
        frame = report.to_frame()
        assert list(frame.columns) == ['fold', 'n_train', 'n_test', 'auroc', 'accuracy']
        assert len(frame) == 3

    def test_to_json(self, report, temp_dir):
        path = temp_dir / 'summary.json'
        report.to_json(path)

        with open(path) as f:
            summary = json.load(f)
        assert summary['model'] == 'logistic'
        assert summary['n_folds'] == 3
        assert summary['mean']['auroc'] == pytest.approx(report.mean['auroc'])
        assert len(summary['folds']) == 3

    def test_mean_skips_undefined_folds(self):
        folds = [
            FoldResult(fold=i, n_train=8, n_test=2, scores={'auroc': v, 'accuracy': 0.5},
                       test_indices=np.array([2 * i, 2 * i + 1]),
                       labels=np.array([0, 1]), predictions=np.array([0.4, 0.6]))
            for i, v in enumerate([0.8, float('nan'), 0.6])
        ]
        report = ScoreReport(model='logistic', n_folds=3, metrics=('auroc', 'accuracy'), folds=folds)

        assert report.mean['auroc'] == pytest.approx(0.7)
        assert report.n_scored == {'auroc': 2, 'accuracy': 3}
        assert report.mean['accuracy'] == pytest.approx(0.5)

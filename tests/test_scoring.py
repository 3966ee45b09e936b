#!/usr/bin/env python3
"""
Tests for scoring of binary risk predictions.

Tests cover:
- AUROC edge cases (perfect, reversed, constant, single class)
- Thresholded accuracy
- The metric registry
"""
from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from utils import scoring
from utils.scoring import (
    accuracy,
    auroc,
    get_metric,
    list_metrics,
    register_metric,
    score_predictions,
    to_classes,
)


class TestAuroc:
    """Tests for auroc metric."""

    def test_perfect_separation(self):
        assert auroc([0, 0, 1, 1], [0.1, 0.2, 0.8, 0.9]) == 1.0

    def test_reversed(self):
        assert auroc([0, 0, 1, 1], [0.9, 0.8, 0.2, 0.1]) == 0.0

    def test_constant_scores(self):
        """All ties count one half."""
        assert auroc([0, 1, 0, 1], [0.5, 0.5, 0.5, 0.5]) == 0.5

    def test_partial_ordering(self):
        assert auroc([0, 0, 1, 1], [0.1, 0.4, 0.35, 0.8]) == pytest.approx(0.75)

    def test_single_class(self):
        assert math.isnan(auroc([1, 1, 1], [0.2, 0.5, 0.9]))

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            auroc([0, 1], [0.5])

    def test_empty(self):
        with pytest.raises(ValueError):
            auroc([], [])


class TestAccuracy:
    """Tests for accuracy metric."""

    def test_all_correct(self):
        assert accuracy([0, 0, 1, 1], [0.1, 0.2, 0.8, 0.9]) == 1.0

    def test_threshold_is_inclusive(self):
        """A score equal to the threshold is classed positive."""
        assert to_classes([0.5, 0.49]).tolist() == [1, 0]
        assert accuracy([1, 0], [0.5, 0.49]) == 1.0

    def test_custom_threshold(self):
        assert accuracy([0, 1], [0.3, 0.6], threshold=0.7) == 0.5

    def test_single_class_defined(self):
        assert accuracy([1, 1], [0.9, 0.1]) == 0.5


class TestRegistry:
    """Tests for the metric registry."""

    def test_defaults_registered(self):
        assert {'auroc', 'accuracy'} <= set(list_metrics())

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="Unknown metric"):
            get_metric('f1')

    def test_score_predictions(self):
        scores = score_predictions([0, 1], [0.2, 0.9])
        assert scores == {'auroc': 1.0, 'accuracy': 1.0}

    def test_register_custom_metric(self, monkeypatch):
        monkeypatch.setattr('utils.scoring._metric_registry', dict(scoring._metric_registry))

        @register_metric('positive_rate')
        def positive_rate(labels, scores, threshold=0.5):
            return float(to_classes(scores, threshold).mean())

        scores = score_predictions([0, 1, 1, 0], [0.9, 0.8, 0.1, 0.2], metrics=['positive_rate'])
        assert scores == {'positive_rate': 0.5}
        assert 'positive_rate' in list_metrics()

    def test_custom_metric_does_not_leak(self):
        assert 'positive_rate' not in list_metrics()

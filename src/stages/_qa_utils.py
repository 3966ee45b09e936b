#!/usr/bin/env python3
"""
Quality Assurance Utilities for Pipeline Stages.

This module provides functions for generating per-stage QA reports
that track sample and score quality throughout the pipeline.

Usage
-----
    from stages._qa_utils import generate_qa_report, QAMetrics

    # At the end of a pipeline stage:
    metrics = compute_sample_metrics(sample)
    metrics.add('mean_auroc', report.mean['auroc'])

    generate_qa_report('s01_crossval', metrics)
"""
from __future__ import annotations

import math
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from config import ENABLE_QA_REPORTS, QA_REPORTS_DIR, QA_THRESHOLDS


class QAMetrics:
    """
    Container for QA metrics collected during a pipeline stage.

    Examples
    --------
    >>> metrics = QAMetrics()
    >>> metrics.add('n_records', 120)
    >>> metrics.add_pct('minority', 25.0)
    >>> metrics.to_dict()
    {'n_records': 120, 'minority_pct': 25.0}
    """

    def __init__(self):
        self._metrics: dict[str, Any] = {}

    def add(self, name: str, value: Any) -> 'QAMetrics':
        """Add a metric."""
        self._metrics[name] = value
        return self

    def add_pct(self, name: str, value: float) -> 'QAMetrics':
        """Add a percentage metric (appends '_pct' to name)."""
        self._metrics[f'{name}_pct'] = round(value, 2)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return self._metrics.copy()

    def __len__(self) -> int:
        return len(self._metrics)

    def __repr__(self) -> str:
        return f"QAMetrics({self._metrics})"


def compute_sample_metrics(sample) -> QAMetrics:
    """
    Compute standard QA metrics for a labeled sample.

    Parameters
    ----------
    sample : LabeledSample
        The sample to analyze

    Returns
    -------
    QAMetrics
        Record count, class counts, minority share and missing cells.
    """
    metrics = QAMetrics()

    counts = sample.class_counts()
    n = len(sample)
    metrics.add('n_records', n)
    metrics.add('n_positive', counts[1])
    metrics.add('n_negative', counts[0])
    metrics.add_pct('minority', (min(counts.values()) / n * 100) if n else 0.0)

    records = sample.records
    metrics.add('missing_cells', int(records.isna().sum().sum()))
    metrics.add('crs', sample.crs.to_string())

    return metrics


def add_score_metrics(metrics: QAMetrics, report) -> QAMetrics:
    """
    Add cross-validated score summaries to a metrics container.

    For each metric: the mean, the weakest fold, and how many folds
    produced a defined value.
    """
    metrics.add('n_folds', report.n_folds)
    for name in report.metrics:
        scores = [s for s in report.scores(name) if not math.isnan(s)]
        metrics.add(f'mean_{name}', report.mean[name])
        metrics.add(f'min_fold_{name}', min(scores) if scores else float('nan'))
        metrics.add(f'scored_folds_{name}', report.n_scored[name])
    return metrics


def add_risk_metrics(metrics: QAMetrics, risk) -> QAMetrics:
    """Add predicted-cell count and probability range of a risk surface."""
    for key, value in risk.summary().items():
        metrics.add(f'risk_{key}', value)
    return metrics


def generate_qa_report(
    stage_name: str,
    metrics: Union[QAMetrics, dict],
    output_dir: Optional[Path] = None,
    include_timestamp: bool = True,
) -> Optional[Path]:
    """
    Generate a QA report for a pipeline stage.

    Parameters
    ----------
    stage_name : str
        Name of the stage (e.g., 's01_crossval')
    metrics : QAMetrics or dict
        Metrics to include in the report
    output_dir : Path, optional
        Output directory (default: QA_REPORTS_DIR from config)
    include_timestamp : bool
        Whether to include timestamp in filename (default: True)

    Returns
    -------
    Path or None
        Path to generated report, or None if QA reports are disabled
    """
    if not ENABLE_QA_REPORTS:
        return None

    if isinstance(metrics, QAMetrics):
        metrics_dict = metrics.to_dict()
    else:
        metrics_dict = dict(metrics)

    if output_dir is None:
        output_dir = QA_REPORTS_DIR

    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    if include_timestamp:
        filename = f'{stage_name}_quality_{timestamp}.csv'
    else:
        filename = f'{stage_name}_quality.csv'

    report_path = output_dir / filename

    rows = [
        {
            'metric': key,
            'value': value,
            'stage': stage_name,
            'timestamp': timestamp,
        }
        for key, value in metrics_dict.items()
    ]
    pd.DataFrame(rows).to_csv(report_path, index=False)

    print(f"QA report saved: {report_path}")
    return report_path


def print_qa_summary(metrics: Union[QAMetrics, dict], stage_name: str = '') -> None:
    """Print a formatted summary of QA metrics."""
    if isinstance(metrics, QAMetrics):
        metrics_dict = metrics.to_dict()
    else:
        metrics_dict = dict(metrics)

    if stage_name:
        print(f"\nQA Summary: {stage_name}")
    else:
        print("\nQA Summary")
    print("-" * 40)

    for key, value in metrics_dict.items():
        if isinstance(value, float):
            print(f"  {key}: {value:,.3f}")
        elif isinstance(value, int):
            print(f"  {key}: {value:,}")
        else:
            print(f"  {key}: {value}")


def check_thresholds(
    metrics: Union[QAMetrics, dict],
    thresholds: Optional[dict] = None,
) -> list[str]:
    """
    Check metrics against thresholds and return warnings.

    Parameters
    ----------
    metrics : QAMetrics or dict
        Metrics to check
    thresholds : dict, optional
        Threshold definitions (default: QA_THRESHOLDS from config)

    Returns
    -------
    list[str]
        List of warning messages for threshold violations
    """
    if thresholds is None:
        thresholds = QA_THRESHOLDS

    if isinstance(metrics, QAMetrics):
        metrics_dict = metrics.to_dict()
    else:
        metrics_dict = dict(metrics)

    warnings = []

    if 'n_records' in metrics_dict and 'min_row_count' in thresholds:
        if metrics_dict['n_records'] < thresholds['min_row_count']:
            warnings.append(
                f"Record count ({metrics_dict['n_records']}) below "
                f"threshold ({thresholds['min_row_count']})"
            )

    if 'minority_pct' in metrics_dict and 'min_minority_pct' in thresholds:
        if metrics_dict['minority_pct'] < thresholds['min_minority_pct']:
            warnings.append(
                f"Minority class share ({metrics_dict['minority_pct']:.1f}%) below "
                f"threshold ({thresholds['min_minority_pct']}%)"
            )

    mean_auroc = metrics_dict.get('mean_auroc')
    if mean_auroc is not None and 'min_auroc' in thresholds:
        if not math.isnan(mean_auroc) and mean_auroc < thresholds['min_auroc']:
            warnings.append(
                f"Mean AUROC ({mean_auroc:.3f}) below threshold ({thresholds['min_auroc']})"
            )

    return warnings

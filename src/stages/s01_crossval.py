#!/usr/bin/env python3
"""
Stage 01: Cross-Validation

Purpose: Estimate out-of-sample skill of a model specification.

This stage handles:
- Loading the labeled sample for a specification
- Seeded k-fold (optionally stratified) fold assignment
- Training on k-1 folds and scoring the held-out fold
- Per-fold and mean AUROC / accuracy export

Input Files
-----------
- data_raw/points.csv (or --data)

Output Files
------------
- data_work/diagnostics/cv_scores.csv
- data_work/diagnostics/cv_summary.json
- data_work/diagnostics/cv_predictions.csv

Usage
-----
    python src/pipeline.py cross_validate -s landslide_logistic --data points.csv
    python src/pipeline.py cross_validate -s landslide_rf --data points.csv --folds 10 --stratify
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from classify.specifications import get_specification
from config import (
    CLASSIFICATION_THRESHOLD,
    CV_N_FOLDS,
    CV_STRATIFY,
    DATA_RAW_DIR,
    DEFAULT_METRICS,
    DEFAULT_SPECIFICATION_NAME,
    DIAGNOSTICS_DIR,
    RANDOM_STATE,
    SCORE_SUMMARY_FILE,
    SCORES_FILE,
)
from stages._qa_utils import (
    add_score_metrics,
    check_thresholds,
    compute_sample_metrics,
    generate_qa_report,
    print_qa_summary,
)
from stages.s00_sample import INPUT_FILE, load_sample
from utils.helpers import ensure_dir, format_score
from utils.resampling import ScoreReport, cross_validate_sample


# ============================================================
# CONFIGURATION
# ============================================================

PREDICTIONS_FILE = 'cv_predictions.csv'


# ============================================================
# OUTPUT
# ============================================================

def save_report(report: ScoreReport, output_dir: Path) -> dict[str, Path]:
    """Write per-fold scores, the summary and held-out predictions."""
    output_dir = ensure_dir(Path(output_dir))

    paths = {
        'scores': output_dir / SCORES_FILE,
        'summary': output_dir / SCORE_SUMMARY_FILE,
        'predictions': output_dir / PREDICTIONS_FILE,
    }
    report.to_frame().to_csv(paths['scores'], index=False)
    report.to_json(paths['summary'])
    report.predictions_frame().to_csv(paths['predictions'], index=False)

    return paths


def print_report(report: ScoreReport) -> None:
    """Print per-fold scores and the cross-validated means."""
    print(f"\n  {'Fold':>6} {'Train':>7} {'Test':>6}" + ''.join(f" {m:>10}" for m in report.metrics))
    print("  " + "-" * (21 + 11 * len(report.metrics)))
    for fold in report.folds:
        values = ''.join(f" {fold.scores[m]:>10.3f}" for m in report.metrics)
        print(f"  {fold.fold:>6} {fold.n_train:>7} {fold.n_test:>6}{values}")

    print()
    for metric in report.metrics:
        summary = format_score(report.mean[metric], report.std[metric])
        scored = report.n_scored[metric]
        note = '' if scored == report.n_folds else f" ({scored}/{report.n_folds} folds scored)"
        print(f"  Mean {metric}: {summary}{note}")


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(
    specification: str = DEFAULT_SPECIFICATION_NAME,
    data_path: Optional[Union[str, Path]] = None,
    n_folds: int = CV_N_FOLDS,
    stratify: bool = CV_STRATIFY,
    seed: Optional[int] = RANDOM_STATE,
    n_jobs: Optional[int] = 1,
    threshold: float = CLASSIFICATION_THRESHOLD,
    specs_path: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    verbose: bool = True,
) -> ScoreReport:
    """
    Cross-validate a named model specification.

    Parameters
    ----------
    specification : str
        Specification name in specifications.yml
    data_path : str or Path, optional
        Point file (default: data_raw/points.csv)
    n_folds : int
        Number of folds
    stratify : bool
        Keep class ratios equal across folds
    seed : int, optional
        Seed of the fold shuffle
    n_jobs : int, optional
        Worker processes for fold evaluation (None = all cores)
    threshold : float
        Probability cut-off for accuracy
    specs_path : Path, optional
        Specifications file (default: SPECIFICATIONS_FILE from config)
    output_dir : Path, optional
        Directory for score tables (default: DIAGNOSTICS_DIR)
    verbose : bool
        Print detailed output

    Returns
    -------
    ScoreReport
        Per-fold and mean scores.
    """
    print("=" * 60)
    print("Stage 01: Cross-Validation")
    print("=" * 60)

    spec = get_specification(specification, specs_path)
    data_path = Path(data_path) if data_path else DATA_RAW_DIR / INPUT_FILE

    print(f"\n  Specification: {spec.name} ({spec.model})")
    print(f"  Features: {', '.join(spec.features)}")
    print(f"\n  Loading: {data_path}")
    sample = load_sample(spec, data_path, verbose=verbose)

    print(f"\n  Running {n_folds}-fold cross-validation"
          f"{' (stratified)' if stratify else ''}, seed={seed}")
    report = cross_validate_sample(
        sample,
        spec.features,
        spec.build_model(),
        n_folds=n_folds,
        stratify=stratify,
        random_state=seed,
        threshold=threshold,
        metrics=DEFAULT_METRICS,
        n_jobs=n_jobs,
        verbose=verbose,
    )

    print_report(report)

    paths = save_report(report, output_dir if output_dir is not None else DIAGNOSTICS_DIR)
    print(f"\n  Saved: {paths['scores']}")
    print(f"  Saved: {paths['summary']}")

    metrics = compute_sample_metrics(sample)
    metrics.add('model', spec.model)
    add_score_metrics(metrics, report)
    for warning in check_thresholds(metrics):
        print(f"  WARNING: {warning}")
    if verbose:
        print_qa_summary(metrics, 's01_crossval')
    generate_qa_report('s01_crossval', metrics)

    print("\n" + "=" * 60)
    print("Stage 01 complete.")
    print("=" * 60)

    return report


if __name__ == '__main__':
    main()

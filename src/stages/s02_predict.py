#!/usr/bin/env python3
"""
Stage 02: Risk Surface

Purpose: Train a specification on the full sample and map risk over a
covariate raster.

This stage handles:
- Fitting the specification's model on every labeled record
- Loading covariate layers and checking them against the model features
- Checking that sample and grid share a CRS
- Block-wise probability prediction inside the study area
- GeoTIFF export of the risk surface

Input Files
-----------
- data_raw/points.csv (or --data)
- covariate rasters (--grid), one per feature or one multi-band stack

Output Files
------------
- output/risk_surface.tif (or --output)
- data_work/diagnostics/feature_importance.csv (random forest with importance)

Usage
-----
    python src/pipeline.py predict_grid -s landslide_rf --data points.csv \\
        --grid slope.tif elevation.tif
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

from classify.base import TrainedModel
from classify.specifications import get_specification
from config import DATA_RAW_DIR, DEFAULT_SPECIFICATION_NAME, DIAGNOSTICS_DIR, RISK_GRID_PATH
from spatial.core.grid import RiskGrid, check_alignment, predict_grid
from spatial.core.io import load_covariate_grid, save_risk_grid
from stages._qa_utils import QAMetrics, add_risk_metrics, generate_qa_report, print_qa_summary
from stages.s00_sample import INPUT_FILE, load_sample
from utils.helpers import save_diagnostic


# ============================================================
# REPORTING
# ============================================================

def importance_table(model: TrainedModel) -> Optional[pd.DataFrame]:
    """
    Collect impurity and permutation importances into one table.

    Returns None when the model recorded no importances.
    """
    if model.importances is None:
        return None

    table = pd.DataFrame({
        'feature': list(model.importances.keys()),
        'impurity': list(model.importances.values()),
    })
    if model.permutation_importances is not None:
        table['permutation'] = table['feature'].map(model.permutation_importances)
    return table.sort_values('impurity', ascending=False).reset_index(drop=True)


def print_model_summary(model: TrainedModel) -> None:
    print(f"    -> {model.variant} trained on {model.n_train:,} records "
          f"({model.class_counts.get(1, 0)} positive, {model.class_counts.get(0, 0)} negative)")

    coefficients = model.coefficients()
    if coefficients is not None:
        print("\n  Coefficients:")
        for name, value in coefficients.items():
            print(f"    {name:<20} {value:>10.4f}")

    for warning in model.warnings:
        print(f"  WARNING: {warning}")


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(
    specification: str = DEFAULT_SPECIFICATION_NAME,
    data_path: Optional[Union[str, Path]] = None,
    grid_paths: Union[str, Path, Sequence[Union[str, Path]], Mapping[str, Union[str, Path]], None] = None,
    layer_names: Optional[Sequence[str]] = None,
    output_path: Optional[Union[str, Path]] = None,
    specs_path: Optional[Path] = None,
    verbose: bool = True,
) -> RiskGrid:
    """
    Produce a risk surface for a named model specification.

    Parameters
    ----------
    specification : str
        Specification name in specifications.yml
    data_path : str or Path, optional
        Point file (default: data_raw/points.csv)
    grid_paths : path, list of paths or mapping of name -> path
        Covariate rasters
    layer_names : sequence of str, optional
        Layer names overriding those read from the rasters
    output_path : str or Path, optional
        GeoTIFF destination (default: RISK_GRID_PATH)
    specs_path : Path, optional
        Specifications file (default: SPECIFICATIONS_FILE from config)
    verbose : bool
        Print detailed output

    Returns
    -------
    RiskGrid
        Positive-class probabilities; NaN outside the study area.
    """
    print("=" * 60)
    print("Stage 02: Risk Surface")
    print("=" * 60)

    if not grid_paths:
        raise ValueError("At least one covariate raster is required")

    spec = get_specification(specification, specs_path)
    data_path = Path(data_path) if data_path else DATA_RAW_DIR / INPUT_FILE
    output_path = Path(output_path) if output_path else RISK_GRID_PATH

    print(f"\n  Specification: {spec.name} ({spec.model})")
    print(f"\n  Loading: {data_path}")
    sample = load_sample(spec, data_path, verbose=verbose)

    print("\n  Training on full sample...")
    features = sample.feature_matrix(spec.features)
    trained = spec.build_model().fit(features, sample.labels)
    if verbose:
        print_model_summary(trained)

    importances = importance_table(trained)
    if importances is not None:
        path = save_diagnostic(importances, 'feature_importance', DIAGNOSTICS_DIR)
        print(f"\n  Feature importance saved: {path}")
        if verbose:
            print(importances.to_string(index=False))

    print("\n  Loading covariate grid...")
    grid = load_covariate_grid(grid_paths, layer_names=layer_names)
    print(f"    -> {len(grid.layer_names)} layers ({', '.join(grid.layer_names)}), "
          f"{grid.shape[0]} x {grid.shape[1]} cells")
    check_alignment(sample, grid)

    print("\n  Predicting risk surface...")
    risk = predict_grid(trained, grid)
    save_risk_grid(risk, output_path)
    print(f"    -> Saved: {output_path}")

    metrics = QAMetrics()
    metrics.add('model', spec.model)
    metrics.add('n_train', trained.n_train)
    metrics.add('n_layers', len(grid.layer_names))
    add_risk_metrics(metrics, risk)
    if verbose:
        print_qa_summary(metrics, 's02_predict')
    generate_qa_report('s02_predict', metrics)

    print("\n" + "=" * 60)
    print("Stage 02 complete.")
    print("=" * 60)

    return risk


if __name__ == '__main__':
    main()

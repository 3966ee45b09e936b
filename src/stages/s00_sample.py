#!/usr/bin/env python3
"""
Stage 00: Sample

Purpose: Load labeled points and bind them into a labeled spatial sample.

This stage handles:
- Reading point tables (CSV/Parquet) or vector files (GPKG/SHP/GeoJSON)
- Binding coordinates, label and CRS from a model specification
- Dropping records with missing feature values
- Class-balance QA

Input Files
-----------
- data_raw/<points>.{csv,parquet,gpkg,shp,geojson}

Usage
-----
    python src/pipeline.py run_stage s00_sample
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from classify.specifications import ModelSpecification, get_specification
from config import DATA_RAW_DIR, DEFAULT_SPECIFICATION_NAME
from spatial.core.io import SPATIAL_FORMATS, load_records, load_spatial
from spatial.core.sample import LabeledSample, bind_sample, sample_from_geodataframe
from stages._qa_utils import check_thresholds, compute_sample_metrics, generate_qa_report, print_qa_summary


# ============================================================
# CONFIGURATION
# ============================================================

INPUT_FILE = 'points.csv'


# ============================================================
# LOADING
# ============================================================

def load_sample(
    spec: ModelSpecification,
    data_path: Union[str, Path],
    verbose: bool = True,
) -> LabeledSample:
    """
    Load a point file and bind it according to a specification.

    Records missing any specification feature are dropped.

    Raises
    ------
    FileNotFoundError
        If the data file does not exist.
    SchemaError
        If the file does not match the specification.
    """
    data_path = Path(data_path)

    if data_path.suffix.lower() in SPATIAL_FORMATS:
        gdf = load_spatial(data_path)
        if gdf.crs is None:
            gdf = gdf.set_crs(spec.crs)
        sample = sample_from_geodataframe(gdf, spec.label, positive=spec.positive)
    else:
        df = load_records(data_path)
        sample = bind_sample(df, spec.x, spec.y, spec.label, spec.crs, positive=spec.positive)

    spec.check_against(sample)

    n_before = len(sample)
    sample = sample.dropna(spec.features)
    if verbose:
        print(f"    -> {n_before:,} records, {len(sample.columns)} columns")
        if len(sample) < n_before:
            print(f"    -> dropped {n_before - len(sample):,} records with missing features")

    return sample


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(
    specification: str = DEFAULT_SPECIFICATION_NAME,
    data_path: Optional[Union[str, Path]] = None,
    specs_path: Optional[Path] = None,
    verbose: bool = True,
) -> LabeledSample:
    """
    Load and check the labeled sample for a specification.

    Parameters
    ----------
    specification : str
        Specification name in specifications.yml
    data_path : str or Path, optional
        Point file (default: data_raw/points.csv)
    specs_path : Path, optional
        Specifications file (default: SPECIFICATIONS_FILE from config)
    verbose : bool
        Print detailed output
    """
    print("=" * 60)
    print("Stage 00: Sample")
    print("=" * 60)

    spec = get_specification(specification, specs_path)
    data_path = Path(data_path) if data_path else DATA_RAW_DIR / INPUT_FILE

    print(f"\n  Loading: {data_path}")
    sample = load_sample(spec, data_path, verbose=verbose)

    metrics = compute_sample_metrics(sample)
    for warning in check_thresholds(metrics):
        print(f"  WARNING: {warning}")
    print_qa_summary(metrics, 's00_sample')
    generate_qa_report('s00_sample', metrics)

    print("\n" + "=" * 60)
    print("Stage 00 complete.")
    print("=" * 60)

    return sample


if __name__ == '__main__':
    main()

"""
Core spatial utilities: samples, feature selection, CRS handling,
covariate grids and I/O.
"""

from spatial.core.sample import (
    FeatureSet,
    LabeledSample,
    bind_sample,
    sample_from_geodataframe,
    select_features,
)
from spatial.core.grid import CovariateGrid, RiskGrid, check_alignment, predict_grid
from spatial.core.crs import parse_crs, crs_matches, reproject_sample, to_projected
from spatial.core.io import load_records, load_spatial, load_covariate_grid, save_risk_grid

__all__ = [
    "FeatureSet",
    "LabeledSample",
    "bind_sample",
    "sample_from_geodataframe",
    "select_features",
    "CovariateGrid",
    "RiskGrid",
    "check_alignment",
    "predict_grid",
    "parse_crs",
    "crs_matches",
    "reproject_sample",
    "to_projected",
    "load_records",
    "load_spatial",
    "load_covariate_grid",
    "save_risk_grid",
]

"""
Geospatial utilities for binary risk mapping.

This module binds labeled point records to coordinates, selects predictive
features, manages reference systems, and applies trained models to
covariate rasters.

Example usage:
    from spatial import bind_sample, select_features, load_covariate_grid, predict_grid

    # Bind a table of labeled points
    sample = bind_sample(df, x='x', y='y', label='landslide', crs='EPSG:32633')
    features = select_features(sample, exclude=['x', 'y', 'landslide', 'id'])

    # Map risk over a covariate raster stack
    grid = load_covariate_grid({'slope': 'slope.tif', 'elevation': 'dem.tif'})
    risk = predict_grid(trained_model, grid)
"""

from spatial.core.sample import (
    FeatureSet,
    LabeledSample,
    bind_sample,
    sample_from_geodataframe,
    select_features,
)
from spatial.core.grid import (
    CovariateGrid,
    RiskGrid,
    check_alignment,
    check_layer_names,
    predict_grid,
)
from spatial.core.crs import (
    parse_crs,
    crs_matches,
    estimate_utm_zone,
    get_utm_crs,
    get_crs_info,
    reproject_sample,
    to_projected,
)
from spatial.core.io import (
    load_records,
    load_spatial,
    save_spatial,
    load_covariate_grid,
    save_risk_grid,
)

__all__ = [
    # Samples
    "FeatureSet",
    "LabeledSample",
    "bind_sample",
    "sample_from_geodataframe",
    "select_features",
    # Grids
    "CovariateGrid",
    "RiskGrid",
    "check_alignment",
    "check_layer_names",
    "predict_grid",
    # CRS
    "parse_crs",
    "crs_matches",
    "estimate_utm_zone",
    "get_utm_crs",
    "get_crs_info",
    "reproject_sample",
    "to_projected",
    # I/O
    "load_records",
    "load_spatial",
    "save_spatial",
    "load_covariate_grid",
    "save_risk_grid",
]

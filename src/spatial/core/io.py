"""
Spatial data I/O utilities.

Thin wrappers around geopandas (vector points), pandas (coordinate tables)
and rasterio (covariate rasters and risk surfaces). Parsing itself is left
to those libraries.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from spatial.core.grid import CovariateGrid, RiskGrid
from utils.errors import SchemaError

try:
    import geopandas as gpd
    HAS_GEOPANDAS = True
except ImportError:
    HAS_GEOPANDAS = False
    gpd = None

try:
    import rasterio
    HAS_RASTERIO = True
except ImportError:
    HAS_RASTERIO = False
    rasterio = None


# Supported file extensions and their drivers
SPATIAL_FORMATS = {
    ".gpkg": "GPKG",
    ".shp": "ESRI Shapefile",
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
}

TABLE_FORMATS = (".csv", ".parquet")

PathLike = Union[str, Path]


def _check_geopandas() -> None:
    """Raise ImportError if geopandas is not available."""
    if not HAS_GEOPANDAS:
        raise ImportError(
            "geopandas is required for vector operations. "
            "Install with: pip install geopandas"
        )


def _check_rasterio() -> None:
    """Raise ImportError if rasterio is not available."""
    if not HAS_RASTERIO:
        raise ImportError(
            "rasterio is required for raster operations. "
            "Install with: pip install rasterio"
        )


def load_spatial(
    path: PathLike,
    layer: Optional[str] = None,
    **kwargs,
) -> "gpd.GeoDataFrame":
    """
    Load vector data (e.g. labeled points) from file.

    Parameters
    ----------
    path : str or Path
        GeoPackage, Shapefile or GeoJSON file.
    layer : str, optional
        Layer name for multi-layer formats (e.g., GeoPackage).
    **kwargs
        Additional arguments passed to geopandas.read_file().

    Raises
    ------
    ImportError
        If geopandas is not installed.
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file format is not supported.

    Examples
    --------
    >>> gdf = load_spatial('data_raw/landslides.gpkg')
    """
    _check_geopandas()

    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Spatial file not found: {path}")

    ext = path.suffix.lower()
    if ext not in SPATIAL_FORMATS:
        supported = ", ".join(SPATIAL_FORMATS.keys())
        raise ValueError(
            f"Unsupported spatial format: {ext}. "
            f"Supported formats: {supported}"
        )

    read_kwargs = kwargs.copy()
    if layer is not None:
        read_kwargs["layer"] = layer

    return gpd.read_file(path, **read_kwargs)


def save_spatial(
    gdf: "gpd.GeoDataFrame",
    path: PathLike,
    layer: Optional[str] = None,
    driver: Optional[str] = None,
    **kwargs,
) -> Path:
    """
    Save vector data to file, choosing the driver from the extension.

    Examples
    --------
    >>> save_spatial(sample.to_geodataframe(), 'output/points.gpkg')
    """
    _check_geopandas()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    ext = path.suffix.lower()

    if driver is None:
        if ext not in SPATIAL_FORMATS:
            supported = ", ".join(SPATIAL_FORMATS.keys())
            raise ValueError(
                f"Cannot determine driver for extension: {ext}. "
                f"Supported formats: {supported}"
            )
        driver = SPATIAL_FORMATS[ext]

    write_kwargs = kwargs.copy()
    write_kwargs["driver"] = driver
    if layer is not None:
        write_kwargs["layer"] = layer

    gdf.to_file(path, **write_kwargs)

    return path


def load_records(path: PathLike) -> pd.DataFrame:
    """
    Load a table of labeled records with coordinate columns.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the extension is not .csv or .parquet.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Record file not found: {path}")

    ext = path.suffix.lower()
    if ext == ".csv":
        return pd.read_csv(path)
    if ext == ".parquet":
        return pd.read_parquet(path)

    raise ValueError(
        f"Unsupported table format: {ext}. Supported formats: {', '.join(TABLE_FORMATS)}"
    )


def _read_band(src, band: int) -> tuple[np.ndarray, np.ndarray]:
    """Read one band as float with nodata cells flagged invalid."""
    masked = src.read(band, masked=True)
    data = masked.filled(np.nan).astype(float)
    valid = ~np.ma.getmaskarray(masked)
    return data, valid


def load_covariate_grid(
    source: Union[PathLike, Sequence[PathLike], Mapping[str, PathLike]],
    layer_names: Optional[Sequence[str]] = None,
) -> CovariateGrid:
    """
    Load covariate layers from raster files.

    Parameters
    ----------
    source : path, list of paths, or mapping of name -> path
        A single multi-band raster, or one single-band raster per layer.
    layer_names : sequence of str, optional
        Layer names. Defaults to mapping keys, file stems (list input) or
        band descriptions (multi-band input).

    Returns
    -------
    CovariateGrid
        Layers plus CRS and transform of the first raster. Cells that are
        nodata in any layer fall outside the study-area mask.

    Raises
    ------
    SchemaError
        If layer names are missing or rasters differ in shape, transform
        or CRS.

    Examples
    --------
    >>> grid = load_covariate_grid({'slope': 'slope.tif', 'elevation': 'dem.tif'})
    >>> grid = load_covariate_grid('covariates.tif', layer_names=['slope', 'elevation'])
    """
    _check_rasterio()

    if isinstance(source, Mapping):
        names = list(source.keys())
        paths = [Path(p) for p in source.values()]
    elif isinstance(source, (str, Path)):
        paths = [Path(source)]
        names = None
    else:
        paths = [Path(p) for p in source]
        names = [p.stem for p in paths]

    if layer_names is not None:
        names = list(layer_names)

    for path in paths:
        if not path.exists():
            raise FileNotFoundError(f"Raster file not found: {path}")

    layers = []
    valid = None
    reference = None

    for path in paths:
        with rasterio.open(path) as src:
            if reference is None:
                reference = (src.shape, src.transform, src.crs)
            elif (src.shape, src.transform, src.crs) != reference:
                raise SchemaError(f"Raster {path.name} is not aligned with {paths[0].name}")

            bands = range(1, src.count + 1) if len(paths) == 1 else [1]
            for band in bands:
                data, band_valid = _read_band(src, band)
                layers.append(data)
                valid = band_valid if valid is None else valid & band_valid

            if names is None:
                names = [
                    desc or f"band{i}" for i, desc in enumerate(src.descriptions, start=1)
                ]

    if len(names) != len(layers):
        raise SchemaError(f"{len(names)} layer names for {len(layers)} raster bands")

    shape, transform, crs = reference
    return CovariateGrid(
        data=np.stack(layers),
        layer_names=tuple(names),
        crs=None if crs is None else crs.to_wkt(),
        transform=transform,
        mask=valid,
    )


def save_risk_grid(risk: RiskGrid, path: PathLike) -> Path:
    """
    Write a risk surface as a single-band float32 GeoTIFF (NaN = nodata).

    Examples
    --------
    >>> save_risk_grid(predict_grid(trained, grid), 'output/risk_surface.tif')
    """
    _check_rasterio()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows, cols = risk.shape
    profile = {
        "driver": "GTiff",
        "height": rows,
        "width": cols,
        "count": 1,
        "dtype": "float32",
        "nodata": np.nan,
    }
    if risk.crs is not None:
        profile["crs"] = risk.crs.to_wkt()
    if risk.transform is not None:
        profile["transform"] = risk.transform

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(risk.values.astype("float32"), 1)

    return path

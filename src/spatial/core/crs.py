"""
Coordinate Reference System (CRS) utilities.

Provides functions for parsing, comparing and transforming the reference
systems of labeled samples and covariate grids.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from utils.errors import SchemaError


# Common CRS codes
WGS84 = "EPSG:4326"
WEB_MERCATOR = "EPSG:3857"

CRSLike = Union[str, int, CRS]


def parse_crs(crs: CRSLike) -> CRS:
    """
    Parse a reference-system identifier into a pyproj CRS.

    Parameters
    ----------
    crs : str, int or CRS
        EPSG code ("EPSG:4326" or 4326), WKT, proj4 string or CRS object.

    Returns
    -------
    CRS
        The parsed reference system.

    Raises
    ------
    SchemaError
        If the identifier is missing or cannot be parsed.

    Examples
    --------
    >>> parse_crs("EPSG:4326").to_epsg()
    4326
    """
    if crs is None:
        raise SchemaError("A coordinate reference system is required")
    try:
        return CRS.from_user_input(crs)
    except CRSError as exc:
        raise SchemaError(f"Invalid coordinate reference system: {crs!r}") from exc


def _crs_of(obj: Any) -> Optional[CRS]:
    """Return the CRS of a sample/grid/GeoDataFrame, or parse a CRS-like value."""
    if obj is None:
        return None
    if hasattr(obj, 'crs'):
        return None if obj.crs is None else parse_crs(obj.crs)
    return parse_crs(obj)


def crs_matches(first: Any, second: Any) -> bool:
    """
    Check if two objects share the same CRS.

    Parameters
    ----------
    first, second
        Labeled samples, covariate grids, GeoDataFrames or CRS-like values.

    Returns
    -------
    bool
        True if both have the same CRS. False if either has none.

    Examples
    --------
    >>> crs_matches("EPSG:4326", 4326)
    True
    """
    a = _crs_of(first)
    b = _crs_of(second)
    if a is None or b is None:
        return False
    return a.equals(b)


def estimate_utm_zone(lon: float) -> int:
    """
    Estimate the appropriate UTM zone for a given longitude.

    Examples
    --------
    >>> estimate_utm_zone(-74.0)  # New York
    18
    >>> estimate_utm_zone(-122.4)  # San Francisco
    10
    """
    # UTM zones are 6 degrees wide, starting at -180
    zone = int((lon + 180) / 6) + 1
    return min(max(zone, 1), 60)


def get_utm_crs(lon: float, lat: float) -> str:
    """
    Get the UTM CRS covering a WGS84 location.

    Examples
    --------
    >>> get_utm_crs(-74.0, 40.7)  # NYC
    'EPSG:32618'
    >>> get_utm_crs(0.0, -34.0)  # Southern hemisphere
    'EPSG:32731'
    """
    zone = estimate_utm_zone(lon)

    if lat >= 0:
        # Northern hemisphere: EPSG 326XX
        return f"EPSG:326{zone:02d}"
    # Southern hemisphere: EPSG 327XX
    return f"EPSG:327{zone:02d}"


def transform_coordinates(
    xs: np.ndarray,
    ys: np.ndarray,
    source_crs: CRSLike,
    target_crs: CRSLike,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Transform coordinate arrays between reference systems.

    Coordinates are treated in x/y (easting/northing, lon/lat) order
    regardless of the axis order declared by either CRS.
    """
    transformer = Transformer.from_crs(
        parse_crs(source_crs), parse_crs(target_crs), always_xy=True
    )
    new_x, new_y = transformer.transform(np.asarray(xs, dtype=float), np.asarray(ys, dtype=float))
    return np.asarray(new_x, dtype=float), np.asarray(new_y, dtype=float)


def reproject_sample(sample, target_crs: CRSLike):
    """
    Reproject a labeled sample's coordinates.

    Parameters
    ----------
    sample : LabeledSample
        Sample to reproject.
    target_crs : str, int or CRS
        Target reference system.

    Returns
    -------
    LabeledSample
        New sample in the target CRS. The input is returned unchanged if it
        is already in that CRS.

    Examples
    --------
    >>> utm = reproject_sample(sample, "EPSG:32618")
    """
    target = parse_crs(target_crs)
    if sample.crs.equals(target):
        return sample

    new_x, new_y = transform_coordinates(sample.x, sample.y, sample.crs, target)
    return sample.with_coordinates(new_x, new_y, target)


def to_projected(sample, utm_zone: Optional[int] = None):
    """
    Reproject a labeled sample into a UTM zone.

    For distance-based work geographic coordinates should be projected.
    The zone is chosen from the sample's WGS84 centroid unless given.

    Examples
    --------
    >>> sample_utm = to_projected(sample)
    >>> sample_utm = to_projected(sample, utm_zone=18)
    """
    lon, lat = transform_coordinates(sample.x, sample.y, sample.crs, WGS84)
    centroid_lon, centroid_lat = float(np.mean(lon)), float(np.mean(lat))

    if utm_zone is not None:
        prefix = "326" if centroid_lat >= 0 else "327"
        target_crs = f"EPSG:{prefix}{utm_zone:02d}"
    else:
        target_crs = get_utm_crs(centroid_lon, centroid_lat)

    return reproject_sample(sample, target_crs)


def get_crs_info(obj: Any) -> dict:
    """
    Get information about an object's CRS.

    Returns
    -------
    dict
        Dictionary with keys 'crs', 'epsg', 'is_geographic',
        'is_projected' and 'units' (all None if there is no CRS).

    Examples
    --------
    >>> get_crs_info("EPSG:4326")['units']
    'degree'
    """
    crs = _crs_of(obj)
    if crs is None:
        return {
            "crs": None,
            "epsg": None,
            "is_geographic": None,
            "is_projected": None,
            "units": None,
        }

    try:
        units = crs.axis_info[0].unit_name
    except (AttributeError, IndexError):
        units = None

    return {
        "crs": crs,
        "epsg": crs.to_epsg(),
        "is_geographic": crs.is_geographic,
        "is_projected": crs.is_projected,
        "units": units,
    }

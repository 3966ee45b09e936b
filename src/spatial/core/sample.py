"""
Labeled spatial samples and feature selection.

Binds a table of records (feature columns plus a binary label) to point
coordinates in a single reference system. Schema problems are rejected once,
here at the boundary, instead of surfacing later inside a model fit.

Usage
-----
    from spatial.core.sample import bind_sample, select_features

    sample = bind_sample(df, x='lon', y='lat', label='presence', crs='EPSG:4326')
    features = select_features(sample, exclude=['lon', 'lat', 'presence', 'site_id'])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional, Sequence

import numpy as np
import pandas as pd
from pyproj import CRS

from spatial.core.crs import CRSLike, parse_crs
from utils.errors import SchemaError


@dataclass(frozen=True)
class FeatureSet:
    """
    Ordered, immutable set of predictive column names.

    Order follows the column order of the sample the set was selected from,
    so feature matrices built from it are reproducible.
    """

    names: tuple[str, ...]

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def to_list(self) -> list[str]:
        return list(self.names)


@dataclass(frozen=True, eq=False)
class LabeledSample:
    """
    Ordered collection of labeled point records in one CRS.

    Instances are never modified; every transformation returns a new sample
    and accessors hand out copies.

    Attributes
    ----------
    x_col, y_col : str
        Coordinate column names.
    label_col : str
        Binary label column (stored as 0/1 integers).
    crs : pyproj.CRS
        Reference system shared by all records.
    """

    _records: pd.DataFrame = field(repr=False)
    x_col: str
    y_col: str
    label_col: str
    crs: CRS

    def __len__(self) -> int:
        return len(self._records)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self._records.columns)

    @property
    def records(self) -> pd.DataFrame:
        """Copy of the underlying table."""
        return self._records.copy()

    @property
    def x(self) -> np.ndarray:
        return self._records[self.x_col].to_numpy(dtype=float, copy=True)

    @property
    def y(self) -> np.ndarray:
        return self._records[self.y_col].to_numpy(dtype=float, copy=True)

    @property
    def labels(self) -> np.ndarray:
        return self._records[self.label_col].to_numpy(dtype=int, copy=True)

    def feature_matrix(self, features: Iterable[str]) -> pd.DataFrame:
        """Return the named feature columns as a float DataFrame."""
        names = list(features)
        missing = [n for n in names if n not in self._records.columns]
        if missing:
            raise SchemaError(f"Feature column not in sample: '{missing[0]}'", column=missing[0])
        return self._records[names].astype(float)

    def class_counts(self) -> dict[int, int]:
        """Number of negative (0) and positive (1) records."""
        counts = self._records[self.label_col].value_counts()
        return {0: int(counts.get(0, 0)), 1: int(counts.get(1, 0))}

    def subset(self, indices: Sequence[int]) -> 'LabeledSample':
        """New sample holding the records at the given positions."""
        rows = self._records.iloc[np.asarray(indices, dtype=int)].reset_index(drop=True)
        return LabeledSample(rows, self.x_col, self.y_col, self.label_col, self.crs)

    def dropna(self, columns: Optional[Iterable[str]] = None) -> 'LabeledSample':
        """
        Drop records with missing values.

        Parameters
        ----------
        columns : iterable of str, optional
            Columns to check. Defaults to every column.
        """
        subset = None if columns is None else list(columns)
        rows = self._records.dropna(subset=subset).reset_index(drop=True)
        return LabeledSample(rows, self.x_col, self.y_col, self.label_col, self.crs)

    def with_coordinates(
        self,
        xs: np.ndarray,
        ys: np.ndarray,
        crs: CRSLike,
    ) -> 'LabeledSample':
        """New sample with replaced coordinates in another CRS."""
        rows = self._records.copy()
        rows[self.x_col] = np.asarray(xs, dtype=float)
        rows[self.y_col] = np.asarray(ys, dtype=float)
        return LabeledSample(rows, self.x_col, self.y_col, self.label_col, parse_crs(crs))

    def to_geodataframe(self):
        """
        Convert to a point GeoDataFrame for mapping or vector output.

        Raises
        ------
        ImportError
            If geopandas is not installed.
        """
        try:
            import geopandas as gpd
        except ImportError as exc:
            raise ImportError(
                "geopandas is required to build a GeoDataFrame. "
                "Install with: pip install geopandas"
            ) from exc

        return gpd.GeoDataFrame(
            self.records,
            geometry=gpd.points_from_xy(self.x, self.y),
            crs=self.crs,
        )


def _require_numeric(df: pd.DataFrame, column: str, role: str) -> None:
    if column not in df.columns:
        raise SchemaError(f"{role} column not found: '{column}'", column=column)
    if not pd.api.types.is_numeric_dtype(df[column]) or pd.api.types.is_bool_dtype(df[column]):
        raise SchemaError(
            f"{role} column '{column}' must be numeric, got {df[column].dtype}",
            column=column,
        )


def _coerce_labels(values: pd.Series, column: str, positive: Any = None) -> pd.Series:
    """Map a two-valued label column onto 0/1 integers."""
    if values.isna().any():
        raise SchemaError(
            f"Label column '{column}' has {int(values.isna().sum())} missing values",
            column=column,
        )

    distinct = pd.unique(values)
    if len(distinct) > 2:
        raise SchemaError(
            f"Label column '{column}' is not binary: {len(distinct)} distinct values",
            column=column,
        )

    if positive is not None:
        return (values == positive).astype(int)

    if pd.api.types.is_bool_dtype(values):
        return values.astype(int)

    if pd.api.types.is_numeric_dtype(values) and set(distinct.tolist()) <= {0, 1}:
        return values.astype(int)

    raise SchemaError(
        f"Label column '{column}' must hold booleans or 0/1 values; "
        f"pass positive= to choose the positive class",
        column=column,
    )


def bind_sample(
    records: pd.DataFrame,
    x: str,
    y: str,
    label: str,
    crs: CRSLike,
    positive: Any = None,
) -> LabeledSample:
    """
    Bind a record table to point coordinates.

    Parameters
    ----------
    records : pd.DataFrame
        Table with feature columns, a binary label and two coordinate columns.
        It is not modified.
    x, y : str
        Coordinate column names (easting/longitude, northing/latitude).
    label : str
        Binary label column.
    crs : str, int or CRS
        Reference system of the coordinates.
    positive : optional
        Label value to treat as the positive class, for labels that are not
        already booleans or 0/1.

    Returns
    -------
    LabeledSample

    Raises
    ------
    SchemaError
        If a coordinate column is missing, non-numeric or has missing values,
        if the label is missing or not binary, or if the CRS is invalid.

    Examples
    --------
    >>> sample = bind_sample(df, x='x', y='y', label='landslide', crs='EPSG:32633')
    """
    for column in (x, y):
        _require_numeric(records, column, 'Coordinate')
        n_bad = int((~np.isfinite(records[column].to_numpy(dtype=float))).sum())
        if n_bad:
            raise SchemaError(
                f"Coordinate column '{column}' has {n_bad} missing or non-finite values",
                column=column,
            )

    if label not in records.columns:
        raise SchemaError(f"Label column not found: '{label}'", column=label)

    parsed_crs = parse_crs(crs)

    rows = records.copy().reset_index(drop=True)
    rows[label] = _coerce_labels(rows[label], label, positive)

    return LabeledSample(rows, x, y, label, parsed_crs)


def sample_from_geodataframe(gdf, label: str, positive: Any = None) -> LabeledSample:
    """
    Bind a point GeoDataFrame, taking coordinates from its geometry.

    The x/y coordinates are written to columns named 'x' and 'y'.

    Raises
    ------
    SchemaError
        If the frame has no CRS or holds non-point geometries.
    """
    if gdf.crs is None:
        raise SchemaError("GeoDataFrame has no CRS; set one before binding")

    geom_types = set(gdf.geometry.geom_type.dropna().unique())
    if geom_types - {'Point'}:
        raise SchemaError(
            f"Only point geometries can be bound, found: {sorted(geom_types)}"
        )

    records = pd.DataFrame(gdf.drop(columns=gdf.geometry.name))
    records['x'] = gdf.geometry.x.to_numpy()
    records['y'] = gdf.geometry.y.to_numpy()
    return bind_sample(records, 'x', 'y', label, gdf.crs, positive=positive)


def select_features(sample: LabeledSample, exclude: Iterable[str]) -> FeatureSet:
    """
    Choose predictive columns by excluding identifiers.

    Parameters
    ----------
    sample : LabeledSample
        Sample whose columns are considered.
    exclude : iterable of str
        Identifier, coordinate and label columns to leave out.

    Returns
    -------
    FeatureSet
        Remaining columns, in sample column order.

    Raises
    ------
    SchemaError
        If an excluded name is not a column, if no column remains, or if a
        remaining column is not numeric.

    Examples
    --------
    >>> select_features(sample, exclude=['x', 'y', 'label']).names
    ('slope', 'elevation')
    """
    excluded = list(exclude)
    for name in excluded:
        if name not in sample.columns:
            raise SchemaError(f"Excluded column not in sample: '{name}'", column=name)

    excluded_set = set(excluded)
    remaining = [c for c in sample.columns if c not in excluded_set]
    if not remaining:
        raise SchemaError("Exclusions remove every column; no features left")

    records = sample.records
    for name in remaining:
        if not pd.api.types.is_numeric_dtype(records[name]):
            raise SchemaError(
                f"Feature column '{name}' must be numeric, got {records[name].dtype}",
                column=name,
            )

    return FeatureSet(tuple(remaining))

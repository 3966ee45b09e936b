"""
Covariate grids and raster prediction.

A covariate grid stacks one 2-D layer per feature over a common raster.
Applying a trained model to every cell inside the study area gives a risk
surface with the same rows, columns, transform and CRS.

Usage
-----
    from spatial.core.grid import CovariateGrid, predict_grid

    grid = CovariateGrid.from_layers({'slope': slope, 'elevation': dem}, crs='EPSG:32633')
    risk = predict_grid(trained, grid)
    risk.values  # (rows, cols) probabilities, NaN outside the study area
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import numpy as np
from pyproj import CRS

from classify.base import TrainedModel, predict
from spatial.core.crs import CRSLike, crs_matches, parse_crs
from utils.errors import FitError, SchemaError


@dataclass(frozen=True, eq=False)
class CovariateGrid:
    """
    Stack of named feature layers on one raster.

    Attributes
    ----------
    data : np.ndarray
        Float array of shape (layers, rows, cols).
    layer_names : tuple of str
        One unique name per layer.
    crs : pyproj.CRS, optional
        Reference system of the raster.
    transform : affine.Affine, optional
        Pixel-to-world transform (as produced by rasterio).
    mask : np.ndarray, optional
        Boolean (rows, cols) array, True inside the study area. Defaults
        to every cell.
    """

    data: np.ndarray = field(repr=False)
    layer_names: tuple[str, ...]
    crs: Optional[CRS] = None
    transform: Any = None
    mask: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        data = np.asarray(self.data, dtype=float)
        if data.ndim != 3:
            raise SchemaError(f"Grid data must be 3-D (layers, rows, cols), got shape {data.shape}")

        names = tuple(self.layer_names)
        if len(names) != data.shape[0]:
            raise SchemaError(f"{len(names)} layer names for {data.shape[0]} layers")
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise SchemaError(f"Duplicate layer name: '{duplicates[0]}'", column=duplicates[0])

        mask = self.mask
        if mask is not None:
            mask = np.asarray(mask, dtype=bool)
            if mask.shape != data.shape[1:]:
                raise SchemaError(
                    f"Mask shape {mask.shape} does not match grid shape {data.shape[1:]}"
                )

        object.__setattr__(self, 'data', data)
        object.__setattr__(self, 'layer_names', names)
        object.__setattr__(self, 'mask', mask)
        if self.crs is not None:
            object.__setattr__(self, 'crs', parse_crs(self.crs))

    @classmethod
    def from_layers(
        cls,
        layers: Mapping[str, np.ndarray],
        crs: Optional[CRSLike] = None,
        transform: Any = None,
        mask: Optional[np.ndarray] = None,
    ) -> 'CovariateGrid':
        """
        Build a grid from a mapping of layer name -> 2-D array.

        Raises
        ------
        SchemaError
            If the mapping is empty or layer shapes differ.
        """
        if not layers:
            raise SchemaError("A covariate grid needs at least one layer")

        arrays = {name: np.asarray(values, dtype=float) for name, values in layers.items()}
        shapes = {name: a.shape for name, a in arrays.items()}
        first_shape = next(iter(shapes.values()))
        for name, shape in shapes.items():
            if len(shape) != 2 or shape != first_shape:
                raise SchemaError(
                    f"Layer '{name}' has shape {shape}, expected {first_shape}",
                    column=name,
                )

        return cls(
            data=np.stack(list(arrays.values())),
            layer_names=tuple(arrays),
            crs=crs,
            transform=transform,
            mask=mask,
        )

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape[1], self.data.shape[2]

    @property
    def study_mask(self) -> np.ndarray:
        """Boolean (rows, cols) mask, all True if none was given."""
        if self.mask is None:
            return np.ones(self.shape, dtype=bool)
        return self.mask.copy()

    def layer(self, name: str) -> np.ndarray:
        """Copy of one layer."""
        if name not in self.layer_names:
            raise SchemaError(f"Layer not in grid: '{name}'", column=name)
        return self.data[self.layer_names.index(name)].copy()


@dataclass(frozen=True, eq=False)
class RiskGrid:
    """
    Predicted probabilities on the covariate grid's raster.

    Cells outside the study area hold NaN.
    """

    values: np.ndarray = field(repr=False)
    crs: Optional[CRS] = None
    transform: Any = None

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape

    def summary(self) -> dict:
        """Count, min, mean and max over predicted cells."""
        finite = self.values[np.isfinite(self.values)]
        if finite.size == 0:
            return {'n_cells': 0, 'min': None, 'mean': None, 'max': None}
        return {
            'n_cells': int(finite.size),
            'min': float(finite.min()),
            'mean': float(finite.mean()),
            'max': float(finite.max()),
        }


def check_layer_names(model: TrainedModel, grid: CovariateGrid) -> None:
    """
    Require the grid layers to equal the model's feature set.

    Order does not matter.

    Raises
    ------
    SchemaError
        Listing missing and unexpected layer names.
    """
    expected = set(model.feature_names)
    present = set(grid.layer_names)
    if expected == present:
        return

    missing = sorted(expected - present)
    unexpected = sorted(present - expected)
    parts = []
    if missing:
        parts.append(f"missing layers {missing}")
    if unexpected:
        parts.append(f"unexpected layers {unexpected}")
    raise SchemaError(
        "Grid layers do not match model features: " + "; ".join(parts),
        column=(missing or unexpected)[0],
    )


def check_alignment(sample, grid: CovariateGrid) -> None:
    """
    Require a labeled sample and a covariate grid to share a CRS.

    Raises
    ------
    SchemaError
        If the grid has no CRS or the two reference systems differ.
    """
    if grid.crs is None:
        raise SchemaError("Covariate grid has no CRS")
    if not crs_matches(sample, grid):
        raise SchemaError(
            f"Sample CRS ({sample.crs.to_string()}) differs from grid CRS "
            f"({grid.crs.to_string()})"
        )


def _first_bad_cell(grid: CovariateGrid, order: list[int], mask: np.ndarray) -> Optional[tuple[int, int]]:
    bad = ~np.isfinite(grid.data[order]).all(axis=0) & mask
    if not bad.any():
        return None
    row, col = np.argwhere(bad)[0]
    return int(row), int(col)


def predict_grid(
    model: TrainedModel,
    grid: CovariateGrid,
    block_rows: Optional[int] = None,
) -> RiskGrid:
    """
    Predict the positive-class probability for every study-area cell.

    Parameters
    ----------
    model : TrainedModel
        Model trained on the same feature names as the grid layers.
    grid : CovariateGrid
        Covariate layers; cells outside ``grid.mask`` are left as NaN.
    block_rows : int, optional
        Rows predicted per batch (default: PREDICT_BLOCK_ROWS from config).

    Returns
    -------
    RiskGrid
        Probabilities with the grid's shape, CRS and transform.

    Raises
    ------
    SchemaError
        If layer names differ from the model's features.
    FitError
        If any study-area cell has a non-finite value; ``cell`` gives its
        (row, col). No partial surface is returned.
    """
    if block_rows is None:
        from config import PREDICT_BLOCK_ROWS
        block_rows = PREDICT_BLOCK_ROWS
    if block_rows < 1:
        raise ValueError(f"block_rows must be positive: {block_rows}")

    check_layer_names(model, grid)

    order = [grid.layer_names.index(name) for name in model.feature_names]
    mask = grid.study_mask
    n_rows, n_cols = grid.shape

    bad_cell = _first_bad_cell(grid, order, mask)
    if bad_cell is not None:
        raise FitError(
            f"Non-finite covariate value at cell (row={bad_cell[0]}, col={bad_cell[1]})",
            cell=bad_cell,
        )

    values = np.full((n_rows, n_cols), np.nan)
    for start in range(0, n_rows, block_rows):
        stop = min(start + block_rows, n_rows)
        block_mask = mask[start:stop].ravel()
        if not block_mask.any():
            continue

        block = grid.data[order, start:stop, :].reshape(len(order), -1).T
        flat = np.full(block_mask.size, np.nan)
        flat[block_mask] = predict(model, block[block_mask])
        values[start:stop] = flat.reshape(stop - start, n_cols)

    return RiskGrid(values=values, crs=grid.crs, transform=grid.transform)

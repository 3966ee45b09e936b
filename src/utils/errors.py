"""
Error kinds raised by the classification workflow.

None of these are retried: each reflects a data or configuration defect
supplied by the caller.

Usage
-----
    from utils.errors import SchemaError, FitError, ResamplingError

    try:
        features = select_features(sample, exclude=['x', 'y', 'label'])
    except SchemaError as e:
        print(f"Bad column: {e.column}")
"""
from __future__ import annotations

from typing import Optional


class RiskModelError(ValueError):
    """Base class for workflow errors."""


class SchemaError(RiskModelError):
    """
    Malformed or mismatched column / layer names.

    Attributes
    ----------
    column : str, optional
        The offending column or layer name, when a single one is to blame.
    """

    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column


class FitError(RiskModelError):
    """
    Degenerate or non-finite input to a model fit or prediction.

    Attributes
    ----------
    cell : tuple of int, optional
        (row, col) of the first offending grid cell during raster prediction.
    """

    def __init__(self, message: str, cell: Optional[tuple[int, int]] = None):
        super().__init__(message)
        self.cell = cell


class ResamplingError(RiskModelError):
    """
    Invalid fold configuration, reported before any fold is fitted.

    Attributes
    ----------
    fold : int, optional
        Index of the fold whose training subset is degenerate.
    """

    def __init__(self, message: str, fold: Optional[int] = None):
        super().__init__(message)
        self.fold = fold

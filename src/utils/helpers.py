#!/usr/bin/env python3
"""
Common utility functions for the risk workflow.

This module provides shared helper functions used across multiple stages.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Optional

import pandas as pd


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_score(mean: float, std: Optional[float] = None, decimals: int = 3) -> str:
    """Format a cross-validated score as 'mean +/- std'."""
    if mean is None or (isinstance(mean, float) and math.isnan(mean)):
        return "n/a"
    if std is None or math.isnan(std):
        return f"{mean:.{decimals}f}"
    return f"{mean:.{decimals}f} +/- {std:.{decimals}f}"


def save_diagnostic(df: pd.DataFrame, name: str, output_dir: Optional[Path] = None) -> Path:
    """
    Save a diagnostic table as CSV.

    Parameters
    ----------
    df : pd.DataFrame
        Table to save.
    name : str
        File stem (without extension).
    output_dir : Path, optional
        Target directory (default: DIAGNOSTICS_DIR from config).

    Returns
    -------
    Path
        Path of the written file.
    """
    if output_dir is None:
        from config import DIAGNOSTICS_DIR
        output_dir = DIAGNOSTICS_DIR

    path = ensure_dir(Path(output_dir)) / f'{name}.csv'
    df.to_csv(path, index=False)
    return path

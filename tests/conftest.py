#!/usr/bin/env python3
"""
Shared pytest fixtures for the test suite.

This module provides common fixtures used across test modules including:
- Temporary directories
- Synthetic labeled point tables and samples
- Covariate grids matching the sample features
- A temporary specifications file
"""
from __future__ import annotations

import sys
from pathlib import Path

# Add src directory to Python path for test imports
_project_root = Path(__file__).parent.parent
_src_path = _project_root / 'src'
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

import shutil
import tempfile

import numpy as np
import pandas as pd
import pytest
import yaml


# ============================================================
# PATH FIXTURES
# ============================================================

@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def temp_dir():
    """Create a temporary directory that is cleaned up after tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def no_qa_reports(monkeypatch):
    """Keep stage runs from writing QA reports into the project tree."""
    monkeypatch.setattr('stages._qa_utils.ENABLE_QA_REPORTS', False)


# ============================================================
# DATA FIXTURES
# ============================================================

@pytest.fixture
def points_df() -> pd.DataFrame:
    """
    Labeled landslide points with a noisy dependence on slope.

    Classes overlap, so logistic regression converges without warnings.
    """
    rng = np.random.default_rng(42)
    n = 120
    slope = rng.uniform(0, 40, n)
    elevation = rng.uniform(200, 1500, n)
    logit = -3.0 + 0.15 * slope
    landslide = (rng.random(n) < 1 / (1 + np.exp(-logit))).astype(int)
    return pd.DataFrame({
        'id': np.arange(n),
        'x': 500_000 + rng.uniform(0, 3000, n),
        'y': 5_100_000 - rng.uniform(0, 3000, n),
        'landslide': landslide,
        'slope': slope,
        'elevation': elevation,
    })


@pytest.fixture
def small_df() -> pd.DataFrame:
    """Ten records, five per class, with two features."""
    return pd.DataFrame({
        'x': np.arange(10, dtype=float),
        'y': np.arange(10, dtype=float) * 2,
        'label': [0, 1] * 5,
        'slope': [3.0, 25.0, 5.0, 30.0, 8.0, 12.0, 20.0, 35.0, 2.0, 28.0],
        'elevation': [300.0, 900.0, 450.0, 1100.0, 500.0, 350.0, 700.0, 1300.0, 250.0, 800.0],
    })


@pytest.fixture
def sample(points_df):
    """Bound sample of the landslide points."""
    from spatial.core.sample import bind_sample
    return bind_sample(points_df, x='x', y='y', label='landslide', crs='EPSG:32633')


@pytest.fixture
def covariate_grid():
    """20 x 30 grid of slope and elevation in the sample CRS."""
    from spatial.core.grid import CovariateGrid
    rng = np.random.default_rng(7)
    return CovariateGrid.from_layers(
        {
            'slope': rng.uniform(0, 40, (20, 30)),
            'elevation': rng.uniform(200, 1500, (20, 30)),
        },
        crs='EPSG:32633',
    )


# ============================================================
# FILE FIXTURES
# ============================================================

@pytest.fixture
def points_csv(temp_dir, points_df) -> Path:
    """Write the landslide points to CSV."""
    path = temp_dir / 'points.csv'
    points_df.to_csv(path, index=False)
    return path


@pytest.fixture
def specs_file(temp_dir) -> Path:
    """Specifications file with one logistic and one forest entry."""
    specs = {
        'test_logistic': {
            'model': 'logistic',
            'label': 'landslide',
            'features': ['slope', 'elevation'],
            'x': 'x',
            'y': 'y',
            'crs': 'EPSG:32633',
            'description': 'Logistic test specification',
        },
        'test_rf': {
            'model': 'random_forest',
            'label': 'landslide',
            'features': ['slope', 'elevation'],
            'crs': 'EPSG:32633',
            'params': {'n_trees': 25, 'importance': True},
        },
    }
    path = temp_dir / 'specifications.yml'
    with open(path, 'w') as f:
        yaml.safe_dump(specs, f)
    return path

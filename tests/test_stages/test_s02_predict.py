#!/usr/bin/env python3
"""
Tests for src/stages/s02_predict.py

Tests cover:
- Training on the full sample and mapping a risk surface
- Feature importance export for random forests
- Layer and CRS mismatches
"""
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

rasterio = pytest.importorskip('rasterio')
from rasterio.transform import from_origin

from classify import get_model
from stages.s02_predict import importance_table, main
from utils.errors import SchemaError


# ============================================================
# FIXTURES
# ============================================================

def write_layer(path: Path, values: np.ndarray, crs: str = 'EPSG:32633') -> Path:
    """Write a single-band float32 GeoTIFF over the test points."""
    with rasterio.open(
        path, 'w',
        driver='GTiff',
        height=values.shape[0],
        width=values.shape[1],
        count=1,
        dtype='float32',
        crs=crs,
        transform=from_origin(500_000.0, 5_100_000.0, 100.0, 100.0),
    ) as dst:
        dst.write(values.astype('float32'), 1)
    return path


@pytest.fixture
def layer_paths(temp_dir) -> dict[str, Path]:
    rng = np.random.default_rng(5)
    return {
        'slope': write_layer(temp_dir / 'slope.tif', rng.uniform(0, 40, (30, 30))),
        'elevation': write_layer(temp_dir / 'elevation.tif', rng.uniform(200, 1500, (30, 30))),
    }


@pytest.fixture
def run_stage(specs_file, points_csv, temp_dir, monkeypatch):
    """Run the stage with all outputs redirected to the temp directory."""
    monkeypatch.setattr('stages.s02_predict.DIAGNOSTICS_DIR', temp_dir / 'diagnostics')

    def _run(grid_paths, specification='test_logistic', **kwargs):
        kwargs.setdefault('output_path', temp_dir / 'risk.tif')
        return main(
            specification,
            data_path=points_csv,
            grid_paths=grid_paths,
            specs_path=specs_file,
            verbose=False,
            **kwargs,
        )
    return _run


# ============================================================
# STAGE TESTS
# ============================================================

class TestMain:
    """Tests for the stage entry point."""

    def test_logistic_surface(self, run_stage, layer_paths, temp_dir):
        risk = run_stage(layer_paths)

        assert risk.shape == (30, 30)
        assert ((risk.values >= 0) & (risk.values <= 1)).all()
        with rasterio.open(temp_dir / 'risk.tif') as src:
            assert src.crs.to_epsg() == 32633
            np.testing.assert_allclose(src.read(1), risk.values.astype('float32'))

    def test_logistic_no_importance_file(self, run_stage, layer_paths, temp_dir):
        run_stage(layer_paths)
        assert not (temp_dir / 'diagnostics' / 'feature_importance.csv').exists()

    def test_forest_writes_importance(self, run_stage, layer_paths, temp_dir):
        run_stage(layer_paths, specification='test_rf')
        assert (temp_dir / 'diagnostics' / 'feature_importance.csv').exists()

    def test_layer_list_by_stem(self, run_stage, layer_paths):
        risk = run_stage(list(layer_paths.values()))
        assert risk.shape == (30, 30)

    def test_missing_layer(self, run_stage, layer_paths):
        with pytest.raises(SchemaError) as exc_info:
            run_stage({'slope': layer_paths['slope']})
        assert exc_info.value.column == 'elevation'

    def test_crs_mismatch(self, run_stage, temp_dir):
        rng = np.random.default_rng(5)
        paths = {
            name: write_layer(temp_dir / f'{name}_wgs.tif', rng.uniform(0, 40, (5, 5)), crs='EPSG:4326')
            for name in ('slope', 'elevation')
        }
        with pytest.raises(SchemaError, match="differs"):
            run_stage(paths)

    def test_requires_grid(self, run_stage):
        with pytest.raises(ValueError):
            run_stage(None)


class TestImportanceTable:
    """Tests for importance_table function."""

    def test_forest(self, sample):
        trained = get_model('random_forest', n_trees=20, importance=True).fit(
            sample.feature_matrix(['slope', 'elevation']), sample.labels
        )
        table = importance_table(trained)

        assert list(table.columns) == ['feature', 'impurity', 'permutation']
        assert set(table['feature']) == {'slope', 'elevation'}
        assert table['impurity'].is_monotonic_decreasing

    def test_logistic(self, sample):
        trained = get_model('logistic').fit(sample.feature_matrix(['slope']), sample.labels)
        assert importance_table(trained) is None

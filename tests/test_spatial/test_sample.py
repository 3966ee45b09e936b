"""Tests for labeled sample binding and feature selection."""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from spatial.core.sample import FeatureSet, bind_sample, select_features
from utils.errors import SchemaError


class TestBindSample:
    """Tests for bind_sample function."""

    def test_binds_coordinates_and_labels(self, small_df):
        """Coordinates and labels are read from the named columns."""
        sample = bind_sample(small_df, x='x', y='y', label='label', crs='EPSG:32633')

        assert len(sample) == 10
        np.testing.assert_array_equal(sample.x, small_df['x'].to_numpy())
        np.testing.assert_array_equal(sample.y, small_df['y'].to_numpy())
        assert sample.labels.tolist() == [0, 1] * 5
        assert sample.crs.to_epsg() == 32633

    def test_input_not_modified(self, small_df):
        """The caller's table is left unchanged."""
        df = small_df.assign(label=small_df['label'].astype(bool))
        before = df.copy()

        bind_sample(df, x='x', y='y', label='label', crs='EPSG:4326')

        pd.testing.assert_frame_equal(df, before)

    def test_missing_coordinate_column(self, small_df):
        """A missing coordinate column names the column."""
        with pytest.raises(SchemaError) as exc_info:
            bind_sample(small_df.drop(columns='y'), x='x', y='y', label='label', crs=4326)
        assert exc_info.value.column == 'y'

    def test_non_numeric_coordinate(self, small_df):
        """Text coordinates are rejected."""
        df = small_df.assign(x=[f"e{i}" for i in range(10)])
        with pytest.raises(SchemaError) as exc_info:
            bind_sample(df, x='x', y='y', label='label', crs=4326)
        assert exc_info.value.column == 'x'

    def test_nan_coordinate(self, small_df):
        """Missing coordinates are rejected."""
        df = small_df.copy()
        df.loc[3, 'x'] = np.nan
        with pytest.raises(SchemaError, match="non-finite"):
            bind_sample(df, x='x', y='y', label='label', crs=4326)

    def test_missing_label_column(self, small_df):
        with pytest.raises(SchemaError) as exc_info:
            bind_sample(small_df, x='x', y='y', label='landslide', crs=4326)
        assert exc_info.value.column == 'landslide'

    def test_invalid_crs(self, small_df):
        with pytest.raises(SchemaError):
            bind_sample(small_df, x='x', y='y', label='label', crs='EPSG:not-a-code')

    def test_boolean_labels(self, small_df):
        """Booleans become 0/1."""
        df = small_df.assign(label=small_df['label'] == 1)
        sample = bind_sample(df, x='x', y='y', label='label', crs=4326)
        assert sample.labels.tolist() == [0, 1] * 5

    def test_positive_value(self, small_df):
        """A text label is mapped with an explicit positive value."""
        df = small_df.assign(label=np.where(small_df['label'] == 1, 'slide', 'stable'))
        sample = bind_sample(df, x='x', y='y', label='label', crs=4326, positive='slide')
        assert sample.class_counts() == {0: 5, 1: 5}

    def test_text_labels_need_positive(self, small_df):
        df = small_df.assign(label=np.where(small_df['label'] == 1, 'slide', 'stable'))
        with pytest.raises(SchemaError, match="positive"):
            bind_sample(df, x='x', y='y', label='label', crs=4326)

    def test_non_binary_label(self, small_df):
        df = small_df.assign(label=[0, 1, 2] * 3 + [0])
        with pytest.raises(SchemaError, match="not binary"):
            bind_sample(df, x='x', y='y', label='label', crs=4326)

    def test_missing_label_values(self, small_df):
        df = small_df.assign(label=[0, 1, np.nan] + [0, 1] * 3 + [1])
        with pytest.raises(SchemaError, match="missing"):
            bind_sample(df, x='x', y='y', label='label', crs=4326)


class TestLabeledSample:
    """Tests for LabeledSample accessors."""

    def test_class_counts(self, sample, points_df):
        counts = sample.class_counts()
        assert counts[0] + counts[1] == len(points_df)
        assert counts[1] == int(points_df['landslide'].sum())

    def test_feature_matrix(self, sample):
        matrix = sample.feature_matrix(['elevation', 'slope'])
        assert list(matrix.columns) == ['elevation', 'slope']
        assert matrix.dtypes.eq(float).all()

    def test_feature_matrix_missing_column(self, sample):
        with pytest.raises(SchemaError) as exc_info:
            sample.feature_matrix(['slope', 'aspect'])
        assert exc_info.value.column == 'aspect'

    def test_subset(self, sample):
        part = sample.subset([0, 2, 4])
        assert len(part) == 3
        assert part.x.tolist() == [sample.x[0], sample.x[2], sample.x[4]]

    def test_dropna(self, small_df):
        df = small_df.copy()
        df.loc[[1, 4], 'slope'] = np.nan
        sample = bind_sample(df, x='x', y='y', label='label', crs=4326)

        assert len(sample.dropna(['slope'])) == 8
        assert len(sample.dropna(['elevation'])) == 10

    def test_records_is_a_copy(self, sample):
        records = sample.records
        records['slope'] = 0.0
        assert sample.records['slope'].max() > 0


class TestSelectFeatures:
    """Tests for select_features function."""

    def test_excludes_identifiers(self, small_df):
        """{x, y, label, slope, elevation} minus identifiers leaves the terrain features."""
        sample = bind_sample(small_df, x='x', y='y', label='label', crs=4326)
        features = select_features(sample, exclude=['x', 'y', 'label'])

        assert isinstance(features, FeatureSet)
        assert features.names == ('slope', 'elevation')
        assert 'slope' in features
        assert len(features) == 2

    def test_keeps_sample_column_order(self, small_df):
        df = small_df[['elevation', 'x', 'label', 'y', 'slope']]
        sample = bind_sample(df, x='x', y='y', label='label', crs=4326)
        features = select_features(sample, exclude=['label', 'y', 'x'])
        assert features.to_list() == ['elevation', 'slope']

    def test_unknown_exclusion(self, small_df):
        sample = bind_sample(small_df, x='x', y='y', label='label', crs=4326)
        with pytest.raises(SchemaError) as exc_info:
            select_features(sample, exclude=['x', 'y', 'label', 'aspect'])
        assert exc_info.value.column == 'aspect'

    def test_nothing_left(self, small_df):
        sample = bind_sample(small_df, x='x', y='y', label='label', crs=4326)
        with pytest.raises(SchemaError, match="no features"):
            select_features(sample, exclude=list(small_df.columns))

    def test_non_numeric_feature(self, small_df):
        df = small_df.assign(lithology=['shale', 'granite'] * 5)
        sample = bind_sample(df, x='x', y='y', label='label', crs=4326)
        with pytest.raises(SchemaError) as exc_info:
            select_features(sample, exclude=['x', 'y', 'label'])
        assert exc_info.value.column == 'lithology'

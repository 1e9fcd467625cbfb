"""
Tests for loading the observation table.
"""

import pytest
import numpy as np
import pandas as pd

from provmath.data_loader import load_observations, read_observations
from provmath.errors import MalformedInputError


class TestBundledDataset:
    """Tests against the dataset shipped with the package."""

    def test_shape(self, argentina_table):
        """Test the bundled table has one row per province."""
        assert argentina_table.shape == (22, 10)
        assert 'Buenos Aires' in argentina_table.get_row_index()
        assert 'Córdoba' in argentina_table.get_row_index()
        assert argentina_table.colnames()[0] == 'gdp'
        assert 'pop' in argentina_table.get_col_index()

    def test_values_are_non_negative(self, argentina_table):
        """Test every indicator parsed to a non-negative float."""
        values = argentina_table.values
        assert values.dtype == float
        assert np.all(values >= 0)
        assert np.all(argentina_table.get_col_by_name('pop') > 0)


class TestReadObservations:
    """Tests for validation of raw tables."""

    def test_exclude_columns(self):
        """Test excluded text columns are dropped before parsing."""
        frame = pd.DataFrame({
            'province': ['Salta', 'Jujuy'],
            'region': ['NOA', 'NOA'],
            'gdp': [10.0, 5.0],
        })
        table = read_observations(frame, exclude_columns=['region'])

        assert table.colnames() == ['gdp']
        assert table.rownames() == ['Salta', 'Jujuy']

    def test_non_numeric_value(self):
        """Test a non-numeric cell is reported."""
        frame = pd.DataFrame({'province': ['Salta', 'Jujuy'], 'gdp': ['10', 'n/a?']})

        with pytest.raises(MalformedInputError) as excinfo:
            read_observations(frame)
        assert 'Jujuy' in str(excinfo.value)

    def test_missing_key_column(self):
        """Test a missing key column is reported."""
        frame = pd.DataFrame({'name': ['Salta'], 'gdp': [1.0]})
        with pytest.raises(MalformedInputError):
            read_observations(frame)

    def test_custom_key_column(self):
        """Test any column can serve as the key."""
        frame = pd.DataFrame({'name': ['Salta', 'Jujuy'], 'gdp': [1.0, 2.0]})
        assert read_observations(frame, key_column='name').rownames() == ['Salta', 'Jujuy']

    def test_no_numeric_columns(self):
        """Test a table with only the key is rejected."""
        with pytest.raises(MalformedInputError):
            read_observations(pd.DataFrame({'province': ['Salta']}))


class TestLoadObservations:
    """Tests for reading delimited files."""

    def test_duplicate_key(self, tmp_path):
        """Test duplicate keys are rejected."""
        path = tmp_path / 'dup.csv'
        path.write_text("province,gdp\nSalta,1\nSalta,2\n", encoding='utf-8')

        with pytest.raises(MalformedInputError) as excinfo:
            load_observations(str(path))
        assert 'Salta' in str(excinfo.value)

    def test_missing_value(self, tmp_path):
        """Test an empty cell is rejected."""
        path = tmp_path / 'missing.csv'
        path.write_text("province,gdp,pop\nSalta,1,\nJujuy,2,3\n", encoding='utf-8')

        with pytest.raises(MalformedInputError) as excinfo:
            load_observations(str(path))
        assert 'pop' in str(excinfo.value)

    def test_separator(self, tmp_path):
        """Test a custom field delimiter."""
        path = tmp_path / 'semi.csv'
        path.write_text("province;gdp;pop\nSalta;10;2\nJujuy;6;3\n", encoding='utf-8')

        table = load_observations(str(path), separator=';')
        assert table.colnames() == ['gdp', 'pop']
        assert np.allclose(table.get_row_by_name('Jujuy'), [6.0, 3.0])

    def test_missing_file(self, tmp_path):
        """Test a missing file is reported as malformed input."""
        with pytest.raises(MalformedInputError):
            load_observations(str(tmp_path / 'nope.csv'))

    def test_empty_file(self, tmp_path):
        """Test an empty file is reported as malformed input."""
        path = tmp_path / 'empty.csv'
        path.write_text("", encoding='utf-8')

        with pytest.raises(MalformedInputError):
            load_observations(str(path))

    def test_round_trip_of_bundled_frame(self, argentina_frame, write_csv, argentina_table):
        """Test a rewritten copy of the bundled data loads identically."""
        table = load_observations(write_csv(argentina_frame))

        assert table.rownames() == argentina_table.rownames()
        assert np.allclose(table.values, argentina_table.values)

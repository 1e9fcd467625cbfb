"""
Tests for column standardization.
"""

import pytest
import numpy as np

from provmath.errors import DegenerateColumnError, InvalidParameterError, MalformedInputError
from provmath.math.standardize import standardize, standardize_named_matrix


class TestStandardize:
    """Tests for standardize."""

    def test_zero_mean_unit_variance(self, random_matrix):
        """Test every column has mean 0 and sample variance 1."""
        result = standardize(random_matrix)

        assert result.values.shape == random_matrix.shape
        assert np.allclose(result.values.mean(axis=0), 0.0, atol=1e-9)
        assert np.allclose(result.values.var(axis=0, ddof=1), 1.0, atol=1e-9)

    def test_statistics(self):
        """Test the returned mean and sample standard deviation."""
        data = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 60.0]])
        result = standardize(data)

        assert np.allclose(result.mean, [2.0, 30.0])
        assert np.allclose(result.std, [1.0, np.std([10.0, 20.0, 60.0], ddof=1)])
        assert np.allclose(result.values[:, 0], [-1.0, 0.0, 1.0])

    def test_constant_column(self):
        """Test a zero-variance column is rejected by name."""
        data = np.array([[1.0, 0.1], [2.0, 0.1], [3.0, 0.1]])

        with pytest.raises(DegenerateColumnError) as excinfo:
            standardize(data, ['gdp', 'flat'])

        assert 'flat' in str(excinfo.value)
        assert 'gdp' not in str(excinfo.value)

    def test_too_few_rows(self):
        """Test a single observation cannot be standardized."""
        with pytest.raises(InvalidParameterError):
            standardize(np.array([[1.0, 2.0]]))

    def test_non_finite(self):
        """Test NaN values are rejected."""
        with pytest.raises(MalformedInputError):
            standardize(np.array([[1.0, np.nan], [2.0, 3.0]]))

    def test_named_matrix_keeps_names(self, small_table):
        """Test standardizing a NamedMatrix preserves row and column names."""
        result = standardize_named_matrix(small_table)

        assert result.rownames() == small_table.rownames()
        assert result.colnames() == small_table.colnames()
        assert np.allclose(result.values.std(axis=0, ddof=1), 1.0)

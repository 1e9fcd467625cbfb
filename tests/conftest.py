"""
Pytest configuration and fixtures for provmath tests.
"""

import os
import sys

import numpy as np
import pandas as pd
import pytest

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from provmath.data_loader import bundled_dataset_path, load_observations
from provmath.math.named_matrix import NamedMatrix


@pytest.fixture
def argentina_table():
    """The bundled province table."""
    return load_observations()


@pytest.fixture
def argentina_frame():
    """The bundled province table as a raw DataFrame."""
    return pd.read_csv(bundled_dataset_path())


@pytest.fixture
def write_csv(tmp_path):
    """Write a DataFrame to a CSV file under tmp_path and return its path."""
    def _write(frame, name='input.csv', **kwargs):
        path = tmp_path / name
        frame.to_csv(path, index=False, **kwargs)
        return str(path)
    return _write


@pytest.fixture
def small_table():
    """A 4x3 observation table with distinct scales."""
    return NamedMatrix(
        np.array([
            [100.0, 10.0, 1.0],
            [200.0, 40.0, 2.0],
            [300.0, 20.0, 3.0],
            [400.0, 50.0, 5.0],
        ]),
        rownames=['a', 'b', 'c', 'd'],
        colnames=['gdp', 'pop', 'rate'],
    )


@pytest.fixture
def random_matrix():
    """A reproducible 50x5 matrix with correlated columns."""
    rng = np.random.default_rng(0)
    base = rng.standard_normal((50, 3))
    mixing = np.array([
        [1.0, 0.5, 0.0, 2.0, 0.1],
        [0.0, 1.0, 0.3, 0.5, 0.0],
        [0.2, 0.0, 1.0, 0.0, 3.0],
    ])
    return base @ mixing + 0.1 * rng.standard_normal((50, 5))


CONFIG_ENV_VARS = [
    'PROVMATH_INPUT', 'PROVMATH_KEY_COLUMN', 'PROVMATH_SEPARATOR', 'PROVMATH_EXCLUDE_COLUMNS',
    'PCA_BACKEND', 'PCA_MAX_ITER', 'KMEANS_K', 'KMEANS_RESTARTS', 'KMEANS_MAX_ITER',
    'KMEANS_SEED', 'KMEANS_COMPONENTS', 'KMEANS_EMPTY_CLUSTER_POLICY',
    'KMEANS_REQUIRE_CONVERGENCE', 'PROVMATH_OUTPUT_DIR', 'LOG_LEVEL',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration environment variables from leaking into tests."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

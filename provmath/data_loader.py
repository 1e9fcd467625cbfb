"""
Loading of the province indicator table.
"""

import logging
import os
import pandas as pd
from typing import List, Optional

from provmath.errors import MalformedInputError
from provmath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')
DEFAULT_DATASET = 'argentina.csv'


def bundled_dataset_path(name: str = DEFAULT_DATASET) -> str:
    """Path of a dataset shipped with the package."""
    return os.path.join(DATA_DIR, name)


def read_observations(frame: pd.DataFrame,
                      key_column: str = 'province',
                      exclude_columns: Optional[List[str]] = None) -> NamedMatrix:
    """
    Validate a raw table and turn it into an observation table.

    Args:
        frame: Raw table as read from the input file
        key_column: Column holding the unique row key
        exclude_columns: Non-key columns to leave out of the table

    Returns:
        NamedMatrix keyed by ``key_column`` with one float column per indicator

    Raises:
        MalformedInputError: for a missing or duplicated key, a value that does
            not parse as a number, or a missing value
    """
    exclude = set(exclude_columns or [])

    if key_column not in frame.columns:
        raise MalformedInputError(
            f"Key column '{key_column}' not found; columns are {list(frame.columns)}"
        )

    keys = frame[key_column]
    if keys.isna().any():
        rows = [int(i) + 1 for i in keys.index[keys.isna()]]
        raise MalformedInputError(f"Missing '{key_column}' in data row(s) {rows}")

    keys = keys.astype(str).str.strip()
    duplicated = keys[keys.duplicated()].unique().tolist()
    if duplicated:
        raise MalformedInputError(f"Duplicate '{key_column}' value(s): {duplicated}")

    numeric_cols = [col for col in frame.columns if col != key_column and col not in exclude]
    if not numeric_cols:
        raise MalformedInputError("No numeric columns found")

    numeric = {}
    for col in numeric_cols:
        parsed = pd.to_numeric(frame[col], errors='coerce')
        bad = parsed.isna() & frame[col].notna()
        if bad.any():
            examples = [f"{keys[i]}={frame[col][i]!r}" for i in frame.index[bad][:3]]
            raise MalformedInputError(
                f"Column '{col}' has non-numeric value(s): {', '.join(examples)}"
            )
        if parsed.isna().any():
            missing = keys[parsed.isna()].tolist()
            raise MalformedInputError(f"Column '{col}' has missing value(s) for {missing}")
        numeric[col] = parsed.astype(float).to_numpy()

    table = pd.DataFrame(numeric, index=keys.tolist(), columns=numeric_cols)
    return NamedMatrix(table)


def load_observations(path: Optional[str] = None,
                      key_column: str = 'province',
                      separator: str = ',',
                      exclude_columns: Optional[List[str]] = None) -> NamedMatrix:
    """
    Load the observation table from a delimited text file with a header row.

    Args:
        path: File to read (defaults to the bundled Argentina dataset)
        key_column: Column holding the unique row key
        separator: Field delimiter
        exclude_columns: Non-key columns to leave out of the table

    Returns:
        Observation table as a NamedMatrix

    Raises:
        MalformedInputError: if the file cannot be read or parsed
    """
    path = path or bundled_dataset_path()

    if not os.path.exists(path):
        raise MalformedInputError(f"Input file not found: {path}")

    try:
        frame = pd.read_csv(path, sep=separator, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Could not parse {path}: {e}") from e

    table = read_observations(frame, key_column, exclude_columns)
    logger.info(f"Loaded {table.shape[0]} observations with {table.shape[1]} indicators from {path}")
    return table

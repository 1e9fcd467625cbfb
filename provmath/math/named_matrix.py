"""
Named Matrix implementation for provmath.

This module provides a data structure for matrices with named rows and columns.
Rows are observations (provinces) and columns are indicators. Every operation
returns a new matrix; instances are never modified in place.
"""

import numpy as np
import pandas as pd
from typing import List, Dict, Union, Optional, Any


class IndexHash:
    """
    Maintains an ordered index of names with fast lookup.
    """

    def __init__(self, names: Optional[List[Any]] = None):
        """
        Initialize an IndexHash with optional initial names.

        Args:
            names: Optional list of initial names
        """
        self._names = [] if names is None else list(names)
        self._index_hash = {name: idx for idx, name in enumerate(self._names)}

    def get_names(self) -> List[Any]:
        """Return the ordered list of names."""
        return self._names.copy()

    def index(self, name: Any) -> Optional[int]:
        """
        Get the index for a given name, or None if not found.

        Args:
            name: The name to look up

        Returns:
            The index if found, None otherwise
        """
        return self._index_hash.get(name)

    def has_duplicates(self) -> bool:
        """Check whether the same name was supplied more than once."""
        return len(self._index_hash) != len(self._names)

    def __contains__(self, name: Any) -> bool:
        """Check if a name is in the index."""
        return name in self._index_hash


class NamedMatrix:
    """
    A matrix with named rows and columns.

    Uses a pandas DataFrame as the underlying storage.
    """

    def __init__(self,
                 matrix: Optional[Union[np.ndarray, pd.DataFrame]] = None,
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a NamedMatrix with optional initial data.

        Args:
            matrix: Initial matrix data (numpy array or pandas DataFrame)
            rownames: List of row names
            colnames: List of column names
        """
        if isinstance(matrix, pd.DataFrame):
            self._matrix = matrix.copy()
            if rownames is not None:
                self._matrix.index = list(rownames)
            if colnames is not None:
                self._matrix.columns = list(colnames)
        elif matrix is None:
            self._matrix = pd.DataFrame(
                index=[] if rownames is None else list(rownames),
                columns=[] if colnames is None else list(colnames),
                dtype=float
            )
        else:
            matrix = np.asarray(matrix, dtype=float)
            if matrix.ndim == 1:
                matrix = matrix.reshape(-1, 1)
            rows = rownames if rownames is not None else range(matrix.shape[0])
            cols = colnames if colnames is not None else range(matrix.shape[1])
            self._matrix = pd.DataFrame(matrix, index=list(rows), columns=list(cols))

        self._row_index = IndexHash(self._matrix.index.tolist())
        self._col_index = IndexHash(self._matrix.columns.tolist())

        if self._row_index.has_duplicates() or self._col_index.has_duplicates():
            raise ValueError("Row and column names must be unique")

    @classmethod
    def _from_frame(cls, frame: pd.DataFrame) -> 'NamedMatrix':
        result = cls.__new__(cls)
        result._matrix = frame
        result._row_index = IndexHash(frame.index.tolist())
        result._col_index = IndexHash(frame.columns.tolist())
        return result

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a float numpy array."""
        return self._matrix.to_numpy(dtype=float, copy=True)

    @property
    def shape(self):
        return self._matrix.shape

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return self._row_index.get_names()

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return self._col_index.get_names()

    def get_row_index(self) -> IndexHash:
        """Get the row index object."""
        return self._row_index

    def get_col_index(self) -> IndexHash:
        """Get the column index object."""
        return self._col_index

    def rowname_subset(self, rownames: List[Any]) -> 'NamedMatrix':
        """
        Create a subset of the matrix with only the specified rows.

        Args:
            rownames: List of row names to include

        Returns:
            A new NamedMatrix with only the specified rows
        """
        valid_rows = [row for row in rownames if row in self._row_index]
        return NamedMatrix._from_frame(self._matrix.loc[valid_rows].copy())

    def colname_subset(self, colnames: List[Any]) -> 'NamedMatrix':
        """
        Create a subset of the matrix with only the specified columns.

        Args:
            colnames: List of column names to include

        Returns:
            A new NamedMatrix with only the specified columns
        """
        valid_cols = [col for col in colnames if col in self._col_index]
        return NamedMatrix._from_frame(self._matrix[valid_cols].copy())

    def with_column(self, name: Any, values: Union[np.ndarray, List[float]]) -> 'NamedMatrix':
        """
        Append a column to the matrix.

        Args:
            name: Name of the new column
            values: One value per row, in row order

        Returns:
            A new NamedMatrix with the column appended (or replaced, if the
            name already exists)
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self.shape[0],):
            raise ValueError(
                f"Column '{name}' has {values.size} values for {self.shape[0]} rows"
            )
        new_matrix = self._matrix.copy()
        new_matrix[name] = values
        return NamedMatrix._from_frame(new_matrix)

    def get_row_by_name(self, row_name: Any) -> np.ndarray:
        """
        Get a row of the matrix by name.

        Args:
            row_name: The name of the row

        Returns:
            The row as a numpy array
        """
        idx = self._row_index.index(row_name)
        if idx is None:
            raise KeyError(f"Row name '{row_name}' not found")
        return self._matrix.iloc[idx].to_numpy(dtype=float, copy=True)

    def get_col_by_name(self, col_name: Any) -> np.ndarray:
        """
        Get a column of the matrix by name.

        Args:
            col_name: The name of the column

        Returns:
            The column as a numpy array
        """
        idx = self._col_index.index(col_name)
        if idx is None:
            raise KeyError(f"Column name '{col_name}' not found")
        return self._matrix.iloc[:, idx].to_numpy(dtype=float, copy=True)

    def to_dataframe(self, index_name: Optional[str] = None) -> pd.DataFrame:
        """
        Export the matrix as a DataFrame indexed by row name.

        Args:
            index_name: Optional name for the index

        Returns:
            A copy of the data
        """
        frame = self._matrix.copy()
        if index_name is not None:
            frame.index.name = index_name
        return frame

    def __repr__(self) -> str:
        return f"NamedMatrix(rows={len(self.rownames())}, cols={len(self.colnames())})"

    def __str__(self) -> str:
        return (f"NamedMatrix with {len(self.rownames())} rows and "
                f"{len(self.colnames())} columns\n{self._matrix}")


def create_named_matrix(matrix_data: Optional[Union[np.ndarray, List[List[Any]]]] = None,
                        rownames: Optional[List[Any]] = None,
                        colnames: Optional[List[Any]] = None) -> NamedMatrix:
    """
    Create a NamedMatrix from data.

    Args:
        matrix_data: Initial matrix data (numpy array or nested lists)
        rownames: List of row names
        colnames: List of column names

    Returns:
        A new NamedMatrix
    """
    if matrix_data is not None and not isinstance(matrix_data, np.ndarray):
        matrix_data = np.array(matrix_data, dtype=float)

    return NamedMatrix(matrix_data, rownames, colnames)

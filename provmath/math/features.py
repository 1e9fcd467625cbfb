"""
Derived feature columns for the observation table.
"""

import logging
from typing import Mapping, Sequence

from provmath.errors import DivisionByZeroError, InvalidParameterError, MalformedInputError
from provmath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)


def derive_ratio(table: NamedMatrix,
                 name: str,
                 numerator: str,
                 denominator: str) -> NamedMatrix:
    """
    Append the ratio of two existing columns as a new column.

    Args:
        table: Observation table
        name: Name of the derived column
        numerator: Column to divide
        denominator: Column to divide by; must be non-zero in every row

    Returns:
        A new table with the derived column appended

    Raises:
        MalformedInputError: if a source column does not exist
        InvalidParameterError: if ``name`` is already a column
        DivisionByZeroError: if the denominator is zero in any row
    """
    for col in (numerator, denominator):
        if col not in table.get_col_index():
            raise MalformedInputError(
                f"Cannot derive '{name}': column '{col}' not found"
            )
    if name in table.get_col_index():
        raise InvalidParameterError(f"Derived column '{name}' already exists")

    top = table.get_col_by_name(numerator)
    bottom = table.get_col_by_name(denominator)

    zero_rows = [row for row, value in zip(table.rownames(), bottom) if value == 0]
    if zero_rows:
        raise DivisionByZeroError(
            f"Cannot derive '{name}' = {numerator} / {denominator}: "
            f"'{denominator}' is zero for {', '.join(map(str, zero_rows))}"
        )

    logger.debug(f"Derived column {name} = {numerator} / {denominator}")
    return table.with_column(name, top / bottom)


def derive_features(table: NamedMatrix,
                    ratios: Mapping[str, Sequence[str]]) -> NamedMatrix:
    """
    Append several ratio columns, in declaration order.

    Args:
        table: Observation table
        ratios: Mapping of derived column name to (numerator, denominator)

    Returns:
        A new table with all derived columns appended
    """
    result = table
    for name, pair in ratios.items():
        if len(pair) != 2:
            raise InvalidParameterError(
                f"Ratio '{name}' must name exactly two columns, got {list(pair)}"
            )
        numerator, denominator = pair
        result = derive_ratio(result, name, numerator, denominator)

    if ratios:
        logger.info(f"Derived {len(ratios)} feature column(s): {', '.join(ratios)}")
    return result

"""
Column type predicates and cell extraction.

Declared column types are free text, so type detection is a case-insensitive
substring match against a small set of markers. Numeric extraction keeps the
original row index of every parsed value so anomalies can point back to the
exact row of the query result.
"""

import logging
import math
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple

from bi_sentinel.data.schema import ColumnMetadata, QueryResult

logger = logging.getLogger(__name__)

NUMERIC_TYPE_MARKERS: Tuple[str, ...] = (
    "int",
    "decimal",
    "float",
    "double",
    "money",
    "numeric",
    "bigint",
    "smallint",
)

TEMPORAL_TYPE_MARKERS: Tuple[str, ...] = ("datetime", "date", "time", "timestamp")


def _matches_any(type_name: str, markers: Sequence[str]) -> bool:
    lowered = (type_name or "").lower()
    return any(marker in lowered for marker in markers)


def is_numeric_column(column: ColumnMetadata) -> bool:
    return _matches_any(column.data_type, NUMERIC_TYPE_MARKERS)


def is_temporal_column(column: ColumnMetadata) -> bool:
    return _matches_any(column.data_type, TEMPORAL_TYPE_MARKERS)


def find_numeric_columns(result: QueryResult) -> List[Tuple[int, ColumnMetadata]]:
    return [(i, c) for i, c in enumerate(result.columns) if is_numeric_column(c)]


def find_temporal_columns(result: QueryResult) -> List[Tuple[int, ColumnMetadata]]:
    return [(i, c) for i, c in enumerate(result.columns) if is_temporal_column(c)]


def parse_numeric(value: Any) -> Optional[float]:
    """
    Parse a cell into a finite float.

    Returns None for nulls, booleans, unparsable text and non-finite numbers
    (NaN, infinity).
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        parsed = float(value)
    else:
        try:
            parsed = float(str(value).strip())
        except (TypeError, ValueError):
            return None

    if not math.isfinite(parsed):
        return None
    return parsed


def extract_numeric_values(
    result: QueryResult, column_index: int
) -> List[Tuple[int, float]]:
    """
    Extract parsable numeric values for one column.

    Args:
        result: Query result to read
        column_index: Position of the column

    Returns:
        List of (row_index, value) pairs, in row order. Null and non-numeric
        cells are skipped.
    """
    values: List[Tuple[int, float]] = []
    skipped = 0

    for row_index in range(result.row_count):
        parsed = parse_numeric(result.cell(row_index, column_index))
        if parsed is None:
            skipped += 1
            continue
        values.append((row_index, parsed))

    if skipped:
        logger.debug(
            "Skipped %d non-numeric cells in column %d", skipped, column_index
        )
    return values

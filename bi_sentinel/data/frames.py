"""
pandas adapters for query results.

The reporting pipeline often holds results as DataFrames. These helpers map
DataFrame dtypes to declared type names the detectors understand and turn
pandas missing-value markers (NaN, NaT, pd.NA) into nulls.
"""

import logging
from typing import Any, List

import pandas as pd

from bi_sentinel.core.exceptions import DataValidationError
from bi_sentinel.data.schema import ColumnMetadata, QueryResult

logger = logging.getLogger(__name__)


def _dtype_name(dtype: Any) -> str:
    if pd.api.types.is_bool_dtype(dtype):
        return "bit"
    if pd.api.types.is_integer_dtype(dtype):
        return "bigint"
    if pd.api.types.is_float_dtype(dtype):
        return "float"
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return "datetime"
    if isinstance(dtype, pd.CategoricalDtype):
        return "category"
    return "nvarchar"


def query_result_from_dataframe(df: pd.DataFrame) -> QueryResult:
    """
    Build a QueryResult from a DataFrame.

    Args:
        df: DataFrame whose columns become result columns

    Returns:
        QueryResult with one row per DataFrame row, in order

    Raises:
        DataValidationError: If df is not a DataFrame or has duplicate
            column names
    """
    if not isinstance(df, pd.DataFrame):
        raise DataValidationError(f"Expected a DataFrame, got {type(df).__name__}")

    names = [str(c) for c in df.columns]
    if len(set(names)) != len(names):
        raise DataValidationError("DataFrame has duplicate column names")

    columns = [
        ColumnMetadata(name=name, data_type=_dtype_name(df[col].dtype))
        for name, col in zip(names, df.columns)
    ]

    cleaned = df.astype(object).where(df.notna(), None)
    data: List[List[Any]] = [list(row) for row in cleaned.itertuples(index=False, name=None)]

    logger.debug("Converted DataFrame with %d rows, %d columns", len(data), len(columns))
    return QueryResult(columns=columns, data=data)


def query_result_to_dataframe(result: QueryResult) -> pd.DataFrame:
    """Build a DataFrame from a QueryResult; short rows are padded with None."""
    width = result.column_count
    rows = [list(row[:width]) + [None] * (width - len(row)) for row in result.data]
    return pd.DataFrame(rows, columns=result.column_names)

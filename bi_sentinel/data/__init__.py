"""
Data module: query results, semantic analysis, and cell extraction.

Query results arrive from the reporting pipeline as ordered rows of nullable
cells paired with column metadata. This module models that input and provides
the helpers every detector uses to read it:

    QueryResult (rows x typed columns)
        ↓
    Column type predicates
        ↓
    Cell extraction → (row_index, value) samples
        ↓
    Ready for anomaly detection
"""

from bi_sentinel.data.extraction import (
    NUMERIC_TYPE_MARKERS,
    TEMPORAL_TYPE_MARKERS,
    extract_numeric_values,
    find_numeric_columns,
    find_temporal_columns,
    is_numeric_column,
    is_temporal_column,
    parse_numeric,
)
from bi_sentinel.data.frames import query_result_from_dataframe, query_result_to_dataframe
from bi_sentinel.data.schema import ColumnMetadata, QueryResult, SemanticAnalysis, SemanticEntity

__all__ = [
    "ColumnMetadata",
    "QueryResult",
    "SemanticAnalysis",
    "SemanticEntity",
    "NUMERIC_TYPE_MARKERS",
    "TEMPORAL_TYPE_MARKERS",
    "extract_numeric_values",
    "find_numeric_columns",
    "find_temporal_columns",
    "is_numeric_column",
    "is_temporal_column",
    "parse_numeric",
    "query_result_from_dataframe",
    "query_result_to_dataframe",
]

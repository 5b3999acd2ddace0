"""
Schema for query results and semantic analysis.

These are the inputs handed to every detector. They are produced by external
collaborators (the query-result fetcher and the semantic-analysis component)
and are treated as read-only here.

Design rationale:
- Rows are ordered sequences of nullable cells, positionally aligned with
  the column metadata
- Declared column types are free text (whatever the database reported)
- Semantic analysis is carried for every detector, even where unused
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ColumnMetadata(BaseModel):
    """
    Metadata for a single result column.

    Attributes:
        name: Column name as returned by the query
        data_type: Declared type name as free text (e.g. "decimal(18,2)")
    """

    name: str = Field(..., min_length=1)
    data_type: str = Field("", description="Declared type name, free text")


class QueryResult(BaseModel):
    """
    Tabular query result.

    Attributes:
        columns: Ordered column metadata
        data: Ordered rows; each row is an ordered sequence of nullable cells

    Notes:
        - Rows shorter than the column list are tolerated; missing cells read
          as null
        - Row indices reported by anomalies index into data
    """

    columns: List[ColumnMetadata] = Field(default_factory=list)
    data: List[List[Any]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def cell(self, row_index: int, column_index: int) -> Any:
        """Return a cell value, or None when the row is too short."""
        row = self.data[row_index]
        if column_index < len(row):
            return row[column_index]
        return None


class SemanticEntity(BaseModel):
    """
    Entity extracted from the originating natural-language query.

    Attributes:
        name: Surface text of the entity
        entity_type: Entity category (table, column, metric, date, ...)
        value: Normalized value, if any
        confidence: Extraction confidence in [0, 1]
    """

    name: str
    entity_type: str = "unknown"
    value: Optional[str] = None
    confidence: float = Field(1.0, ge=0.0, le=1.0)


class SemanticAnalysis(BaseModel):
    """
    Semantic analysis of the query that produced a result.

    Part of every detector's input contract; the shipped detectors do not
    read it yet.
    """

    original_query: str = ""
    intent: Optional[str] = None
    entities: List[SemanticEntity] = Field(default_factory=list)

"""
Unit tests for pandas adapters.
"""

import pandas as pd
import pytest

from bi_sentinel.core.exceptions import DataValidationError
from bi_sentinel.data.frames import query_result_from_dataframe, query_result_to_dataframe
from bi_sentinel.data.schema import ColumnMetadata, QueryResult


def test_dtypes_map_to_declared_type_names(deposits_dataframe):
    df = deposits_dataframe.copy()
    df["flagged"] = False
    df["count"] = range(len(df))
    df["channel"] = pd.Categorical(["web"] * len(df))

    result = query_result_from_dataframe(df)
    types = {c.name: c.data_type for c in result.columns}

    assert types == {
        "account": "nvarchar",
        "deposit_amount": "float",
        "booked_at": "datetime",
        "flagged": "bit",
        "count": "bigint",
        "channel": "category",
    }
    assert result.row_count == len(df)


def test_missing_values_become_none():
    df = pd.DataFrame(
        {
            "amount": [1.5, float("nan"), 3.0],
            "label": ["a", None, "c"],
            "when": pd.to_datetime(["2025-01-01", None, "2025-01-03"]),
        }
    )

    result = query_result_from_dataframe(df)

    assert result.data[1] == [None, None, None]
    assert result.data[0][0] == 1.5
    assert result.data[2][1] == "c"


def test_rejects_non_dataframe():
    with pytest.raises(DataValidationError):
        query_result_from_dataframe([[1, 2]])


def test_rejects_duplicate_column_names():
    df = pd.DataFrame([[1, 2]], columns=["amount", "amount"])
    with pytest.raises(DataValidationError):
        query_result_from_dataframe(df)


def test_to_dataframe_pads_short_rows():
    result = QueryResult(
        columns=[
            ColumnMetadata(name="region", data_type="nvarchar"),
            ColumnMetadata(name="amount", data_type="int"),
        ],
        data=[["north", 10], ["south"]],
    )

    df = query_result_to_dataframe(result)

    assert list(df.columns) == ["region", "amount"]
    assert df.shape == (2, 2)
    assert pd.isna(df.loc[1, "amount"])
    assert df.loc[0, "region"] == "north"

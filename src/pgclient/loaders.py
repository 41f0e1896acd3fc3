"""
Data loaders turning materialized rows into caller-facing structures.

Every loader takes the rows and column names of a QueryResult and always
returns a value, never None; column names survive empty results.
"""
from collections.abc import Sequence
from typing import Any

import pandas as pd
import pyarrow as pa

__all__ = [
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
]


def iterdict_data_loader(rows: Sequence[Any], columns: Sequence[str], **kwargs: Any) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not rows:
        return []
    return [row.to_dict() for row in rows]


def _empty_dataframe(columns: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame(columns=list(columns))


def pandas_numpy_data_loader(rows: Sequence[Any], columns: Sequence[str], **kwargs: Any) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy object columns.

    Cells stay text; SQL NULL becomes None.
    """
    if not rows:
        return _empty_dataframe(columns)
    return pd.DataFrame.from_records([row.values for row in rows], columns=list(columns))


def pandas_pyarrow_data_loader(rows: Sequence[Any], columns: Sequence[str], **kwargs: Any) -> pd.DataFrame:
    """PyArrow-backed pandas DataFrame loader with string columns.
    """
    if not rows:
        return _empty_dataframe(columns)

    columns_data = [
        pa.array([row.values[i] for row in rows], type=pa.string())
        for i in range(len(columns))
    ]
    table = pa.table(columns_data, names=list(columns))
    return table.to_pandas(types_mapper=pd.ArrowDtype)

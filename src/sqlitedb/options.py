import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pandas as pd
import pyarrow as pa
from sqlitedb.native import DEFAULT_FLAGS, OpenFlags

__all__ = [
    'SqliteOptions',
    'get_library_path',
    'list_data_loader',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
]


def get_library_path() -> str | None:
    """Return the SQLite shared library path from SQLITEDB_LIBRARY."""
    return os.environ.get('SQLITEDB_LIBRARY') or None


def list_data_loader(data, column_names, **kwargs) -> list[list]:
    """Rows as plain lists, in column order."""
    if not data:
        return []
    return [list(row) for row in data]


def iterdict_data_loader(data, column_names, **kwargs) -> list[dict]:
    """Minimal data loader.

    Rows become dicts keyed by column name; with duplicate names the first
    column wins, matching name lookup on a row.
    """
    if not data:
        return []
    result = []
    for row in data:
        record = {}
        for name, value in zip(column_names, row):
            record.setdefault(name, value)
        result.append(record)
    return result


def pandas_numpy_data_loader(data, column_names, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=list(column_names))
    return pd.DataFrame.from_records([list(row) for row in data], columns=list(column_names))


def pandas_pyarrow_data_loader(data, column_names, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    names = list(column_names)
    if not data:
        return pd.DataFrame(columns=names)
    columns_data = [[row[i] for row in data] for i in range(len(names))]
    return pa.table(columns_data, names=names).to_pandas(types_mapper=pd.ArrowDtype)


@dataclass
class SqliteOptions:
    """Options

    - path: database file, '' for a private temporary file, ':memory:' for RAM
    - flags: `OpenFlags` passed to the engine (default READWRITE | CREATE)
    - library: SQLite shared library to load (default: SQLITEDB_LIBRARY, then discovery)
    - busy_timeout: milliseconds to wait on a locked database (0 disables)
    - data_loader: callable(data, column_names) used by the select helpers
    """
    path: str = ':memory:'
    flags: int = DEFAULT_FLAGS
    library: str | None = None
    busy_timeout: int = 0
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        self.path = os.fspath(self.path) if self.path is not None else ''
        self.flags = OpenFlags(int(self.flags))
        if not self.flags & (OpenFlags.READONLY | OpenFlags.READWRITE):
            raise ValueError('flags must include READONLY or READWRITE')
        if self.busy_timeout < 0:
            raise ValueError('busy_timeout must be >= 0')
        self.library = self.library or get_library_path()
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader

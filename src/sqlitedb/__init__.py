"""
Typed access to the SQLite engine through its C interface.

Connections and prepared statements own reference-counted native handles,
rows decode their columns on demand, and Python callables can be registered
as SQL functions, aggregates and collations.

All query operations can be called either as:
- Module functions: sqlitedb.select(db, sql, *args)
- Database methods: db.select(sql, *args)
"""
__version__ = '0.1.0'

from typing import Any

from sqlitedb.connection import Database, connect
from sqlitedb.exceptions import BindError, ColumnIndexError
from sqlitedb.exceptions import ColumnNotFoundError, ConnectionError
from sqlitedb.exceptions import DecodeError, EmptyResultError, ExecutionError
from sqlitedb.exceptions import ExtensionError, InvalidRowError
from sqlitedb.exceptions import LibraryNotFoundError, PrepareError
from sqlitedb.exceptions import ProgrammingError, SqliteError, StepError
from sqlitedb.exceptions import UsageError
from sqlitedb.native import ColumnType, OpenFlags, ResultCode
from sqlitedb.native import sqlite_version, sqlite_version_number
from sqlitedb.options import SqliteOptions, iterdict_data_loader
from sqlitedb.options import list_data_loader, pandas_numpy_data_loader
from sqlitedb.options import pandas_pyarrow_data_loader
from sqlitedb.query import Query
from sqlitedb.row import Row
from sqlitedb.sql import literal, quote_identifier
from sqlitedb.transaction import Transaction
from sqlitedb.transaction import Transaction as transaction
from sqlitedb.types import Column


def execute(db: Database, sql: str) -> None:
    """Run one or more ';'-separated statements, discarding any rows.
    """
    db.execute(sql)


def select(db: Database, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Run a query and materialize it through the connection's data loader.
    """
    return db.select(sql, *args, **kwargs)


def select_column(db: Database, sql: str, *args: Any) -> list[Any]:
    """Execute a query and return a single column as a list.
    """
    return db.select_column(sql, *args)


def select_row(db: Database, sql: str, *args: Any) -> dict[str, Any]:
    """Execute a query and return the first row as a dict.

    Raises EmptyResultError if the query returns no rows.
    """
    return db.select_row(sql, *args)


def select_row_or_none(db: Database, sql: str, *args: Any) -> dict[str, Any] | None:
    """Execute a query and return the first row, or None if no rows found.
    """
    return db.select_row_or_none(sql, *args)


def select_scalar(db: Database, sql: str, *args: Any) -> Any:
    """Execute a query and return a single scalar value.

    Raises EmptyResultError if the query returns no rows.
    """
    return db.select_scalar(sql, *args)


__all__ = [
    '__version__',
    # connection
    'Database',
    'connect',
    'SqliteOptions',
    'Query',
    'Row',
    'Column',
    'Transaction',
    'transaction',
    # operations
    'execute',
    'select',
    'select_column',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'literal',
    'quote_identifier',
    # loaders
    'iterdict_data_loader',
    'list_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    # native
    'ColumnType',
    'OpenFlags',
    'ResultCode',
    'sqlite_version',
    'sqlite_version_number',
    # exceptions
    'SqliteError',
    'LibraryNotFoundError',
    'ConnectionError',
    'ExecutionError',
    'PrepareError',
    'BindError',
    'StepError',
    'EmptyResultError',
    'DecodeError',
    'ColumnNotFoundError',
    'ColumnIndexError',
    'InvalidRowError',
    'ProgrammingError',
    'ExtensionError',
    'UsageError',
]

"""
Database connections over the native engine.

This module provides the primary interfaces for opening databases:
1. The `connect()` function for creating connections from options
2. The `Database` class that owns the shared native connection handle

Every `Database` value holds one reference on a `SharedHandle`. Copies made
with `copy.copy` share the same native connection, which is closed when the
last value is garbage collected or when any of them calls `close()`.
"""
import dataclasses
import logging
import os
import weakref
from collections.abc import Callable
from typing import Any, Self

from sqlitedb.exceptions import ConnectionError, EmptyResultError
from sqlitedb.exceptions import ExecutionError
from sqlitedb.extensions import register_aggregate, register_collation
from sqlitedb.extensions import register_function
from sqlitedb.handle import SharedHandle
from sqlitedb.native import DEFAULT_FLAGS, ResultCode, errstr, ffi
from sqlitedb.native import get_library, to_str
from sqlitedb.options import SqliteOptions
from sqlitedb.query import Query

__all__ = ['Database', 'connect']

logger = logging.getLogger(__name__)


def _deferred_close(lib: Any) -> Callable[[Any], None]:
    def close(handle: Any) -> None:
        rc = lib.sqlite3_close_v2(handle)
        if rc != ResultCode.OK:
            logger.warning(f'Deferred close failed: {errstr(rc)} ({rc})')
        else:
            logger.debug('Connection released')
    return close


def _strict_close(lib: Any) -> Callable[[Any], None]:
    def close(handle: Any) -> None:
        rc = lib.sqlite3_close(handle)
        if rc != ResultCode.OK:
            message = to_str(lib.sqlite3_errmsg(handle)) or errstr(rc)
            raise ConnectionError(message, code=rc)
    return close


class Database:
    """A connection to one database file or in-memory database.

    Not thread-safe: a connection, and every query prepared on it, must be
    confined to one thread or serialized by the caller.

    Examples
        db = Database(':memory:')
        db.execute('CREATE TABLE person (name TEXT, score REAL)')
        with db.query('INSERT INTO person VALUES (?, ?)') as q:
            q.bind_all('Smith', 77.5).execute()
        df = db.select('SELECT * FROM person')
    """

    def __init__(self, path: str | os.PathLike = ':memory:', flags: int = DEFAULT_FLAGS,
                 options: SqliteOptions | None = None) -> None:
        """Open (or create) the database.

        Args:
            path: database file, '' for a temporary file, ':memory:' for RAM
            flags: `OpenFlags` for the native open call
            options: full `SqliteOptions`; overrides `path` and `flags`
        """
        if options is None:
            options = SqliteOptions(path=path, flags=flags)
        self.options = options
        self.library = get_library(options.library)

        lib = self.library
        out = ffi.new('sqlite3 **')
        rc = lib.sqlite3_open_v2(os.fsencode(options.path), out, int(options.flags), ffi.NULL)
        if rc != ResultCode.OK or out[0] == ffi.NULL:
            message = None
            if out[0] != ffi.NULL:
                message = to_str(lib.sqlite3_errmsg(out[0]))
                lib.sqlite3_close(out[0])
            if rc == ResultCode.OK:
                rc = ResultCode.NOMEM
            raise ConnectionError(message or errstr(rc), code=rc)

        self.core = SharedHandle(out[0], _deferred_close(lib), 'database connection')
        self._finalizer = weakref.finalize(self, self.core.release)
        logger.debug(f'Opened database {options.path!r} (flags={int(options.flags):#x})')

        if options.busy_timeout:
            lib.sqlite3_busy_timeout(self.handle, options.busy_timeout)

    @classmethod
    def _share(cls, other: 'Database') -> 'Database':
        database = cls.__new__(cls)
        database.options = other.options
        database.library = other.library
        database.core = other.core.retain()
        database._finalizer = weakref.finalize(database, database.core.release)
        return database

    def __copy__(self) -> 'Database':
        return self._share(self)

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f'Database({self.options.path!r}, {state})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def handle(self) -> Any:
        """The native connection handle; raises `ProgrammingError` once closed.
        """
        return self.core.pointer

    @property
    def closed(self) -> bool:
        return self.core.released

    @property
    def changes(self) -> int:
        """Rows changed by the most recent INSERT, UPDATE or DELETE."""
        return self.library.sqlite3_changes(self.handle)

    @property
    def total_changes(self) -> int:
        """Rows changed since the connection was opened."""
        return self.library.sqlite3_total_changes(self.handle)

    @property
    def error_code(self) -> int:
        return self.library.sqlite3_errcode(self.handle)

    @property
    def error_message(self) -> str:
        return to_str(self.library.sqlite3_errmsg(self.handle)) or errstr(self.error_code)

    @property
    def in_transaction(self) -> bool:
        return not self.library.sqlite3_get_autocommit(self.handle)

    def close(self) -> None:
        """Close the connection now, for this value and every copy of it.

        Raises `ConnectionError` while statements prepared on the connection
        are still alive; finalize them first. Closing twice is a no-op.
        """
        if self.core.released:
            return
        self.core.close(_strict_close(self.library))
        self._finalizer.detach()
        logger.debug(f'Closed database {self.options.path!r}')

    def execute(self, sql: str) -> None:
        """Run one or more ';'-separated statements, discarding any rows.
        """
        errmsg = ffi.new('char **')
        rc = self.library.sqlite3_exec(self.handle, sql.encode('utf-8'), ffi.NULL, ffi.NULL, errmsg)
        if rc != ResultCode.OK:
            message = None
            if errmsg[0] != ffi.NULL:
                message = to_str(errmsg[0])
                self.library.sqlite3_free(errmsg[0])
            raise ExecutionError(message or errstr(rc), code=rc, sql=sql)
        logger.debug(f'Executed: {sql}')

    def prepare(self, sql: str) -> Query:
        """Compile the first statement of `sql`.
        """
        return Query(self, sql)

    query = prepare

    def create_function(self, name: str, func: Callable[..., Any],
                        arg_types: list[Any] | tuple[Any, ...] | None = None,
                        deterministic: bool = False) -> None:
        """Register a Python callable as a scalar SQL function.

        Argument types come from `arg_types` or from the callable's
        annotations; unannotated parameters accept any value.
        """
        register_function(self, name, func, arg_types, deterministic)

    def create_aggregate(self, name: str, aggregate: type,
                         arg_types: list[Any] | tuple[Any, ...] | None = None,
                         deterministic: bool = False) -> None:
        """Register a class with `step(*args)` and `finalize()` as an aggregate.
        """
        register_aggregate(self, name, aggregate, arg_types, deterministic)

    def create_collation(self, name: str, comparator: Callable[[str, str], int]) -> None:
        """Register `comparator(a, b) -> int` as a collating sequence.
        """
        register_collation(self, name, comparator)

    # Convenience readers

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        """Run a query and materialize every row through the data loader.

        Positional `args` bind to parameters 1..n. The result type depends on
        `options.data_loader` (a pandas DataFrame by default); extra keyword
        arguments are passed to the loader.
        """
        with self.prepare(sql) as q:
            q.bind_all(*args)
            names = q.column_names
            data = [[column.value for column in row] for row in q]
        logger.debug(f'Query returned {len(data)} rows')
        return self.options.data_loader(data, names, **kwargs)

    def select_scalar(self, sql: str, *args: Any) -> Any:
        """First column of the first row.

        Raises EmptyResultError if the query returns no rows.
        """
        with self.prepare(sql) as q:
            return q.bind_all(*args).one_value()

    def select_row(self, sql: str, *args: Any) -> dict[str, Any]:
        """First row as a dict keyed by column name.

        Raises EmptyResultError if the query returns no rows.
        """
        with self.prepare(sql) as q:
            return q.bind_all(*args).front.to_dict()

    def select_row_or_none(self, sql: str, *args: Any) -> dict[str, Any] | None:
        try:
            return self.select_row(sql, *args)
        except EmptyResultError:
            return None

    def select_column(self, sql: str, *args: Any) -> list[Any]:
        """First column of every row as a list.
        """
        with self.prepare(sql) as q:
            return [row.front.value for row in q.bind_all(*args)]


def connect(options: SqliteOptions | dict[str, Any] | str | os.PathLike | None = None,
            **kw: Any) -> Database:
    """Open a database from options, an options dict or a path.

    Keyword arguments override the matching option fields.

    Examples
        db = connect('app.db', busy_timeout=5000)
        db = connect({'path': ':memory:', 'data_loader': iterdict_data_loader})
    """
    if isinstance(options, SqliteOptions):
        if kw:
            options = dataclasses.replace(options, **kw)
    elif isinstance(options, dict):
        options = SqliteOptions(**(options | kw))
    elif options is None:
        options = SqliteOptions(**kw)
    else:
        options = SqliteOptions(path=options, **kw)
    return Database(options=options)

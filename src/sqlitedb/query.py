"""
Prepared statements: parameter binding and step-wise execution.

A `Query` owns one native statement handle and keeps its `Database` alive.
Its rows form a single-pass sequence over the statement cursor, exposed both
through `empty` / `front` / `pop_front` and through Python iteration.
"""
import logging
import weakref
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from sqlitedb.exceptions import BindError, EmptyResultError, PrepareError
from sqlitedb.exceptions import ProgrammingError, SqliteError, StepError
from sqlitedb.handle import SharedHandle
from sqlitedb.native import TRANSIENT, ResultCode, errstr, ffi, to_str
from sqlitedb.row import Row
from sqlitedb.types import BindKind, Column, TypeConverter

if TYPE_CHECKING:
    from sqlitedb.connection import Database

__all__ = ['Query', 'FRESH']

logger = logging.getLogger(__name__)

# Execution state before the first step; ROW and DONE come from the engine.
FRESH = 0

_MARKERS = (':', '@', '$')


def _statement_teardown(lib: Any):
    def finalize(statement: Any) -> None:
        rc = lib.sqlite3_finalize(statement)
        if rc != ResultCode.OK:
            logger.debug(f'Statement finalized after a failed step: {errstr(rc)} ({rc})')
    return finalize


class Query:
    """A compiled SQL statement bound to a database connection.

    Not thread-safe: a query shares its connection's thread confinement.

    Examples
        with db.query('INSERT INTO person (name, score) VALUES (:name, :score)') as q:
            q.bind(':name', 'Smith').bind(':score', 77.5)
            q.execute()

        for row in db.query('SELECT name, score FROM person'):
            print(row['name'].get(str), row[1].get(float, 0.0))
    """

    def __init__(self, database: 'Database', sql: str) -> None:
        self.database = database
        self.sql = sql
        self.library = database.library
        self.generation = 0
        self._state = FRESH
        self._yielded = False
        self._handle: SharedHandle | None = None
        self._finalizer = None

        lib = self.library
        encoded = sql.encode('utf-8')
        buffer = ffi.new('char[]', encoded)
        out = ffi.new('sqlite3_stmt **')
        tail = ffi.new('const char **')
        rc = lib.sqlite3_prepare_v2(database.handle, buffer, len(encoded), out, tail)
        if rc != ResultCode.OK:
            raise PrepareError(database.error_message, code=rc, sql=sql)

        if tail[0] != ffi.NULL:
            consumed = int(ffi.cast('uintptr_t', tail[0])) - int(ffi.cast('uintptr_t', buffer))
            remainder = encoded[consumed:].strip()
            if remainder:
                logger.debug(f'Ignoring SQL after the first statement: {remainder.decode(errors="replace")}')

        if out[0] == ffi.NULL:
            self._state = ResultCode.DONE
            logger.debug(f'Prepared empty statement: {sql!r}')
            return

        self._handle = SharedHandle(out[0], _statement_teardown(lib), 'statement')
        self._finalizer = weakref.finalize(self, self._handle.release)
        logger.debug(f'Prepared statement: {sql}')

    def __copy__(self) -> 'Query':
        """Second value over the same native statement and cursor.

        The statement is finalized when the last copy is garbage collected,
        or for every copy at once by `finalize()`.
        """
        query = self.__class__.__new__(self.__class__)
        query.__dict__.update(self.__dict__)
        query._finalizer = None
        if self._handle is not None:
            query._handle = self._handle.retain()
            query._finalizer = weakref.finalize(query, query._handle.release)
        return query

    def __repr__(self) -> str:
        return f'Query({self.sql!r})'

    def __enter__(self) -> 'Query':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.finalize()

    @property
    def statement(self) -> Any:
        """The native statement handle, None for an empty statement.
        """
        if self._handle is None:
            return None
        return self._handle.pointer

    @property
    def finalized(self) -> bool:
        return self._handle is not None and self._handle.released

    @property
    def state(self) -> int:
        """FRESH, ResultCode.ROW or ResultCode.DONE."""
        return self._state

    @property
    def parameter_count(self) -> int:
        statement = self.statement
        if statement is None:
            return 0
        return self.library.sqlite3_bind_parameter_count(statement)

    @property
    def parameter_names(self) -> list[str | None]:
        """Parameter markers by position (None for anonymous `?`)."""
        statement = self.statement
        return [to_str(self.library.sqlite3_bind_parameter_name(statement, index))
                for index in range(1, self.parameter_count + 1)]

    @property
    def column_count(self) -> int:
        statement = self.statement
        if statement is None:
            return 0
        return self.library.sqlite3_column_count(statement)

    @property
    def column_names(self) -> list[str]:
        statement = self.statement
        return [to_str(self.library.sqlite3_column_name(statement, index))
                for index in range(self.column_count)]

    # Binding

    def _parameter_index(self, name: str) -> int:
        lib = self.library
        statement = self.statement
        index = lib.sqlite3_bind_parameter_index(statement, name.encode('utf-8'))
        if index == 0 and not name.startswith(_MARKERS):
            for marker in _MARKERS:
                index = lib.sqlite3_bind_parameter_index(statement, (marker + name).encode('utf-8'))
                if index:
                    break
        if index == 0:
            raise BindError(f"no parameter named '{name}'", sql=self.sql)
        return index

    def bind(self, key: int | str, value: Any) -> 'Query':
        """Bind `value` to a parameter by 1-based position or by name.

        Names include their marker (':name', '@name' or '$name'); a bare
        identifier is tried with each marker in turn. Returns the query so
        binds can be chained.
        """
        if self.parameter_count == 0:
            raise BindError('no parameter to bind to', sql=self.sql)

        index = self._parameter_index(key) if isinstance(key, str) else int(key)
        kind, native = TypeConverter.convert_value(value)

        lib = self.library
        statement = self.statement
        if kind == BindKind.NULL:
            rc = lib.sqlite3_bind_null(statement, index)
        elif kind == BindKind.INT:
            rc = lib.sqlite3_bind_int(statement, index, native)
        elif kind == BindKind.INT64:
            rc = lib.sqlite3_bind_int64(statement, index, native)
        elif kind == BindKind.DOUBLE:
            rc = lib.sqlite3_bind_double(statement, index, native)
        elif kind == BindKind.TEXT:
            rc = lib.sqlite3_bind_text(statement, index, native, len(native), TRANSIENT)
        else:
            rc = lib.sqlite3_bind_blob(statement, index, ffi.from_buffer(native), len(native), TRANSIENT)

        if rc != ResultCode.OK:
            raise BindError(errstr(rc), code=rc, sql=self.sql)
        return self

    def bind_all(self, *args: Any, **kwargs: Any) -> 'Query':
        """Bind positional values to parameters 1..n and keyword values by name.
        """
        for index, value in enumerate(args, 1):
            self.bind(index, value)
        for name, value in kwargs.items():
            self.bind(name, value)
        return self

    def clear_bindings(self) -> None:
        """Set every parameter back to NULL; the execution state is unchanged.
        """
        statement = self.statement
        if statement is None:
            return
        rc = self.library.sqlite3_clear_bindings(statement)
        if rc != ResultCode.OK:
            raise SqliteError(errstr(rc), code=rc, sql=self.sql)

    # Execution

    def _check_open(self) -> None:
        if self.finalized:
            raise ProgrammingError('statement used after it was finalized', sql=self.sql)

    def reset(self) -> None:
        """Rewind the statement before a new execution; bindings are kept.
        """
        statement = self.statement
        if statement is None:
            return
        self.generation += 1
        self._state = FRESH
        self._yielded = False
        rc = self.library.sqlite3_reset(statement)
        if rc != ResultCode.OK:
            raise SqliteError(self.database.error_message, code=rc, sql=self.sql)

    def execute(self) -> None:
        """Advance the cursor by one step.

        Use this directly for statements that return no rows; use iteration
        or `front` for the others.
        """
        statement = self.statement
        if statement is None:
            self._state = ResultCode.DONE
            return

        self.generation += 1
        rc = self.library.sqlite3_step(statement)
        if rc in {ResultCode.ROW, ResultCode.DONE}:
            self._state = ResultCode(rc)
            return

        # The connection only reports a reliable message once the statement is reset.
        self.library.sqlite3_reset(statement)
        self._state = FRESH
        self._yielded = False
        raise StepError(self.database.error_message, code=rc, sql=self.sql)

    @property
    def empty(self) -> bool:
        """True once the last step reported completion; takes the first step if needed.
        """
        self._check_open()
        if self._state == FRESH:
            self.execute()
        return self._state == ResultCode.DONE

    @property
    def front(self) -> Row:
        """View of the current row."""
        self._check_open()
        if self._state == FRESH:
            self.execute()
        if self._state == ResultCode.DONE:
            raise EmptyResultError('No rows available', sql=self.sql)
        return Row(self)

    def pop_front(self) -> None:
        """Move to the next row."""
        self._check_open()
        if self._state == FRESH:
            self.execute()
        if self._state == ResultCode.DONE:
            raise EmptyResultError('No rows available', sql=self.sql)
        self._yielded = False
        self.execute()

    def __iter__(self) -> Iterator[Row]:
        return self

    def __next__(self) -> Row:
        self._check_open()
        if self._state == FRESH:
            self.execute()
        elif self._yielded and self._state == ResultCode.ROW:
            self.execute()
        if self._state == ResultCode.DONE:
            raise StopIteration
        self._yielded = True
        return Row(self)

    def rows(self) -> Iterator[Row]:
        """The remaining rows; a single pass over the cursor."""
        return iter(self)

    def one_value(self, type_: Any = None, default: Any = None) -> Any:
        """First column of the first row, converted like `Column.get`.
        """
        return self.front.front.get(type_, default)

    def array(self) -> list[list[Column]]:
        """Buffer every remaining row, then reset the query.

        Do not mix with direct iteration over the same query.
        """
        result = [list(row) for row in self]
        self.reset()
        return result

    def finalize(self) -> None:
        """Release the native statement now instead of on garbage collection.
        """
        if self._handle is None or self._handle.released:
            return
        self.generation += 1
        self._state = ResultCode.DONE
        self._handle.close()
        self._finalizer.detach()
        logger.debug(f'Finalized statement: {self.sql}')

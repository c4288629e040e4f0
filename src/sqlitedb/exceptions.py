"""
Exception classes for the SQLite binding.

Every error raised by this package is an `SqliteError` carrying a message,
the native result code when one exists, and the offending SQL when known.
"""


class SqliteError(Exception):
    """Base class for all binding errors.
    """

    def __init__(self, message: str, code: int | None = None, sql: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.sql = sql

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f'error {self.code}: {self.message}'

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.message!r}, code={self.code!r}, sql={self.sql!r})'


class LibraryNotFoundError(SqliteError):
    """The native engine could not be loaded.
    """


class ConnectionError(SqliteError):
    """Error opening or closing a database connection.
    """


class ExecutionError(SqliteError):
    """Error running SQL through the one-shot execute path.
    """


class PrepareError(SqliteError):
    """SQL failed to compile into a statement.
    """


class BindError(SqliteError):
    """Error binding a value to a statement parameter.
    """


class StepError(SqliteError):
    """Stepping a statement returned neither a row nor completion.
    """


class EmptyResultError(SqliteError):
    """A row was requested from an exhausted query.
    """


class DecodeError(SqliteError):
    """Error converting a native value to the requested Python type.
    """


class ColumnNotFoundError(DecodeError):
    """No column with the requested name in the row.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"invalid column name: '{name}'")
        self.name = name


class ColumnIndexError(DecodeError, IndexError):
    """Column index outside of the row window.
    """


class InvalidRowError(SqliteError):
    """A row view was used after its statement moved on.
    """


class ProgrammingError(SqliteError):
    """A connection or statement was used after being closed or finalized.
    """


class ExtensionError(SqliteError):
    """Registering a function, aggregate or collation failed.
    """


UsageError = (
    EmptyResultError,
    InvalidRowError,
    ProgrammingError,
    )

"""
Transaction handling for database connections.
"""
import logging
from typing import TYPE_CHECKING, Any

from sqlitedb.exceptions import ProgrammingError, SqliteError
from sqlitedb.query import Query

if TYPE_CHECKING:
    from sqlitedb.connection import Database

__all__ = ['Transaction']

logger = logging.getLogger(__name__)

MODES = ('DEFERRED', 'IMMEDIATE', 'EXCLUSIVE')


class Transaction:
    """Context manager for running multiple commands in a transaction.

    The transaction state lives in the native connection, so it is shared by
    every copy of a `Database`. Nested transactions on the same connection are
    not supported.

    Examples
        with Transaction(db) as tx:
            tx.execute('DELETE FROM person WHERE score < 50')
            tx.query('UPDATE person SET score = ?').bind(1, 0).execute()
    """

    def __init__(self, db: 'Database', mode: str = 'DEFERRED') -> None:
        mode = mode.upper()
        if mode not in MODES:
            raise ValueError(f'Unknown transaction mode: {mode}')
        self.connection = db
        self.mode = mode

    def __enter__(self) -> 'Transaction':
        if self.connection.in_transaction:
            raise ProgrammingError('Nested transactions are not supported')
        self.connection.execute(f'BEGIN {self.mode}')
        logger.debug(f'Started {self.mode.lower()} transaction for connection {id(self.connection.core)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        cn = self.connection
        if exc_type is None:
            cn.execute('COMMIT')
            logger.debug(f'Committed transaction for connection {id(cn.core)}')
            return

        # The engine rolls back by itself after some errors.
        if cn.closed or not cn.in_transaction:
            return
        try:
            cn.execute('ROLLBACK')
            logger.warning('Rolling back the current transaction')
        except SqliteError as e:
            logger.error(f'Rollback failed: {e}')

    def execute(self, sql: str) -> None:
        """Run SQL inside the transaction, discarding any rows."""
        self.connection.execute(sql)

    def query(self, sql: str) -> Query:
        return self.connection.prepare(sql)

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        return self.connection.select(sql, *args, **kwargs)

    def select_scalar(self, sql: str, *args: Any) -> Any:
        return self.connection.select_scalar(sql, *args)

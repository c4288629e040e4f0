import copy

import pytest
import sqlitedb as db
from sqlitedb import ProgrammingError, Transaction


@pytest.fixture
def table_db(sqlite_db):
    db.execute(sqlite_db, """
        CREATE TABLE test_table (id INTEGER PRIMARY KEY, name TEXT UNIQUE, value INTEGER);
        INSERT INTO test_table (name, value) VALUES ('Alice', 10), ('Bob', 20), ('Charlie', 30);
    """)
    return sqlite_db


def test_transaction_commit(table_db):
    """Test that a clean exit commits"""
    with db.transaction(table_db) as tx:
        assert table_db.in_transaction
        tx.execute("INSERT INTO test_table (name, value) VALUES ('David', 40)")
        with tx.query('UPDATE test_table SET value = ? WHERE name = ?') as q:
            q.bind_all(25, 'Bob').execute()
        assert tx.select_scalar('SELECT count(*) FROM test_table') == 4

    assert not table_db.in_transaction
    assert db.select_scalar(table_db, "SELECT value FROM test_table WHERE name = 'Bob'") == 25
    assert db.select_scalar(table_db, 'SELECT count(*) FROM test_table') == 4


def test_transaction_rollback(table_db):
    """Test that an exception rolls the transaction back"""
    with pytest.raises(ValueError):
        with Transaction(table_db) as tx:
            tx.execute("INSERT INTO test_table (name, value) VALUES ('David', 40)")
            raise ValueError('abort')

    assert not table_db.in_transaction
    assert db.select_scalar(table_db, 'SELECT count(*) FROM test_table') == 3


def test_transaction_rollback_on_sql_error(table_db):
    """Test rollback after a failing statement"""
    with pytest.raises(db.ExecutionError):
        with Transaction(table_db) as tx:
            tx.execute("UPDATE test_table SET value = 0 WHERE name = 'Alice'")
            tx.execute("INSERT INTO test_table (name, value) VALUES ('Bob', 99)")

    assert db.select_scalar(table_db, "SELECT value FROM test_table WHERE name = 'Alice'") == 10


def test_nested_transaction_rejected(table_db):
    """Test that nested transactions are not supported"""
    with Transaction(table_db):
        with pytest.raises(ProgrammingError, match='Nested transactions'):
            with Transaction(table_db):
                pass
        with pytest.raises(ProgrammingError):
            with Transaction(copy.copy(table_db)):
                pass
    assert not table_db.in_transaction


def test_transaction_modes(table_db):
    """Test explicit transaction modes"""
    with Transaction(table_db, mode='immediate') as tx:
        assert tx.mode == 'IMMEDIATE'
        tx.execute("DELETE FROM test_table WHERE name = 'Charlie'")
    assert db.select_column(table_db, 'SELECT name FROM test_table ORDER BY id') == ['Alice', 'Bob']

    with pytest.raises(ValueError, match='Unknown transaction mode'):
        Transaction(table_db, mode='LAZY')


def test_transaction_select(table_db):
    """Test reading through the transaction"""
    with Transaction(table_db) as tx:
        result = tx.select('SELECT name FROM test_table WHERE value > ? ORDER BY id', 15)
    assert result['name'].tolist() == ['Bob', 'Charlie']


if __name__ == '__main__':
    pytest.main([__file__])

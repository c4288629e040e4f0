import copy
import gc

import pytest
import sqlitedb as db
from sqlitedb import ConnectionError, Database, ExecutionError, OpenFlags
from sqlitedb import PrepareError, ProgrammingError, ResultCode
from sqlitedb import SqliteOptions


def test_open_memory_database():
    """Test opening and closing an in-memory database"""
    conn = Database()
    assert not conn.closed
    assert conn.handle is not None
    assert conn.options.path == ':memory:'
    assert 'open' in repr(conn)

    conn.close()
    assert conn.closed
    assert 'closed' in repr(conn)


def test_connect_forms():
    """Test the accepted forms of connect()"""
    with db.connect(':memory:') as conn:
        assert conn.select_scalar('SELECT 1') == 1

    with db.connect({'path': ':memory:', 'busy_timeout': 100}) as conn:
        assert conn.options.busy_timeout == 100

    with db.connect(SqliteOptions(), busy_timeout=250) as conn:
        assert conn.options.busy_timeout == 250

    with db.connect(busy_timeout=10) as conn:
        assert conn.options.path == ':memory:'


def test_open_failure(tmp_path):
    """Test that a failed open raises ConnectionError with the native message"""
    missing = tmp_path / 'no-such-dir' / 'test.db'
    with pytest.raises(ConnectionError) as excinfo:
        Database(missing)
    assert excinfo.value.code == ResultCode.CANTOPEN
    assert 'unable to open database file' in excinfo.value.message


def test_open_readonly_missing_file(tmp_path):
    """Test that read-only open does not create the file"""
    with pytest.raises(ConnectionError):
        Database(tmp_path / 'missing.db', flags=OpenFlags.READONLY)
    assert not (tmp_path / 'missing.db').exists()


def test_file_database_persists(tmp_path):
    """Test writing through one connection and reading through another"""
    path = tmp_path / 'test.db'
    with Database(path) as conn:
        conn.execute('CREATE TABLE t (v TEXT); INSERT INTO t VALUES (\'kept\')')

    with Database(path, flags=OpenFlags.READONLY) as conn:
        assert conn.select_scalar('SELECT v FROM t') == 'kept'
        with pytest.raises(ExecutionError) as excinfo:
            conn.execute("INSERT INTO t VALUES ('nope')")
        assert excinfo.value.code == ResultCode.READONLY


def test_execute_multiple_statements(sqlite_db):
    """Test running several statements in one call"""
    sqlite_db.execute("""
        CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT);
        INSERT INTO t (v) VALUES ('a');
        INSERT INTO t (v) VALUES ('b');
    """)
    assert sqlite_db.select_scalar('SELECT count(*) FROM t') == 2


def test_execute_discards_rows(sqlite_db):
    """Test that rows produced by execute are ignored"""
    sqlite_db.execute('SELECT 1; SELECT 2')


def test_execute_error(sqlite_db):
    """Test that native errors surface as ExecutionError with the SQL"""
    with pytest.raises(ExecutionError) as excinfo:
        sqlite_db.execute('SELEC 1')
    assert 'syntax error' in excinfo.value.message
    assert excinfo.value.sql == 'SELEC 1'
    assert excinfo.value.code == ResultCode.ERROR


def test_change_counters(sqlite_db):
    """Test changes and total_changes"""
    sqlite_db.execute('CREATE TABLE t (v INTEGER)')
    sqlite_db.execute('INSERT INTO t VALUES (1), (2), (3)')
    assert sqlite_db.changes == 3

    sqlite_db.execute('UPDATE t SET v = 0 WHERE v = 2')
    assert sqlite_db.changes == 1
    assert sqlite_db.total_changes == 4


def test_error_accessors(sqlite_db):
    """Test the last native error code and message"""
    with pytest.raises(PrepareError) as excinfo:
        sqlite_db.prepare('SELECT * FROM missing')
    assert 'no such table: missing' in str(excinfo.value)
    assert excinfo.value.sql == 'SELECT * FROM missing'
    assert sqlite_db.error_code == ResultCode.ERROR
    assert 'no such table: missing' in sqlite_db.error_message


def test_use_after_close_is_programming_error():
    """Test that any use of a closed connection fails fast"""
    conn = Database()
    conn.close()

    with pytest.raises(ProgrammingError):
        conn.prepare('SELECT 1')
    with pytest.raises(ProgrammingError):
        conn.execute('SELECT 1')
    with pytest.raises(ProgrammingError):
        conn.changes
    with pytest.raises(ProgrammingError):
        conn.create_function('f', lambda x: x)

    conn.close()


def test_close_with_live_statement():
    """Test that strict close refuses while a statement is alive"""
    conn = Database()
    query = conn.prepare('SELECT 1')

    with pytest.raises(ConnectionError) as excinfo:
        conn.close()
    assert excinfo.value.code == ResultCode.BUSY
    assert not conn.closed
    assert query.one_value() == 1

    query.finalize()
    conn.close()
    assert conn.closed


def test_copy_shares_handle(sqlite_db):
    """Test that copies share one native connection"""
    other = copy.copy(sqlite_db)
    assert other is not sqlite_db
    assert other.core is sqlite_db.core
    assert other.handle == sqlite_db.handle
    assert sqlite_db.core.refcount == 2

    other.execute('CREATE TABLE t (v INTEGER); INSERT INTO t VALUES (7)')
    assert sqlite_db.select_scalar('SELECT v FROM t') == 7

    del other
    gc.collect()
    assert sqlite_db.core.refcount == 1
    assert not sqlite_db.closed


def test_close_invalidates_copies():
    """Test that an explicit close affects every copy"""
    conn = Database()
    other = copy.copy(conn)
    other.close()

    assert conn.closed
    with pytest.raises(ProgrammingError):
        conn.select_scalar('SELECT 1')

    del conn
    gc.collect()


def test_garbage_collection_releases_handle():
    """Test that the handle is released with the last reference"""
    conn = Database()
    core = conn.core
    del conn
    gc.collect()
    assert core.released


def test_statement_keeps_connection_alive():
    """Test that a query holds its connection open"""
    conn = Database()
    core = conn.core
    query = conn.prepare('SELECT 42')
    del conn
    gc.collect()

    assert not core.released
    assert query.one_value(int) == 42

    del query
    gc.collect()
    assert core.released


def test_context_manager_closes():
    """Test that leaving the with block closes the connection"""
    with Database() as conn:
        conn.execute('CREATE TABLE t (v)')
    assert conn.closed


def test_in_transaction(sqlite_db):
    """Test the autocommit state of the connection"""
    assert not sqlite_db.in_transaction
    sqlite_db.execute('BEGIN')
    assert sqlite_db.in_transaction
    sqlite_db.execute('COMMIT')
    assert not sqlite_db.in_transaction


def test_query_alias(sqlite_db):
    """Test that query() prepares like prepare()"""
    with sqlite_db.query('SELECT 5') as q:
        assert q.one_value() == 5


if __name__ == '__main__':
    pytest.main([__file__])

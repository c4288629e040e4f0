import re

import pytest
from sqlitedb.exceptions import LibraryNotFoundError
from sqlitedb.native import ResultCode, errstr, get_library
from sqlitedb.native import sqlite_version, sqlite_version_number


def test_library_is_loaded_once():
    """Test that the engine is loaded and cached"""
    assert get_library() is get_library()


def test_version():
    """Test engine version metadata"""
    version = sqlite_version()
    assert re.match(r'^3\.\d+\.\d+', version)
    major, minor, patch = (int(part) for part in version.split('.')[:3])
    assert sqlite_version_number() == major * 1000000 + minor * 1000 + patch


def test_errstr():
    """Test result code descriptions"""
    assert errstr(ResultCode.OK) == 'not an error'
    assert errstr(ResultCode.CONSTRAINT) == 'constraint failed'


def test_missing_library(tmp_path, monkeypatch):
    """Test that an unloadable explicit path falls back to discovery"""
    monkeypatch.delenv('SQLITEDB_LIBRARY', raising=False)
    lib = get_library(str(tmp_path / 'libmissing.so'))
    assert lib.sqlite3_libversion_number() == sqlite_version_number()


def test_library_not_found(monkeypatch):
    """Test the error raised when no candidate can be loaded"""
    import sqlitedb.native as native

    monkeypatch.setattr(native, '_candidate_libraries', lambda path=None: ['/nonexistent/libsqlite3.so'])
    with pytest.raises(LibraryNotFoundError, match='could not load the SQLite library'):
        native.get_library.__wrapped__('/nonexistent/libsqlite3.so')


if __name__ == '__main__':
    pytest.main([__file__])

"""
Native SQLite engine access through cffi (ABI mode).

This module provides:
1. The `ffi` object carrying the subset of the SQLite C interface the binding uses
2. `get_library()` to locate and load the engine once per process
3. Result code, column type and open flag enumerations
4. Small helpers for converting native strings and buffers
"""
import ctypes.util
import enum
import logging
import os
import sys
from functools import lru_cache

from cffi import FFI
from sqlitedb.exceptions import LibraryNotFoundError

__all__ = [
    'ffi',
    'get_library',
    'ResultCode',
    'ColumnType',
    'OpenFlags',
    'DEFAULT_FLAGS',
    'TRANSIENT',
    'INT32_MIN',
    'INT32_MAX',
    'INT64_MIN',
    'INT64_MAX',
    'errstr',
    'sqlite_version',
    'sqlite_version_number',
    'to_str',
    'to_bytes',
]

logger = logging.getLogger(__name__)

ffi = FFI()

ffi.cdef(
    r"""
    typedef struct sqlite3 sqlite3;
    typedef struct sqlite3_stmt sqlite3_stmt;
    typedef struct sqlite3_context sqlite3_context;
    typedef struct sqlite3_value sqlite3_value;
    typedef long long sqlite3_int64;
    typedef void (*sqlite3_destructor_type)(void*);

    const char *sqlite3_libversion(void);
    int sqlite3_libversion_number(void);
    const char *sqlite3_errstr(int);
    void sqlite3_free(void*);

    int sqlite3_open_v2(const char *filename, sqlite3 **ppDb, int flags, const char *zVfs);
    int sqlite3_close(sqlite3*);
    int sqlite3_close_v2(sqlite3*);
    int sqlite3_exec(sqlite3*, const char *sql,
                     int (*callback)(void*, int, char**, char**),
                     void *, char **errmsg);
    int sqlite3_errcode(sqlite3 *db);
    const char *sqlite3_errmsg(sqlite3*);
    int sqlite3_changes(sqlite3*);
    int sqlite3_total_changes(sqlite3*);
    int sqlite3_busy_timeout(sqlite3*, int ms);
    int sqlite3_get_autocommit(sqlite3*);

    int sqlite3_prepare_v2(sqlite3 *db, const char *zSql, int nByte,
                           sqlite3_stmt **ppStmt, const char **pzTail);
    int sqlite3_finalize(sqlite3_stmt *pStmt);
    int sqlite3_reset(sqlite3_stmt *pStmt);
    int sqlite3_step(sqlite3_stmt*);
    int sqlite3_clear_bindings(sqlite3_stmt*);

    int sqlite3_bind_parameter_count(sqlite3_stmt*);
    int sqlite3_bind_parameter_index(sqlite3_stmt*, const char *zName);
    const char *sqlite3_bind_parameter_name(sqlite3_stmt*, int);
    int sqlite3_bind_null(sqlite3_stmt*, int);
    int sqlite3_bind_int(sqlite3_stmt*, int, int);
    int sqlite3_bind_int64(sqlite3_stmt*, int, sqlite3_int64);
    int sqlite3_bind_double(sqlite3_stmt*, int, double);
    int sqlite3_bind_text(sqlite3_stmt*, int, const char*, int, sqlite3_destructor_type);
    int sqlite3_bind_blob(sqlite3_stmt*, int, const void*, int, sqlite3_destructor_type);

    int sqlite3_column_count(sqlite3_stmt *pStmt);
    const char *sqlite3_column_name(sqlite3_stmt*, int N);
    int sqlite3_column_type(sqlite3_stmt*, int iCol);
    sqlite3_int64 sqlite3_column_int64(sqlite3_stmt*, int iCol);
    double sqlite3_column_double(sqlite3_stmt*, int iCol);
    const unsigned char *sqlite3_column_text(sqlite3_stmt*, int iCol);
    const void *sqlite3_column_blob(sqlite3_stmt*, int iCol);
    int sqlite3_column_bytes(sqlite3_stmt*, int iCol);

    int sqlite3_create_function(sqlite3 *db, const char *zFunctionName, int nArg,
                                int eTextRep, void *pApp,
                                void (*xFunc)(sqlite3_context*, int, sqlite3_value**),
                                void (*xStep)(sqlite3_context*, int, sqlite3_value**),
                                void (*xFinal)(sqlite3_context*));
    int sqlite3_create_collation(sqlite3*, const char *zName, int eTextRep, void *pArg,
                                 int (*xCompare)(void*, int, const void*, int, const void*));
    void *sqlite3_aggregate_context(sqlite3_context*, int nBytes);

    int sqlite3_value_type(sqlite3_value*);
    int sqlite3_value_numeric_type(sqlite3_value*);
    sqlite3_int64 sqlite3_value_int64(sqlite3_value*);
    double sqlite3_value_double(sqlite3_value*);
    const unsigned char *sqlite3_value_text(sqlite3_value*);
    const void *sqlite3_value_blob(sqlite3_value*);
    int sqlite3_value_bytes(sqlite3_value*);

    void sqlite3_result_null(sqlite3_context*);
    void sqlite3_result_int64(sqlite3_context*, sqlite3_int64);
    void sqlite3_result_double(sqlite3_context*, double);
    void sqlite3_result_text(sqlite3_context*, const char*, int, sqlite3_destructor_type);
    void sqlite3_result_blob(sqlite3_context*, const void*, int, sqlite3_destructor_type);
    void sqlite3_result_error(sqlite3_context*, const char*, int);
    void sqlite3_result_error_nomem(sqlite3_context*);
    """
)

# SQLITE_TRANSIENT: the engine copies the buffer before the call returns.
TRANSIENT = ffi.cast('sqlite3_destructor_type', -1)

UTF8 = 1
DETERMINISTIC = 0x000000800

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class ResultCode(enum.IntEnum):
    """Primary result codes returned by the engine."""
    OK = 0
    ERROR = 1
    INTERNAL = 2
    PERM = 3
    ABORT = 4
    BUSY = 5
    LOCKED = 6
    NOMEM = 7
    READONLY = 8
    INTERRUPT = 9
    IOERR = 10
    CORRUPT = 11
    NOTFOUND = 12
    FULL = 13
    CANTOPEN = 14
    PROTOCOL = 15
    EMPTY = 16
    SCHEMA = 17
    TOOBIG = 18
    CONSTRAINT = 19
    MISMATCH = 20
    MISUSE = 21
    NOLFS = 22
    AUTH = 23
    FORMAT = 24
    RANGE = 25
    NOTADB = 26
    NOTICE = 27
    WARNING = 28
    ROW = 100
    DONE = 101


class ColumnType(enum.IntEnum):
    """Fundamental datatype tags of a column or function argument."""
    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5


class OpenFlags(enum.IntFlag):
    """Flags accepted by `sqlite3_open_v2`."""
    READONLY = 0x00000001
    READWRITE = 0x00000002
    CREATE = 0x00000004
    URI = 0x00000040
    MEMORY = 0x00000080
    NOMUTEX = 0x00008000
    FULLMUTEX = 0x00010000
    SHAREDCACHE = 0x00020000
    PRIVATECACHE = 0x00040000


DEFAULT_FLAGS = OpenFlags.READWRITE | OpenFlags.CREATE


def _candidate_libraries(path: str | None = None) -> list[str]:
    """List library names/paths to try, most specific first."""
    candidates = []
    configured = path or os.environ.get('SQLITEDB_LIBRARY')
    if configured:
        candidates.append(configured)

    found = ctypes.util.find_library('sqlite3')
    if found:
        candidates.append(found)

    if sys.platform == 'darwin':
        candidates.append('libsqlite3.dylib')
    elif sys.platform == 'win32':
        candidates.append('sqlite3.dll')
    else:
        candidates.append('libsqlite3.so.0')

    try:
        import _sqlite3
        candidates.append(_sqlite3.__file__)
    except (ImportError, AttributeError):
        pass

    return candidates


@lru_cache(maxsize=None)
def get_library(path: str | None = None):
    """Load the SQLite engine, trying each candidate until one exposes the API.
    """
    errors = []
    for candidate in _candidate_libraries(path):
        try:
            lib = ffi.dlopen(candidate)
            lib.sqlite3_libversion_number()
        except (OSError, AttributeError) as e:
            errors.append(f'{candidate}: {e}')
            continue
        logger.debug(f'Loaded SQLite {ffi.string(lib.sqlite3_libversion()).decode()} from {candidate}')
        return lib

    raise LibraryNotFoundError('could not load the SQLite library: ' + '; '.join(errors))


def to_str(pointer) -> str | None:
    """Copy a NUL-terminated native UTF-8 string."""
    if pointer == ffi.NULL:
        return None
    return ffi.string(ffi.cast('const char *', pointer)).decode('utf-8', errors='replace')


def to_bytes(pointer, length: int) -> bytes:
    """Copy `length` bytes out of native memory."""
    if length <= 0 or pointer == ffi.NULL:
        return b''
    return ffi.buffer(ffi.cast('const char *', pointer), length)[:]


def errstr(code: int) -> str:
    """English description of a result code."""
    return to_str(get_library().sqlite3_errstr(code)) or f'error {code}'


def sqlite_version() -> str:
    """Version string of the loaded engine (e.g. 3.45.1).
    """
    return to_str(get_library().sqlite3_libversion())


def sqlite_version_number() -> int:
    """Version number of the loaded engine (e.g. 3045001).
    """
    return get_library().sqlite3_libversion_number()

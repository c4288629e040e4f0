"""
Registration of Python callables as SQL functions, aggregates and collations.

Each registration installs a cffi callback (the trampoline) with the engine.
On every native invocation the trampoline decodes the arguments according to
the declared Python parameter types, calls the Python object and encodes the
result back through `TypeConverter`. Errors raised on the Python side are
reported to the engine as function errors and never unwind through the
native frames.
"""
import inspect
import logging
import typing
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlitedb.exceptions import ExtensionError
from sqlitedb.native import DETERMINISTIC, TRANSIENT, UTF8, ColumnType
from sqlitedb.native import ResultCode, ffi, to_bytes
from sqlitedb.types import BindKind, TypeConverter, decode_value

if TYPE_CHECKING:
    from sqlitedb.connection import Database

__all__ = [
    'register_function',
    'register_aggregate',
    'register_collation',
    'argument_types',
]

logger = logging.getLogger(__name__)

FUNCTION_SIGNATURE = 'void(sqlite3_context*, int, sqlite3_value**)'
FINAL_SIGNATURE = 'void(sqlite3_context*)'
COLLATION_SIGNATURE = 'int(void*, int, const void*, int, const void*)'

_ANY = (Any, object, inspect.Parameter.empty, None)


def _log_callback_error(exc_type, exc_value, traceback) -> None:
    logger.error(f'Unhandled error in SQLite callback: {exc_value}')


# Argument decoding

def _read_any(lib: Any, value: Any, position: int, label: str) -> Any:
    return decode_value(lib, value).value


def _read_bool(lib: Any, value: Any, position: int, label: str) -> bool:
    if lib.sqlite3_value_numeric_type(value) != ColumnType.INTEGER:
        raise TypeError(f'argument {position} of {label} should be a boolean')
    return lib.sqlite3_value_int64(value) != 0


def _read_int(lib: Any, value: Any, position: int, label: str) -> int:
    if lib.sqlite3_value_numeric_type(value) != ColumnType.INTEGER:
        raise TypeError(f'argument {position} of {label} should be of an integral type')
    return lib.sqlite3_value_int64(value)


def _read_float(lib: Any, value: Any, position: int, label: str) -> float:
    if lib.sqlite3_value_numeric_type(value) not in {ColumnType.FLOAT, ColumnType.INTEGER}:
        raise TypeError(f'argument {position} of {label} should be a floating point')
    return lib.sqlite3_value_double(value)


def _read_str(lib: Any, value: Any, position: int, label: str) -> str:
    if lib.sqlite3_value_type(value) != ColumnType.TEXT:
        raise TypeError(f'argument {position} of {label} should be a string')
    return decode_value(lib, value).value


def _read_bytes(lib: Any, value: Any, position: int, label: str) -> bytes:
    if lib.sqlite3_value_type(value) != ColumnType.BLOB:
        raise TypeError(f'argument {position} of {label} should be of an array of bytes (BLOB)')
    return to_bytes(lib.sqlite3_value_blob(value), lib.sqlite3_value_bytes(value))


_READERS: dict[Any, Callable[..., Any]] = {
    bool: _read_bool,
    int: _read_int,
    float: _read_float,
    str: _read_str,
    bytes: _read_bytes,
    bytearray: lambda *args: bytearray(_read_bytes(*args)),
}


def argument_types(func: Callable[..., Any], skip_first: bool = False) -> tuple[Any, ...]:
    """Declared parameter types of `func`, from its annotations.

    Unannotated parameters map to `Any`. Variadic signatures are rejected
    because the engine needs a fixed argument count.
    """
    parameters = list(inspect.signature(func).parameters.values())
    if skip_first:
        parameters = parameters[1:]
    for parameter in parameters:
        if parameter.kind in {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}:
            raise ExtensionError(f'{func.__qualname__} must not be variadic')
    try:
        hints = typing.get_type_hints(func)
    except Exception:
        hints = getattr(func, '__annotations__', {})
    return tuple(hints.get(p.name, Any) for p in parameters)


def _readers(types: tuple[Any, ...], name: str) -> list[Callable[..., Any]]:
    readers = []
    for type_ in types:
        if type_ in _ANY:
            readers.append(_read_any)
        elif type_ in _READERS:
            readers.append(_READERS[type_])
        else:
            raise ExtensionError(f'{getattr(type_, "__name__", type_)} is not a compatible argument type for {name}()')
    return readers


def _read_arguments(lib: Any, readers: list, argv: Any, label: str) -> list[Any]:
    return [read(lib, argv[i], i + 1, label) for i, read in enumerate(readers)]


# Result encoding

def _set_result(lib: Any, context: Any, value: Any) -> None:
    kind, native = TypeConverter.convert_result(value)
    if kind == BindKind.NULL:
        lib.sqlite3_result_null(context)
    elif kind == BindKind.INT64:
        lib.sqlite3_result_int64(context, native)
    elif kind == BindKind.DOUBLE:
        lib.sqlite3_result_double(context, native)
    elif kind == BindKind.TEXT:
        lib.sqlite3_result_text(context, native, len(native), TRANSIENT)
    else:
        lib.sqlite3_result_blob(context, ffi.from_buffer(native), len(native), TRANSIENT)


def _set_error(lib: Any, context: Any, message: str) -> None:
    logger.debug(message)
    encoded = message.encode('utf-8')
    lib.sqlite3_result_error(context, encoded, len(encoded))


def _check(database: 'Database', rc: int, what: str) -> None:
    if rc != ResultCode.OK:
        raise ExtensionError(f'cannot register {what}: {database.error_message}', code=rc)


# Registration

def register_function(database: 'Database', name: str, func: Callable[..., Any],
                      arg_types: tuple[Any, ...] | list[Any] | None = None,
                      deterministic: bool = False) -> None:
    """Register `func` as the scalar SQL function `name`.
    """
    types = tuple(arg_types) if arg_types is not None else argument_types(func)
    readers = _readers(types, name)
    lib = database.library
    label = f'function {name}()'

    def x_func(context, argc, argv):
        try:
            args = _read_arguments(lib, readers, argv, label)
            _set_result(lib, context, func(*args))
        except Exception as e:
            _set_error(lib, context, f'error in {label}: {e}')

    callback = ffi.callback(FUNCTION_SIGNATURE, x_func, onerror=_log_callback_error)
    flags = UTF8 | (DETERMINISTIC if deterministic else 0)
    rc = lib.sqlite3_create_function(database.handle, name.encode('utf-8'), len(readers),
                                     flags, ffi.NULL, callback, ffi.NULL, ffi.NULL)
    _check(database, rc, label)
    database.core.keepalive[f'function:{name}/{len(readers)}'] = callback
    logger.debug(f'Registered {label} with {len(readers)} argument(s)')


def register_aggregate(database: 'Database', name: str, aggregate: type,
                       arg_types: tuple[Any, ...] | list[Any] | None = None,
                       deterministic: bool = False) -> None:
    """Register the class `aggregate` as the SQL aggregate function `name`.

    The class must be constructible without arguments and define
    `step(*args)` and `finalize()`. One instance accumulates each group; it is
    found again from the engine's aggregate context on every step and
    finalized exactly once.
    """
    if not callable(getattr(aggregate, 'step', None)) or not callable(getattr(aggregate, 'finalize', None)):
        raise ExtensionError(f'{name} should define step() and finalize()')

    types = tuple(arg_types) if arg_types is not None else argument_types(aggregate.step, skip_first=True)
    readers = _readers(types, name)
    lib = database.library
    label = f'aggregate function {name}()'
    states: dict[int, Any] = {}
    slot_size = ffi.sizeof('sqlite3_int64')

    def x_step(context, argc, argv):
        slot = lib.sqlite3_aggregate_context(context, slot_size)
        if slot == ffi.NULL:
            lib.sqlite3_result_error_nomem(context)
            return
        key = int(ffi.cast('uintptr_t', slot))
        try:
            instance = states.get(key)
            if instance is None:
                instance = states[key] = aggregate()
            instance.step(*_read_arguments(lib, readers, argv, label))
        except Exception as e:
            _set_error(lib, context, f'error in {label}: {e}')

    def x_final(context):
        slot = lib.sqlite3_aggregate_context(context, 0)
        instance = None
        if slot != ffi.NULL:
            instance = states.pop(int(ffi.cast('uintptr_t', slot)), None)
        try:
            if instance is None:
                instance = aggregate()
            _set_result(lib, context, instance.finalize())
        except Exception as e:
            _set_error(lib, context, f'error in {label}: {e}')

    step_callback = ffi.callback(FUNCTION_SIGNATURE, x_step, onerror=_log_callback_error)
    final_callback = ffi.callback(FINAL_SIGNATURE, x_final, onerror=_log_callback_error)
    flags = UTF8 | (DETERMINISTIC if deterministic else 0)
    rc = lib.sqlite3_create_function(database.handle, name.encode('utf-8'), len(readers),
                                     flags, ffi.NULL, ffi.NULL, step_callback, final_callback)
    _check(database, rc, label)
    database.core.keepalive[f'function:{name}/{len(readers)}'] = (step_callback, final_callback, states)
    logger.debug(f'Registered {label} with {len(readers)} argument(s)')


def register_collation(database: 'Database', name: str,
                       comparator: Callable[[str, str], int]) -> None:
    """Register `comparator(a, b)` as the collation `name`.

    The comparator must define a strict total order and return a negative,
    zero or positive integer; the engine does not check either property.
    """
    lib = database.library

    def x_compare(_, size1, data1, size2, data2):
        left = to_bytes(data1, size1).decode('utf-8', errors='replace')
        right = to_bytes(data2, size2).decode('utf-8', errors='replace')
        return int(comparator(left, right))

    callback = ffi.callback(COLLATION_SIGNATURE, x_compare, error=0, onerror=_log_callback_error)
    rc = lib.sqlite3_create_collation(database.handle, name.encode('utf-8'), UTF8,
                                      ffi.NULL, callback)
    _check(database, rc, f'collation {name}')
    database.core.keepalive[f'collation:{name}'] = callback
    logger.debug(f'Registered collation {name}')

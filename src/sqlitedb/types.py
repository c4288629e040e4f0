"""
Value model shared by parameter binding, row decoding and extension callbacks.

This module provides:
- Column: an immutable decoded value plus its native type tag
- TypeConverter: classify Python values into the engine's bind kinds
- decode_column / decode_value: native cell or argument -> Column
- coerce: the conversion rules behind `Column.get`
"""
import decimal
import logging
import numbers
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sqlitedb.exceptions import BindError, DecodeError
from sqlitedb.native import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from sqlitedb.native import ColumnType, to_bytes

__all__ = [
    'Column',
    'TypeConverter',
    'BindKind',
    'coerce',
    'decode_column',
    'decode_value',
    'SUPPORTED_TYPES',
]

logger = logging.getLogger(__name__)

SUPPORTED_TYPES: tuple[type, ...] = (bool, int, float, str, bytes, bytearray, object)

# Native length arguments are 32-bit signed ints.
MAX_LENGTH = INT32_MAX


def _type_name(type_: Any) -> str:
    return getattr(type_, '__name__', repr(type_))


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, bytes | bytearray):
        value = bytes(value).decode('utf-8')
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        return int(float(text))


def coerce(value: Any, type_: Any, default: Any = None) -> Any:
    """Convert a decoded value to `type_`, substituting `default` for NULL.

    Text and byte results that come out empty also yield `default`.
    """
    if type_ is None or type_ is object:
        return default if value is None else value

    if type_ not in SUPPORTED_TYPES:
        raise DecodeError(f'value cannot be converted to type {_type_name(type_)}')

    if value is None:
        return default

    try:
        if type_ is bool:
            return _to_int(value) != 0
        if type_ is int:
            return _to_int(value)
        if type_ is float:
            if isinstance(value, bytes | bytearray):
                value = bytes(value).decode('utf-8')
            return float(value)
        if type_ is str:
            if isinstance(value, bytes | bytearray):
                result = bytes(value).decode('utf-8')
            else:
                result = str(value)
            return result or default
    except (ValueError, OverflowError, UnicodeDecodeError) as e:
        raise DecodeError(f'cannot convert {value!r} to {_type_name(type_)}: {e}') from e

    if isinstance(value, str):
        value = value.encode('utf-8')
    elif not isinstance(value, bytes | bytearray):
        raise DecodeError(f'cannot convert a value of type {type(value).__name__} to {_type_name(type_)}')
    return type_(value) if value else default


@dataclass(frozen=True, slots=True)
class Column:
    """One decoded value and the native type tag it was read with."""
    value: Any
    type: ColumnType

    @property
    def is_null(self) -> bool:
        return self.type == ColumnType.NULL

    def get(self, type_: Any = None, default: Any = None) -> Any:
        """Return the value converted to `type_`, or `default` when it is NULL.

        `type_` may be bool, int, float, str, bytes, bytearray, or None/object
        for the dynamic value (None marks a NULL).
        """
        return coerce(self.value, type_, default)

    @classmethod
    def null(cls) -> 'Column':
        return cls(None, ColumnType.NULL)


def decode_column(lib: Any, statement: Any, index: int) -> Column:
    """Read cell `index` of the statement's current row.
    """
    tag = ColumnType(lib.sqlite3_column_type(statement, index))
    if tag == ColumnType.INTEGER:
        return Column(lib.sqlite3_column_int64(statement, index), tag)
    if tag == ColumnType.FLOAT:
        return Column(lib.sqlite3_column_double(statement, index), tag)
    if tag == ColumnType.TEXT:
        pointer = lib.sqlite3_column_text(statement, index)
        size = lib.sqlite3_column_bytes(statement, index)
        return Column(to_bytes(pointer, size).decode('utf-8', errors='replace'), tag)
    if tag == ColumnType.BLOB:
        pointer = lib.sqlite3_column_blob(statement, index)
        size = lib.sqlite3_column_bytes(statement, index)
        return Column(to_bytes(pointer, size), tag)
    return Column.null()


def decode_value(lib: Any, value: Any) -> Column:
    """Read a function argument (`sqlite3_value*`).
    """
    tag = ColumnType(lib.sqlite3_value_type(value))
    if tag == ColumnType.INTEGER:
        return Column(lib.sqlite3_value_int64(value), tag)
    if tag == ColumnType.FLOAT:
        return Column(lib.sqlite3_value_double(value), tag)
    if tag == ColumnType.TEXT:
        pointer = lib.sqlite3_value_text(value)
        size = lib.sqlite3_value_bytes(value)
        return Column(to_bytes(pointer, size).decode('utf-8', errors='replace'), tag)
    if tag == ColumnType.BLOB:
        pointer = lib.sqlite3_value_blob(value)
        size = lib.sqlite3_value_bytes(value)
        return Column(to_bytes(pointer, size), tag)
    return Column.null()


class BindKind:
    """Native bind routine chosen for a Python value."""
    NULL = 'null'
    INT = 'int'
    INT64 = 'int64'
    DOUBLE = 'double'
    TEXT = 'text'
    BLOB = 'blob'


def _is_missing(value: Any) -> bool:
    return value is None or value is pd.NA or value is pd.NaT


class TypeConverter:
    """Map Python values onto the engine's bind kinds.

    Handles NumPy scalars and arrays, Decimal and pandas missing markers on
    top of the builtin types.
    """

    @staticmethod
    def convert_value(value: Any) -> tuple[str, Any]:
        """Return `(kind, native_value)` for a single parameter value."""
        if _is_missing(value):
            return BindKind.NULL, None

        if isinstance(value, bool | np.bool_):
            return BindKind.INT, int(value)

        if isinstance(value, numbers.Integral):
            value = int(value)
            if INT32_MIN <= value <= INT32_MAX:
                return BindKind.INT, value
            if INT64_MIN <= value <= INT64_MAX:
                return BindKind.INT64, value
            raise BindError(f'integer too large: {value}')

        if isinstance(value, numbers.Real | decimal.Decimal):
            return BindKind.DOUBLE, float(value)

        if isinstance(value, str):
            encoded = value.encode('utf-8')
            if len(encoded) > MAX_LENGTH:
                raise BindError('string too long')
            return BindKind.TEXT, encoded

        try:
            data = memoryview(value).tobytes()
        except TypeError:
            data = None
        if data is not None:
            if not data:
                return BindKind.NULL, None
            if len(data) > MAX_LENGTH:
                raise BindError('array too long')
            return BindKind.BLOB, data

        if hasattr(value, '__float__'):
            try:
                return BindKind.DOUBLE, float(value)
            except (TypeError, ValueError) as e:
                raise BindError(f'cannot bind a value of type {type(value).__name__}: {e}') from e

        raise BindError(f'cannot bind a value of type {type(value).__name__}')

    @staticmethod
    def convert_result(value: Any) -> tuple[str, Any]:
        """Return `(kind, native_value)` for a value handed back to the engine.

        Integers always travel as 64-bit.
        """
        if _is_missing(value):
            return BindKind.NULL, None
        kind, native = TypeConverter.convert_value(value)
        if kind == BindKind.INT:
            kind = BindKind.INT64
        return kind, native


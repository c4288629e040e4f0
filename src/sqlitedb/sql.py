"""
SQL text helpers.

- `literal()` - Render a Python value as an SQL literal
- `quote_identifier()` - Quote table/column names
"""
import decimal
import math
import numbers
from typing import Any

import numpy as np

__all__ = ['literal', 'quote_identifier']


def _number(value: Any) -> str:
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, decimal.Decimal) and value.is_finite():
        return str(value)
    value = float(value)
    if math.isnan(value):
        return 'NULL'
    if math.isinf(value):
        return '1e999' if value > 0 else '-1e999'
    return repr(value)


def literal(value: Any) -> str:
    """Render `value` as an SQL literal.

    Parameters
        value: None, bool, a number (NumPy scalars and Decimal included),
        str, or a bytes-like object

    Returns
        SQL text that evaluates to the same value as binding `value`

    Raises
        TypeError: If the value has no literal form

    >>> literal("a'b")
    "'a''b'"
    >>> literal(b'\\x01\\xab')
    "'X01AB'"
    """
    if value is None:
        return 'NULL'
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, numbers.Number | decimal.Decimal):
        if isinstance(value, numbers.Complex) and not isinstance(value, numbers.Real):
            raise TypeError(f'cannot render a value of type {type(value).__name__} as SQL')
        return _number(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, bytes | bytearray | memoryview):
        return "'X" + bytes(value).hex().upper() + "'"
    raise TypeError(f'cannot render a value of type {type(value).__name__} as SQL')


def quote_identifier(identifier: str) -> str:
    """Safely quote a table or column name.

    >>> quote_identifier('a"b')
    '"a""b"'
    """
    return '"' + identifier.replace('"', '""') + '"'

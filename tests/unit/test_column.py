import dataclasses

import pytest
from sqlitedb.exceptions import DecodeError
from sqlitedb.native import ColumnType
from sqlitedb.types import Column, coerce


def test_column_null():
    """Test the NULL column and defaults"""
    column = Column.null()
    assert column.is_null
    assert column.value is None
    assert column.get() is None
    assert column.get(int, -42) == -42
    assert column.get(str, 'n/a') == 'n/a'
    assert column.get(object, 'dflt') == 'dflt'


def test_dynamic_value_distinguishes_null_from_zero():
    """Test that the dynamic value of NULL is not confused with zero"""
    zero = Column(0, ColumnType.INTEGER)
    assert zero.get() == 0
    assert zero.get() is not None
    assert not zero.is_null
    assert Column.null().get() is None


def test_column_is_immutable():
    """Test that a decoded column cannot be modified"""
    column = Column(1, ColumnType.INTEGER)
    with pytest.raises(dataclasses.FrozenInstanceError):
        column.value = 2


def test_integer_conversions():
    """Test conversions from an integer cell"""
    column = Column(5, ColumnType.INTEGER)
    assert column.get(int) == 5
    assert column.get(float) == 5.0
    assert column.get(str) == '5'
    assert column.get(bool) is True
    assert Column(0, ColumnType.INTEGER).get(bool) is False


def test_float_conversions():
    """Test conversions from a float cell"""
    column = Column(2.75, ColumnType.FLOAT)
    assert column.get(float) == 2.75
    assert column.get(int) == 2
    assert column.get(str) == '2.75'
    with pytest.raises(DecodeError):
        column.get(bytes)


def test_text_conversions():
    """Test conversions from a text cell"""
    assert Column('12', ColumnType.TEXT).get(int) == 12
    assert Column(' 3.5 ', ColumnType.TEXT).get(int) == 3
    assert Column('3.5', ColumnType.TEXT).get(float) == 3.5
    assert Column('1', ColumnType.TEXT).get(bool) is True
    assert Column('ab', ColumnType.TEXT).get(bytes) == b'ab'
    assert Column('ab', ColumnType.TEXT).get(bytearray) == bytearray(b'ab')
    with pytest.raises(DecodeError):
        Column('abc', ColumnType.TEXT).get(int)


def test_blob_conversions():
    """Test conversions from a blob cell"""
    column = Column(b'ab', ColumnType.BLOB)
    assert column.get() == b'ab'
    assert column.get(bytes) == b'ab'
    assert column.get(str) == 'ab'
    assert Column(b'42', ColumnType.BLOB).get(int) == 42


def test_empty_text_and_bytes_yield_default():
    """Test that empty text or byte results fall back to the default"""
    assert Column('', ColumnType.TEXT).get(str, 'dflt') == 'dflt'
    assert Column('', ColumnType.TEXT).get(bytes, b'x') == b'x'
    assert Column(b'', ColumnType.BLOB).get(bytes, b'x') == b'x'
    assert Column('', ColumnType.TEXT).get(str) is None


def test_infinite_values_raise_decode_error():
    """Test that infinities cannot be converted to integers"""
    with pytest.raises(DecodeError):
        Column(float('inf'), ColumnType.FLOAT).get(int)
    with pytest.raises(DecodeError):
        Column(float('-inf'), ColumnType.FLOAT).get(bool)
    with pytest.raises(DecodeError):
        Column('inf', ColumnType.TEXT).get(int)
    assert Column(float('inf'), ColumnType.FLOAT).get(float) == float('inf')


def test_unsupported_target_type():
    """Test that an unsupported target type is rejected"""
    with pytest.raises(DecodeError, match='cannot be converted'):
        Column(1, ColumnType.INTEGER).get(list)
    with pytest.raises(DecodeError):
        coerce(None, dict)


def test_coerce_none_type_returns_value():
    """Test that None and object request the dynamic value"""
    assert coerce('x', None) == 'x'
    assert coerce(b'x', object) == b'x'
    assert coerce(None, None, 7) == 7


if __name__ == '__main__':
    pytest.main([__file__])

"""Row views over the current result row of a query."""
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from sqlitedb.exceptions import ColumnIndexError, ColumnNotFoundError
from sqlitedb.exceptions import InvalidRowError
from sqlitedb.native import to_str
from sqlitedb.types import Column, decode_column

if TYPE_CHECKING:
    from sqlitedb.query import Query

__all__ = ['Row']

logger = logging.getLogger(__name__)


class Row:
    """A window `[front_index, back_index]` over the columns of the current row.

    A Row borrows its query's cursor: it is only valid until the query steps,
    resets or is finalized. Any access after that raises `InvalidRowError`.
    Cells are decoded on demand, and the window can be shrunk from either end
    without copying data.

    Attribute access (`row.name`) only reaches columns whose names do not
    clash with the Row's own members (`front`, `back`, `empty`, `names`,
    `save`, `front_index`, ...); use `row['name']` for those.
    """

    __slots__ = ('_query', '_generation', 'front_index', 'back_index')

    def __init__(self, query: 'Query', front_index: int = 0,
                 back_index: int | None = None) -> None:
        self._query = query
        self._generation = query.generation
        self.front_index = front_index
        if back_index is None:
            back_index = query.column_count - 1
        self.back_index = back_index

    def _statement(self) -> Any:
        if self._generation != self._query.generation:
            raise InvalidRowError('row used after its query moved to another row')
        return self._query.statement

    def __len__(self) -> int:
        return max(self.back_index - self.front_index + 1, 0)

    def __repr__(self) -> str:
        return f'Row(front_index={self.front_index}, back_index={self.back_index})'

    @property
    def empty(self) -> bool:
        return len(self) == 0

    @property
    def front(self) -> Column:
        return self[0]

    @property
    def back(self) -> Column:
        return self[len(self) - 1]

    def pop_front(self) -> None:
        self.front_index += 1

    def pop_back(self) -> None:
        self.back_index -= 1

    def save(self) -> 'Row':
        """Independent copy of the window over the same row."""
        row = Row(self._query, self.front_index, self.back_index)
        row._generation = self._generation
        return row

    def __getitem__(self, key: int | str) -> Column:
        if isinstance(key, str):
            return self._by_name(key)
        return self._by_index(key)

    def __getattr__(self, name: str) -> Column:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self._by_name(name)
        except ColumnNotFoundError as e:
            raise AttributeError(name) from e

    def _by_index(self, index: int) -> Column:
        if index < 0:
            index += len(self)
        position = self.front_index + index
        if index < 0 or position > self.back_index:
            raise ColumnIndexError(f'invalid column index: {index}')
        statement = self._statement()
        return decode_column(self._query.library, statement, position)

    def _by_name(self, name: str) -> Column:
        """Linear scan over the window's column names; first match wins.
        """
        statement = self._statement()
        lib = self._query.library
        for position in range(self.front_index, self.back_index + 1):
            if to_str(lib.sqlite3_column_name(statement, position)) == name:
                return decode_column(lib, statement, position)
        raise ColumnNotFoundError(name)

    def __iter__(self) -> Iterator[Column]:
        for index in range(len(self)):
            yield self._by_index(index)

    def __reversed__(self) -> Iterator[Column]:
        for index in reversed(range(len(self))):
            yield self._by_index(index)

    @property
    def names(self) -> list[str]:
        statement = self._statement()
        lib = self._query.library
        return [to_str(lib.sqlite3_column_name(statement, position))
                for position in range(self.front_index, self.back_index + 1)]

    def to_dict(self) -> dict[str, Any]:
        """Column names mapped to dynamic values; later duplicates are dropped."""
        result: dict[str, Any] = {}
        for name, column in zip(self.names, self):
            result.setdefault(name, column.value)
        return result

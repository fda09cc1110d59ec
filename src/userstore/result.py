"""
Result sets and typed value extraction.

This module provides:
- ResultSet: an immutable, rectangular copy of the text cells of one query
  result, with libpq-compatible column name lookup
- get_value / get_field: typed, null-safe extraction of a single cell

Cells are always text (or None for SQL NULL); the type requested by the
caller selects the decoder. Supported types are `str`, `int` and `float`.
A missing result set and a NULL cell both yield the type's zero value
(`''`, `0`, `0.0`); a row, column or column name that does not exist raises
OutOfRange.
"""
import re
import string
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Self

from userstore.exceptions import OutOfRange, TypeConversionError

__all__ = [
    'ResultSet',
    'get_value',
    'get_field',
    'zero_value',
    'SUPPORTED_TYPES',
]

Cell = str | None

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_INT_RE = re.compile(r'[+-]?\d+', re.ASCII)
_FLOAT_RE = re.compile(
    r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?|[+-]?(nan|inf|infinity)',
    re.ASCII | re.IGNORECASE)


def _decode_text(text: str) -> str:
    return text


def _decode_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise TypeConversionError(f'Cannot convert {text!r} to int')
    try:
        return int(text)
    except ValueError as err:
        raise TypeConversionError(f'Cannot convert {text[:20]!r}... to int: {err}') from err


def _decode_float(text: str) -> float:
    if not _FLOAT_RE.fullmatch(text):
        raise TypeConversionError(f'Cannot convert {text!r} to float')
    return float(text)


_DECODERS: dict[type, Callable[[str], Any]] = {
    str: _decode_text,
    int: _decode_int,
    float: _decode_float,
    }

SUPPORTED_TYPES = tuple(_DECODERS)


def _decoder(type_: type) -> Callable[[str], Any]:
    try:
        return _DECODERS[type_]
    except (KeyError, TypeError):
        raise TypeError(f'Unsupported type for get_value: {type_!r}') from None


def zero_value(type_: type) -> Any:
    """Value returned for absent data and SQL NULL.

    >>> zero_value(str), zero_value(int), zero_value(float)
    ('', 0, 0.0)
    """
    _decoder(type_)
    return type_()


def normalize_column_name(name: str) -> str:
    """Apply libpq's PQfnumber rules to a column reference.

    Unquoted characters are folded to lower case; double-quoted parts are
    kept verbatim, with a doubled quote standing for a literal one.

    >>> normalize_column_name('Login')
    'login'
    >>> normalize_column_name('"backendId"')
    'backendId'
    >>> normalize_column_name('"a""b"')
    'a"b'
    """
    if '"' not in name:
        return name.translate(_ASCII_LOWER)

    chars = []
    in_quotes = False
    i = 0
    while i < len(name):
        char = name[i]
        if char == '"':
            if in_quotes and name[i + 1:i + 2] == '"':
                chars.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif in_quotes:
            chars.append(char)
        else:
            chars.append(char.translate(_ASCII_LOWER))
        i += 1
    return ''.join(chars)


def _decode_cell(value: bytes | None, encoding: str) -> Cell:
    if value is None:
        return None
    return value.decode(encoding)


class ResultSet:
    """Immutable grid of text cells returned by one query.

    Args:
        columns: column names, in result order
        rows: one sequence of cells per row, each as long as `columns`
    """

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Cell]]) -> None:
        self._columns = tuple(columns)
        self._rows = tuple(tuple(row) for row in rows)
        for i, row in enumerate(self._rows):
            if len(row) != len(self._columns):
                raise ValueError(f'Row {i} has {len(row)} cells, expected {len(self._columns)}')
        self._index: dict[str, int] = {}
        for i, name in enumerate(self._columns):
            self._index.setdefault(name, i)

    @classmethod
    def from_pgresult(cls, pgresult: Any, encoding: str = 'utf-8') -> Self:
        """Copy the text cells out of a `psycopg.pq.PGresult`.

        The PGresult is not cleared here; the caller owns it.
        """
        nfields = pgresult.nfields
        columns = [_decode_cell(pgresult.fname(col), encoding) or ''
                   for col in range(nfields)]
        rows = [[_decode_cell(pgresult.get_value(row, col), encoding)
                 for col in range(nfields)]
                for row in range(pgresult.ntuples)]
        return cls(columns, rows)

    def __repr__(self) -> str:
        return f'<ResultSet {self.ntuples} rows x {self.nfields} columns>'

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[tuple[Cell, ...]]:
        return iter(self._rows)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.fnumber(name) >= 0

    @property
    def ntuples(self) -> int:
        return len(self._rows)

    @property
    def nfields(self) -> int:
        return len(self._columns)

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    def fnumber(self, name: str) -> int:
        """Column index for a name, or -1, following libpq's PQfnumber.
        """
        if not name:
            return -1
        return self._index.get(normalize_column_name(name), -1)

    def column_index(self, name: str) -> int:
        """Column index for a name.

        Raises
            OutOfRange: no column has that name
        """
        col = self.fnumber(name)
        if col < 0:
            raise OutOfRange(f"column '{name}' not found in query result")
        return col

    def cell(self, row: int, col: int) -> Cell:
        """Raw text of a cell, None for SQL NULL.

        Raises
            OutOfRange: the row or column is outside the grid
        """
        if not (0 <= row < self.ntuples and 0 <= col < self.nfields):
            raise OutOfRange(f'row {row} or column {col} out of range')
        return self._rows[row][col]

    def is_null(self, row: int, col: int) -> bool:
        return self.cell(row, col) is None

    def get_value(self, row: int, column: int | str, type_: type = str) -> Any:
        return get_value(self, row, column, type_)

    def row(self, row: int) -> dict[str, Cell]:
        """One row as a dict of column name to raw cell text."""
        if not 0 <= row < self.ntuples:
            raise OutOfRange(f'row {row} out of range')
        return dict(zip(self._columns, self._rows[row]))

    def to_dicts(self) -> list[dict[str, Cell]]:
        return [dict(zip(self._columns, row)) for row in self._rows]


def get_value(result: ResultSet | None, row: int, column: int | str,
              type_: type = str) -> Any:
    """Extract one cell as `type_`.

    Args:
        result: result set, or None when the query produced nothing
        row: zero-based row index
        column: zero-based column index, or a column name (PQfnumber rules)
        type_: one of `str`, `int`, `float`

    Returns
        The decoded value, or the type's zero value when `result` is None or
        the cell is SQL NULL

    Raises
        TypeError: `type_` is not supported
        OutOfRange: the row, column or column name does not exist
        TypeConversionError: the cell text is not a valid `int`/`float`

    >>> rs = ResultSet(['id', 'login', 'token'], [['1', 'TestUser0', None]])
    >>> get_value(rs, 0, 'id', int)
    1
    >>> get_value(rs, 0, 2)
    ''
    >>> get_value(None, 5, 'anything', float)
    0.0
    """
    decode = _decoder(type_)
    if result is None:
        return type_()

    if isinstance(column, str):
        column = result.column_index(column)
    elif not isinstance(column, int) or isinstance(column, bool):
        raise TypeError(f'Column must be an index or a name, not {type(column).__name__}')

    cell = result.cell(row, column)
    if cell is None:
        return type_()
    return decode(cell)


def get_field(result: ResultSet | None, column: int | str, type_: type = str) -> Any:
    """Extract a cell of the first row; see `get_value`.
    """
    return get_value(result, 0, column, type_)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

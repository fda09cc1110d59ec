"""
Parameter binding for parameterized queries.

libpq receives every parameter as text in the session encoding. The accepted
Python types are closed over three categories:

- text: `str`, passed verbatim
- integral: `int` and other `numbers.Integral` (bool binds as 1/0)
- floating point: `float`, shortest round-trip decimal form

Anything else (None, bytes, Decimal, dates, ...) is rejected before the query
reaches the connection.
"""
import math
import numbers
from collections.abc import Sequence
from typing import Any

__all__ = ['render_param', 'bind_params']

_SPECIAL_FLOATS = {
    math.inf: 'Infinity',
    -math.inf: '-Infinity',
    }


def render_param(value: Any) -> str:
    """Render one parameter in its textual wire form.

    >>> render_param('TestUser0')
    'TestUser0'
    >>> render_param(42)
    '42'
    >>> render_param(True)
    '1'
    >>> render_param(0.1)
    '0.1'
    >>> render_param(float('-inf'))
    '-Infinity'

    Raises
        TypeError: the value is not text, integral or floating point
    """
    if isinstance(value, str):
        return value
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        return _SPECIAL_FLOATS.get(value) or float.__repr__(value)
    raise TypeError(f'Unsupported parameter type: {type(value).__name__}')


def bind_params(params: Sequence[Any], encoding: str = 'utf-8') -> list[bytes]:
    """Convert query parameters to owned, encoded text values in call order.

    The returned list holds the only references libpq reads from, so it must
    be kept alive until the query has been executed.

    >>> bind_params(('TestUser0', 1, 2.5))
    [b'TestUser0', b'1', b'2.5']
    """
    values = []
    for position, value in enumerate(params, 1):
        try:
            values.append(render_param(value).encode(encoding))
        except TypeError as err:
            raise TypeError(f'Parameter ${position}: {err}') from err
    return values


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

"""Decide which parameters are present and how to render their placeholders.

Negative values
===============

A directive like ``-- $age`` keeps its line only when ``age`` has a value.
What "has a value" means is decided by :class:`NegativeValues`, by default
a parameter is considered *negative* (thus absent) when it is:

* missing or ``None``,
* ``False``,
* an empty sequence,
* a sequence whose every element is negative.

Additional values can be registered as negative, for example to treat
empty strings as missing::

    >>> negatives = NegativeValues().extended("")
    >>> negatives.is_negative("")
    True
    >>> negatives.is_negative([None, False, ""])
    True
    >>> negatives.is_negative(0)
    False

Comparison is type strict, registering ``0`` doesn't make ``False`` negative
and the other way around.

Placeholders
============

Values are never written in the SQL, the generator emits ``?`` marks and
returns the values separately, so that they can be bound by the database driver.
Sequences are rendered as multiple marks, and conditional references
(``?key``) render the whole comparison, turning it into an ``IN`` list when
the value is a sequence::

    >>> condition_placeholder("ID", "=", 1)
    'ID = ?'
    >>> condition_placeholder("ID", "=", 3, multi=True)
    'ID IN (?, ?, ?)'

Some databases refuse lists with more than 1000 entries, so bigger lists
are split in chunks of at most ``in_limit`` values, each one rendered as
its own ``IN`` list and joined with ``OR``.
"""

import logging
import math
import re
from typing import Any, Iterable

import pyarrow as pa

from .instruction import PLACEHOLDER_MARK

logger = logging.getLogger(__name__)

IN_LIMIT = 1000
"""Maximum number of values in a single ``IN`` list."""

SEQUENCE_TYPES = (list, tuple, set, frozenset, range)
ARROW_SEQUENCE_TYPES = (pa.Array, pa.ChunkedArray)

_MARK = re.compile(r"\?")
_NEGATED_OPERATORS = {"<>": "NOT IN", "!=": "NOT IN", "NOT IN": "NOT IN"}
_IN_OPERATORS = {"=": "IN", "IN": "IN"}


def to_python(value: Any) -> Any:
    """Convert Arrow arrays and scalars to the equivalent Python values.

    Parameters might come straight out of a :class:`pyarrow.Table` column,
    so arrays are converted to lists and scalars to their Python value.
    """
    if isinstance(value, ARROW_SEQUENCE_TYPES):
        return value.to_pylist()
    if isinstance(value, pa.Scalar):
        return value.as_py()
    return value


def is_sequence(value: Any) -> bool:
    """If the value is a multi-valued parameter."""
    return isinstance(value, SEQUENCE_TYPES + ARROW_SEQUENCE_TYPES)


def to_values(value: Any) -> list:
    """The list of values to bind for a parameter.

    Scalars become a single value, sequences are expanded and
    sequences of sequences (like rows for multi-column ``IN``) are
    flattened one level.
    """
    value = to_python(value)
    if not is_sequence(value):
        return [value]
    values = []
    for item in value:
        item = to_python(item)
        if is_sequence(item):
            values.extend(to_python(v) for v in item)
        else:
            values.append(item)
    return values


class NegativeValues:
    """The set of values that make a parameter count as absent."""

    DEFAULTS = (None, False)

    def __init__(self, values: Iterable[Any] = ()) -> None:
        """
        :param values: Additional values to consider negative, on top of ``None``
                       and ``False``. Empty sequences and sequences of negative
                       values are always negative.
        """
        extra = tuple(v for v in values if not _contains(self.DEFAULTS, v))
        self.values = self.DEFAULTS + extra

    def extended(self, *values: Any) -> "NegativeValues":
        """A new set that also includes ``values``."""
        return NegativeValues(self.values[len(self.DEFAULTS) :] + values)

    def is_negative(self, value: Any) -> bool:
        """If ``value`` has to be treated as a missing parameter."""
        value = to_python(value)
        if is_sequence(value):
            return all(self.is_negative(item) for item in value)
        return _contains(self.values, value)

    def __repr__(self) -> str:
        return f"NegativeValues({list(self.values)!r})"


def _contains(values: tuple, value: Any) -> bool:
    for candidate in values:
        if candidate is value:
            return True
        if type(candidate) is type(value):
            try:
                if candidate == value:
                    return True
            except (TypeError, ValueError):
                continue
    return False


def marks(count: int) -> str:
    """``count`` placeholder marks separated by commas."""
    return ", ".join([PLACEHOLDER_MARK] * count)


def pattern_marks(pattern: str | None, count: int) -> str | None:
    """Repeat a fallback pattern like ``(?, ?)`` to host ``count`` values.

    When the fallback written after a directive contains more than one
    placeholder mark, it is used as the template for each row of values.
    Returns ``None`` if the pattern can't host exactly ``count`` values.
    """
    if not pattern:
        return None
    width = len(_MARK.findall(pattern))
    if width < 2 or count == 0 or count % width:
        return None
    return ", ".join([pattern] * (count // width))


def bind_placeholder(count: int, fallback: str | None = None) -> str:
    """Placeholder marks for a plain reference with ``count`` values.

    If the fallback value was parenthesized, like ``(1, 2, 3)``,
    the marks are parenthesized too.
    """
    rows = pattern_marks(fallback, count)
    if rows is not None:
        return rows
    text = marks(count)
    if fallback is not None and fallback.startswith("("):
        return f"({text})"
    return text


def condition_placeholder(
    prefix: str,
    operator: str,
    count: int,
    multi: bool = False,
    fallback: str | None = None,
    in_limit: int = IN_LIMIT,
) -> str:
    """Render a comparison of ``prefix`` against ``count`` bound values.

    A single scalar value keeps the original operator, within parenthesis
    when the operator is ``IN`` or ``NOT IN``.
    Multiple values turn ``=`` into ``IN`` and ``<>``/``!=`` into ``NOT IN``,
    other operators are repeated for every value and joined with ``OR``.

    Lists longer than ``in_limit`` are split in ordered chunks, each rendered
    as its own ``IN`` list using the same prefix, joined with ``OR``
    (``AND`` for ``NOT IN``) and wrapped in parenthesis.
    """
    normalized = " ".join(operator.upper().split())
    if count == 1 and not multi:
        if normalized in ("IN", "NOT IN"):
            return f"{prefix} {normalized} ({PLACEHOLDER_MARK})"
        return f"{prefix} {operator} {PLACEHOLDER_MARK}"

    if normalized in _IN_OPERATORS or normalized in _NEGATED_OPERATORS:
        in_operator = _IN_OPERATORS.get(normalized) or _NEGATED_OPERATORS[normalized]
        joiner = " AND " if in_operator == "NOT IN" else " OR "
        rows = pattern_marks(fallback, count)
        if rows is not None:
            return f"{prefix} {in_operator} ({rows})"
        if count <= in_limit:
            return f"{prefix} {in_operator} ({marks(count)})"

        nchunks = math.ceil(count / in_limit)
        logger.debug("Splitting %d values in %d IN lists", count, nchunks)
        chunks = []
        for start in range(0, count, in_limit):
            size = min(in_limit, count - start)
            chunks.append(f"{prefix} {in_operator} ({marks(size)})")
        return "(" + joiner.join(chunks) + ")"

    comparisons = [f"{prefix} {operator} {PLACEHOLDER_MARK}"] * count
    return "(" + " OR ".join(comparisons) + ")"

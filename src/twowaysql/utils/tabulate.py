"""Format bound values into a text table for print.

The :func:`tabulate` function takes a :class:`pyarrow.RecordBatch` and
formats it into a text table, truncating long strings and limiting the
number of rows to display. :func:`values_batch` builds the batch that
describes the values bound to a generated query, one row per placeholder.

Example:

    >>> print(tabulate(values_batch([30, "Mario", None, 1.5])))
    #  | value | type
    -- | ----- | -----
    1  | 30    | int
    2  | Mario | str
    3  | NULL  | None
    4  | 1.50  | float
"""

from typing import Any

import pyarrow as pa


def values_batch(values: list) -> pa.RecordBatch:
    """A batch with the position, text and Python type of each bound value.

    Values are converted to text, as a single query can bind values
    of any type and an Arrow column can only hold one.
    """
    types = ["None" if v is None else type(v).__name__ for v in values]
    return pa.RecordBatch.from_pydict(
        {
            "#": pa.array([str(i) for i in range(1, len(values) + 1)], pa.string()),
            "value": pa.array([format_value(v) for v in values], pa.string()),
            "type": pa.array(types, pa.string()),
        }
    )


def tabulate(recordbatch: pa.RecordBatch, max_rows: int = 20) -> str:
    """Format a RecordBatch into a text table."""
    cols = recordbatch.column_names
    rows = [
        [format_value(row[c]) for c in cols]
        for row in recordbatch.slice(length=max_rows).to_pylist()
    ]

    colsizes = [
        max([len(row[idx]) for row in rows] + [len(col), 2])
        for idx, col in enumerate(cols)
    ]
    header = [tablerow(cols, colsizes)]
    separator = [tablerow(["-"] * len(cols), colsizes, fillvalue="-")]
    table = "\n".join(header + separator + [tablerow(row, colsizes) for row in rows])
    if recordbatch.num_rows > max_rows:
        table += f"\n... and {recordbatch.num_rows - max_rows} more values"
    return table


def tablerow(cols: list[str], colsizes: list[int], fillvalue: str = " ") -> str:
    return " | ".join(
        [col.ljust(colsizes[idx], fillvalue) for idx, col in enumerate(cols)]
    ).rstrip()


def format_value(v: Any) -> str:
    """Format a value to be printed in the table.

    Floats get 2 decimal places, ``None`` is printed as ``NULL``
    and long strings are truncated.
    """
    if v is None:
        return "NULL"
    elif isinstance(v, bool):
        return "true" if v else "false"
    elif isinstance(v, float):
        return f"{v:.2f}"

    v = str(v)
    if len(v) > 30:
        v = v[:27] + "..."
    return v

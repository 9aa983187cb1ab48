"""Helpers to build the parameters of a rendering.

Any mapping can be used as parameters, :class:`ParamMap` is a ``dict``
with a few chainable helpers that make building parameters inline
more readable::

    >>> params("age", 30).on("adult").set("name", None)
    {'age': 30, 'adult': True, 'name': None}

Flags that are only tested for presence, like ``-- &adult``, are just
keys set to ``True``, :func:`params_on` is a shortcut for them.
"""

import dataclasses
from typing import Any, Mapping


class ParamMap(dict):
    """A ``dict`` of parameters with chainable setters."""

    def set(self, key: str, value: Any) -> "ParamMap":
        """Set the ``key`` parameter and return the map itself."""
        self[key] = value
        return self

    def on(self, *keys: str) -> "ParamMap":
        """Set all ``keys`` to ``True``."""
        for key in keys:
            self[key] = True
        return self

    def update_from(self, obj: Any) -> "ParamMap":
        """Add parameters from a mapping, a dataclass or any object.

        For plain objects, their public attributes become parameters.
        """
        if isinstance(obj, Mapping):
            self.update(obj)
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            self.update(
                {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
            )
        else:
            self.update(
                {k: v for k, v in vars(obj).items() if not k.startswith("_")}
            )
        return self


def params(key_or_obj: Any = None, value: Any = None) -> ParamMap:
    """Build a :class:`ParamMap`.

    Called with no arguments returns an empty map, with a key and
    a value returns a map with that single entry, with any other
    object behaves like :meth:`ParamMap.update_from`.
    """
    result = ParamMap()
    if key_or_obj is None:
        return result
    if isinstance(key_or_obj, str):
        return result.set(key_or_obj, value)
    return result.update_from(key_or_obj)


def params_on(*keys: str) -> ParamMap:
    """A :class:`ParamMap` with all ``keys`` set to ``True``."""
    return ParamMap().on(*keys)


def format_sql_info(sql: str, values: list, resource_info: str | None = None) -> str:
    """Describe a generated query, for logging and error reporting.

    >>> print(format_sql_info("SELECT * FROM t WHERE a = ?", [1], "t.sql"))
    --- sql ---
    SELECT * FROM t WHERE a = ?
    --- params ---
    [1]
    --- resource ---
    t.sql
    """
    lines = ["--- sql ---", sql, "--- params ---", repr(list(values))]
    if resource_info is not None:
        lines.extend(["--- resource ---", resource_info])
    return "\n".join(lines)

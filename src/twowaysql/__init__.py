"""TwoWaySQL

Two-way SQL templates: SQL files that are valid, runnable SQL as they are
and that become dynamic queries when rendered with parameters.

Templates are plain SQL with the dynamic parts described by comments,
so they can be run and tested directly in any database console::

    SELECT * FROM people
    WHERE
      age > /* $age */25
      AND name LIKE /* %L '%' $namePart '%' */'%A%'

When rendered, the value right after each directive comment is
replaced by a placeholder and lines whose parameters are missing are removed::

    >>> sql, values = render('''
    ... SELECT * FROM people
    ... WHERE
    ...   age > /* $age */25
    ...   AND name LIKE /* %L '%' $namePart '%' */'%A%'
    ... ''', {"namePart": "10%"})
    >>> sql
    "SELECT * FROM people WHERE name LIKE ? ESCAPE '#'"
    >>> values
    ['%10#%%']

The package is constituted by multiple modules, each self documented
in literate programming style:

* :mod:`twowaysql.scanner` and :mod:`twowaysql.parser` turn the template text
  in a tree of lines (:mod:`twowaysql.nodes`).
* :mod:`twowaysql.directives` compiles the directive comments.
* :mod:`twowaysql.generator` renders the tree against the parameters,
  with the help of :mod:`twowaysql.instruction`, :mod:`twowaysql.functions`
  and :mod:`twowaysql.placeholders`.
* :mod:`twowaysql.cache` and :mod:`twowaysql.params` are helpers for
  applications using the library.

For the user guide of each component, refer to the component itself.
"""

from .cache import TemplateCache
from .errors import MissingParameterError, TemplateFormatError
from .functions import ExtensionFunction, FunctionRegistry
from .generator import SQLGenerator, render
from .nodes import Template
from .params import ParamMap, format_sql_info, params, params_on
from .parser import TemplateParser, parse_template

__all__ = (
    "ExtensionFunction",
    "FunctionRegistry",
    "MissingParameterError",
    "ParamMap",
    "SQLGenerator",
    "Template",
    "TemplateCache",
    "TemplateFormatError",
    "TemplateParser",
    "format_sql_info",
    "params",
    "params_on",
    "parse_template",
    "render",
)

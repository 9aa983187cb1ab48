"""Command line interface for rendering templates.

This module provides a command line interface that parses a template
file with :class:`twowaysql.parser.TemplateParser` and renders it with
:class:`twowaysql.generator.SQLGenerator`.

The bound values are printed to the console in a tabular format
using the :mod:`twowaysql.utils.tabulate` module.
"""

import argparse
import json
import logging

from twowaysql.errors import MissingParameterError, TemplateFormatError
from twowaysql.generator import SQLGenerator
from twowaysql.params import ParamMap
from twowaysql.parser import TemplateParser
from twowaysql.utils import tabulate


def parse_param(text: str) -> tuple[str, object]:
    """Parse a ``key=value`` argument, the value is JSON when possible.

    >>> parse_param('ids=[1, 2]')
    ('ids', [1, 2])
    >>> parse_param('name=Mario')
    ('name', 'Mario')
    """
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"Parameters must be key=value, got '{text}'")
    key, value = text.split("=", 1)
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and render the template."""
    parser = argparse.ArgumentParser(description="Render a two-way SQL template.")
    parser.add_argument(
        "-p",
        "--param",
        action="append",
        type=parse_param,
        default=[],
        help="A key=value parameter. Can be provided multiple times.",
    )
    parser.add_argument(
        "--params-file", help="A JSON file with an object of parameters."
    )
    parser.add_argument(
        "--empty-as-negative",
        action="store_true",
        help="Treat empty strings as missing parameters.",
    )
    parser.add_argument(
        "--tree", action="store_true", help="Print the parsed template tree."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.add_argument("template", type=str, help="The template file to render.")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    values = ParamMap()
    if args.params_file:
        with open(args.params_file) as f:
            values.update_from(json.load(f))
    for key, value in args.param:
        values.set(key, value)

    with open(args.template) as f:
        text = f.read()

    try:
        template = TemplateParser(args.template).parse(text)
    except TemplateFormatError as e:
        print(f"Invalid template, {e}")
        return 1

    if args.tree:
        print(template.dump())
        return 0

    generator = SQLGenerator()
    if args.empty_as_negative:
        generator = generator.empty_as_negative()
    try:
        sql, bound = generator.generate(template, values)
    except MissingParameterError as e:
        print(f"Missing parameter, {e}")
        return 1

    print(sql)
    if bound:
        print()
        print(tabulate.tabulate(tabulate.values_batch(bound), max_rows=50))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

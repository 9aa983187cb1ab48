"""Render a compiled template against a set of parameters.

The :class:`SQLGenerator` walks the tree of a :class:`twowaysql.nodes.Template`
and for each line evaluates its directives against the parameters.
Each directive produces an :class:`twowaysql.instruction.Instruction`
which decides if the line survives and what goes in place of the
directive in the line text::

    >>> from twowaysql.parser import parse_template
    >>> template = parse_template('''
    ... SELECT * FROM people
    ... WHERE
    ...   age > /* $age */25
    ...   AND name LIKE /* $namePart */'%A%'
    ... ''')
    >>> SQLGenerator().generate(template, {"namePart": "%B%"})
    ('SELECT * FROM people WHERE name LIKE ?', ['%B%'])

Lines are rendered with these rules:

* A line is dropped when any of its directives says so, its child block
  and its parenthesized groups go away with it.
* A line that owns a parenthesized group which rendered nothing is dropped too.
* The surviving lines are stripped and joined with a single space.
* When the first line of a block is dropped or renders nothing, the ``AND``,
  ``OR`` or ``,`` that starts the new first line would make the SQL invalid,
  so it is removed. The same happens at the end of the block.
* When all the children of a line are dropped, the ``WHERE``, ``HAVING``,
  ``AND``, ``OR`` or ``,`` that ends the line is removed, and the line
  itself is dropped if nothing is left.

The generator never modifies the template, the same template can be rendered
concurrently by multiple threads. Values that are missing, negative or
too many for a single ``IN`` list are never an error, they are just the
way clauses get removed.
"""

import logging
import re
from typing import Any, Iterable, Mapping

from .errors import MissingParameterError
from .functions import FunctionRegistry
from .instruction import Instruction, merge
from .nodes import Block, Directive, Group, Line, Template
from .parser import parse_template
from .placeholders import (
    IN_LIMIT,
    NegativeValues,
    bind_placeholder,
    condition_placeholder,
    is_sequence,
    to_python,
    to_values,
)

logger = logging.getLogger(__name__)

LEADING_DELIMITER = re.compile(r"\A(?:(?:AND|OR)\b|,)\s*", re.IGNORECASE)
TRAILING_DELIMITER = re.compile(r"\s*(?:\b(?:AND|OR)|,)\Z", re.IGNORECASE)
TRAILING_KEYWORD = re.compile(r"\s*(?:\b(?:WHERE|HAVING|AND|OR)|,)\Z", re.IGNORECASE)


class SQLGenerator:
    """Generate SQL and bound values from templates.

    The generator is configured once with the values that have to be
    considered negative and with the extension functions available to
    the directives, then it can render any number of templates.
    """

    def __init__(
        self,
        negative_values: NegativeValues | Iterable[Any] = (),
        registry: FunctionRegistry | None = None,
        in_limit: int = IN_LIMIT,
    ) -> None:
        """
        :param negative_values: Additional values that make a parameter count as absent.
        :param registry: The extension functions available to directives.
        :param in_limit: Maximum number of values in a single ``IN`` list.
        """
        if isinstance(negative_values, NegativeValues):
            self.negatives = negative_values
        else:
            self.negatives = NegativeValues(negative_values)
        self.registry = registry if registry is not None else FunctionRegistry.default()
        self.in_limit = in_limit

    def as_negative(self, *values: Any) -> "SQLGenerator":
        """A new generator that also treats ``values`` as negative."""
        return SQLGenerator(self.negatives.extended(*values), self.registry, self.in_limit)

    def empty_as_negative(self) -> "SQLGenerator":
        """A new generator that treats empty strings as missing parameters."""
        return self.as_negative("")

    def generate(
        self, template: Template, params: Mapping[str, Any] | None = None
    ) -> tuple[str, list]:
        """Render the template.

        :param template: The compiled template.
        :param params: The parameter values by key, missing keys are negative.
        :returns: The SQL text and the values to bind to its placeholders, in order.
        """
        context = _Context(template.resource_info, params if params is not None else {})
        rendered = self.render_block(template.block, context)
        sql, values = rendered if rendered is not None else ("", [])
        logger.debug(
            "Generated SQL for %s with %d bound values", template.resource_info, len(values)
        )
        return sql, values

    def render_block(self, block: Block, context: "_Context") -> tuple[str, list] | None:
        """Render the lines of a block.

        Lines that rendered no text count as dropped for the delimiters cleanup.
        Returns ``None`` when the block produced no text at all.
        """
        rendered = []
        values = []
        for index, line in enumerate(block.lines):
            result = self.render_line(line, context)
            if result is None:
                continue
            text, bound = result
            values.extend(bound)
            if text:
                rendered.append([index, text])
        if not rendered:
            return ("", values) if values else None

        first, last = block.lines[0], block.lines[-1]
        if rendered[0][0] != 0 and not LEADING_DELIMITER.match(first.sql.strip()):
            rendered[0][1] = LEADING_DELIMITER.sub("", rendered[0][1], count=1)
        if rendered[-1][0] != len(block.lines) - 1 and not TRAILING_DELIMITER.search(
            last.sql.strip()
        ):
            rendered[-1][1] = TRAILING_DELIMITER.sub("", rendered[-1][1], count=1)

        return " ".join(text for _, text in rendered if text), values

    def render_line(self, line: Line, context: "_Context") -> tuple[str, list] | None:
        """Render a line and its child block, ``None`` if the line is dropped."""
        pieces = []
        values = []
        cursor = 0
        for splice in line.splices:
            pieces.append(line.sql[cursor : splice.offset])
            cursor = splice.offset
            if isinstance(splice, Group):
                rendered = self.render_block(splice.block, context)
                if rendered is None:
                    if splice.block.lines:
                        return None
                    continue
                pieces.append(rendered[0])
                values.extend(rendered[1])
            else:
                instruction = self.evaluate(splice, context)
                if not instruction.node_required and not instruction.disposed:
                    return None
                text, bound = self.directive_output(splice, instruction)
                pieces.append(text)
                values.extend(bound)
        pieces.append(line.sql[cursor:])
        text = "".join(pieces).strip()

        if line.block is not None and line.block.lines:
            children = self.render_block(line.block, context)
            if children is None or not children[0]:
                text = TRAILING_KEYWORD.sub("", text, count=1).strip()
                if children is not None:
                    values.extend(children[1])
                if not text and not values:
                    return None
            else:
                child_text, child_values = children
                text = f"{text} {child_text}" if text else child_text
                values.extend(child_values)
        return text, values

    def directive_output(
        self, directive: Directive, instruction: Instruction
    ) -> tuple[str, list]:
        """The text that replaces a directive in its line and the values it binds."""
        if instruction.disposed:
            return "", []
        if instruction.use_fallback:
            fallback = directive.fallback or ""
            if directive.prefix is not None:
                return f"{directive.prefix} {directive.operator} {fallback}", []
            return fallback, []
        if instruction.replacement is not None:
            return instruction.replacement, instruction.params
        if directive.fallback is None:
            return "", instruction.params
        return bind_placeholder(len(instruction.params), directive.fallback), instruction.params

    def evaluate(self, directive: Directive, context: "_Context") -> Instruction:
        """Evaluate the chain of terms of a directive to a single instruction."""
        return merge(self.evaluate_chain(directive.expression, directive, context))

    def evaluate_chain(
        self, terms: list[dict], directive: Directive, context: "_Context"
    ) -> list[Instruction]:
        return [self.evaluate_term(term, directive, context) for term in terms]

    def evaluate_term(
        self, term: dict, directive: Directive, context: "_Context"
    ) -> Instruction:
        kind = term["type"]
        if kind == "literal":
            return Instruction(replacement=term["value"])
        elif kind == "group":
            return merge(self.evaluate_chain(term["chain"], directive, context))
        elif kind == "function":
            function = self.registry[term["name"]]
            inside = None
            if term["inside"] is not None:
                inside = self.evaluate_chain(term["inside"], directive, context)
            chain = self.evaluate_chain(term["chain"], directive, context)
            return function.perform(inside, chain, term["negative"], self.negatives)

        key = term["key"]
        value = context.params.get(key)
        negative = self.negatives.is_negative(value)
        if kind == "required":
            if negative:
                raise MissingParameterError(key, context.resource_info)
            return Instruction(params=to_values(value))

        present = (not negative) != term["negative"]
        if not present:
            return Instruction.drop()
        if kind == "presence" or negative:
            # Negated reference to a missing value, nothing to bind.
            return Instruction.keep()
        if kind == "condition" and directive.prefix is not None:
            values = to_values(value)
            text = condition_placeholder(
                directive.prefix,
                directive.operator,
                len(values),
                multi=is_sequence(to_python(value)),
                fallback=directive.fallback,
                in_limit=self.in_limit,
            )
            return Instruction(params=values, replacement=text)
        return Instruction(params=to_values(value))


class _Context:
    """State of a single rendering, never shared between calls."""

    def __init__(self, resource_info: str | None, params: Mapping[str, Any]) -> None:
        self.resource_info = resource_info
        self.params = params


def render(
    text: str,
    params: Mapping[str, Any] | None = None,
    resource_info: str | None = None,
    negative_values: Iterable[Any] = (),
    registry: FunctionRegistry | None = None,
) -> tuple[str, list]:
    """Parse and render a template in one step.

    Handy for one-off queries, code that renders the same template
    multiple times should use a :class:`twowaysql.cache.TemplateCache`
    and a :class:`SQLGenerator`.
    """
    template = parse_template(text, resource_info, registry)
    return SQLGenerator(negative_values, registry).generate(template, params)

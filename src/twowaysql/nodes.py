"""The compiled representation of a template.

Parsing a template produces a tree of nodes::

    Template
      - Block
          - Line "SELECT * FROM people"
          - Line "WHERE"
              - Block
                  - Line "age > ?"              [Directive $age]
                  - Line "AND name LIKE ?"      [Directive $namePart]

A :class:`Template` owns the root :class:`Block`, a block is an ordered
sequence of :class:`Line` nodes that share the same indentation and
each line can have a child block made of the more indented lines
that follow it.

The lines carry the literal SQL text, with all the directive comments
removed, and the :class:`Directive` occurrences that were found on the line,
positioned by their character offset within the text.
Multi-line parenthesized spans are kept as a :class:`Group`, an independent
block spliced back in the line text at its offset.

Once created the nodes are never modified, the same template can be rendered
any number of times concurrently by :class:`twowaysql.generator.SQLGenerator`.
"""

import re

_INDENT = re.compile(r"\A[ \t]*")


class Directive:
    """An instruction found in a comment of the template.

    The ``expression`` is the compiled form of the comment source
    as produced by :class:`twowaysql.directives.DirectiveCompiler`.
    """

    def __init__(
        self,
        offset: int,
        source: str,
        expression: list[dict],
        fallback: str | None = None,
        prefix: str | None = None,
        operator: str | None = None,
        lineno: int | None = None,
    ) -> None:
        """
        :param offset: Position in the line text where the output of the directive goes.
        :param source: The text of the comment that declared the directive.
        :param expression: The compiled chain of terms of the directive.
        :param fallback: The literal value written right after the directive,
                         replaced by the directive output.
        :param prefix: For conditional references, the expression being compared.
        :param operator: For conditional references, the comparison operator.
        :param lineno: Line where the directive was declared.
        """
        self.offset = offset
        self.source = source
        self.expression = expression
        self.fallback = fallback
        self.prefix = prefix
        self.operator = operator
        self.lineno = lineno

    def shifted(self, delta: int) -> "Directive":
        """Copy of the directive moved forward of ``delta`` characters."""
        return Directive(
            self.offset + delta,
            self.source,
            self.expression,
            fallback=self.fallback,
            prefix=self.prefix,
            operator=self.operator,
            lineno=self.lineno,
        )

    def __repr__(self) -> str:
        fallback = "" if self.fallback is None else f", fallback={self.fallback!r}"
        return f"Directive({self.offset}, {self.source!r}{fallback})"


class Group:
    """A multi-line parenthesized span of a line."""

    def __init__(self, offset: int, block: "Block") -> None:
        """
        :param offset: Position in the line text where the group content goes.
        :param block: The lines found within the parenthesis.
        """
        self.offset = offset
        self.block = block

    def shifted(self, delta: int) -> "Group":
        """Copy of the group moved forward of ``delta`` characters."""
        return Group(self.offset + delta, self.block)

    def __repr__(self) -> str:
        return f"Group({self.offset}, lines={len(self.block.lines)})"


class Line:
    """A logical line of the template.

    ``splices`` contains the :class:`Directive` and :class:`Group`
    occurrences of the line, ordered by their offset.
    """

    def __init__(
        self,
        sql: str,
        start_lineno: int,
        end_lineno: int | None = None,
        splices: tuple = (),
        block: "Block | None" = None,
    ) -> None:
        """
        :param sql: The literal text of the line, without directive comments.
        :param start_lineno: The physical line where the logical line starts.
        :param end_lineno: The physical line where the logical line ends.
        :param splices: Directives and groups found on the line.
        :param block: The child block made of the more indented lines.
        """
        self.sql = sql
        self.start_lineno = start_lineno
        self.end_lineno = start_lineno if end_lineno is None else end_lineno
        self.splices = tuple(splices)
        self.block = block

    @property
    def directives(self) -> tuple[Directive, ...]:
        return tuple(s for s in self.splices if isinstance(s, Directive))

    @property
    def groups(self) -> tuple[Group, ...]:
        return tuple(s for s in self.splices if isinstance(s, Group))

    @property
    def indent(self) -> int:
        """Length of the leading whitespace, tabs count as 4 spaces."""
        return len(_INDENT.match(self.sql).group().expandtabs(4))

    def is_blank(self) -> bool:
        """A line with no text and nothing to splice in it."""
        return not self.sql.strip() and not self.splices

    def with_block(self, block: "Block") -> "Line":
        """Copy of the line with the given child block."""
        return Line(
            self.sql, self.start_lineno, self.end_lineno, self.splices, block
        )

    def __repr__(self) -> str:
        return f"Line({self.sql!r}, lineno={self.start_lineno})"


class Block:
    """An ordered sequence of lines sharing the same indentation."""

    def __init__(self, lines: tuple[Line, ...] = ()) -> None:
        """
        :param lines: The lines of the block, empty blocks are valid.
        """
        self.lines = tuple(lines)

    def __len__(self) -> int:
        return len(self.lines)

    def __repr__(self) -> str:
        return f"Block({list(self.lines)!r})"


class Template:
    """A compiled template, ready to be rendered.

    Created by :class:`twowaysql.parser.TemplateParser`, the
    ``resource_info`` only identifies the template in error messages.
    """

    def __init__(self, block: Block, resource_info: str | None = None) -> None:
        """
        :param block: The root block of the template.
        :param resource_info: Identifier of the template for diagnostics.
        """
        self.block = block
        self.resource_info = resource_info

    def dump(self) -> str:
        """Human readable tree of the template, for debugging purposes.

        Each line is reported with its physical line numbers, its literal
        text and the directives found on it, children are indented below
        their parent line.
        """
        out: list[str] = []
        _dump_block(self.block, out, 0)
        return "\n".join(out)

    def __str__(self) -> str:
        return f"Template({self.resource_info}, lines={len(self.block)})"


def _dump_block(block: Block, out: list[str], depth: int) -> None:
    pad = "    " * depth
    for line in block.lines:
        lines = f"{line.start_lineno}"
        if line.end_lineno != line.start_lineno:
            lines += f"-{line.end_lineno}"
        sources = " ".join(f"[{d.source}]" for d in line.directives)
        out.append(f"{pad}{lines}: {line.sql.strip()} {sources}".rstrip())
        for group in line.groups:
            out.append(f"{pad}  (")
            _dump_block(group.block, out, depth + 1)
            out.append(f"{pad}  )")
        if line.block is not None:
            _dump_block(line.block, out, depth + 1)

"""Parse template text into a tree of lines.

Given a template like::

    SELECT * FROM people
    WHERE
      age > /* $age */25
      AND name LIKE ? -- $namePart

the parser produces a :class:`twowaysql.nodes.Template` whose root block
contains the ``SELECT`` and ``WHERE`` lines, with the two conditions
being a child block of the ``WHERE`` line because they are more indented.

Parsing happens in two passes:

1. The text is split in a flat list of lines. The :class:`twowaysql.scanner.Scanner`
   provides the delimiters (comments, quotes, parenthesis, line ends) and
   for each of them the parser decides what to do: directive comments are
   compiled and recorded at their position in the line, ordinary comments
   are discarded, quoted literals are copied as they are and parenthesized
   spans are parsed recursively.
2. The flat list of lines is organized in a tree by comparing their
   indentation (:func:`build_block`).

The parser only knows about comments, quotes and parenthesis, it doesn't
understand SQL and never validates it. Format errors in the template
(unbalanced parenthesis, comments or quotes that are never closed,
invalid directives) are reported as :class:`twowaysql.errors.TemplateFormatError`
subclasses, no partially parsed template is ever returned::

    >>> template = TemplateParser("people.sql").parse("SELECT *\\nFROM people -- $x")
    >>> [line.sql for line in template.block.lines]
    ['SELECT *', 'FROM people ']
"""

import logging
import re

from .directives import DirectiveCompiler, is_condition
from .errors import (
    StrayCommentClose,
    UnbalancedParenthesis,
    UnterminatedComment,
    UnterminatedStringLiteral,
)
from .functions import FunctionRegistry
from .nodes import Block, Directive, Group, Line, Template
from .scanner import (
    COMMENT_DELIMITERS,
    DOUBLE_QUOTED,
    LINE_END,
    SINGLE_QUOTED,
    Scanner,
)

logger = logging.getLogger(__name__)

DIRECTIVE_INTRODUCER = re.compile(r" [$@&?#%'\":|]")
CLOSING_PARENTHESIS = re.compile(r"\A\s*\)")
TRAILING_MARK = re.compile(r"(?:\(\s*\?\s*\)|\?)\s*$")
CONDITION_PREFIX = re.compile(
    r"(?P<subject>[\w.\"`\[\]]+)\s*"
    r"(?P<operator>\bNOT\s+IN\b|\bIN\b|\bNOT\s+LIKE\b|\bLIKE\b|<>|!=|<=|>=|=|<|>)\s*$",
    re.IGNORECASE,
)
VALUE_IN_BACK = re.compile(
    r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|(?:[^\s(),;'\"/*-]|-(?!-)|/(?!\*)|\*(?!/))+"
)


class TemplateParser:
    """Parse templates into :class:`twowaysql.nodes.Template` objects.

    The parser is bound to a resource info, which identifies the template
    in error messages, and to the registry of the functions directives
    are allowed to invoke.
    """

    def __init__(
        self, resource_info: str | None = None, registry: FunctionRegistry | None = None
    ) -> None:
        """
        :param resource_info: Identifier of the template, used only for diagnostics.
        :param registry: The extension functions available to directives.
        """
        self.resource_info = resource_info
        self.compiler = DirectiveCompiler(registry, resource_info)

    def parse(self, text: str) -> Template:
        """Parse the template text and return the compiled template."""
        scanner = Scanner(text)
        lines = self.parse_lines(scanner)
        template = Template(build_block(lines), self.resource_info)
        logger.debug(
            "Parsed template %s: %d physical lines, %d root lines",
            self.resource_info,
            scanner.lineno,
            len(template.block),
        )
        return template

    def parse_lines(
        self, scanner: Scanner, depth: int = 0, opening_lineno: int | None = None
    ) -> list[Line]:
        """Split text in a flat list of lines.

        When ``depth`` is greater than zero we are within a parenthesis,
        the parsing stops at the closing parenthesis, which is consumed.
        Otherwise the parsing continues up to the end of the text.

        :param scanner: The scanner over the text to parse.
        :param depth: How many parenthesis are currently open.
        :param opening_lineno: Line of the last open parenthesis, for error messages.
        """
        lines = []
        builder = _LineBuilder(scanner.lineno)
        scanner.remember()
        while True:
            match = scanner.find()
            builder.append(scanner.remembered_to_start())
            token = match.group()
            if token == "*/":
                raise StrayCommentClose(
                    "SQL Format Error: too many '*/'", self.resource_info, scanner.lineno
                )
            elif token == ")":
                if depth == 0:
                    raise UnbalancedParenthesis(
                        "SQL Format Error: too many ')'",
                        self.resource_info,
                        scanner.lineno,
                    )
                lines.append(builder.build(scanner.lineno))
                return lines
            elif token == "--":
                self.parse_line_comment(scanner, builder)
            elif token == "/*":
                self.parse_block_comment(scanner, builder)
            elif token == "(":
                self.parse_parenthesis(scanner, builder, depth)
            elif token in ("'", '"'):
                self.parse_quoted(scanner, builder, token)
            elif token == "":
                # End of the text
                lines.append(builder.build(scanner.lineno))
                if depth:
                    raise UnbalancedParenthesis(
                        "SQL Format Error: too many '('",
                        self.resource_info,
                        opening_lineno,
                        scanner.lineno,
                    )
                return lines
            else:
                # Line end, the scanner already moved to the next line.
                lines.append(builder.build(scanner.lineno - 1))
                builder = _LineBuilder(scanner.lineno)

    def parse_line_comment(self, scanner: Scanner, builder: "_LineBuilder") -> None:
        """Handle a ``--`` comment.

        The comment always runs to the end of the line, if it is a directive
        it gets attached to the current line. Otherwise it is discarded.
        The line end itself is left to be found again by :meth:`parse_lines`.
        """
        match = scanner.find(LINE_END)
        comment, line_end = match.group(1), match.group(2)
        scanner.back(len(line_end))
        scanner.remember()
        if DIRECTIVE_INTRODUCER.match(comment):
            self.add_directive(builder, comment.strip(), scanner.lineno, line_comment=True)

    def parse_block_comment(self, scanner: Scanner, builder: "_LineBuilder") -> None:
        """Handle a ``/* */`` comment.

        Comments starting with ``*`` (like ``/** doc */``) are discarded,
        comments starting with ``!`` or ``+`` (like database hints) are kept
        in the SQL as they are. Any other comment is a directive.
        """
        lineno = scanner.lineno
        start = scanner.pos
        self.find_comment_end(scanner, lineno)
        body = scanner.text[start : scanner.match.start()]
        if not body.strip() or body.startswith("*"):
            scanner.remember()
            return
        if body[0] in "!+":
            builder.append(scanner.text[start - 2 : scanner.pos])
            scanner.remember()
            return

        fallback = self.parse_value_in_back(scanner)
        scanner.remember()
        self.add_directive(builder, body.strip(), lineno, fallback=fallback)

    def find_comment_end(self, scanner: Scanner, lineno: int) -> None:
        """Move the scanner after the ``*/`` closing the current comment.

        Nested comments are allowed and must be closed too.
        """
        while True:
            match = scanner.find(COMMENT_DELIMITERS)
            if match is None:
                raise UnterminatedComment(
                    "SQL Format Error: too many '/*'",
                    self.resource_info,
                    lineno,
                    scanner.lineno,
                )
            token = match.group()
            if token == "*/":
                return
            elif token == "/*":
                self.find_comment_end(scanner, scanner.lineno)

    def parse_value_in_back(self, scanner: Scanner) -> str | None:
        """Consume the sample value written right after a directive comment.

        In ``age > /* $age */25`` the ``25`` makes the template runnable as is,
        and gets replaced by the placeholder when rendered. The value can be
        a quoted literal, a parenthesized list or a run of non blank characters.
        Returns ``None`` when the comment is followed by a space.
        """
        if scanner.peek() == "(":
            end = _balanced_end(scanner.text, scanner.pos)
            if end is None:
                raise UnbalancedParenthesis(
                    "SQL Format Error: too many '('", self.resource_info, scanner.lineno
                )
            return scanner.advance(end - scanner.pos)
        match = scanner.consume(VALUE_IN_BACK)
        if match is None:
            return None
        return match.group()

    def parse_parenthesis(
        self, scanner: Scanner, builder: "_LineBuilder", depth: int
    ) -> None:
        """Parse the content of a parenthesis recursively.

        A parenthesis that opens and closes on the same line is merged back
        in the current line. A multi-line one becomes a :class:`twowaysql.nodes.Group`,
        whose lines are organized by indentation independently from the rest
        of the template.
        """
        nested = self.parse_lines(scanner, depth + 1, scanner.lineno)
        if len(nested) == 1:
            builder.fold(nested[0])
        else:
            builder.append("(")
            builder.add(Group(builder.length, build_block(nested)))
            builder.append(")")

    def parse_quoted(self, scanner: Scanner, builder: "_LineBuilder", quote: str) -> None:
        """Copy a quoted literal, doubled quotes don't terminate it."""
        lineno = scanner.lineno
        pattern = SINGLE_QUOTED if quote == "'" else DOUBLE_QUOTED
        match = scanner.consume(pattern)
        if match is None:
            kind = "Single quotation" if quote == "'" else "Double quotation"
            raise UnterminatedStringLiteral(
                f"SQL Format Error: {kind} unmatched", self.resource_info, lineno
            )
        builder.append(quote + match.group())
        scanner.remember()

    def add_directive(
        self,
        builder: "_LineBuilder",
        source: str,
        lineno: int,
        fallback: str | None = None,
        line_comment: bool = False,
    ) -> None:
        """Compile a directive and record it at the end of the current line text.

        For line comments, a ``?`` (or ``(?)``) right before the comment is the
        value the directive replaces. For conditional references the comparison
        in front of the directive (``ID =``) is moved into the directive,
        as the directive will render the whole comparison.
        """
        expression = self.compiler.compile(source, lineno)
        offset = builder.length

        if line_comment:
            match = TRAILING_MARK.search(builder.text)
            if match and match.start() >= builder.last_offset:
                fallback = match.group().strip()
                offset = builder.truncate(match.start())

        prefix = operator = None
        if is_condition(expression) and fallback is not None:
            match = CONDITION_PREFIX.search(builder.text)
            if match and match.start() >= builder.last_offset:
                prefix = match.group("subject")
                operator = " ".join(match.group("operator").split())
                offset = builder.truncate(match.start())

        builder.add(
            Directive(
                offset,
                source,
                expression,
                fallback=fallback,
                prefix=prefix,
                operator=operator,
                lineno=lineno,
            )
        )


class _LineBuilder:
    """Accumulate the text and splices of the line being parsed."""

    def __init__(self, lineno: int) -> None:
        self.parts: list[str] = []
        self.length = 0
        self.splices: list = []
        self.start_lineno = lineno

    @property
    def text(self) -> str:
        return "".join(self.parts)

    @property
    def last_offset(self) -> int:
        """Offset of the last directive or group, text before it can't change."""
        return self.splices[-1].offset if self.splices else 0

    def append(self, text: str) -> None:
        if text:
            self.parts.append(text)
            self.length += len(text)

    def add(self, splice: Directive | Group) -> None:
        self.splices.append(splice)

    def truncate(self, length: int) -> int:
        text = self.text[:length]
        self.parts = [text]
        self.length = len(text)
        return self.length

    def fold(self, line: Line) -> None:
        """Merge a single line parenthesized span in the current line."""
        self.append("(")
        delta = self.length
        self.splices.extend(s.shifted(delta) for s in line.splices)
        self.append(line.sql)
        self.append(")")

    def build(self, end_lineno: int) -> Line:
        return Line(self.text, self.start_lineno, end_lineno, self.splices)


def _balanced_end(text: str, pos: int) -> int | None:
    """Index right after the parenthesis that closes the one at ``pos``."""
    depth = 0
    quote = None
    index = pos
    while index < len(text):
        char = text[index]
        if quote is not None:
            if char == quote:
                if text[index + 1 : index + 2] == quote:
                    index += 1
                else:
                    quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return None


class _LineCursor:
    """Forward cursor over lines that can push back the last line it returned."""

    def __init__(self, lines: list[Line]) -> None:
        self.lines = [line for line in lines if not line.is_blank()]
        self.pos = 0

    def next(self) -> Line | None:
        if self.pos >= len(self.lines):
            return None
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def back(self) -> None:
        self.pos -= 1

    def is_end(self) -> bool:
        return self.pos >= len(self.lines)


def build_block(lines: list[Line]) -> Block:
    """Organize a flat list of lines in a tree by their indentation.

    The first line sets the indentation of the block, more indented lines
    become the child block of the line that precedes them. A less indented
    line closes the block, unless it starts with a closing parenthesis.

    Blank lines are discarded as their indentation is meaningless.
    """
    cursor = _LineCursor(lines)
    result: list[Line] = []
    while not cursor.is_end():
        result.extend(_build_lines(cursor, None))
    return Block(result)


def _build_lines(cursor: _LineCursor, indent: int | None) -> list[Line]:
    entries: list[tuple[Line, list[Line]]] = []
    while True:
        line = cursor.next()
        if line is None:
            break
        current = line.indent
        if indent is None:
            indent = current

        if current > indent:
            cursor.back()
            entries[-1][1].extend(_build_lines(cursor, None))
        elif current < indent and not CLOSING_PARENTHESIS.match(line.sql):
            cursor.back()
            break
        else:
            entries.append((line, []))

    return [
        line.with_block(Block(children)) if children else line
        for line, children in entries
    ]


def parse_template(
    text: str, resource_info: str | None = None, registry: FunctionRegistry | None = None
) -> Template:
    """Parse a template text, shortcut for :class:`TemplateParser`."""
    return TemplateParser(resource_info, registry).parse(text)

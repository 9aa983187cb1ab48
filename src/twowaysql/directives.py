"""Compile the source of directive comments.

A directive is the text of a comment like ``/* $age */`` or ``-- %IF $flag :text``.
Its source is made of *terms* separated by spaces, which are evaluated
in sequence and form a *chain*.

The supported terms are:

- ``$key`` or ``key``: bind the value of ``key``, drop the line if it's missing.
- ``&key``: drop the line if ``key`` is missing, but don't bind anything.
- ``?key``: conditional reference, renders the whole comparison that precedes
  it (``ID = ?``, ``ID IN (?, ?)``) and drops the line if ``key`` is missing.
- ``@key``: bind the value of ``key``, which is required.
- ``!`` after the sigil (``$!key``, ``&!key``, ``!key``) negates the presence test.
- ``%NAME`` or ``#NAME``: invoke an extension function, which receives all
  the following terms (up to a ``|``) as its operand chain. ``%!NAME``
  invokes it negated. Terms in parenthesis right after the name,
  like ``%IF($a)``, are the *inside* of the function.
- ``'text'`` or ``"text"``: literal text, quotes are escaped by doubling them.
- ``:text``: literal text up to the end of the directive (or to a ``|``).
- ``( ... )``: grouping of terms.
- ``|``: terminates the operand chain of the preceding function. A bare
  ``%`` or ``#``, not followed by a function name, does the same.

The compiler produces the same kind of dictionary based abstract syntax tree
that the other parsers of the package produce, a list of terms where each
term is a dictionary with a ``type`` key::

    >>> DirectiveCompiler().compile("%IF $lock :FOR UPDATE")
    [{'type': 'function', 'name': 'IF', 'negative': False, 'inside': None, 'chain': [{'type': 'param', 'key': 'lock', 'negative': False}, {'type': 'literal', 'value': 'FOR UPDATE'}]}]

Functions are validated when the directive is compiled,
an unknown function name is reported immediately as a
:class:`twowaysql.errors.UnknownFunctionName` error.
"""

import re

from .errors import MalformedDirective, UnknownFunctionName
from .functions import FunctionRegistry

_TOKEN = re.compile(
    "|".join(
        [
            r"(?P<space>\s+)",
            r"(?P<literal>'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\")",
            r"(?P<colon>:[^|]*)",
            r"(?P<open>\()",
            r"(?P<close>\))",
            r"(?P<bar>\||[%#](?![!A-Za-z_]))",
            r"(?P<function>[%#])(?P<fneg>!)?(?P<fname>[A-Za-z_]\w*)",
            r"(?P<sigil>[$&?@])?(?P<neg>!)?(?P<key>[\w.\-\[\]]+)",
        ]
    )
)

SIGIL_TYPES = {
    None: "param",
    "$": "param",
    "&": "presence",
    "?": "condition",
    "@": "required",
}


class DirectiveToken:
    """A piece of the source of a directive."""

    def __init__(self, kind: str, match: re.Match | None = None) -> None:
        """
        :param kind: The kind of token, one of the groups of the token pattern.
        :param match: The regular expression match that found the token.
        """
        self.kind = kind
        self.match = match

    @property
    def text(self) -> str:
        return self.match.group() if self.match is not None else ""

    @property
    def start(self) -> int:
        return self.match.start() if self.match is not None else -1

    @property
    def end(self) -> int:
        return self.match.end() if self.match is not None else -1

    def __repr__(self) -> str:
        return f"DirectiveToken({self.kind}, {self.text!r})"


EOF = DirectiveToken("eof")


class DirectiveCompiler:
    """Compile directive sources into chains of terms.

    The compiler is bound to the registry of functions that the
    directives can invoke and to the resource info of the template,
    which is reported in errors.
    """

    def __init__(
        self, registry: FunctionRegistry | None = None, resource_info: str | None = None
    ) -> None:
        """
        :param registry: The extension functions directives can invoke.
        :param resource_info: Identifier of the template, for error messages.
        """
        self.registry = registry if registry is not None else FunctionRegistry.default()
        self.resource_info = resource_info

    def compile(self, source: str, lineno: int | None = None) -> list[dict]:
        """Compile the source of a directive to its chain of terms.

        :param source: The text of the directive comment.
        :param lineno: The line where the directive was found, for error messages.
        """
        tokens = self.tokenize(source, lineno)
        if not tokens:
            raise self._error("Empty directive", source, lineno)
        return _ChainParser(self, source, tokens, lineno).parse()

    def tokenize(self, source: str, lineno: int | None = None) -> list[DirectiveToken]:
        """Split the source of a directive in tokens, spaces are discarded."""
        tokens = []
        pos = 0
        while pos < len(source):
            match = _TOKEN.match(source, pos)
            if match is None:
                raise self._error(
                    f"Unexpected character {source[pos]!r} at position {pos}",
                    source,
                    lineno,
                )
            if match.lastgroup != "space":
                kind = match.lastgroup
                if kind in ("fneg", "fname"):
                    kind = "function"
                elif kind in ("sigil", "neg", "key"):
                    kind = "key"
                tokens.append(DirectiveToken(kind, match))
            pos = match.end()
        return tokens

    def _error(
        self, message: str, source: str, lineno: int | None, cls: type = MalformedDirective
    ) -> Exception:
        return cls(f"{message} in directive '{source}'", self.resource_info, lineno)


class _ChainParser:
    """Recursive descent parser of the tokens of a single directive."""

    def __init__(
        self,
        compiler: DirectiveCompiler,
        source: str,
        tokens: list[DirectiveToken],
        lineno: int | None,
    ) -> None:
        self.compiler = compiler
        self.source = source
        self.tokens = tokens
        self.lineno = lineno
        self.pos = 0
        self.current_token = tokens[0]

    def advance(self) -> None:
        self.pos += 1
        if self.pos < len(self.tokens):
            self.current_token = self.tokens[self.pos]
        else:
            self.current_token = EOF

    def error(self, message: str, cls: type = MalformedDirective) -> Exception:
        return self.compiler._error(message, self.source, self.lineno, cls)

    def parse(self) -> list[dict]:
        chain = self.parse_chain(stop_on_bar=False)
        if self.current_token.kind == "close":
            raise self.error("Unbalanced ')'")
        if not chain:
            raise self.error("Empty directive")
        return chain

    def parse_chain(self, stop_on_bar: bool) -> list[dict]:
        """Parse terms until the end of the directive or a closing parenthesis.

        When parsing the operand chain of a function, a ``|`` terminates it.
        A bare ``%`` or ``#`` is tokenized as a ``|``.
        Elsewhere ``|`` is only a separator with no effect.
        """
        terms = []
        while self.current_token.kind not in ("eof", "close"):
            if self.current_token.kind == "bar":
                self.advance()
                if stop_on_bar:
                    break
                continue
            terms.append(self.parse_term())
        return terms

    def parse_term(self) -> dict:
        token = self.current_token
        if token.kind == "literal":
            self.advance()
            quote = token.text[0]
            return {
                "type": "literal",
                "value": token.text[1:-1].replace(quote * 2, quote),
            }
        elif token.kind == "colon":
            self.advance()
            return {"type": "literal", "value": token.text[1:].strip()}
        elif token.kind == "open":
            self.advance()
            chain = self.parse_group_content()
            return {"type": "group", "chain": chain}
        elif token.kind == "function":
            return self.parse_function()
        elif token.kind == "key":
            return self.parse_reference()
        raise self.error(f"Unexpected '{token.text}'")

    def parse_group_content(self) -> list[dict]:
        """Parse the terms up to the closing parenthesis, consuming it."""
        chain = self.parse_chain(stop_on_bar=False)
        if self.current_token.kind != "close":
            raise self.error("Missing ')'")
        self.advance()
        return chain

    def parse_function(self) -> dict:
        token = self.current_token
        name = token.match.group("fname")
        negative = token.match.group("fneg") is not None
        self.advance()

        inside = None
        if self.current_token.kind == "open" and self.current_token.start == token.end:
            self.advance()
            inside = self.parse_group_content()

        node = {
            "type": "function",
            "name": name,
            "negative": negative,
            "inside": inside,
            "chain": self.parse_chain(stop_on_bar=True),
        }

        function = self.compiler.registry.get(name)
        if function is None:
            raise self.error(f"Unknown function name '{name}'", UnknownFunctionName)
        problem = function.check(node)
        if problem is not None:
            raise self.error(problem)
        return node

    def parse_reference(self) -> dict:
        match = self.current_token.match
        sigil = match.group("sigil")
        negative = match.group("neg") is not None
        self.advance()

        kind = SIGIL_TYPES[sigil]
        if kind == "required":
            if negative:
                raise self.error("Required parameters can't be negated")
            return {"type": kind, "key": match.group("key")}
        return {"type": kind, "key": match.group("key"), "negative": negative}


def is_condition(expression: list[dict]) -> bool:
    """If the directive is a conditional reference, like ``?key``."""
    return bool(expression) and expression[0]["type"] == "condition"

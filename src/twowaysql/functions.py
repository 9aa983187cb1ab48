"""Extension functions available to directives.

Directives can invoke functions with the ``%NAME`` (or ``#NAME``) syntax.
A function receives the instructions produced by the terms that follow it
in the directive (its *operand chain*) or by the terms enclosed in
parenthesis right after its name (its *inside* chain) and returns a single
new :class:`twowaysql.instruction.Instruction`.

For example in ``name LIKE /* %L '%' $namePart '%' */'%A%'`` the ``L``
function receives the instructions for ``'%'``, ``$namePart`` and ``'%'``,
escapes the value of ``namePart`` so that wildcards are matched literally,
concatenates the three pieces in a single bound value and replaces the
placeholder with ``? ESCAPE '#'``.

The available functions are:

* ``CONCAT`` (or ``C``): concatenate the chain in a single value.
* ``ESCLIKE``: escape ``LIKE`` wildcards in bound values.
* ``L``: ``ESCLIKE`` + ``CONCAT`` and render ``? ESCAPE '#'``.
* ``COMPACT``: remove ``None`` values from the bound values.
* ``IF``: keep the rest of the chain only when the condition is present,
  otherwise drop the line.
* ``IFLN``: like ``IF``, but a failing condition only removes the output
  of the directive, the line is kept.
* ``SQL``: insert the concatenated chain as SQL text, nothing is bound.

Functions are collected in a :class:`FunctionRegistry`, which is immutable.
Additional functions can be provided by extending a registry, which
creates a new one::

    >>> registry = FunctionRegistry.default().extend(JOIN=ConcatFunction())
    >>> "JOIN" in registry and "IF" in registry
    True
"""

import abc
from typing import Iterator, Mapping

from .instruction import Instruction, merge
from .placeholders import NegativeValues

LIKE_ESCAPE_CHAR = "#"
LIKE_SPECIAL_CHARS = ("#", "%", "_", "％", "＿")


class ExtensionFunction(abc.ABC):
    """A function that can be invoked by directives.

    Subclasses implement :meth:`perform`, they can also implement
    :meth:`check` to validate how the function is invoked when
    the template is compiled.
    """

    @abc.abstractmethod
    def perform(
        self,
        inside: list[Instruction] | None,
        chain: list[Instruction],
        negative: bool,
        negatives: NegativeValues,
    ) -> Instruction:
        """Compute the instruction resulting from the function invocation.

        :param inside: Instructions of the terms within the parenthesis
                       that follow the function name, ``None`` if there were none.
        :param chain: Instructions of the terms following the function.
        :param negative: If the function was invoked negated, like ``%!IF``.
        :param negatives: The values that have to be considered absent.
        """
        ...

    def check(self, node: dict) -> str | None:
        """Validate a compiled invocation of the function.

        Returns a description of the problem, or ``None`` if the
        invocation is valid.
        """
        return None


class TransformFunction(ExtensionFunction):
    """A function that transforms its operand into a new instruction.

    When the function has an inside chain, that's what is transformed
    and the operand chain is merged after the result. Otherwise the
    operand chain itself is transformed.
    """

    def perform(self, inside, chain, negative, negatives):
        if inside is not None:
            return merge([self.transform(inside, negatives)] + chain)
        return self.transform(chain, negatives)

    @abc.abstractmethod
    def transform(
        self, chain: list[Instruction], negatives: NegativeValues
    ) -> Instruction:
        """Transform the chain in a single instruction."""
        ...


class ConcatFunction(TransformFunction):
    """Concatenate replacement texts and values of the chain in a single value."""

    def transform(self, chain, negatives):
        merged = merge(chain)
        parts = []
        for inst in chain:
            if inst.replacement is not None:
                parts.append(inst.replacement)
            else:
                parts.extend(str(p) for p in inst.params if not negatives.is_negative(p))
        return Instruction(
            params=["".join(parts)],
            node_required=merged.node_required,
            disposed=merged.disposed,
        )


class EscapeLikeFunction(TransformFunction):
    """Escape ``LIKE`` wildcards in the values of the chain."""

    def transform(self, chain, negatives):
        return merge(self.escape(chain))

    def escape(self, chain: list[Instruction]) -> list[Instruction]:
        """Escape the values of each element of the chain."""
        return [
            Instruction(
                params=[escape_like(p) for p in inst.params],
                replacement=inst.replacement,
                node_required=inst.node_required,
                disposed=inst.disposed,
                use_fallback=inst.use_fallback,
            )
            for inst in chain
        ]


class LikeFunction(TransformFunction):
    """Escape and concatenate the chain, rendered as ``? ESCAPE '#'``."""

    def transform(self, chain, negatives):
        escaped = EscapeLikeFunction().escape(chain)
        result = ConcatFunction().transform(escaped, negatives)
        result.replacement = f"? ESCAPE '{LIKE_ESCAPE_CHAR}'"
        return result


class CompactFunction(TransformFunction):
    """Remove ``None`` values from the values of the chain."""

    def transform(self, chain, negatives):
        merged = merge(chain)
        return Instruction(
            params=[p for p in merged.params if p is not None],
            replacement=merged.replacement,
            node_required=merged.node_required,
            disposed=merged.disposed,
            use_fallback=merged.use_fallback,
        )


class SQLFunction(TransformFunction):
    """Insert the concatenated chain as literal SQL text."""

    def transform(self, chain, negatives):
        concatenated = ConcatFunction().transform(chain, negatives)
        return Instruction(
            replacement=str(concatenated.params[0]),
            node_required=concatenated.node_required,
            disposed=concatenated.disposed,
        )


class IfFunction(ExtensionFunction):
    """Keep what follows the condition only when the condition is present.

    The condition is the inside chain, like ``%IF($flag) :text``,
    or the first term of the operand chain, like ``%IF $flag :text``.
    The presence of the condition is flipped by the negated form ``%!IF``.

    When the condition holds the rest of the chain is returned
    (or an instruction that keeps the line as is, when there is nothing else),
    otherwise the line owning the directive is dropped.
    """

    def perform(self, inside, chain, negative, negatives):
        holds, condition, rest = self.evaluate(inside, chain, negative)
        if holds:
            if rest:
                return merge(rest)
            return Instruction(use_fallback=True, disposed=condition.disposed)
        return Instruction.drop(disposed=condition.disposed)

    def evaluate(
        self, inside: list[Instruction] | None, chain: list[Instruction], negative: bool
    ) -> tuple[bool, Instruction, list[Instruction]]:
        """Split condition and rest of the chain, and test the condition."""
        if inside is not None:
            condition = merge(inside)
            rest = chain
        else:
            condition = chain[0]
            rest = chain[1:]
        return condition.node_required ^ negative, condition, rest

    def check(self, node):
        if node["inside"] is None and not node["chain"]:
            name = node["name"]
            return (
                f"%{name} must be followed by a condition, "
                f"like '%{name} PARAM' or '%{name} PARAM :text'"
            )
        return None


class IfLineFunction(IfFunction):
    """Like ``IF``, but a failing condition keeps the line.

    Only the output of the directive is removed, so it can be used
    for optional pieces of a line: ``SELECT * FROM t /* %IFLN $lock :FOR UPDATE */``.
    """

    def perform(self, inside, chain, negative, negatives):
        holds, _, _ = self.evaluate(inside, chain, negative)
        if not holds:
            return Instruction.drop(disposed=True)
        return super().perform(inside, chain, negative, negatives)


def escape_like(value):
    """Escape ``LIKE`` wildcards of a string value with ``#``.

    Values that are not strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    for char in LIKE_SPECIAL_CHARS:
        value = value.replace(char, LIKE_ESCAPE_CHAR + char)
    return value


class FunctionRegistry(Mapping):
    """An immutable table of extension functions by name.

    The registry is built once and shared, reading from it never
    requires locking. Use :meth:`extend` to get a registry with
    additional functions.
    """

    def __init__(self, functions: Mapping[str, ExtensionFunction]) -> None:
        """
        :param functions: The functions by name.
        """
        self._functions = dict(functions)

    @classmethod
    def default(cls) -> "FunctionRegistry":
        """The registry with the builtin functions."""
        return DEFAULT_REGISTRY

    def extend(self, **functions: ExtensionFunction) -> "FunctionRegistry":
        """A new registry that also contains ``functions``."""
        return FunctionRegistry({**self._functions, **functions})

    def __getitem__(self, name: str) -> ExtensionFunction:
        return self._functions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        return f"FunctionRegistry({sorted(self._functions)!r})"


_concat = ConcatFunction()

DEFAULT_REGISTRY = FunctionRegistry(
    {
        "CONCAT": _concat,
        "C": _concat,
        "ESCLIKE": EscapeLikeFunction(),
        "L": LikeFunction(),
        "COMPACT": CompactFunction(),
        "IF": IfFunction(),
        "IFLN": IfLineFunction(),
        "SQL": SQLFunction(),
    }
)

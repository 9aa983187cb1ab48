"""Runtime result of evaluating directives against parameters.

Every time a template is rendered each directive gets evaluated
against the provided parameters. The result of the evaluation is an
:class:`Instruction` that tells the generator:

* which values have to be bound to the query (``params``),
* if some text should replace the placeholder marks (``replacement``),
* if the line owning the directive must be kept (``node_required``),
* if only the output of the directive must be removed, while keeping
  the line (``disposed``),
* if the literal value written after the directive should be kept
  as is (``use_fallback``).

Directives like ``%IF $flag :FOR UPDATE`` are made of multiple terms
evaluated in sequence, the result is a *chain* of instructions that is
represented as a plain list and reduced to a single instruction by
:func:`merge`, which preserves the order of the bound values::

    >>> chain = [Instruction(params=[1]), Instruction(params=[2, 3])]
    >>> merge(chain).params
    [1, 2, 3]
"""

PLACEHOLDER_MARK = "?"


class Instruction:
    """What the generator has to do for one directive."""

    def __init__(
        self,
        params: list | None = None,
        replacement: str | None = None,
        node_required: bool = True,
        disposed: bool = False,
        use_fallback: bool = False,
    ) -> None:
        """
        :param params: Values to bind, in the order of the placeholder marks.
        :param replacement: Text that replaces the placeholder marks entirely.
        :param node_required: When ``False`` the line owning the directive is dropped.
        :param disposed: When ``True`` the directive produces nothing but the line is kept.
        :param use_fallback: Keep the literal value written after the directive.
        """
        self.params = list(params) if params is not None else []
        self.replacement = replacement
        self.node_required = node_required
        self.disposed = disposed
        self.use_fallback = use_fallback

    @classmethod
    def drop(cls, disposed: bool = False) -> "Instruction":
        """An instruction that removes the line owning the directive."""
        return cls(node_required=False, disposed=disposed)

    @classmethod
    def keep(cls) -> "Instruction":
        """An instruction that keeps the line and leaves the fallback value as is."""
        return cls(use_fallback=True)

    def text(self) -> str:
        """The SQL text this instruction contributes when chained with others."""
        if self.replacement is not None:
            return self.replacement
        return ", ".join([PLACEHOLDER_MARK] * len(self.params))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Instruction):
            return NotImplemented
        return (
            self.params == other.params
            and self.replacement == other.replacement
            and self.node_required == other.node_required
            and self.disposed == other.disposed
            and self.use_fallback == other.use_fallback
        )

    def __repr__(self) -> str:
        return (
            f"Instruction(params={self.params!r}, replacement={self.replacement!r}, "
            f"node_required={self.node_required}, disposed={self.disposed}, "
            f"use_fallback={self.use_fallback})"
        )


def merge(chain: list[Instruction]) -> Instruction:
    """Reduce a chain of instructions to a single one.

    The bound values are concatenated in chain order,
    the line is required only if all the elements require it and
    the result is disposed if any element is.

    When any element has a replacement text, the texts of all the
    elements (replacements or placeholder marks) are joined with
    a space, so that the marks stay aligned with the bound values.

    An empty chain merges to an instruction that keeps the line
    and the fallback value.
    """
    if not chain:
        return Instruction.keep()
    if len(chain) == 1:
        return chain[0]

    params = []
    for inst in chain:
        params.extend(inst.params)

    replacement = None
    if any(inst.replacement is not None for inst in chain):
        replacement = " ".join(t for t in (inst.text() for inst in chain) if t)

    return Instruction(
        params=params,
        replacement=replacement,
        node_required=all(inst.node_required for inst in chain),
        disposed=any(inst.disposed for inst in chain),
        use_fallback=all(inst.use_fallback for inst in chain),
    )

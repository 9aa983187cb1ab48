"""Errors raised while compiling or rendering templates.

All the errors detected while parsing a template are subclasses of
:class:`TemplateFormatError`. They are fatal for the template being parsed,
no partial template is ever returned, and they carry the resource info
of the template and the line numbers where the problem was found so that
the developer can easily locate the defect::

    >>> from twowaysql import parse_template
    >>> parse_template("SELECT * FROM t WHERE (a = 1", resource_info="people.sql")
    Traceback (most recent call last):
        ...
    twowaysql.errors.UnbalancedParenthesis: SQL Format Error: too many '(' (people.sql, line 1)

Conditions like a missing parameter or an empty list are not errors,
they are the normal way clauses get removed from the generated SQL.
The only exception is :class:`MissingParameterError`, raised when a
template explicitly marked a parameter as required through ``@key``.
"""


class TemplateFormatError(Exception):
    """A template could not be parsed.

    The message is built from the description of the problem,
    the resource info identifying the template and the line numbers.
    """

    def __init__(
        self,
        message: str,
        resource_info: str | None = None,
        lineno: int | None = None,
        end_lineno: int | None = None,
    ) -> None:
        """
        :param message: Description of the format problem.
        :param resource_info: Identifier of the template, used only for diagnostics.
        :param lineno: Line where the problem was detected (or started).
        :param end_lineno: Last line involved, when the problem spans multiple lines.
        """
        self.message = message
        self.resource_info = resource_info
        self.lineno = lineno
        self.end_lineno = end_lineno
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.resource_info is not None:
            location.append(self.resource_info)
        if self.lineno is not None:
            if self.end_lineno is not None and self.end_lineno != self.lineno:
                location.append(f"lines {self.lineno}-{self.end_lineno}")
            else:
                location.append(f"line {self.lineno}")
        if not location:
            return self.message
        return f"{self.message} ({', '.join(location)})"


class UnbalancedParenthesis(TemplateFormatError):
    """There are more ``)`` than ``(`` or a ``(`` was never closed."""

    pass


class UnterminatedComment(TemplateFormatError):
    """A ``/*`` comment was never closed."""

    pass


class StrayCommentClose(TemplateFormatError):
    """A ``*/`` was found without a matching ``/*``."""

    pass


class UnterminatedStringLiteral(TemplateFormatError):
    """A quoted literal was never closed."""

    pass


class UnknownFunctionName(TemplateFormatError):
    """A directive references an extension function that doesn't exist."""

    pass


class MalformedDirective(TemplateFormatError):
    """The source of a directive comment cannot be compiled."""

    pass


class MissingParameterError(KeyError):
    """A parameter referenced as required (``@key``) has no value."""

    def __init__(self, key: str, resource_info: str | None = None) -> None:
        self.key = key
        self.resource_info = resource_info
        super().__init__(key)

    def __str__(self) -> str:
        message = f"Required parameter '{self.key}' is missing or negative"
        if self.resource_info is not None:
            message += f" ({self.resource_info})"
        return message

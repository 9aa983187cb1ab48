"""Generic utilities and helpers.

Utilities that are not specifically bound to templates,
like formatting data for the terminal.
"""

from . import tabulate

__all__ = ("tabulate",)

"""Split template text into the structural tokens the parser cares about.

The template parser doesn't need to understand SQL, it only needs to know
where comments, quoted literals, parenthesis and line ends are.
The :class:`Scanner` is a simple regex based cursor over the template text
that finds those delimiters one at a time::

    >>> scanner = Scanner("SELECT 'a' -- $b")
    >>> scanner.find().group()
    "'"
    >>> scanner.remembered_to_start()
    'SELECT '

The scanner keeps a *remembered* position, so that the parser can retrieve
the literal SQL text between the last consumed delimiter and the one that
was just found. After a delimiter like ``--`` or ``'`` is found the parser
can switch to a different pattern (for example to look for the end of the
line or for the closing quote) and eventually go :meth:`Scanner.back` to
re-scan part of the text with the default delimiters.

The scanner never rejects any input, it is up to the parser to decide
if the sequence of delimiters it received makes sense.
"""

import re

DELIMITERS = re.compile(r"/\*|\*/|--|'|\"|\(|\)|\r\n|\r|\n|\Z")
COMMENT_DELIMITERS = re.compile(r"/\*|\*/|\r\n|\r|\n")
LINE_END = re.compile(r"([^\r\n]*)(\r\n|\r|\n|\Z)")
SINGLE_QUOTED = re.compile(r"(?:[^']|'')*'")
DOUBLE_QUOTED = re.compile(r'(?:[^"]|"")*"')
NEWLINES = re.compile(r"\r\n|\r|\n")

LINE_END_TOKENS = ("\r\n", "\r", "\n", "")


class Scanner:
    """A cursor over template text that finds structural delimiters.

    The scanner tracks the current line number, which is increased
    every time a line end is consumed, whatever the pattern that consumed it.
    """

    def __init__(self, text: str) -> None:
        """
        :param text: The template text to scan.
        """
        self.text = text
        self.pos = 0
        self.mark = 0
        self.lineno = 1
        self.match: re.Match | None = None
        self.exhausted = False

    def find(self, pattern: re.Pattern = DELIMITERS) -> re.Match | None:
        """Search the next occurrence of ``pattern`` after the cursor.

        The cursor is moved to the end of the match.
        Returns ``None`` when the pattern can't be found anymore,
        in that case the cursor is not moved.

        As the default delimiters also match the end of the text,
        the scanner remembers when the end was matched so that
        subsequent searches stop instead of matching it forever.
        """
        if self.exhausted:
            return None
        match = pattern.search(self.text, self.pos)
        if match is None:
            return None
        if match.end() == len(self.text) and match.group(0) == "":
            self.exhausted = True
        self._move_to(match.end())
        self.match = match
        return match

    def consume(self, pattern: re.Pattern) -> re.Match | None:
        """Match ``pattern`` exactly at the cursor position.

        Differently from :meth:`find` the match must start where
        the cursor is, nothing gets skipped.
        """
        match = pattern.match(self.text, self.pos)
        if match is None:
            return None
        self._move_to(match.end())
        self.match = match
        return match

    def advance(self, count: int) -> str:
        """Move the cursor forward of ``count`` characters and return them."""
        start = self.pos
        self._move_to(min(self.pos + count, len(self.text)))
        return self.text[start : self.pos]

    def back(self, count: int) -> None:
        """Move the cursor back of ``count`` characters.

        Used to re-scan with the default delimiters some text that
        was consumed by a different pattern, like the line end found
        while looking for the end of a line comment.
        """
        target = max(self.pos - count, 0)
        self.lineno -= len(NEWLINES.findall(self.text, target, self.pos))
        self.pos = target
        self.exhausted = False

    def remember(self) -> None:
        """Remember the current cursor position."""
        self.mark = self.pos

    def remembered_to_start(self) -> str:
        """Text between the remembered position and the start of the last match.

        The end of the last match becomes the new remembered position,
        so that the delimiter itself is never part of the literal text.
        """
        start = self.match.start() if self.match is not None else self.pos
        text = self.text[self.mark : max(start, self.mark)]
        self.mark = self.pos
        return text

    def peek(self, count: int = 1) -> str:
        """Look at the next characters without moving the cursor."""
        return self.text[self.pos : self.pos + count]

    def is_end(self) -> bool:
        """If the whole text was consumed."""
        return self.exhausted or self.pos >= len(self.text)

    def _move_to(self, pos: int) -> None:
        self.lineno += len(NEWLINES.findall(self.text, self.pos, pos))
        self.pos = pos

"""Literal scanner mixin.

Skips string-like literals whole so their content never produces tokens:
quoted strings, `#{}` interpolation, regexes, percent literals, heredoc
bodies and `=begin`/`=end` embedded documents. Newlines inside a literal
still advance the line counter.
"""

from __future__ import annotations

from tagscan.errors import LexError
from tagscan.lexer.keywords import OPEN_CLOSE_DELIMITERS, PERCENT_LITERAL_TYPES
from tagscan.utils.logger import get_logger

logger = get_logger(__name__)

# Percent literals without interpolation
_RAW_PERCENT_TYPES = frozenset("qwis")


class LiteralScannerMixin:
    """Mixin providing literal skipping.

    Required Host Attributes:
        - _source, _source_len, _pos, _lineno, _line_start
        - _source_file, _strict, _value_expected, _heredocs

    """

    _source: str
    _source_len: int
    _pos: int
    _lineno: int
    _line_start: int
    _source_file: str | None
    _strict: bool
    _value_expected: bool
    _heredocs: list[tuple[str, bool]]

    def _consume_line(self) -> str:
        """Consume the rest of the current line. Implemented by Lexer."""
        raise NotImplementedError

    def _unterminated(self, what: str, lineno: int) -> None:
        """Report a literal still open at end of input."""
        if self._strict:
            raise LexError(
                f"Unterminated {what}",
                lineno=lineno,
                source_file=self._source_file,
            )
        logger.debug(
            "%s:%d: unterminated %s", self._source_file or "<source>", lineno, what
        )

    def _newline_at(self, pos: int) -> None:
        """Count a newline found at `pos` while skipping a literal."""
        self._lineno += 1
        self._line_start = pos + 1

    # =========================================================================
    # Delimited literals
    # =========================================================================

    def _skip_delimited(
        self,
        close: str,
        open_: str | None = None,
        *,
        interpolate: bool = True,
    ) -> None:
        """Skip to just past the matching `close` delimiter.

        self._pos must be just past the opening delimiter. When `open_` is
        given, nested open/close pairs are balanced.
        """
        source = self._source
        source_len = self._source_len
        start_line = self._lineno
        pos = self._pos
        nesting = 0
        while pos < source_len:
            ch = source[pos]
            if ch == "\\":
                if source.startswith("\n", pos + 1):
                    self._newline_at(pos + 1)
                pos += 2
                continue
            if ch == "\n":
                self._newline_at(pos)
            elif interpolate and ch == "#" and source.startswith("{", pos + 1):
                self._pos = pos + 2
                self._skip_interpolation()
                pos = self._pos
                continue
            elif open_ is not None and ch == open_:
                nesting += 1
            elif ch == close:
                if nesting == 0:
                    self._pos = pos + 1
                    return
                nesting -= 1
            pos += 1
        self._pos = source_len
        self._unterminated("literal", start_line)

    def _skip_interpolation(self) -> None:
        """Skip a `#{...}` body. self._pos is just past the `#{`."""
        source = self._source
        source_len = self._source_len
        start_line = self._lineno
        pos = self._pos
        depth = 1
        while pos < source_len:
            ch = source[pos]
            if ch in "\"'`":
                self._pos = pos + 1
                self._skip_delimited(ch, interpolate=ch != "'")
                pos = self._pos
                continue
            if ch == "\n":
                self._newline_at(pos)
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self._pos = pos + 1
                    return
            pos += 1
        self._pos = source_len
        self._unterminated("interpolation", start_line)

    def _skip_string(self, quote: str) -> None:
        """Skip a quoted string. self._pos is at the opening quote."""
        self._pos += 1
        self._skip_delimited(quote, interpolate=quote != "'")

    # =========================================================================
    # Percent literals and regexes
    # =========================================================================

    def _percent_literal_start(self) -> bool:
        """Whether self._pos starts %w[], %q(), %() and friends."""
        source = self._source
        pos = self._pos
        nxt = source[pos + 1 : pos + 2]
        if nxt in PERCENT_LITERAL_TYPES and nxt:
            delim = source[pos + 2 : pos + 3]
            return bool(delim) and not delim.isalnum() and not delim.isspace()
        return bool(nxt) and not nxt.isalnum() and not nxt.isspace() and nxt != "="

    def _skip_percent_literal(self) -> None:
        source = self._source
        pos = self._pos + 1
        literal_type = "Q"
        if source[pos] in PERCENT_LITERAL_TYPES:
            literal_type = source[pos]
            pos += 1
        delim = source[pos]
        close = OPEN_CLOSE_DELIMITERS.get(delim, delim)
        open_ = delim if delim in OPEN_CLOSE_DELIMITERS else None
        self._pos = pos + 1
        self._skip_delimited(
            close, open_, interpolate=literal_type not in _RAW_PERCENT_TYPES
        )
        if literal_type == "r":
            self._skip_regex_flags()

    def _skip_regex(self) -> None:
        """Skip a /regex/ literal. self._pos is at the opening slash."""
        source = self._source
        source_len = self._source_len
        start_line = self._lineno
        pos = self._pos + 1
        in_class = False
        while pos < source_len:
            ch = source[pos]
            if ch == "\\":
                if source.startswith("\n", pos + 1):
                    self._newline_at(pos + 1)
                pos += 2
                continue
            if ch == "\n":
                self._newline_at(pos)
            elif ch == "#" and source.startswith("{", pos + 1):
                self._pos = pos + 2
                self._skip_interpolation()
                pos = self._pos
                continue
            elif ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                self._pos = pos + 1
                self._skip_regex_flags()
                return
            pos += 1
        self._pos = source_len
        self._unterminated("regex", start_line)

    def _skip_regex_flags(self) -> None:
        source = self._source
        pos = self._pos
        while pos < self._source_len and source[pos] in "imxounse":
            pos += 1
        self._pos = pos

    # =========================================================================
    # Heredocs and embedded documents
    # =========================================================================

    def _try_heredoc(self) -> bool:
        """Register a heredoc starting at self._pos (`<<ID`, `<<~ID`, `<<-'ID'`).

        The body is skipped at the next newline. Returns False when the
        `<<` is an operator (append, `class << self`).
        """
        source = self._source
        source_len = self._source_len
        start = self._pos
        pos = start + 2
        indented = False
        if pos < source_len and source[pos] in "~-":
            indented = True
            pos += 1
        if pos >= source_len:
            return False

        ch = source[pos]
        if ch in "'\"`":
            end = source.find(ch, pos + 1)
            if end == -1 or "\n" in source[pos + 1 : end]:
                return False
            terminator = source[pos + 1 : end]
            pos = end + 1
        elif ch.isalpha() or ch == "_":
            if not indented and not (ch.isupper() or ch == "_"):
                return False
            end = pos
            while end < source_len and (source[end].isalnum() or source[end] == "_"):
                end += 1
            terminator = source[pos:end]
            pos = end
        else:
            return False

        # `a <<b` after an operand is a shift unless spaced like an argument
        if not self._value_expected and source[start - 1 : start] not in (" ", "\t"):
            return False

        self._heredocs.append((terminator, indented))
        self._pos = pos
        return True

    def _skip_heredoc_bodies(self) -> None:
        """Skip every heredoc body registered on the line just ended."""
        for terminator, indented in self._heredocs:
            start_line = self._lineno
            while True:
                if self._pos >= self._source_len:
                    self._unterminated(f"heredoc {terminator}", start_line)
                    break
                line = self._consume_line()
                if (line.strip() if indented else line) == terminator:
                    break
        self._heredocs.clear()

    def _skip_embedded_doc(self) -> None:
        """Skip a `=begin` ... `=end` block. self._pos is at `=begin`."""
        start_line = self._lineno
        self._consume_line()
        while self._pos < self._source_len:
            line = self._consume_line()
            if line.startswith("=end") and (len(line) == 4 or line[4].isspace()):
                return
        self._unterminated("embedded document", start_line)

"""Ruby-subset lexer producing the classified token stream.

Scans Ruby source left to right and yields only the tokens the scanner
reacts to: comments, keywords, identifiers and constants. String, symbol,
regex, percent and heredoc literals are skipped whole, so `end` or `#`
inside them never leaks into the token stream.

The lexer also keeps a block stack, so it can tell the `end` that closes a
module, class or method apart from the `end` of an `if` or `do` block.

Thread Safety:
Lexer instances are single-use. Create one per source string.
All state is instance-local; no shared mutable state.

"""

from __future__ import annotations

from collections.abc import Iterator

from tagscan.lexer.keywords import BlockKind
from tagscan.lexer.scanners import LiteralScannerMixin, WordScannerMixin
from tagscan.lexer.scanners.words import is_word_start
from tagscan.tokens import KeywordClass, LexicalToken
from tagscan.utils.logger import get_logger

logger = get_logger(__name__)

_SPACE_CHARS = frozenset(" \t\r\f\v")


class Lexer(
    # Literal skipping (strings, regexes, heredocs, ...)
    LiteralScannerMixin,
    # Words (identifiers, constants, keywords, def/class handling)
    WordScannerMixin,
):
    """Ruby-subset lexer.

    Usage:
            >>> lexer = Lexer("# @domain: Billing\\nmodule Invoices\\nend\\n")
            >>> for token in lexer.tokenize():
            ...     print(token)
        LexicalToken(COMMENT, '# @domain: Billing', 1:1)
        LexicalToken(KEYWORD, 'module', 2:1)
        LexicalToken(CONSTANT, 'Invoices', 2:8)
        LexicalToken(KEYWORD, 'end', 3:1)

    Thread Safety:
        Lexer instances are single-use. Create one per source string.

    """

    __slots__ = (
        "_source",
        "_source_len",  # Cached len(source) to avoid repeated calls
        "_pos",
        "_lineno",
        "_line_start",  # Offset of the first character of the current line
        "_source_file",
        "_strict",
        # Expression state
        "_value_expected",  # At statement start or after an operator
        "_after_dot",  # Next word is a method name (after ".", "&." or "::")
        "_after_identifier",  # Last operand was a bare identifier (method call)
        "_depth",  # Bracket nesting
        # Block state
        "_block_stack",
        "_loop_line",  # Line of an open while/until/for header
        "_endless_depths",  # Bracket depth of each open endless def
        # Heredoc state: (terminator, indented) awaiting the next newline
        "_heredocs",
    )

    def __init__(
        self,
        source: str,
        source_file: str | None = None,
        *,
        strict: bool = False,
    ) -> None:
        """Initialize lexer with source text.

        Args:
            source: Ruby source text
            source_file: Optional source file path for tokens and errors
            strict: Raise LexError on unterminated literals instead of
                silently stopping at end of input
        """
        self._source = source
        self._source_len = len(source)
        self._pos = 0
        self._lineno = 1
        self._line_start = 0
        self._source_file = source_file
        self._strict = strict

        self._value_expected = True
        self._after_dot = False
        self._after_identifier = False
        self._depth = 0

        self._block_stack: list[BlockKind] = []
        self._loop_line = 0
        self._endless_depths: list[int] = []

        self._heredocs: list[tuple[str, bool]] = []

    def tokenize(self) -> Iterator[LexicalToken]:
        """Tokenize source into a token stream.

        Yields:
            LexicalToken objects one at a time

        Raises:
            LexError: On unterminated literals, in strict mode only.
        """
        source = self._source
        source_len = self._source_len
        while self._pos < source_len:
            if self._pos == self._line_start:
                if self._at_end_marker():
                    break
                if self._at_embedded_doc():
                    self._skip_embedded_doc()
                    continue

            ch = source[self._pos]
            if ch == "\n":
                yield from self._scan_newline()
            elif ch in _SPACE_CHARS:
                self._pos += 1
            elif ch == "\\" and source.startswith("\n", self._pos + 1):
                # Line continuation: the statement goes on
                self._pos += 2
                self._begin_line()
            elif ch == "#":
                yield self._scan_comment()
            elif is_word_start(ch):
                yield from self._scan_word()
            else:
                yield from self._scan_punctuation(ch)

        yield from self._finish()

    # =========================================================================
    # Line handling
    # =========================================================================

    def _begin_line(self) -> None:
        """Record that self._pos is the first character of a new line."""
        self._lineno += 1
        self._line_start = self._pos

    def _consume_line(self) -> str:
        """Consume the rest of the current line, including its newline."""
        source = self._source
        end = source.find("\n", self._pos)
        if end == -1:
            line = source[self._pos :]
            self._pos = self._source_len
        else:
            line = source[self._pos : end]
            self._pos = end + 1
            self._begin_line()
        return line.rstrip("\r")

    def _scan_newline(self) -> Iterator[LexicalToken]:
        self._pos += 1
        self._begin_line()
        if self._heredocs:
            self._skip_heredoc_bodies()
        yield from self._close_endless_defs()
        self._value_expected = True
        self._after_dot = False
        self._after_identifier = False

    def _at_end_marker(self) -> bool:
        """`__END__` alone on a line ends the program text."""
        source = self._source
        pos = self._pos
        if not source.startswith("__END__", pos):
            return False
        return source[pos + 7 : pos + 8] in ("", "\n", "\r")

    def _at_embedded_doc(self) -> bool:
        source = self._source
        pos = self._pos
        if not source.startswith("=begin", pos):
            return False
        nxt = source[pos + 6 : pos + 7]
        return nxt == "" or nxt.isspace()

    def _scan_comment(self) -> LexicalToken:
        source = self._source
        start = self._pos
        end = source.find("\n", start)
        if end == -1:
            end = self._source_len
        self._pos = end
        return LexicalToken.comment(
            source[start:end].rstrip("\r"),
            lineno=self._lineno,
            col=start - self._line_start + 1,
            source_file=self._source_file,
        )

    # =========================================================================
    # Expression state
    # =========================================================================

    def _mark_value(self) -> None:
        """A complete operand ended here (a following `if` is a modifier)."""
        self._value_expected = False
        self._after_dot = False
        self._after_identifier = False

    def _mark_operator(self) -> None:
        """An operand is expected next (a following `if` opens a block)."""
        self._value_expected = True
        self._after_dot = False
        self._after_identifier = False

    def _operand_may_start(self) -> bool:
        """Whether a literal may start here (`x = /re/`, `puts %w[a b]`).

        After a bare method name, a space before the character and none
        after it marks an argument rather than an operator.
        """
        if self._value_expected:
            return True
        source = self._source
        pos = self._pos
        nxt = source[pos + 1 : pos + 2]
        return (
            self._after_identifier
            and source[pos - 1 : pos] in (" ", "\t")
            and nxt != ""
            and not nxt.isspace()
            and nxt != "="
        )

    def _close_endless_defs(self) -> Iterator[LexicalToken]:
        """Emit a scope end for each endless def whose body just ended."""
        while (
            self._endless_depths
            and self._endless_depths[-1] == self._depth
            and not self._value_expected
        ):
            self._endless_depths.pop()
            yield LexicalToken.keyword(
                "end",
                keyword_class=KeywordClass.SCOPE_END,
                source_file=self._source_file,
            )

    def _finish(self) -> Iterator[LexicalToken]:
        """Flush state at end of input."""
        if self._heredocs:
            terminator, _ = self._heredocs[0]
            self._unterminated(f"heredoc {terminator}", self._lineno)
        while self._endless_depths:
            self._endless_depths.pop()
            yield LexicalToken.keyword(
                "end",
                keyword_class=KeywordClass.SCOPE_END,
                source_file=self._source_file,
            )
        if self._block_stack:
            logger.debug(
                "%s: %d block(s) still open at end of input",
                self._source_file or "<source>",
                len(self._block_stack),
            )

    # =========================================================================
    # Punctuation
    # =========================================================================

    def _scan_punctuation(self, ch: str) -> Iterator[LexicalToken]:
        """Skip one operator, bracket, number, variable or literal."""
        source = self._source
        pos = self._pos
        nxt = source[pos + 1 : pos + 2]

        if ch in "\"'`":
            self._skip_string(ch)
            self._mark_value()
        elif ch == ":":
            self._scan_colon(nxt)
        elif ch == "@":
            end = pos + 2 if nxt == "@" else pos + 1
            self._pos = self._word_end(end)
            self._mark_value()
        elif ch == "$":
            if nxt and is_word_start(nxt):
                self._pos = self._word_end(pos + 1)
            else:
                self._pos = min(pos + 2, self._source_len)
            self._mark_value()
        elif ch.isdigit():
            self._skip_number()
            self._mark_value()
        elif ch == "%" and self._operand_may_start() and self._percent_literal_start():
            self._skip_percent_literal()
            self._mark_value()
        elif ch == "/" and self._operand_may_start():
            self._skip_regex()
            self._mark_value()
        elif ch == "?" and self._value_expected and self._at_char_literal():
            self._skip_char_literal()
            self._mark_value()
        elif ch == "<" and nxt == "<" and self._try_heredoc():
            self._mark_value()
        elif ch in "([{":
            self._depth += 1
            self._pos += 1
            self._mark_operator()
        elif ch in ")]}":
            self._depth = max(0, self._depth - 1)
            self._pos += 1
            self._mark_value()
        elif ch == ";":
            self._pos += 1
            yield from self._close_endless_defs()
            self._mark_operator()
        elif ch == "." and nxt != ".":
            self._pos += 1
            self._value_expected = True
            self._after_dot = True
        elif ch == "&" and nxt == ".":
            self._pos += 2
            self._value_expected = True
            self._after_dot = True
        else:
            self._pos += 1
            if ch == "." and nxt == ".":
                # Range operator: skip both (or all three) dots
                self._pos = pos + (3 if source.startswith("...", pos) else 2)
            self._mark_operator()

    def _scan_colon(self, nxt: str) -> None:
        source = self._source
        pos = self._pos
        if nxt == ":":
            # Scope resolution: the next word is a constant or a method name
            self._pos = pos + 2
            self._value_expected = True
            self._after_dot = True
        elif nxt in ("'", '"'):
            self._pos = pos + 1
            self._skip_string(nxt)
            self._mark_value()
        elif nxt and is_word_start(nxt):
            end = self._word_end(pos + 1)
            if end < self._source_len and source[end] in "?!=":
                if not source.startswith("=>", end):
                    end += 1
            self._pos = end
            self._mark_value()
        elif self._value_expected and (op := self._operator_at(pos + 1)):
            # Operator symbol (:+, :[], :<=>)
            self._pos = pos + 1 + len(op)
            self._mark_value()
        else:
            # Ternary colon
            self._pos = pos + 1
            self._mark_operator()

    def _skip_number(self) -> None:
        source = self._source
        source_len = self._source_len
        pos = self._pos
        while pos < source_len:
            ch = source[pos]
            if ch.isalnum() or ch == "_":
                pos += 1
            elif ch == "." and source[pos + 1 : pos + 2].isdigit():
                pos += 1
            else:
                break
        self._pos = pos

    def _at_char_literal(self) -> bool:
        """`?a` / `?\\n` character literal (only where an operand is expected)."""
        source = self._source
        pos = self._pos
        nxt = source[pos + 1 : pos + 2]
        if not nxt or nxt.isspace():
            return False
        if nxt == "\\":
            return True
        after = source[pos + 2 : pos + 3]
        return not (after.isalnum() or after == "_")

    def _skip_char_literal(self) -> None:
        self._pos += 3 if self._source.startswith("\\", self._pos + 1) else 2

"""Word scanner mixin.

Classifies words as identifiers, constants or keywords and keeps the block
stack that decides what each `end` closes. Construct keywords get special
handling:

- `module` always opens a construct
- `class` opens a construct, except `class << self` (a plain block whose
  defs are class methods)
- `def` opens a construct, reads its optional receiver and its name, and
  detects endless definitions (`def answer = 42`), which never see an `end`
"""

from __future__ import annotations

from collections.abc import Iterator

from tagscan.lexer.keywords import (
    BLOCK_KEYWORDS,
    LOOP_KEYWORDS,
    MODIFIER_KEYWORDS,
    OPERATOR_METHOD_NAMES,
    RUBY_KEYWORDS,
    VALUE_KEYWORDS,
    BlockKind,
)
from tagscan.tokens import ConstructType, KeywordClass, LexicalToken
from tagscan.utils.logger import get_logger

logger = get_logger(__name__)

# Keywords that also end an operand: a following `if` is a modifier
_OPERAND_KEYWORDS = VALUE_KEYWORDS | frozenset(
    {"break", "next", "redo", "retry", "return", "super", "yield"}
)


def is_word_start(ch: str) -> bool:
    """Whether `ch` can start an identifier, constant or keyword."""
    return ch.isalpha() or ch == "_" or ord(ch) > 127


class WordScannerMixin:
    """Mixin providing word classification and block tracking.

    Required Host Attributes:
        - _source, _source_len, _pos, _lineno, _line_start, _source_file
        - _value_expected, _after_dot, _after_identifier, _depth
        - _block_stack, _loop_line, _endless_depths

    """

    _source: str
    _source_len: int
    _pos: int
    _lineno: int
    _line_start: int
    _source_file: str | None
    _value_expected: bool
    _after_dot: bool
    _after_identifier: bool
    _depth: int
    _block_stack: list[BlockKind]
    _loop_line: int
    _endless_depths: list[int]

    def _mark_value(self) -> None:
        """Implemented by Lexer."""
        raise NotImplementedError

    def _mark_operator(self) -> None:
        """Implemented by Lexer."""
        raise NotImplementedError

    # =========================================================================
    # Character helpers
    # =========================================================================

    def _word_end(self, pos: int) -> int:
        """Position just past the word characters starting at `pos`."""
        source = self._source
        source_len = self._source_len
        while pos < source_len:
            ch = source[pos]
            if ch.isalnum() or ch == "_" or ord(ch) > 127:
                pos += 1
            else:
                break
        return pos

    def _skip_spaces(self, pos: int) -> int:
        source = self._source
        while pos < self._source_len and source[pos] in " \t":
            pos += 1
        return pos

    def _operator_at(self, pos: int) -> str:
        """Operator method name at `pos` (longest match), or ""."""
        source = self._source
        for op in OPERATOR_METHOD_NAMES:
            if source.startswith(op, pos):
                return op
        return ""

    def _col(self, pos: int) -> int:
        return pos - self._line_start + 1

    def _keyword_token(
        self,
        text: str,
        pos: int,
        keyword_class: KeywordClass,
        construct_type: ConstructType | None = None,
    ) -> LexicalToken:
        return LexicalToken.keyword(
            text,
            keyword_class=keyword_class,
            construct_type=construct_type,
            lineno=self._lineno,
            col=self._col(pos),
            source_file=self._source_file,
        )

    # =========================================================================
    # Words
    # =========================================================================

    def _scan_word(self) -> Iterator[LexicalToken]:
        source = self._source
        source_len = self._source_len
        start = self._pos
        end = self._word_end(start)

        # Predicate and bang suffixes: empty?, save!, defined?
        if (
            end < source_len
            and source[end] in "?!"
            and not source[start].isupper()
            and not source.startswith("=", end + 1)
        ):
            end += 1

        # Labels (`key: value`) are hash keys or keyword arguments
        if (
            not self._after_dot
            and source.startswith(":", end)
            and not source.startswith("::", end)
        ):
            self._pos = end + 1
            self._mark_operator()
            return

        word = source[start:end]

        if self._after_dot:
            # Method call: obj.class, obj.end, Foo::bar
            kind_is_constant = word[0].isupper() and word not in RUBY_KEYWORDS
            if kind_is_constant and source.startswith("::", start - 2):
                # Rooted constant path: ::Foo::Bar
                while source.startswith("::", end) and source[end + 2 : end + 3].isupper():
                    end = self._word_end(end + 2)
                word = source[start:end]
            self._pos = end
            self._mark_value()
            self._after_identifier = not kind_is_constant
            factory = LexicalToken.constant if kind_is_constant else LexicalToken.identifier
            yield factory(
                word, lineno=self._lineno, col=self._col(start), source_file=self._source_file
            )
            return

        if word in RUBY_KEYWORDS:
            self._pos = end
            yield from self._scan_keyword(word, start)
            return

        if word[0].isupper():
            # Constant path: Foo::Bar::Baz is one constant
            while source.startswith("::", end) and source[end + 2 : end + 3].isupper():
                end = self._word_end(end + 2)
            self._pos = end
            self._mark_value()
            yield LexicalToken.constant(
                source[start:end],
                lineno=self._lineno,
                col=self._col(start),
                source_file=self._source_file,
            )
            return

        self._pos = end
        self._mark_value()
        self._after_identifier = True
        yield LexicalToken.identifier(
            word, lineno=self._lineno, col=self._col(start), source_file=self._source_file
        )

    # =========================================================================
    # Keywords
    # =========================================================================

    def _scan_keyword(self, word: str, start: int) -> Iterator[LexicalToken]:
        """Classify a keyword and maintain the block stack."""
        if word == "def":
            yield from self._scan_def(start)
            return

        if word == "module":
            self._block_stack.append(BlockKind.CONSTRUCT)
            self._mark_operator()
            yield self._keyword_token(
                word, start, KeywordClass.NEW_SCOPE, ConstructType.MODULE
            )
            return

        if word == "class":
            self._mark_operator()
            if self._source.startswith("<<", self._skip_spaces(self._pos)):
                self._block_stack.append(BlockKind.SINGLETON_CLASS)
                yield self._keyword_token(word, start, KeywordClass.OTHER)
            else:
                self._block_stack.append(BlockKind.CONSTRUCT)
                yield self._keyword_token(
                    word, start, KeywordClass.NEW_SCOPE, ConstructType.CLASS
                )
            return

        if word == "end":
            token = self._close_block(start)
            self._mark_value()
            yield token
            return

        if word in MODIFIER_KEYWORDS:
            if self._value_expected:
                self._open_block(word)
        elif word in BLOCK_KEYWORDS:
            self._open_block(word)
        elif word == "do":
            if self._loop_line == self._lineno:
                # `while cond do`: the do belongs to the loop header
                self._loop_line = 0
            else:
                self._block_stack.append(BlockKind.BLOCK)

        if word in _OPERAND_KEYWORDS:
            self._mark_value()
        else:
            self._mark_operator()
        yield self._keyword_token(word, start, KeywordClass.OTHER)

    def _open_block(self, word: str) -> None:
        self._block_stack.append(BlockKind.BLOCK)
        if word in LOOP_KEYWORDS:
            self._loop_line = self._lineno

    def _close_block(self, start: int) -> LexicalToken:
        if not self._block_stack:
            logger.debug(
                "%s:%d: `end` without an open block",
                self._source_file or "<source>",
                self._lineno,
            )
            return self._keyword_token("end", start, KeywordClass.SCOPE_END)

        kind = self._block_stack.pop()
        if kind is BlockKind.CONSTRUCT:
            return self._keyword_token("end", start, KeywordClass.SCOPE_END)
        return self._keyword_token("end", start, KeywordClass.OTHER)

    def _in_singleton_class(self) -> bool:
        """Whether the innermost enclosing construct is `class << self`."""
        for kind in reversed(self._block_stack):
            if kind is BlockKind.BLOCK:
                continue
            return kind is BlockKind.SINGLETON_CLASS
        return False

    # =========================================================================
    # Method definitions
    # =========================================================================

    def _scan_def(self, start: int) -> Iterator[LexicalToken]:
        """Emit `def` and the method name that follows it."""
        construct_type = ConstructType.INSTANCE_METHOD
        if self._in_singleton_class():
            construct_type = ConstructType.METHOD

        pos = self._skip_spaces(self._pos)
        receiver_end = self._receiver_end(pos)
        if receiver_end is not None:
            construct_type = ConstructType.METHOD
            pos = receiver_end

        name_end = self._method_name_end(pos)
        if name_end > pos and self._is_endless_def(name_end):
            self._endless_depths.append(self._depth)
        else:
            self._block_stack.append(BlockKind.CONSTRUCT)

        yield self._keyword_token("def", start, KeywordClass.NEW_SCOPE, construct_type)

        if name_end > pos:
            yield LexicalToken.identifier(
                self._source[pos:name_end],
                lineno=self._lineno,
                col=self._col(pos),
                source_file=self._source_file,
            )
            self._pos = name_end
            self._mark_value()
        else:
            self._pos = pos
            self._mark_operator()

    def _receiver_end(self, pos: int) -> int | None:
        """Position just past `self.` / `Const.` / `obj.`, if present."""
        source = self._source
        if source.startswith("self.", pos):
            return pos + 5
        if pos < self._source_len and is_word_start(source[pos]):
            end = self._word_end(pos)
            if source.startswith(".", end) and not source.startswith("..", end):
                return end + 1
        return None

    def _method_name_end(self, pos: int) -> int:
        """Position just past the method name at `pos` (== pos if none)."""
        source = self._source
        if pos < self._source_len and is_word_start(source[pos]):
            end = self._word_end(pos)
            suffix = source[end : end + 1]
            if suffix in ("?", "!"):
                return end + 1
            if suffix == "=" and source.startswith("(", end + 1):
                # Setter: def name=(value)
                return end + 1
            return end
        return pos + len(self._operator_at(pos))

    def _is_endless_def(self, pos: int) -> bool:
        """Whether the definition continues with `= body` instead of a body."""
        source = self._source
        pos = self._skip_spaces(pos)
        if source.startswith("(", pos):
            depth = 0
            while pos < self._source_len:
                ch = source[pos]
                if ch == "(":
                    depth += 1
                elif ch == ")":
                    depth -= 1
                    if depth == 0:
                        pos += 1
                        break
                pos += 1
            pos = self._skip_spaces(pos)
        return source.startswith("=", pos) and source[pos + 1 : pos + 2] not in (
            "=",
            "~",
            ">",
        )

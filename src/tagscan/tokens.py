"""LexicalToken and token classification enums.

The lexer produces a stream of LexicalToken objects that the scanner consumes.
Only four kinds of token matter to the scanner: comments, keywords,
identifiers and constants. Everything else in the source is dropped by the
lexer.

Thread Safety:
LexicalToken is frozen (immutable) and safe to share across threads.
The enums are inherently immutable.

"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tagscan.location import SourceLocation


class TokenKind(Enum):
    """Token kinds produced by the lexer."""

    COMMENT = auto()
    KEYWORD = auto()
    IDENTIFIER = auto()
    CONSTANT = auto()


class KeywordClass(Enum):
    """Keyword categories the entity reacts to.

    - NEW_SCOPE: introduces a named construct (module, class, def)
    - SCOPE_END: terminates the innermost construct
    - OTHER: any keyword the entity ignores

    """

    NEW_SCOPE = auto()
    SCOPE_END = auto()
    OTHER = auto()


class ConstructType(Enum):
    """Construct type introduced by a new-scope keyword."""

    MODULE = "module"
    CLASS = "class"
    METHOD = "method"  # def self.foo / def Const.foo
    INSTANCE_METHOD = "instance_method"  # def foo


# Default classification by keyword text, used when the producer of the
# token does not classify it itself.
KEYWORD_CLASSES: dict[str, KeywordClass] = {
    "module": KeywordClass.NEW_SCOPE,
    "class": KeywordClass.NEW_SCOPE,
    "def": KeywordClass.NEW_SCOPE,
    "end": KeywordClass.SCOPE_END,
}

CONSTRUCT_TYPES: dict[str, ConstructType] = {
    "module": ConstructType.MODULE,
    "class": ConstructType.CLASS,
    "def": ConstructType.INSTANCE_METHOD,
}

# "# @domain: Billing" -> ("domain", "Billing")
TAG_COMMENT_PATTERN = re.compile(
    r"^#+\s*@(?P<name>[A-Za-z_][\w.-]*):\s*(?P<value>\S.*?)\s*$"
)


def parse_tag_comment(text: str) -> tuple[str, str] | None:
    """Split a tag comment into (tag_name, tag_value).

    Returns:
        The tag pair, or None if the comment is not tag-formatted.

    Example:
        >>> parse_tag_comment("# @domain: Billing")
        ('domain', 'Billing')
        >>> parse_tag_comment("# plain comment") is None
        True
    """
    match = TAG_COMMENT_PATTERN.match(text.strip())
    if match is None:
        return None
    return match.group("name"), match.group("value")


@dataclass(frozen=True, slots=True)
class LexicalToken:
    """One classified token from the token stream.

    Attributes:
        kind: COMMENT, KEYWORD, IDENTIFIER or CONSTANT
        text: The raw token text
        tag_name: Tag name for tag comments, else None
        tag_value: Tag value for tag comments, else None
        construct_type: Construct introduced by a new-scope keyword
        keyword_class: Category of a keyword (None for other kinds)
        lineno: Line number (1-indexed, 0 if synthesized)
        col: Column (1-indexed, 0 if synthesized)
        source_file: Optional source file path

    Prefer the factory classmethods over the constructor; they derive the
    tag pair and keyword classification from the text.

    """

    kind: TokenKind
    text: str
    tag_name: str | None = None
    tag_value: str | None = None
    construct_type: ConstructType | None = None
    keyword_class: KeywordClass | None = None
    lineno: int = 0
    col: int = 0
    source_file: str | None = None
    _location_cache: SourceLocation | None = field(
        default=None, repr=False, compare=False, hash=False
    )

    @classmethod
    def comment(
        cls,
        text: str,
        *,
        lineno: int = 0,
        col: int = 0,
        source_file: str | None = None,
    ) -> LexicalToken:
        """Create a comment token, recognizing the tag-comment format."""
        tag = parse_tag_comment(text)
        tag_name, tag_value = tag if tag is not None else (None, None)
        return cls(
            TokenKind.COMMENT,
            text,
            tag_name=tag_name,
            tag_value=tag_value,
            lineno=lineno,
            col=col,
            source_file=source_file,
        )

    @classmethod
    def keyword(
        cls,
        text: str,
        *,
        construct_type: ConstructType | None = None,
        keyword_class: KeywordClass | None = None,
        lineno: int = 0,
        col: int = 0,
        source_file: str | None = None,
    ) -> LexicalToken:
        """Create a keyword token.

        Classification defaults to the text-based tables; pass
        keyword_class explicitly to override (e.g. an `end` that closes an
        `if` block rather than a construct).
        """
        if keyword_class is None:
            keyword_class = KEYWORD_CLASSES.get(text, KeywordClass.OTHER)
        if construct_type is None and keyword_class is KeywordClass.NEW_SCOPE:
            construct_type = CONSTRUCT_TYPES.get(text)
        return cls(
            TokenKind.KEYWORD,
            text,
            construct_type=construct_type,
            keyword_class=keyword_class,
            lineno=lineno,
            col=col,
            source_file=source_file,
        )

    @classmethod
    def identifier(
        cls,
        text: str,
        *,
        lineno: int = 0,
        col: int = 0,
        source_file: str | None = None,
    ) -> LexicalToken:
        """Create an identifier token."""
        return cls(
            TokenKind.IDENTIFIER, text, lineno=lineno, col=col, source_file=source_file
        )

    @classmethod
    def constant(
        cls,
        text: str,
        *,
        lineno: int = 0,
        col: int = 0,
        source_file: str | None = None,
    ) -> LexicalToken:
        """Create a constant token."""
        return cls(
            TokenKind.CONSTANT, text, lineno=lineno, col=col, source_file=source_file
        )

    @property
    def is_tag_comment(self) -> bool:
        """True for comments matching `@<name>: <value>`."""
        return self.kind is TokenKind.COMMENT and self.tag_name is not None

    @property
    def is_name_candidate(self) -> bool:
        """True for identifiers and constants."""
        return self.kind in (TokenKind.IDENTIFIER, TokenKind.CONSTANT)

    @property
    def location(self) -> SourceLocation:
        """Get source location (lazily created and cached)."""
        if self._location_cache is not None:
            return self._location_cache

        # Import here to avoid circular import at module load
        from tagscan.location import SourceLocation

        loc = SourceLocation(
            lineno=self.lineno,
            col_offset=self.col,
            source_file=self.source_file,
        )
        # Safe mutation of frozen dataclass cache field (idempotent write)
        object.__setattr__(self, "_location_cache", loc)
        return loc

    def __repr__(self) -> str:
        """Compact repr for debugging."""
        val = self.text
        if len(val) > 20:
            val = val[:17] + "..."
        return f"LexicalToken({self.kind.name}, {val!r}, {self.lineno}:{self.col})"

"""Ruby keyword tables and block-stack entries.

This module defines the constant sets the lexer uses to classify words and
to decide which `end` closes which kind of block.
"""

from __future__ import annotations

from enum import Enum, auto


class BlockKind(Enum):
    """Entries of the lexer's block stack.

    - CONSTRUCT: module / class / def body (its `end` is a scope end)
    - BLOCK: if / unless / while / until / case / begin / for / do
    - SINGLETON_CLASS: `class << self` body; defs inside are class methods

    """

    CONSTRUCT = auto()
    BLOCK = auto()
    SINGLETON_CLASS = auto()


RUBY_KEYWORDS = frozenset(
    {
        "BEGIN",
        "END",
        "__ENCODING__",
        "__FILE__",
        "__LINE__",
        "alias",
        "and",
        "begin",
        "break",
        "case",
        "class",
        "def",
        "defined?",
        "do",
        "else",
        "elsif",
        "end",
        "ensure",
        "false",
        "for",
        "if",
        "in",
        "module",
        "next",
        "nil",
        "not",
        "or",
        "redo",
        "rescue",
        "retry",
        "return",
        "self",
        "super",
        "then",
        "true",
        "undef",
        "unless",
        "until",
        "when",
        "while",
        "yield",
    }
)

# Keywords that end an expression (a following `if` is a modifier)
VALUE_KEYWORDS = frozenset(
    {
        "__ENCODING__",
        "__FILE__",
        "__LINE__",
        "end",
        "false",
        "nil",
        "self",
        "true",
    }
)

# Open a block closed by `end` only at the start of a statement
MODIFIER_KEYWORDS = frozenset({"if", "unless", "while", "until"})

# Always open a block closed by `end`
BLOCK_KEYWORDS = frozenset({"begin", "case", "for"})

# Loop headers whose same-line `do` belongs to the header
LOOP_KEYWORDS = frozenset({"while", "until", "for"})

# Operator method names, longest first
OPERATOR_METHOD_NAMES = (
    "[]=",
    "<=>",
    "===",
    "[]",
    "==",
    "=~",
    "!=",
    "!~",
    "<<",
    ">>",
    "<=",
    ">=",
    "**",
    "+@",
    "-@",
    "+",
    "-",
    "*",
    "/",
    "%",
    "<",
    ">",
    "!",
    "~",
    "&",
    "|",
    "^",
    "`",
)

# Percent-literal type letters (%w[], %q(), ...)
PERCENT_LITERAL_TYPES = frozenset("qQwWiIrsx")

OPEN_CLOSE_DELIMITERS = {"(": ")", "[": "]", "{": "}", "<": ">"}

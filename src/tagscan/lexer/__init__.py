"""Ruby-subset lexer for tagscan.

Turns Ruby source into the classified token stream the scanner consumes.

Architecture:
lexer/
├── __init__.py          # Re-exports Lexer, BlockKind
├── core.py              # Lexer class (mixin composition + line handling)
├── keywords.py          # Keyword tables, BlockKind enum
└── scanners/
    ├── literals.py      # Strings, regexes, percent literals, heredocs
    └── words.py         # Identifiers, constants, keywords, block stack

Usage:
    >>> from tagscan.lexer import Lexer
    >>> for token in Lexer("class Foo\\n  def bar; end\\nend\\n").tokenize():
    ...     print(token)
LexicalToken(KEYWORD, 'class', 1:1)
LexicalToken(CONSTANT, 'Foo', 1:7)
LexicalToken(KEYWORD, 'def', 2:3)
LexicalToken(IDENTIFIER, 'bar', 2:7)
LexicalToken(KEYWORD, 'end', 2:12)
LexicalToken(KEYWORD, 'end', 3:1)

"""

from tagscan.lexer.core import Lexer
from tagscan.lexer.keywords import BlockKind

__all__ = ["BlockKind", "Lexer"]

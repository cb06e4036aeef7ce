"""Scanner mixins for the Ruby lexer.

Each scanner handles one family of lexemes:
- LiteralScannerMixin: strings, regexes, percent literals, heredocs,
  embedded documents (skipped whole)
- WordScannerMixin: identifiers, constants and keywords, including the
  block stack that classifies `end`
"""

from tagscan.lexer.scanners.literals import LiteralScannerMixin
from tagscan.lexer.scanners.words import WordScannerMixin

__all__ = [
    "LiteralScannerMixin",
    "WordScannerMixin",
]

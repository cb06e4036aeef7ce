"""Source location tracking for error messages and query output.

Thread Safety:
SourceLocation is frozen (immutable) and safe to share across threads.

"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Source location of a token or entity.

    All positions are 1-indexed (lineno and col_offset start at 1).
    Synthesized tokens use 0 for both.

    Examples:
            >>> loc = SourceLocation(lineno=3, col_offset=1, source_file="foo.rb")
            >>> str(loc)
            'foo.rb:3:1'

    """

    lineno: int
    col_offset: int
    source_file: str | None = None

    def __str__(self) -> str:
        """Format location for error messages.

        Returns:
            Formatted string like "file.rb:10:5" or "10:5"
        """
        if self.source_file:
            return f"{self.source_file}:{self.lineno}:{self.col_offset}"
        return f"{self.lineno}:{self.col_offset}"

    @classmethod
    def unknown(cls) -> SourceLocation:
        """Create an unknown/placeholder location.

        Use for synthesized tokens and entities that were never named.
        """
        return cls(lineno=0, col_offset=0)

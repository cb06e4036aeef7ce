"""Exception classes for tagscan.

Provides standardized exceptions for error handling throughout tagscan.
"""

from __future__ import annotations

from typing import Any


def _format_location(
    lineno: int | None,
    col_offset: int | None,
    source_file: str | None,
) -> str:
    location = ""
    if source_file:
        location = f"{source_file}:"
    if lineno:
        location += f"{lineno}:"
        if col_offset:
            location += f"{col_offset}:"
    if location:
        location = location.rstrip(":") + " "
    return location


class TagscanError(Exception):
    """Base exception for all tagscan errors.

    Subclass this for specific error categories.
    """

    pass


class StateMachineDefinitionError(TagscanError):
    """Error in a state machine declaration.

    Raised when an event references an undeclared state, or an event
    is declared twice.
    """

    pass


class IllegalStateTransition(TagscanError):
    """Attempted transition that the state graph does not allow.

    Raised synchronously at the point of the invalid mutation: naming an
    entity twice, tagging or naming a closed entity, or triggering an event
    with no legal predecessor state.
    """

    def __init__(
        self,
        event: str,
        status: Any,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> None:
        """Initialize transition error.

        Args:
            event: Name of the event that was triggered
            status: Status the machine was in when the event was triggered
            lineno: Line of the offending token (optional)
            col_offset: Column of the offending token (optional)
            source_file: Path to source file (optional)
        """
        self.event = event
        self.status = status
        self.lineno = lineno
        self.col_offset = col_offset
        self.source_file = source_file

        status_name = getattr(status, "value", status)
        location = _format_location(lineno, col_offset, source_file)
        super().__init__(
            f"{location}Invalid transition: cannot transition via "
            f"{event} from {status_name}"
        )

    def with_location(
        self,
        lineno: int | None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> IllegalStateTransition:
        """Return a copy of this error annotated with a source location."""
        return type(self)(
            self.event,
            self.status,
            lineno=lineno,
            col_offset=col_offset,
            source_file=source_file,
        )


class FrozenEntityError(IllegalStateTransition):
    """Write to a closed (frozen) entity.

    Closed entities are immutable; any attribute assignment fails.
    """

    def __init__(
        self,
        event: str,
        status: Any,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> None:
        super().__init__(event, status, lineno, col_offset, source_file)
        self.args = (f"Cannot modify closed entity ({event})",)


class ScanCancelled(TagscanError):
    """Scan aborted between tokens by a cancellation check."""

    def __init__(self, tokens_consumed: int) -> None:
        self.tokens_consumed = tokens_consumed
        super().__init__(f"Scan cancelled after {tokens_consumed} tokens")


class LexError(TagscanError):
    """Error during lexing of Ruby source.

    Only raised by a strict lexer, on unterminated constructs at end of input.
    """

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> None:
        """Initialize lex error with optional location.

        Args:
            message: Error description
            lineno: Line number where error occurred (1-indexed)
            col_offset: Column offset where error occurred (1-indexed)
            source_file: Path to source file (optional)
        """
        self.message = message
        self.lineno = lineno
        self.col_offset = col_offset
        self.source_file = source_file
        location = _format_location(lineno, col_offset, source_file)
        super().__init__(f"{location}{message}")

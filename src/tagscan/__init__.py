"""
tagscan: tag extraction from Ruby source comments

Pulls `@key: value` tag comments out of Ruby source and attaches each one to
the module, class or method it documents. Every lexical scope is tracked by
a small finite state machine, so the result is a flat list of entities with
fully-qualified names and tag sets.

Quick Start:
    >>> from tagscan import scan
    >>> result = scan('''
    ... # @domain: Billing
    ... module Invoices
    ...   # @owner: payments-team
    ...   class Ledger
    ...   end
    ... end
    ... ''')
    >>> ledger = result.find("Ledger")
    >>> ledger.fqn, ledger.tags
    ('Invoices::Ledger', {'owner': frozenset({'payments-team'})})

Restricting tag names:
    >>> result = scan(source, only_tags={"domain"})
    >>> # or process-wide
    >>> from tagscan import configure
    >>> configure(only_tags={"domain", "owner"})

Installation:
    pip install tagscan              # Zero runtime dependencies
"""

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import replace

from tagscan.config import (
    ScanConfig,
    configure,
    get_scan_config,
    reset_scan_config,
    scan_config_context,
    set_scan_config,
)
from tagscan.entity import EntityArena, EntityStatus, EntityType, TaggableEntity
from tagscan.errors import (
    FrozenEntityError,
    IllegalStateTransition,
    LexError,
    ScanCancelled,
    StateMachineDefinitionError,
    TagscanError,
)
from tagscan.fsm import StateMachine, StateMachineMixin, Transition
from tagscan.lexer import Lexer
from tagscan.location import SourceLocation
from tagscan.profiling import ScanAccumulator, get_scan_accumulator, profiled_scan
from tagscan.scanner import Scanner, ScanResult
from tagscan.serialization import to_dict, to_json
from tagscan.tokens import ConstructType, KeywordClass, LexicalToken, TokenKind

__version__ = "0.1.0"


def _resolve_config(
    only_tags: Iterable[str] | None,
    on_error: str | None,
) -> ScanConfig:
    """Active config with per-call overrides applied."""
    config = get_scan_config()
    changes: dict[str, object] = {}
    if only_tags is not None:
        changes["only_tags"] = frozenset(only_tags)
    if on_error is not None:
        changes["on_error"] = on_error
    return replace(config, **changes) if changes else config


def scan_tokens(
    tokens: Iterable[LexicalToken],
    *,
    source_file: str | None = None,
    only_tags: Iterable[str] | None = None,
    on_error: str | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> ScanResult:
    """Scan an already-classified token stream.

    Args:
        tokens: Token stream, consumed once
        source_file: Optional source file path for errors and results
        only_tags: Allow-list override for this scan (empty accepts all)
        on_error: "raise" or "skip" override for this scan
        should_cancel: Checked between tokens; True aborts with ScanCancelled

    Returns:
        ScanResult with every entity created, open or closed
    """
    config = _resolve_config(only_tags, on_error)
    scanner = Scanner(
        tokens,
        config=config,
        source_file=source_file,
        should_cancel=should_cancel,
    )
    return scanner.scan()


def scan(
    source: str,
    *,
    source_file: str | None = None,
    only_tags: Iterable[str] | None = None,
    on_error: str | None = None,
    strict: bool = False,
    should_cancel: Callable[[], bool] | None = None,
) -> ScanResult:
    """Scan Ruby source text for tagged modules, classes and methods.

    Args:
        source: Ruby source text
        source_file: Optional source file path for errors and results
        only_tags: Allow-list override for this scan (empty accepts all)
        on_error: "raise" or "skip" override for this scan
        strict: Raise LexError on unterminated literals
        should_cancel: Checked between tokens; True aborts with ScanCancelled

    Returns:
        ScanResult with every entity created, open or closed

    Example:
        >>> result = scan("# @domain: Billing\\nmodule Invoices\\nend\\n")
        >>> [e.name for e in result.tagged()]
        ['Invoices']
    """
    tokens = Lexer(source, source_file, strict=strict).tokenize()
    return scan_tokens(
        tokens,
        source_file=source_file,
        only_tags=only_tags,
        on_error=on_error,
        should_cancel=should_cancel,
    )


def scan_many(
    sources: Iterable[str],
    *,
    max_workers: int | None = None,
    only_tags: Iterable[str] | None = None,
    on_error: str | None = None,
) -> list[ScanResult]:
    """Scan independent sources in parallel.

    Worker threads start with a fresh context, so each scan runs in a copy
    of the caller's context. The active configuration is resolved once
    here and the active profiling accumulator records every scan.

    Returns:
        One ScanResult per source, in input order
    """
    config = _resolve_config(only_tags, on_error)

    def _scan_one(source: str) -> ScanResult:
        return Scanner(Lexer(source).tokenize(), config=config).scan()

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(copy_context().run, _scan_one, source) for source in sources]
        return [future.result() for future in futures]


__all__ = [
    # Main API
    "scan",
    "scan_many",
    "scan_tokens",
    "Lexer",
    "Scanner",
    "ScanResult",
    # Entities
    "EntityArena",
    "EntityStatus",
    "EntityType",
    "TaggableEntity",
    # State machines
    "StateMachine",
    "StateMachineMixin",
    "Transition",
    # Tokens
    "ConstructType",
    "KeywordClass",
    "LexicalToken",
    "TokenKind",
    "SourceLocation",
    # Configuration
    "ScanConfig",
    "configure",
    "get_scan_config",
    "reset_scan_config",
    "scan_config_context",
    "set_scan_config",
    # Errors
    "FrozenEntityError",
    "IllegalStateTransition",
    "LexError",
    "ScanCancelled",
    "StateMachineDefinitionError",
    "TagscanError",
    # Profiling
    "ScanAccumulator",
    "get_scan_accumulator",
    "profiled_scan",
    # Serialization
    "to_dict",
    "to_json",
    # Version
    "__version__",
]

"""Single-pass scan driver.

Consumes a token stream and drives the current TaggableEntity, replacing it
with whatever entity each reaction returns. Every entity constructed along
the way lands in the scan's arena, open or closed.

Thread Safety:
Scanner instances are single-use and not thread-safe. Create one per token
stream. Independent scans share no mutable state and may run in parallel;
configuration is read from a ContextVar (thread-local).

"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from tagscan.config import ScanConfig, get_scan_config, scan_config_context
from tagscan.entity import EntityArena, EntityStatus, TaggableEntity
from tagscan.errors import IllegalStateTransition, ScanCancelled
from tagscan.profiling import get_scan_accumulator
from tagscan.tokens import KeywordClass, LexicalToken, TokenKind
from tagscan.utils.logger import get_logger

logger = get_logger(__name__)

# Token kind -> reaction method on the current entity
_REACTIONS: dict[TokenKind, str] = {
    TokenKind.COMMENT: "react_to_comment",
    TokenKind.KEYWORD: "react_to_keyword",
    TokenKind.IDENTIFIER: "react_to_name_candidate",
    TokenKind.CONSTANT: "react_to_name_candidate",
}

# Statuses an entity can be left in when a scope end passes it by
_UNNAMED_OPEN = frozenset({EntityStatus.PENDING, EntityStatus.TAGGED})


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Every entity produced by one scan, in construction order.

    Attributes:
        entities: All entities, including unnamed and still-open ones
        source_file: Source file path, if known
        token_count: Number of tokens consumed
        skipped_tokens: Tokens skipped under the "skip" error policy

    """

    entities: tuple[TaggableEntity, ...]
    source_file: str | None = None
    token_count: int = 0
    skipped_tokens: int = 0

    def __iter__(self) -> Iterator[TaggableEntity]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)

    def named(self) -> list[TaggableEntity]:
        """Entities that received a name."""
        return [entity for entity in self.entities if entity.is_named]

    def find(self, name: str) -> TaggableEntity | None:
        """First entity with the given (short) name."""
        return next((e for e in self.entities if e.name == name), None)

    def find_all(self, name: str) -> list[TaggableEntity]:
        """All entities with the given (short) name."""
        return [e for e in self.entities if e.name == name]

    def find_fqn(self, fqn: str) -> TaggableEntity | None:
        """Entity with the given fully-qualified name."""
        return next((e for e in self.entities if e.fqn == fqn), None)

    def with_tag(self, tag_name: str, value: str | None = None) -> list[TaggableEntity]:
        """Entities carrying `tag_name` (with `value`, if given)."""
        return [e for e in self.entities if e.has_tag(tag_name, value)]

    def tagged(self) -> list[TaggableEntity]:
        """Entities with at least one tag."""
        return [e for e in self.entities if e.tags]

    def open_entities(self) -> list[TaggableEntity]:
        """Entities never closed by the end of the stream."""
        return [e for e in self.entities if not e.is_closed]


class Scanner:
    """Drives one left-to-right pass over a token stream.

    Usage:
            >>> tokens = [
            ...     LexicalToken.comment("# @domain: Billing"),
            ...     LexicalToken.keyword("module"),
            ...     LexicalToken.constant("Invoices"),
            ...     LexicalToken.keyword("end"),
            ... ]
            >>> result = Scanner(tokens).scan()
            >>> result.find("Invoices").tags
            {'domain': frozenset({'Billing'})}

    Root closure:
        Closing a root scope leaves no current entity. The scanner then
        starts a fresh detached root, so files with several top-level
        constructs scan completely.

    Errors:
        With on_error="raise" (default) the first IllegalStateTransition
        aborts the scan, annotated with the offending token's location.
        With on_error="skip" the token is logged and skipped; the current
        entity stays in place. A scope end that an unnamed child cannot
        take is passed to the child's parent instead, leaving the child
        open.

    """

    __slots__ = (
        "_tokens",
        "_config",
        "_source_file",
        "_should_cancel",
        "_arena",
        "_current",
        "_consumed",
        "_skipped",
        "_done",
    )

    def __init__(
        self,
        tokens: Iterable[LexicalToken],
        *,
        config: ScanConfig | None = None,
        source_file: str | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize scanner.

        Args:
            tokens: Token stream (consumed once)
            config: Scan configuration; defaults to the active ScanConfig
            source_file: Optional source file path for errors and results
            should_cancel: Checked between tokens; returning True aborts
                the scan with ScanCancelled
        """
        self._tokens = tokens
        self._config = config if config is not None else get_scan_config()
        self._source_file = source_file
        self._should_cancel = should_cancel
        self._arena = EntityArena()
        self._current: TaggableEntity = self._new_root()
        self._consumed = 0
        self._skipped = 0
        self._done = False

    @property
    def current(self) -> TaggableEntity:
        """The entity currently receiving tokens."""
        return self._current

    def scan(self) -> ScanResult:
        """Consume the token stream and return every entity created.

        Raises:
            IllegalStateTransition: Under the "raise" policy.
            ScanCancelled: When should_cancel returns True between tokens.
            RuntimeError: If called twice.
        """
        if self._done:
            raise RuntimeError("Scanner instances are single-use")
        self._done = True

        with scan_config_context(self._config):
            for token in self._tokens:
                if self._should_cancel is not None and self._should_cancel():
                    raise ScanCancelled(self._consumed)
                self._feed(token)

        result = ScanResult(
            entities=self._arena.snapshot(),
            source_file=self._source_file,
            token_count=self._consumed,
            skipped_tokens=self._skipped,
        )
        logger.debug(
            "Scanned %s: %d tokens, %d entities",
            self._source_file or "<tokens>",
            self._consumed,
            len(result),
        )

        acc = get_scan_accumulator()
        if acc is not None:
            acc.record_scan(
                token_count=self._consumed,
                entity_count=len(result),
                skipped_tokens=self._skipped,
            )
        return result

    def _feed(self, token: LexicalToken) -> None:
        """Dispatch one token to the current entity and move the pointer."""
        self._consumed += 1
        while True:
            reaction = getattr(self._current, _REACTIONS[token.kind])
            try:
                receiver = reaction(token)
            except IllegalStateTransition as exc:
                if self._config.on_error == "raise":
                    raise exc.with_location(
                        token.lineno or None,
                        token.col or None,
                        self._source_file,
                    ) from exc
                if self._hand_end_to_parent(token):
                    continue
                self._skipped += 1
                logger.warning(
                    "%s:%d: skipping %r: %s",
                    self._source_file or "<tokens>",
                    token.lineno,
                    token.text,
                    exc,
                )
                return
            break

        if receiver is None:
            logger.debug("Root scope closed at line %d; starting a new root", token.lineno)
            receiver = self._new_root()
        self._current = receiver

    def _hand_end_to_parent(self, token: LexicalToken) -> bool:
        """Leave an unnamed entity open and move a scope end to its parent.

        A tag comment that documents nothing leaves a PENDING or TAGGED
        child as the current entity. The `end` that follows belongs to the
        enclosing scope, so it is re-dispatched there instead of skipped.
        """
        current = self._current
        parent = current.parent
        if (
            parent is None
            or token.kind is not TokenKind.KEYWORD
            or token.keyword_class is not KeywordClass.SCOPE_END
            or current.status not in _UNNAMED_OPEN
        ):
            return False
        logger.warning(
            "%s:%d: leaving %s entity %d open; 'end' closes its parent",
            self._source_file or "<tokens>",
            token.lineno,
            current.status.value,
            current.id,
        )
        self._current = parent
        return True

    def _new_root(self) -> TaggableEntity:
        return TaggableEntity(arena=self._arena)

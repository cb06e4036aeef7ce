"""Taggable entities: one node per lexical scope.

A TaggableEntity follows the state changes of a module, class or method as
tokens arrive. Each reaction returns the entity that should receive the next
token: itself, a freshly spawned child (a new nesting level), or its parent
(the scope just closed).

Lifecycle:
    PENDING --tag--> TAGGED
    PENDING --await_name--> AWAITING_NAME
    TAGGED --await_name--> AWAITING_NAME
    AWAITING_NAME --name--> NAMED
    NAMED --close--> CLOSED

CLOSED is terminal. Closing freezes the entity: every later write fails.

Thread Safety:
Entities belong to the scan that created them and are not thread-safe.
Closed entities are immutable and safe to share.

"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from itertools import count
from typing import TYPE_CHECKING, Any

from tagscan.config import get_scan_config
from tagscan.errors import FrozenEntityError, IllegalStateTransition
from tagscan.fsm import StateMachine, StateMachineMixin
from tagscan.location import SourceLocation
from tagscan.tokens import ConstructType, KeywordClass, LexicalToken
from tagscan.utils.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection

logger = get_logger(__name__)


class EntityStatus(Enum):
    """States of a TaggableEntity, in declaration order (first is initial)."""

    PENDING = "pending"
    TAGGED = "tagged"
    AWAITING_NAME = "awaiting_name"
    NAMED = "named"
    CLOSED = "closed"


class EntityType(Enum):
    """Kind of construct an entity represents."""

    MODULE = "module"
    CLASS = "class"
    METHOD = "method"
    INSTANCE_METHOD = "instance_method"
    NONE = "none"


# Statuses that represent an open lexical scope
OPEN_STATUSES = frozenset(
    {EntityStatus.TAGGED, EntityStatus.AWAITING_NAME, EntityStatus.NAMED}
)

_NAMED_STATUSES = frozenset({EntityStatus.NAMED, EntityStatus.CLOSED})

ENTITY_STATE_MACHINE = (
    StateMachine(EntityStatus)
    .event("tag", (EntityStatus.PENDING, EntityStatus.TAGGED))
    .event(
        "await_name",
        (EntityStatus.PENDING, EntityStatus.AWAITING_NAME),
        (EntityStatus.TAGGED, EntityStatus.AWAITING_NAME),
    )
    .event("name", (EntityStatus.AWAITING_NAME, EntityStatus.NAMED))
    .event("close", (EntityStatus.NAMED, EntityStatus.CLOSED))
)

# Identifiers that look like names after a new-scope keyword but are calls
IGNORED_NAME_CANDIDATES = frozenset(
    {
        "require",
        "require_relative",
        "include",
        "extend",
        "prepend",
        "private",
        "protected",
        "public",
        "module_function",
        "class_eval",
        "instance_eval",
        "define_method",
    }
)

NAMESPACE_SEPARATOR = "::"
INSTANCE_METHOD_SEPARATOR = "#"

_CONSTRUCT_ENTITY_TYPES: dict[ConstructType, EntityType] = {
    ConstructType.MODULE: EntityType.MODULE,
    ConstructType.CLASS: EntityType.CLASS,
    ConstructType.METHOD: EntityType.METHOD,
    ConstructType.INSTANCE_METHOD: EntityType.INSTANCE_METHOD,
}

# Standalone entities (no arena) still need distinct ids
_standalone_ids = count(-1, -1)


class EntityArena:
    """Append-only store of every entity created during one scan.

    Entities register themselves at construction; their id is their index.
    Nothing is ever removed, so entities left open at end of stream are
    still queryable.

    """

    __slots__ = ("_entities",)

    def __init__(self) -> None:
        self._entities: list[TaggableEntity] = []

    def register(self, entity: TaggableEntity) -> int:
        """Append an entity and return its id."""
        self._entities.append(entity)
        return len(self._entities) - 1

    def __getitem__(self, entity_id: int) -> TaggableEntity:
        return self._entities[entity_id]

    def __iter__(self) -> Iterator[TaggableEntity]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def snapshot(self) -> tuple[TaggableEntity, ...]:
        """All entities so far, in construction order."""
        return tuple(self._entities)


class TaggableEntity(StateMachineMixin):
    """A tracked lexical scope that accumulates tags.

    Entities start PENDING, become TAGGED when a tag comment documents them,
    AWAITING_NAME when their construct keyword arrives, NAMED on the next
    name candidate and CLOSED on the matching scope end.

    A NAMED entity that sees another tag comment or construct keyword spawns
    a child: the comment or keyword documents the next nested construct,
    not the current one.

    Usage:
            >>> root = TaggableEntity()
            >>> root.react_to_comment(LexicalToken.comment("# @domain: Billing"))
            <TaggableEntity id=... status=tagged name=None>
            >>> _ = root.react_to_keyword(LexicalToken.keyword("module"))
            >>> _ = root.react_to_name_candidate(LexicalToken.constant("Invoices"))
            >>> root.fqn, root.tags
            ('Invoices', {'domain': frozenset({'Billing'})})

    """

    __slots__ = (
        "id",
        "_name",
        "_parent",
        "_tags",
        "_status",
        "_type",
        "_arena",
        "_location",
        "_frozen",
    )

    state_machine = ENTITY_STATE_MACHINE

    def __init__(
        self,
        parent: TaggableEntity | None = None,
        *,
        arena: EntityArena | None = None,
    ) -> None:
        """Create an entity and register it with its scan's arena.

        Args:
            parent: Enclosing entity, or None for a root
            arena: Arena to register in (children inherit the parent's)
        """
        super().__init__()
        self._frozen = False
        self._name: str | None = None
        self._parent = parent
        self._tags: dict[str, set[str]] = {}
        self._type = EntityType.NONE
        self._location = SourceLocation.unknown()
        if arena is None and parent is not None:
            arena = parent._arena
        self._arena = arena
        self.id = arena.register(self) if arena is not None else next(_standalone_ids)

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise FrozenEntityError(f"set {key}", self._status)
        object.__setattr__(self, key, value)

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def parent(self) -> TaggableEntity | None:
        return self._parent

    @property
    def type(self) -> EntityType:
        return self._type

    @property
    def location(self) -> SourceLocation:
        """Where the entity was named (unknown until then)."""
        return self._location

    @property
    def lineno(self) -> int:
        """Line of the token that named the entity (0 if unnamed)."""
        return self._location.lineno

    @property
    def tags(self) -> dict[str, frozenset[str]]:
        """Tag name -> values. A copy; mutating it has no effect."""
        return {tag: frozenset(values) for tag, values in self._tags.items()}

    def has_tag(self, tag_name: str, value: str | None = None) -> bool:
        """Whether the entity carries `tag_name` (with `value`, if given)."""
        values = self._tags.get(tag_name)
        if not values:
            return False
        return value is None or value in values

    @property
    def is_named(self) -> bool:
        """True once a name has been assigned (NAMED or CLOSED)."""
        return self._status in _NAMED_STATUSES

    @property
    def is_open(self) -> bool:
        """Have we opened a lexical scope (as opposed to sitting in comments
        before the construct)?"""
        return self._status in OPEN_STATUSES

    @property
    def is_closed(self) -> bool:
        return self._status is EntityStatus.CLOSED

    @property
    def is_module(self) -> bool:
        """True for namespaces (modules and classes)."""
        return self._type in (EntityType.MODULE, EntityType.CLASS)

    @property
    def fqn(self) -> str | None:
        """The fully-qualified name (e.g. "Foo::Bar" or "Foo::Bar#baz").

        None until the entity is named.
        """
        if not self.is_named:
            return None
        if self._parent is None:
            return self._name

        parent_segments = self._parent._fqn_segments()
        if not parent_segments:
            return self._name
        prefix = NAMESPACE_SEPARATOR.join(parent_segments)
        if self._type is EntityType.INSTANCE_METHOD:
            return f"{prefix}{INSTANCE_METHOD_SEPARATOR}{self._name}"
        return f"{prefix}{NAMESPACE_SEPARATOR}{self._name}"

    fully_qualified_name = fqn

    def _fqn_segments(self) -> list[str]:
        segments = self._parent._fqn_segments() if self._parent is not None else []
        if self._name is not None:
            segments.append(self._name)
        return segments

    # =========================================================================
    # Guarded mutators
    # =========================================================================

    def tag(self, tag_name: str, tag_value: str) -> None:
        """Attach a tag value, triggering the `tag` event.

        Raises:
            IllegalStateTransition: Unless PENDING or TAGGED.
        """
        self.trigger("tag")
        self._tags.setdefault(tag_name, set()).add(tag_value)

    def await_name(self, construct_type: ConstructType | None = None) -> None:
        """Enter AWAITING_NAME, recording the construct type.

        Raises:
            IllegalStateTransition: Unless PENDING, TAGGED or AWAITING_NAME.
        """
        self.trigger("await_name")
        if construct_type is not None:
            self._type = _CONSTRUCT_ENTITY_TYPES[construct_type]

    def assign_name(self, name: str, location: SourceLocation | None = None) -> None:
        """Set the name. Names are write-once.

        Raises:
            IllegalStateTransition: Unless AWAITING_NAME.
        """
        if self._status is not EntityStatus.AWAITING_NAME:
            raise IllegalStateTransition("name", self._status)
        self.trigger("name")
        self._name = name
        if location is not None:
            self._location = location

    def close(self) -> None:
        """Close the scope and freeze the entity.

        Closing an already closed entity is a no-op.

        Raises:
            IllegalStateTransition: Unless NAMED or CLOSED.
        """
        if self._frozen:
            return
        self.trigger("close")
        self._tags = {tag: frozenset(values) for tag, values in self._tags.items()}  # type: ignore[misc]
        self._frozen = True
        logger.debug("Closed %s", self.fqn)

    def _set_status(self, status: Any) -> None:
        if self._frozen:
            raise FrozenEntityError("set status", self._status)
        self._status = status

    def build_child(self) -> TaggableEntity:
        """Spawn a child entity one nesting level down."""
        child = type(self)(parent=self)
        logger.debug("Entity %s spawned child %s", self.id, child.id)
        return child

    # =========================================================================
    # Token reactions
    # =========================================================================

    def react_to_comment(
        self,
        token: LexicalToken,
        only_tags: Collection[str] | None = None,
    ) -> TaggableEntity:
        """React to a comment token.

        A tag comment documents the next construct: when this entity is
        already NAMED the tag goes to a new child, otherwise to this entity.

        Args:
            token: Comment token
            only_tags: Allow-list override; defaults to the active ScanConfig

        Returns:
            The entity that receives subsequent tokens.
        """
        if not token.is_tag_comment:
            return self

        tag_name, tag_value = token.tag_name or "", token.tag_value or ""
        receiver = self.build_child() if self.is_state(EntityStatus.NAMED) else self

        if only_tags is None:
            accepted = get_scan_config().accepts_tag(tag_name)
        else:
            accepted = not only_tags or tag_name in only_tags

        # A dropped tag still moves the receiver, but leaves it PENDING
        if accepted:
            receiver.tag(tag_name, tag_value)
        else:
            logger.debug("Dropped tag %r (not in allow-list)", tag_name)
        return receiver

    def react_to_keyword(self, token: LexicalToken) -> TaggableEntity | None:
        """React to a keyword token.

        Returns:
            The entity that receives subsequent tokens; None when a root
            scope closed and there is no enclosing entity.
        """
        handler_name = _KEYWORD_HANDLERS.get(token.keyword_class)
        if handler_name is None:
            return self
        handler = getattr(self, handler_name)
        return handler(token)

    def _on_new_scope(self, token: LexicalToken) -> TaggableEntity:
        receiver = self.build_child() if self.is_state(EntityStatus.NAMED) else self
        receiver.await_name(token.construct_type)
        return receiver

    def _on_scope_end(self, token: LexicalToken) -> TaggableEntity | None:
        self.close()
        return self._parent

    def react_to_name_candidate(self, token: LexicalToken) -> TaggableEntity:
        """React to an identifier or constant token.

        The first candidate after a construct keyword names the entity.
        Pseudo-identifiers such as `require` or `private` never do.
        """
        if token.text in IGNORED_NAME_CANDIDATES:
            return self
        if self.is_state(EntityStatus.NAMED):
            return self
        if not self.is_state(EntityStatus.AWAITING_NAME):
            return self

        self.assign_name(token.text, token.location)
        return self

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} status={self._status.value} "
            f"name={self._name!r}>"
        )


_KEYWORD_HANDLERS: dict[KeywordClass | None, str] = {
    KeywordClass.NEW_SCOPE: "_on_new_scope",
    KeywordClass.SCOPE_END: "_on_scope_end",
}

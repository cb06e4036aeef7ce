"""Declarative finite state machines.

A StateMachine declares a state graph once, at class-definition time.
StateMachineMixin enforces it on each instance of the adopting class.

Example:
    >>> from enum import Enum
    >>> class Door(Enum):
    ...     OPEN = "open"
    ...     SHUT = "shut"
    >>> class Gate(StateMachineMixin):
    ...     state_machine = (
    ...         StateMachine(Door)
    ...         .event("shut", (Door.OPEN, Door.SHUT))
    ...         .event("open", (Door.SHUT, Door.OPEN))
    ...     )
    >>> gate = Gate()
    >>> gate.status
    <Door.OPEN: 'open'>
    >>> gate.trigger("shut")
    <Door.SHUT: 'shut'>
    >>> gate.trigger("shut")  # already there: no-op
    <Door.SHUT: 'shut'>

Thread Safety:
StateMachine definitions are immutable after declaration and may be
shared freely. Instances adopting the mixin are not thread-safe.

"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

from tagscan.errors import IllegalStateTransition, StateMachineDefinitionError
from tagscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Transition:
    """One (source -> target) rule of an event."""

    source: Hashable
    target: Hashable


class StateMachine:
    """A declared state graph.

    States are declared once, in order; the first declared state is the
    initial state of every instance. Events map a name to one or more
    transition rules, selected by the current state.

    """

    __slots__ = ("_states", "_events")

    def __init__(self, states: Iterable[Hashable]) -> None:
        """Declare the states of the machine.

        Args:
            states: An Enum class or any ordered iterable of states.
                The first state is the initial state.
        """
        self._states: tuple[Hashable, ...] = tuple(states)
        if not self._states:
            raise StateMachineDefinitionError("A state machine needs at least one state")
        if len(set(self._states)) != len(self._states):
            raise StateMachineDefinitionError("Duplicate state declared")
        self._events: dict[str, tuple[Transition, ...]] = {}

    def event(
        self,
        name: str,
        *transitions: tuple[Hashable, Hashable] | Transition,
    ) -> StateMachine:
        """Declare an event with its transition rules.

        Args:
            name: Event name
            *transitions: (source, target) pairs or Transition objects

        Returns:
            The machine itself, for chaining.

        Raises:
            StateMachineDefinitionError: On duplicate events, events without
                rules, or rules naming undeclared states.
        """
        if name in self._events:
            raise StateMachineDefinitionError(f"Event '{name}' already declared")
        if not transitions:
            raise StateMachineDefinitionError(f"Event '{name}' has no transitions")

        rules: list[Transition] = []
        for rule in transitions:
            if not isinstance(rule, Transition):
                source, target = rule
                rule = Transition(source, target)
            for state in (rule.source, rule.target):
                if state not in self._states:
                    raise StateMachineDefinitionError(
                        f"Event '{name}' references undeclared state {state!r}"
                    )
            rules.append(rule)

        self._events[name] = tuple(rules)
        return self

    @property
    def states(self) -> tuple[Hashable, ...]:
        """Declared states, in declaration order."""
        return self._states

    @property
    def initial(self) -> Hashable:
        """The first declared state."""
        return self._states[0]

    @property
    def events(self) -> dict[str, tuple[Transition, ...]]:
        """Declared events and their rules (copy)."""
        return dict(self._events)

    def transitions_for(self, event: str) -> tuple[Transition, ...]:
        """Rules of an event, or an empty tuple for unknown events."""
        return self._events.get(event, ())

    def may_trigger(self, event: str, status: Hashable) -> bool:
        """Whether `event` is permitted from `status`.

        A state is always permitted to "transition" into itself, so the
        target of any rule counts as well as its source.
        """
        return any(
            rule.source == status or rule.target == status
            for rule in self.transitions_for(event)
        )

    def next_state(self, event: str, status: Hashable) -> Hashable:
        """Resolve the state reached by triggering `event` from `status`.

        Returns:
            The matching rule's target, or `status` itself for the tolerated
            self-transition.

        Raises:
            IllegalStateTransition: If the event is not permitted.
        """
        if not self.may_trigger(event, status):
            raise IllegalStateTransition(event, status)
        for rule in self.transitions_for(event):
            if rule.source == status:
                return rule.target
        return status

    def __repr__(self) -> str:
        return f"StateMachine(states={len(self._states)}, events={sorted(self._events)})"


class StateMachineMixin:
    """Enforces a class-level StateMachine on each instance.

    Required Host Attributes:
        - state_machine: StateMachine (class attribute)

    Hosts using __slots__ must include "_status".

    """

    __slots__ = ()

    state_machine: ClassVar[StateMachine]
    _status: Any

    def __init__(self) -> None:
        self._status = self.state_machine.initial

    @property
    def status(self) -> Any:
        """Current state."""
        return self._status

    def is_state(self, state: Hashable) -> bool:
        """True iff the current status equals `state`."""
        return self._status == state

    def may_trigger(self, event: str) -> bool:
        """True iff `event` may be triggered from the current status."""
        return self.state_machine.may_trigger(event, self._status)

    def trigger(self, event: str) -> Any:
        """Trigger `event`, moving to the matching rule's target.

        Returns:
            The status after the event (unchanged for an idempotent
            self-transition).

        Raises:
            IllegalStateTransition: If no rule permits the event from the
                current status.
        """
        target = self.state_machine.next_state(event, self._status)
        if target != self._status:
            logger.debug(
                "%s: %s -> %s via %s",
                type(self).__name__,
                getattr(self._status, "name", self._status),
                getattr(target, "name", target),
                event,
            )
            self._set_status(target)
        return self._status

    def _set_status(self, status: Any) -> None:
        """Store a new status. Only called with a graph-approved target."""
        self._status = status

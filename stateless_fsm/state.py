"""
States, transitions and the condition/action contracts they invoke.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, Iterator, List, Mapping, Optional, Tuple

from typing_extensions import Protocol, runtime_checkable

from .context import E, S, StateContext
from .errors import StateMachineError

logger = logging.getLogger(__name__)


@runtime_checkable
class Condition(Protocol):
    """Guard predicate; must not mutate the context"""

    def is_satisfied(self, context: StateContext) -> bool:
        ...


@runtime_checkable
class Action(Protocol):
    """Side effect run when a transition is taken"""

    def execute(self, context: StateContext) -> None:
        ...


@dataclass(frozen=True)
class FunctionCondition:
    """Adapts a plain ``fn(context) -> bool`` to the Condition contract"""
    fn: Callable[[StateContext], bool]
    name: Optional[str] = None

    def is_satisfied(self, context: StateContext) -> bool:
        return bool(self.fn(context))


@dataclass(frozen=True)
class FunctionAction:
    """Adapts a plain ``fn(context)`` to the Action contract"""
    fn: Callable[[StateContext], Any]
    name: Optional[str] = None

    def execute(self, context: StateContext) -> None:
        self.fn(context)


def as_condition(obj: Any) -> Optional[Condition]:
    """Accept a Condition, a callable or None"""
    if obj is None or isinstance(obj, Condition):
        return obj
    if callable(obj):
        return FunctionCondition(obj, getattr(obj, '__name__', None))
    raise TypeError(f"Condition must be callable or define is_satisfied(), got {type(obj).__name__}")


def as_action(obj: Any) -> Optional[Action]:
    """Accept an Action, a callable or None"""
    if obj is None or isinstance(obj, Action):
        return obj
    if callable(obj):
        return FunctionAction(obj, getattr(obj, '__name__', None))
    raise TypeError(f"Action must be callable or define execute(), got {type(obj).__name__}")


def describe(obj: Any) -> str:
    """Readable label for a condition or action"""
    name = getattr(obj, 'name', None) or getattr(obj, '__name__', None)
    return name or type(obj).__name__


class TransitionType(Enum):
    """How a transition relates to its source state"""
    EXTERNAL = "external"  # Leaves the source state
    INTERNAL = "internal"  # Stays in the source state, only runs the action


@dataclass(frozen=True, eq=False)
class Transition(Generic[S, E]):
    """Edge from source to target, gated by an event and an optional condition"""
    source: "State[S, E]"
    target: "State[S, E]"
    event: E
    condition: Optional[Condition] = None
    action: Optional[Action] = None
    type: TransitionType = TransitionType.EXTERNAL

    def __post_init__(self):
        if self.type is TransitionType.INTERNAL and self.source is not self.target:
            raise StateMachineError(
                f"Internal transition source state '{self.source.id}' "
                f"and target state '{self.target.id}' must be same."
            )

    @property
    def is_unconditional(self) -> bool:
        return self.condition is None

    @property
    def edge(self) -> Tuple[S, S, E]:
        """Identity used to detect duplicate registrations"""
        return (self.source.id, self.target.id, self.event)

    def transit(self, context: StateContext, check_mode: bool = False) -> "State[S, E]":
        """
        Execute the action (unless in check mode) and return the target state.

        Args:
            context: Context built by the routing step
            check_mode: Only report the target, never run the action
        """
        if not check_mode and self.action is not None:
            self.action.execute(replace(context, target=self.target, event=self.event))
        return self.target

    def __repr__(self):
        guard = f" [{describe(self.condition)}]" if self.condition is not None else ""
        return f"Transition({self.source.id!r} -> {self.target.id!r} on {self.event!r}{guard})"


class State(Generic[S, E]):
    """
    A node of the graph with its outgoing transitions indexed by event.

    Transitions may only be added until freeze() is called by the builder;
    afterwards the table is a read-only mapping of tuples.
    """

    def __init__(self, state_id: S):
        self._id = state_id
        self._event_transitions: Mapping[E, Any] = {}
        self._frozen = False

    @property
    def id(self) -> S:
        return self._id

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_transition(self,
                       event: E,
                       target: "State[S, E]",
                       transition_type: TransitionType = TransitionType.EXTERNAL,
                       condition: Any = None,
                       action: Any = None) -> Transition:
        """Register an outgoing transition, preserving declaration order"""
        if self._frozen:
            raise StateMachineError(f"State {self._id!r} is frozen, can not add transitions")

        transition = Transition(
            source=self,
            target=target,
            event=event,
            condition=as_condition(condition),
            action=as_action(action),
            type=transition_type,
        )

        candidates: List[Transition] = self._event_transitions.setdefault(event, [])
        for existing in candidates:
            if existing.edge == transition.edge:
                raise StateMachineError(f"{transition!r} already exists, you can not add another one")
        candidates.append(transition)

        logger.debug(f"Added {transition!r}")
        return transition

    def get_event_transitions(self, event: E) -> Tuple[Transition, ...]:
        """Candidates for an event, in declaration order"""
        return tuple(self._event_transitions.get(event, ()))

    def get_all_transitions(self) -> List[Transition]:
        return [t for transitions in self._event_transitions.values() for t in transitions]

    @property
    def events(self) -> List[E]:
        return list(self._event_transitions)

    def ambiguous_events(self) -> Dict[E, int]:
        """Events with more than one unconditional transition, with their count"""
        result = {}
        for event, transitions in self._event_transitions.items():
            count = sum(1 for t in transitions if t.is_unconditional)
            if count > 1:
                result[event] = count
        return result

    def freeze(self) -> None:
        """Make the transition table read-only"""
        if self._frozen:
            return
        self._event_transitions = MappingProxyType(
            {event: tuple(transitions) for event, transitions in self._event_transitions.items()}
        )
        self._frozen = True

    def __iter__(self) -> Iterator[Transition]:
        return iter(self.get_all_transitions())

    def __repr__(self):
        return f"State({self._id!r})"


def display_name(value: Any) -> str:
    """Enum member name, or str() for anything else"""
    return getattr(value, 'name', None) or str(value)

"""
Core state machine engine: transition routing and execution.
"""

import logging
import threading
import time
from types import MappingProxyType
from typing import Any, Generic, List, Mapping, Optional, Sequence

from typing_extensions import final

from .callbacks import FailCallbackAdapter, as_fail_callback
from .context import E, Message, MessageLike, S, StateContext
from .errors import NotReadyError, StateMachineError, UnknownStateError
from .metrics import MachineMetrics
from .state import State, Transition, TransitionType, describe, display_name

logger = logging.getLogger(__name__)


@final
class StateMachine(Generic[S, E]):
    """
    A stateless state machine.

    The machine never stores a current state: callers pass the source state
    on every call and get the resulting state back. After the builder
    publishes it, nothing writes to the state table, so one instance can be
    shared by any number of threads without locking.

    Features:
    - Guarded transitions evaluated in declaration order
    - Unconditional transition used as the default when no guard matches
    - Routing misses reported through an injected fail callback
    - Optional Prometheus metrics
    """

    def __init__(self, state_map: Mapping[S, State[S, E]]):
        """
        Initialize an unbuilt state machine.

        Args:
            state_map: State id to State, as assembled by the builder
        """
        self._state_map: Mapping[S, State[S, E]] = MappingProxyType(dict(state_map))
        self._machine_id: Optional[str] = None
        self._fail_callback: FailCallbackAdapter = as_fail_callback(None)
        self._metrics: Optional[MachineMetrics] = None
        self._ready = False
        self._publish_lock = threading.Lock()

    def _publish(self,
                 machine_id: str,
                 fail_callback: Any = None,
                 metrics: Optional[MachineMetrics] = None):
        """Freeze the table and mark the machine ready; called once by the builder"""
        with self._publish_lock:
            if self._ready:
                raise StateMachineError(f"State machine '{self._machine_id}' is already built")

            for state in self._state_map.values():
                state.freeze()

            self._machine_id = machine_id
            self._fail_callback = as_fail_callback(fail_callback)
            self._metrics = metrics
            # Must be written last: readers only trust the other fields once ready
            self._ready = True

        logger.debug(f"State machine '{machine_id}' is ready with {len(self._state_map)} states")

    @property
    def machine_id(self) -> Optional[str]:
        return self._machine_id

    def get_machine_id(self) -> Optional[str]:
        return self._machine_id

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def states(self) -> List[S]:
        return list(self._state_map)

    def get_state(self, state_id: S) -> State[S, E]:
        """Look up a state, raising UnknownStateError if absent"""
        state = self._state_map.get(state_id)
        if state is None:
            raise UnknownStateError(state_id, self._machine_id)
        return state

    def verify(self, source_state_id: S, event: E) -> bool:
        """
        Check whether any transition is registered for an event.

        Conditions are not evaluated and actions are never run.
        """
        self._check_ready()
        source_state = self.get_state(source_state_id)
        return len(source_state.get_event_transitions(event)) > 0

    def fire_event(self, source_state_id: S, message: MessageLike) -> S:
        """
        Route an event from a source state and execute the selected transition.

        Returns:
            The target state id, or ``source_state_id`` unchanged when no
            transition was selected (the fail callback is invoked then).

        Raises:
            NotReadyError: The machine has not been built
            UnknownStateError: The source state is not in the table
        """
        self._check_ready()
        start = time.perf_counter()
        event = message.payload

        context = StateContext(message=message, source=self.get_state(source_state_id))
        transition = self._route_transition(context, event)

        if transition is None:
            logger.debug(f"There is no transition for {event!r} from {source_state_id!r} in '{self._machine_id}'")
            if self._metrics is not None:
                self._metrics.record_miss(self._machine_id, source_state_id, event)
            self._fail_callback.on_fail(source_state_id, event, message)
            return source_state_id

        target_id = transition.transit(context, check_mode=False).id

        logger.debug(f"{self._machine_id}: {source_state_id!r} -> {target_id!r} on {event!r}")
        if self._metrics is not None:
            self._metrics.record_transition(
                self._machine_id, source_state_id, target_id, event, time.perf_counter() - start
            )
        return target_id

    def fire(self, source_state_id: S, event: E, **headers) -> S:
        """Shortcut for fire_event with a Message built from an event and headers"""
        return self.fire_event(source_state_id, Message(payload=event, headers=headers))

    def peek(self, source_state_id: S, message: MessageLike) -> Optional[S]:
        """
        Report where an event would lead without running any action.

        Conditions are evaluated; the fail callback is not invoked.

        Returns:
            Target state id, or None if no transition would be selected.
        """
        self._check_ready()
        context = StateContext(message=message, source=self.get_state(source_state_id))
        transition = self._route_transition(context, message.payload)
        if transition is None:
            return None
        return transition.transit(context, check_mode=True).id

    def _route_transition(self, context: StateContext, event: E) -> Optional[Transition[S, E]]:
        """Pick the first satisfied guard, else the last unconditional transition"""
        transitions: Sequence[Transition[S, E]] = context.source.get_event_transitions(event)

        selected = None
        for transition in transitions:
            if transition.condition is None:
                selected = transition
            elif transition.condition.is_satisfied(context):
                selected = transition
                break

        return selected

    def _check_ready(self):
        if not self._ready:
            raise NotReadyError(self._machine_id)

    def visualize(self) -> str:
        """Generate state diagram in PlantUML format"""
        lines = ["@startuml", f"title {self._machine_id} State Machine", ""]

        for state_id in self._state_map:
            lines.append(f"state {display_name(state_id)}")

        lines.append("")

        for state in self._state_map.values():
            for trans in state.get_all_transitions():
                label = display_name(trans.event)
                if trans.condition is not None:
                    label += f" [{describe(trans.condition)}]"
                if trans.action is not None:
                    label += f" / {describe(trans.action)}"
                if trans.type is TransitionType.INTERNAL:
                    label += " (internal)"
                lines.append(
                    f"{display_name(trans.source.id)} --> {display_name(trans.target.id)} : {label}"
                )

        lines.append("@enduml")
        return "\n".join(lines)

    def __contains__(self, state_id: S) -> bool:
        return state_id in self._state_map

    def __repr__(self):
        status = "ready" if self._ready else "unbuilt"
        return f"StateMachine(id={self._machine_id!r}, states={len(self._state_map)}, {status})"

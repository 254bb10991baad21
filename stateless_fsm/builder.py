"""
Fluent builder that assembles and publishes an immutable state machine.
"""

import logging
import threading
from typing import Any, Dict, Generic, List, Optional

from .config import EngineConfig
from .context import E, S
from .core import StateMachine
from .errors import StateMachineError
from .factory import StateMachineFactory
from .metrics import MachineMetrics, default_metrics
from .state import State, TransitionType, as_action, as_condition

logger = logging.getLogger(__name__)

_UNSET = object()


class _TransitionBuilder:
    """Collects one declaration; materialized when the machine is built"""

    def __init__(self, owner: "StateMachineBuilder", transition_type: TransitionType):
        self._owner = owner
        self.transition_type = transition_type
        self.sources: List[Any] = []
        self.target: Any = _UNSET
        self.event: Any = _UNSET
        self.condition = None
        self.action = None

    def on(self, event):
        """Set the triggering event and register the declaration"""
        if self.event is not _UNSET:
            raise StateMachineError(f"Event already set to {self.event!r}")
        if not self.sources or self.target is _UNSET:
            raise StateMachineError("Source and target states must be set before on()")
        self.event = event
        self._owner._enqueue(self)
        return self

    def when(self, condition):
        """Guard the transition with a condition or ``fn(context) -> bool``"""
        self._owner._check_not_built()
        self.condition = as_condition(condition)
        return self

    def perform(self, action):
        """Run an action or ``fn(context)`` when the transition is taken"""
        self._owner._check_not_built()
        self.action = as_action(action)
        return self


class ExternalTransitionBuilder(_TransitionBuilder):

    def __init__(self, owner):
        super().__init__(owner, TransitionType.EXTERNAL)

    def from_(self, state_id):
        self.sources = [state_id]
        return self

    def to(self, state_id):
        self.target = state_id
        return self


class ExternalTransitionsBuilder(_TransitionBuilder):
    """Same event taking several source states to one target"""

    def __init__(self, owner):
        super().__init__(owner, TransitionType.EXTERNAL)

    def from_among(self, *state_ids):
        self.sources = list(state_ids)
        return self

    def to(self, state_id):
        self.target = state_id
        return self


class InternalTransitionBuilder(_TransitionBuilder):

    def __init__(self, owner):
        super().__init__(owner, TransitionType.INTERNAL)

    def within(self, state_id):
        self.sources = [state_id]
        self.target = state_id
        return self


class StateMachineBuilder(Generic[S, E]):
    """
    Mutable assembly phase of a state machine.

    Declarations are kept in call order, which becomes the candidate
    evaluation order of the built machine. build() is the only way to obtain
    a ready machine and may be called once.

    Example:
        builder = StateMachineBuilder()
        builder.external_transition().from_(NEW).to(PAID).on(PAY).when(is_paid)
        machine = builder.build("order")
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = config if config is not None else EngineConfig.from_env()
        self._state_ids: List[S] = []
        self._pending: List[_TransitionBuilder] = []
        self._fail_callback: Any = None
        self._built = False
        self._lock = threading.Lock()

    def external_transition(self) -> ExternalTransitionBuilder:
        return ExternalTransitionBuilder(self)

    def external_transitions(self) -> ExternalTransitionsBuilder:
        return ExternalTransitionsBuilder(self)

    def internal_transition(self) -> InternalTransitionBuilder:
        return InternalTransitionBuilder(self)

    def add_state(self, state_id: S) -> "StateMachineBuilder[S, E]":
        """Declare a state that may have no outgoing transitions"""
        self._check_not_built()
        if state_id not in self._state_ids:
            self._state_ids.append(state_id)
        return self

    def set_fail_callback(self, fail_callback: Any) -> "StateMachineBuilder[S, E]":
        self._check_not_built()
        self._fail_callback = fail_callback
        return self

    def _enqueue(self, declaration: _TransitionBuilder):
        self._check_not_built()
        for state_id in [*declaration.sources, declaration.target]:
            self.add_state(state_id)
        self._pending.append(declaration)

    def build(self,
              machine_id: str,
              *,
              register: bool = True,
              metrics: Optional[MachineMetrics] = None) -> StateMachine[S, E]:
        """
        Materialize all declarations and publish a ready machine.

        Args:
            machine_id: Identity label of the machine
            register: Register the machine in StateMachineFactory
            metrics: Prometheus metrics; defaults to the global registry
                when FSM_METRICS_ENABLED is set

        Raises:
            StateMachineError: On duplicate or ambiguous declarations, or if
                this builder was already used
        """
        with self._lock:
            self._check_not_built()

            state_map: Dict[S, State[S, E]] = {state_id: State(state_id) for state_id in self._state_ids}
            for declaration in self._pending:
                target = state_map[declaration.target]
                for source_id in declaration.sources:
                    state_map[source_id].add_transition(
                        declaration.event,
                        target,
                        declaration.transition_type,
                        declaration.condition,
                        declaration.action,
                    )

            self._check_ambiguous(machine_id, state_map)

            if metrics is None and self._config.metrics_enabled:
                metrics = default_metrics()

            machine = StateMachine(state_map)
            machine._publish(machine_id, self._fail_callback, metrics)
            self._built = True

        if register:
            StateMachineFactory.register(machine)

        logger.info(f"Built state machine '{machine_id}': {len(state_map)} states, "
                    f"{sum(len(d.sources) for d in self._pending)} transitions")
        return machine

    def _check_ambiguous(self, machine_id: str, state_map: Dict[S, State[S, E]]):
        """Several unconditional transitions per (state, event): the last one wins"""
        for state in state_map.values():
            for event, count in state.ambiguous_events().items():
                msg = (f"'{machine_id}': {count} unconditional transitions from {state.id!r} "
                       f"on {event!r}; only the last one can be selected")
                if self._config.strict:
                    raise StateMachineError(msg)
                logger.warning(msg)

    def _check_not_built(self):
        if self._built:
            raise StateMachineError("State machine is already built by this builder")

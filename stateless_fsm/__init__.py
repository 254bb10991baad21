"""
Stateless FSM

A stateless, thread-shareable finite state machine engine.
"""

__version__ = "0.1.0"

from .core import StateMachine
from .state import (
    State,
    Transition,
    TransitionType,
    Condition,
    Action,
)
from .context import Message, StateContext
from .builder import StateMachineBuilder
from .callbacks import (
    FailCallback,
    NumbFailCallback,
    LoggingFailCallback,
    AlertFailCallback,
)
from .errors import (
    StateMachineError,
    NotReadyError,
    UnknownStateError,
    TransitionFailError,
    DefinitionError,
)
from .factory import StateMachineFactory
from .metrics import MachineMetrics
from .parser import ActionRegistry, DefinitionParser
from .config import EngineConfig

__all__ = [
    "StateMachine",
    "State",
    "Transition",
    "TransitionType",
    "Condition",
    "Action",
    "Message",
    "StateContext",
    "StateMachineBuilder",
    "FailCallback",
    "NumbFailCallback",
    "LoggingFailCallback",
    "AlertFailCallback",
    "StateMachineError",
    "NotReadyError",
    "UnknownStateError",
    "TransitionFailError",
    "DefinitionError",
    "StateMachineFactory",
    "MachineMetrics",
    "ActionRegistry",
    "DefinitionParser",
    "EngineConfig",
]

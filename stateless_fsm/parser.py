"""
Build state machines from declarative YAML definitions.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type, Union

import yaml

from .builder import StateMachineBuilder
from .callbacks import AlertFailCallback, LoggingFailCallback, NumbFailCallback
from .config import EngineConfig
from .core import StateMachine
from .errors import DefinitionError
from .state import Action, Condition, FunctionAction, FunctionCondition

logger = logging.getLogger(__name__)


# Keys naming a transition's event, in lookup order
EVENT_KEYS = ('trigger', 'on', True)

_UNSET = object()

FAIL_CALLBACKS = {
    'numb': NumbFailCallback,
    'log': LoggingFailCallback,
    'alert': AlertFailCallback,
}


class ActionRegistry:
    """Maps names used in definitions to conditions and actions"""

    def __init__(self):
        self._conditions: Dict[str, Condition] = {}
        self._actions: Dict[str, Action] = {}

    def register_condition(self, name: str, fn: Callable[..., bool]) -> None:
        """Register a named condition. Overwrites if already registered."""
        self._conditions[name] = FunctionCondition(fn, name)

    def register_action(self, name: str, fn: Callable[..., Any]) -> None:
        """Register a named action. Overwrites if already registered."""
        self._actions[name] = FunctionAction(fn, name)

    def condition(self, name: str) -> Condition:
        try:
            return self._conditions[name]
        except KeyError:
            raise DefinitionError(f"Unknown condition '{name}'") from None

    def action(self, name: str) -> Action:
        try:
            return self._actions[name]
        except KeyError:
            raise DefinitionError(f"Unknown action '{name}'") from None

    def has_condition(self, name: str) -> bool:
        return name in self._conditions

    def has_action(self, name: str) -> bool:
        return name in self._actions

    def names(self) -> List[str]:
        return sorted(set(self._conditions) | set(self._actions))


class PermissiveRegistry(ActionRegistry):
    """Registry for tooling: unknown conditions hold, unknown actions only log"""

    def condition(self, name: str) -> Condition:
        if self.has_condition(name):
            return super().condition(name)
        return FunctionCondition(lambda context: True, name)

    def action(self, name: str) -> Action:
        if self.has_action(name):
            return super().action(name)

        def log_action(context):
            logger.info(f"Action '{name}': {context.source.id} -> {context.target.id} on {context.event}")

        return FunctionAction(log_action, name)


class DefinitionParser:
    """Parser for state machine definitions"""

    @staticmethod
    def from_file(filepath: Union[str, Path], registry: Optional[ActionRegistry] = None, **kwargs) -> StateMachine:
        """Load a state machine definition from a YAML file"""
        filepath = Path(filepath)

        try:
            with open(filepath, 'r') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise DefinitionError(f"Cannot read definition {filepath}: {e}") from e
        except yaml.YAMLError as e:
            raise DefinitionError(f"Invalid YAML in {filepath}: {e}") from e

        return DefinitionParser.from_dict(data, registry, **kwargs)

    @staticmethod
    def from_dict(data: Dict[str, Any],
                  registry: Optional[ActionRegistry] = None,
                  state_type: Optional[Type[Enum]] = None,
                  event_type: Optional[Type[Enum]] = None,
                  config: Optional[EngineConfig] = None,
                  fail_callback: Any = None,
                  **build_kwargs) -> StateMachine:
        """
        Build a state machine from a definition dictionary.

        Args:
            data: Parsed definition
            registry: Named conditions and actions
            state_type: Enum whose member names are the state ids
            event_type: Enum whose member names are the event ids
            config: Engine configuration passed to the builder
            fail_callback: Overrides the ``fail_callback`` key
            **build_kwargs: Forwarded to StateMachineBuilder.build()
        """
        if not isinstance(data, dict):
            raise DefinitionError("Definition must be a mapping")
        if 'machine_id' not in data:
            raise DefinitionError("Definition is missing 'machine_id'")

        registry = registry if registry is not None else ActionRegistry()
        builder = StateMachineBuilder(config)

        declared = None
        if 'states' in data:
            states = DefinitionParser._section(data, 'states')
            declared = [DefinitionParser._to_id(s, state_type, 'state') for s in states]
            for state_id in declared:
                builder.add_state(state_id)

        for index, trans_data in enumerate(DefinitionParser._section(data, 'transitions')):
            DefinitionParser._parse_transition(builder, trans_data, index, registry,
                                               state_type, event_type, declared)

        if fail_callback is None:
            fail_callback = DefinitionParser._parse_fail_callback(data.get('fail_callback'))
        builder.set_fail_callback(fail_callback)

        return builder.build(str(data['machine_id']), **build_kwargs)

    @staticmethod
    def _parse_transition(builder: StateMachineBuilder,
                          data: Dict[str, Any],
                          index: int,
                          registry: ActionRegistry,
                          state_type: Optional[Type[Enum]],
                          event_type: Optional[Type[Enum]],
                          declared: Optional[List[Any]]):
        """Parse transition definition"""
        if not isinstance(data, dict):
            raise DefinitionError(f"Transition #{index} must be a mapping")
        event = DefinitionParser._event_of(data)
        if event is _UNSET:
            raise DefinitionError(f"Transition #{index} is missing its 'trigger'")

        def state(value):
            state_id = DefinitionParser._to_id(value, state_type, 'state')
            if declared is not None and state_id not in declared:
                raise DefinitionError(f"Transition #{index} references undeclared state '{value}'")
            return state_id

        if 'within' in data:
            decl = builder.internal_transition().within(state(data['within']))
        elif 'from' in data and 'to' in data:
            sources = data['from'] if isinstance(data['from'], list) else [data['from']]
            if len(sources) == 1:
                decl = builder.external_transition().from_(state(sources[0]))
            else:
                decl = builder.external_transitions().from_among(*[state(s) for s in sources])
            decl.to(state(data['to']))
        else:
            raise DefinitionError(f"Transition #{index} needs 'from' and 'to', or 'within'")

        decl.on(DefinitionParser._to_id(event, event_type, 'event'))

        if data.get('when'):
            decl.when(registry.condition(data['when']))
        if data.get('perform'):
            decl.perform(registry.action(data['perform']))

    @staticmethod
    def _section(data: Dict[str, Any], key: str) -> List[Any]:
        """A list-valued section; absent or empty means no entries"""
        value = data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise DefinitionError(f"'{key}' must be a list, got {type(value).__name__}")
        return value

    @staticmethod
    def _event_of(data: Dict[str, Any]) -> Any:
        """Event of a transition entry; YAML 1.1 loads a bare ``on`` key as True"""
        for key in EVENT_KEYS:
            if key in data:
                return data[key]
        return _UNSET

    @staticmethod
    def _parse_fail_callback(name: Optional[str]):
        if name is None:
            return None
        try:
            return FAIL_CALLBACKS[name]()
        except KeyError:
            raise DefinitionError(
                f"Unknown fail_callback '{name}', expected one of {sorted(FAIL_CALLBACKS)}"
            ) from None

    @staticmethod
    def _to_id(value: Any, enum_type: Optional[Type[Enum]], kind: str):
        if enum_type is None:
            return str(value)
        try:
            return enum_type[str(value)]
        except KeyError:
            raise DefinitionError(f"Unknown {kind} '{value}' for {enum_type.__name__}") from None

"""
Exception hierarchy for the state machine engine.
"""

from typing import Any, Optional


class StateMachineError(Exception):
    """Base error; also raised for invalid machine configuration"""
    pass


class NotReadyError(StateMachineError):
    """State machine used before it was built"""

    def __init__(self, machine_id: Optional[str] = None):
        self.machine_id = machine_id
        name = f" '{machine_id}'" if machine_id else ""
        super().__init__(f"State machine{name} is not built yet, can not work")


class UnknownStateError(StateMachineError):
    """Source state is not part of the state table"""

    def __init__(self, state_id: Any, machine_id: Optional[str] = None):
        self.state_id = state_id
        self.machine_id = machine_id
        super().__init__(f"{state_id!r} is not found, please check state machine '{machine_id}'")


class TransitionFailError(StateMachineError):
    """No transition could be selected and the fail callback chose to raise"""

    def __init__(self, state_id: Any, event: Any):
        self.state_id = state_id
        self.event = event
        super().__init__(f"Cannot fire event [{event!r}] on current state [{state_id!r}]")


class DefinitionError(StateMachineError):
    """Malformed declarative state machine definition"""
    pass

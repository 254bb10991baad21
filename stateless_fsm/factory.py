"""
Process-wide registry of built state machines.
"""

import logging
import threading
from typing import TYPE_CHECKING, Dict, List

from .errors import StateMachineError

if TYPE_CHECKING:
    from .core import StateMachine

logger = logging.getLogger(__name__)


class StateMachineFactory:
    """Looks up built machines by machine id"""

    _machines: Dict[str, "StateMachine"] = {}
    _lock = threading.Lock()

    @classmethod
    def register(cls, machine: "StateMachine"):
        """Register a built machine; ids must be unique"""
        machine_id = machine.machine_id
        with cls._lock:
            existing = cls._machines.get(machine_id)
            if existing is not None and existing is not machine:
                raise StateMachineError(f"The state machine with id [{machine_id}] is already built, no need to build again")
            cls._machines[machine_id] = machine
        logger.info(f"Registered state machine '{machine_id}'")

    @classmethod
    def get(cls, machine_id: str) -> "StateMachine":
        with cls._lock:
            machine = cls._machines.get(machine_id)
        if machine is None:
            raise StateMachineError(f"There is no state machine with id [{machine_id}], please build it first")
        return machine

    @classmethod
    def remove(cls, machine_id: str) -> bool:
        """Unregister a machine; returns False if it was not registered"""
        with cls._lock:
            return cls._machines.pop(machine_id, None) is not None

    @classmethod
    def machine_ids(cls) -> List[str]:
        with cls._lock:
            return sorted(cls._machines)

    @classmethod
    def clear(cls):
        with cls._lock:
            cls._machines.clear()

"""
Per-call values handed to conditions and actions.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar, TYPE_CHECKING

from typing_extensions import Protocol, runtime_checkable

if TYPE_CHECKING:
    from .state import State

S = TypeVar('S')
E = TypeVar('E')
E_co = TypeVar('E_co', covariant=True)


@runtime_checkable
class MessageLike(Protocol[E_co]):
    """Anything carrying an event payload"""

    @property
    def payload(self) -> E_co:
        ...


@dataclass(frozen=True)
class Message(Generic[E]):
    """Event payload plus optional headers"""
    payload: E
    headers: Mapping[str, Any] = field(default_factory=dict)

    def get_header(self, name: str, default: Any = None) -> Any:
        return self.headers.get(name, default)


@dataclass(frozen=True)
class StateContext(Generic[S, E]):
    """
    Read-only bundle visible to conditions and actions.

    Created fresh for every fire_event call. ``target`` and ``event`` are
    only filled in for the context handed to an action.
    """
    message: MessageLike
    source: "State[S, E]"
    target: Optional["State[S, E]"] = None
    event: Optional[E] = None

    @property
    def payload(self) -> E:
        return self.message.payload

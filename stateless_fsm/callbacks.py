"""
Strategies invoked when no transition matches a (state, event) pair.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from typing_extensions import Protocol, runtime_checkable

from .errors import TransitionFailError

logger = logging.getLogger(__name__)


@runtime_checkable
class FailCallback(Protocol):
    """
    Called synchronously on the firing thread when no transition matches.

    Implementations may declare a third ``message`` parameter to receive
    the message that missed.
    """

    def on_fail(self, source_state_id: Any, event: Any) -> None:
        ...


class NumbFailCallback:
    """Ignore routing misses"""

    def on_fail(self, source_state_id, event, message=None):
        pass


class LoggingFailCallback:
    """Log routing misses at a configurable level"""

    def __init__(self, level: int = logging.WARNING):
        self.level = level

    def on_fail(self, source_state_id, event, message=None):
        logger.log(self.level, f"No transition for event {event!r} from state {source_state_id!r}")


class AlertFailCallback:
    """Raise TransitionFailError on routing misses"""

    def on_fail(self, source_state_id, event, message=None):
        raise TransitionFailError(source_state_id, event)


class FailCallbackAdapter:
    """
    Binds a ``fn(source_state_id, event)`` or ``fn(source_state_id, event, message)``.

    The arity is checked once, when the callback is installed, so the
    routing-miss path only ever makes one call.
    """

    def __init__(self, fn: Callable[..., Any]):
        self.fn = fn
        self.wants_message = _accepts_message(fn)

    def on_fail(self, source_state_id, event, message=None):
        if self.wants_message:
            self.fn(source_state_id, event, message)
        else:
            self.fn(source_state_id, event)


def _accepts_message(fn: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    try:
        signature.bind(None, None, None)
    except TypeError:
        return False
    return True


def as_fail_callback(obj: Optional[Any]) -> FailCallbackAdapter:
    """Accept an object with on_fail(), a callable, or None for the silent default"""
    if obj is None:
        obj = NumbFailCallback()
    if isinstance(obj, FailCallbackAdapter):
        return obj
    if isinstance(obj, FailCallback):
        return FailCallbackAdapter(obj.on_fail)
    if callable(obj):
        return FailCallbackAdapter(obj)
    raise TypeError(f"Fail callback must be callable or define on_fail(), got {type(obj).__name__}")

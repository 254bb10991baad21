"""
Shared fixtures for state machine tests.
"""

from enum import Enum

import pytest

from stateless_fsm import EngineConfig, StateMachineBuilder, StateMachineFactory


class OrderState(Enum):
    NEW = "new"
    PAID = "paid"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
    REVIEW = "review"


class OrderEvent(Enum):
    PAY = "pay"
    SHIP = "ship"
    CANCEL = "cancel"
    TOUCH = "touch"


def const(value: bool, calls: list = None, name: str = None):
    """Condition returning a fixed value, recording each evaluation"""
    def condition(context):
        if calls is not None:
            calls.append(name or value)
        return value
    condition.__name__ = name or f"const_{value}".lower()
    return condition


@pytest.fixture(autouse=True)
def clean_factory():
    StateMachineFactory.clear()
    yield
    StateMachineFactory.clear()


@pytest.fixture
def builder():
    return StateMachineBuilder(EngineConfig())


@pytest.fixture
def strict_builder():
    return StateMachineBuilder(EngineConfig(strict=True))

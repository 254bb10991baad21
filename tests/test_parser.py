"""
Tests for YAML state machine definitions.
"""

import textwrap

import pytest

from stateless_fsm import (
    ActionRegistry,
    DefinitionError,
    DefinitionParser,
    Message,
    StateMachineFactory,
    TransitionFailError,
)
from stateless_fsm.callbacks import LoggingFailCallback
from stateless_fsm.parser import PermissiveRegistry

from .conftest import OrderEvent, OrderState


ORDER_YAML = textwrap.dedent("""
    machine_id: order
    states: [NEW, PAID, SHIPPED, CANCELLED, REVIEW]
    transitions:
      - from: NEW
        to: REVIEW
        trigger: PAY
        when: is_large
      - from: NEW
        to: PAID
        trigger: PAY
        perform: charge
      - from: PAID
        to: SHIPPED
        trigger: SHIP
      - from: [NEW, PAID]
        to: CANCELLED
        trigger: CANCEL
      - within: PAID
        trigger: TOUCH
        perform: charge
""")


@pytest.fixture
def registry():
    charged = []
    registry = ActionRegistry()
    registry.register_condition("is_large", lambda ctx: ctx.message.get_header("amount", 0) >= 100)
    registry.register_action("charge", lambda ctx: charged.append(ctx.target.id))
    registry.charged = charged
    return registry


@pytest.fixture
def order_file(tmp_path):
    path = tmp_path / "order.yaml"
    path.write_text(ORDER_YAML)
    return path


def test_from_file_with_enums(order_file, registry):
    machine = DefinitionParser.from_file(order_file, registry, state_type=OrderState, event_type=OrderEvent)

    assert machine.machine_id == "order"
    assert StateMachineFactory.get("order") is machine
    assert machine.fire(OrderState.NEW, OrderEvent.PAY, amount=500) == OrderState.REVIEW
    assert machine.fire(OrderState.NEW, OrderEvent.PAY, amount=5) == OrderState.PAID
    assert machine.fire(OrderState.PAID, OrderEvent.CANCEL) == OrderState.CANCELLED
    assert machine.fire(OrderState.PAID, OrderEvent.TOUCH) == OrderState.PAID
    assert registry.charged == [OrderState.PAID, OrderState.PAID]


def test_string_ids(order_file, registry):
    machine = DefinitionParser.from_file(order_file, registry, register=False)
    assert machine.fire_event("NEW", Message("PAY", {"amount": 1})) == "PAID"
    assert machine.verify("SHIPPED", "SHIP") is False


def test_unknown_condition(registry):
    data = {"machine_id": "m", "transitions": [{"from": "A", "to": "B", "on": "e", "when": "missing"}]}
    with pytest.raises(DefinitionError, match="Unknown condition 'missing'"):
        DefinitionParser.from_dict(data, registry)


def test_unknown_action(registry):
    data = {"machine_id": "m", "transitions": [{"from": "A", "to": "B", "on": "e", "perform": "missing"}]}
    with pytest.raises(DefinitionError, match="Unknown action 'missing'"):
        DefinitionParser.from_dict(data, registry)


def test_missing_machine_id():
    with pytest.raises(DefinitionError, match="machine_id"):
        DefinitionParser.from_dict({"transitions": []})


def test_not_a_mapping():
    with pytest.raises(DefinitionError):
        DefinitionParser.from_dict(["machine_id"])


@pytest.mark.parametrize("transition", [
    {"from": "A", "on": "e"},
    {"to": "B", "on": "e"},
    {"from": "A", "to": "B"},
    "A -> B",
])
def test_malformed_transition(transition):
    with pytest.raises(DefinitionError):
        DefinitionParser.from_dict({"machine_id": "m", "transitions": [transition]})


def test_undeclared_state():
    data = {"machine_id": "m", "states": ["A"], "transitions": [{"from": "A", "to": "B", "on": "e"}]}
    with pytest.raises(DefinitionError, match="undeclared state 'B'"):
        DefinitionParser.from_dict(data)


def test_unknown_enum_member():
    data = {"machine_id": "m", "transitions": [{"from": "NEW", "to": "LOST", "on": "PAY"}]}
    with pytest.raises(DefinitionError, match="Unknown state 'LOST'"):
        DefinitionParser.from_dict(data, state_type=OrderState, event_type=OrderEvent)


def test_declared_states_without_transitions():
    data = {"machine_id": "m", "states": ["A", "B", "DONE"], "transitions": [{"from": "A", "to": "B", "on": "e"}]}
    machine = DefinitionParser.from_dict(data)
    assert machine.states == ["A", "B", "DONE"]


def test_alert_fail_callback_from_definition():
    data = {
        "machine_id": "m",
        "fail_callback": "alert",
        "transitions": [{"from": "A", "to": "B", "on": "e"}],
    }
    machine = DefinitionParser.from_dict(data)
    with pytest.raises(TransitionFailError):
        machine.fire_event("A", Message("x"))


def test_fail_callback_argument_overrides_definition():
    failures = []
    data = {
        "machine_id": "m",
        "fail_callback": "alert",
        "transitions": [{"from": "A", "to": "B", "on": "e"}],
    }
    machine = DefinitionParser.from_dict(data, fail_callback=lambda s, e, m: failures.append(e))
    assert machine.fire_event("A", Message("x")) == "A"
    assert failures == ["x"]


def test_unknown_fail_callback():
    with pytest.raises(DefinitionError, match="fail_callback"):
        DefinitionParser.from_dict({"machine_id": "m", "fail_callback": "explode"})


def test_logging_fail_callback(caplog):
    data = {"machine_id": "m", "fail_callback": "log", "transitions": [{"from": "A", "to": "B", "on": "e"}]}
    machine = DefinitionParser.from_dict(data)
    machine.fire_event("A", Message("x"))
    assert "No transition for event 'x' from state 'A'" in caplog.text
    assert isinstance(machine._fail_callback.fn.__self__, LoggingFailCallback)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("machine_id: [unclosed")
    with pytest.raises(DefinitionError, match="Invalid YAML"):
        DefinitionParser.from_file(path)


def test_missing_file(tmp_path):
    with pytest.raises(DefinitionError, match="Cannot read"):
        DefinitionParser.from_file(tmp_path / "nope.yaml")


def test_permissive_registry(order_file):
    machine = DefinitionParser.from_file(order_file, PermissiveRegistry(), register=False)
    assert machine.fire_event("NEW", Message("PAY")) == "REVIEW"
    assert machine.fire_event("PAID", Message("TOUCH")) == "PAID"


def test_registry_names(registry):
    assert registry.names() == ["charge", "is_large"]
    assert registry.has_condition("is_large")
    assert not registry.has_action("is_large")


def test_yaml_on_key_is_accepted(tmp_path):
    path = tmp_path / "switch.yaml"
    path.write_text(textwrap.dedent("""
        machine_id: switch
        transitions:
          - from: OFF_STATE
            to: ON_STATE
            on: flip
    """))
    machine = DefinitionParser.from_file(path, register=False)
    assert machine.fire_event("OFF_STATE", Message("flip")) == "ON_STATE"


def test_dict_on_key_is_accepted():
    data = {"machine_id": "m", "transitions": [{"from": "A", "to": "B", "on": "e"}]}
    machine = DefinitionParser.from_dict(data, register=False)
    assert machine.verify("A", "e") is True


def test_missing_trigger():
    data = {"machine_id": "m", "transitions": [{"from": "A", "to": "B"}]}
    with pytest.raises(DefinitionError, match="missing its 'trigger'"):
        DefinitionParser.from_dict(data)


def test_empty_sections_from_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("machine_id: empty\nstates:\ntransitions:\n")
    machine = DefinitionParser.from_file(path, register=False)
    assert machine.states == []


@pytest.mark.parametrize("section, value", [
    ("states", "NEW"),
    ("transitions", {"from": "A", "to": "B", "trigger": "e"}),
    ("transitions", "A -> B"),
])
def test_section_must_be_a_list(section, value):
    with pytest.raises(DefinitionError, match=f"'{section}' must be a list"):
        DefinitionParser.from_dict({"machine_id": "m", section: value})

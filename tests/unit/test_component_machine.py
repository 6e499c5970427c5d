"""Tests for ComponentMachine — transitions, dependency gating, history."""

from __future__ import annotations

import pytest

from chainregistry.core.component_graph import ComponentGraph
from chainregistry.core.component_machine import (
    ComponentMachine,
    DependencyNotMetError,
    InvalidTransitionError,
)
from chainregistry.models.orchestration import ComponentSpec, ComponentState


@pytest.fixture
def machine() -> ComponentMachine:
    components = [
        ComponentSpec(name="A", script="a", declaration_index=0),
        ComponentSpec(name="B", script="b", deps=["A"], declaration_index=1),
        ComponentSpec(name="C", script="c", deps=["A"], declaration_index=2),
        ComponentSpec(name="D", script="d", deps=["B", "C"], declaration_index=3),
        ComponentSpec(name="E", script="e", declaration_index=4),
    ]
    return ComponentMachine(ComponentGraph(components))


class TestComponentMachine:
    def test_initial_states(self, machine):
        assert set(machine.states().values()) == {ComponentState.PENDING}
        assert machine.pending() == ["A", "B", "C", "D", "E"]

    def test_happy_path(self, machine):
        machine.transition("A", ComponentState.RUNNING)
        machine.transition("A", ComponentState.SUCCEEDED)
        assert machine.state("A") == ComponentState.SUCCEEDED
        assert machine.can_start("B") == (True, [])

    def test_cannot_start_before_dependencies(self, machine):
        with pytest.raises(DependencyNotMetError, match="A is pending"):
            machine.transition("B", ComponentState.RUNNING)

    def test_invalid_transition(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine.transition("A", ComponentState.SUCCEEDED)

    def test_terminal_states_are_final(self, machine):
        machine.transition("A", ComponentState.RUNNING)
        machine.transition("A", ComponentState.SUCCEEDED)
        with pytest.raises(InvalidTransitionError):
            machine.transition("A", ComponentState.RUNNING)

    def test_failure_cascades(self, machine):
        machine.transition("A", ComponentState.RUNNING)
        skipped = machine.transition("A", ComponentState.FAILED)
        assert skipped == ["B", "C", "D"]
        assert machine.state("E") == ComponentState.PENDING
        assert machine.can_start("E") == (True, [])

    def test_can_start_reports_reason(self, machine):
        ok, reasons = machine.can_start("D")
        assert ok is False
        assert reasons == ["B is pending", "C is pending"]

    def test_skip_remaining(self, machine):
        machine.transition("A", ComponentState.RUNNING)
        machine.transition("A", ComponentState.SUCCEEDED)
        assert machine.skip_remaining() == ["B", "C", "D", "E"]
        assert machine.pending() == []

    def test_history_records_every_change(self, machine):
        machine.transition("A", ComponentState.RUNNING)
        machine.transition("A", ComponentState.FAILED)
        moves = [(t.name, t.source, t.target) for t in machine.history]
        assert moves == [
            ("A", ComponentState.PENDING, ComponentState.RUNNING),
            ("A", ComponentState.RUNNING, ComponentState.FAILED),
            ("B", ComponentState.PENDING, ComponentState.SKIPPED),
            ("C", ComponentState.PENDING, ComponentState.SKIPPED),
            ("D", ComponentState.PENDING, ComponentState.SKIPPED),
        ]

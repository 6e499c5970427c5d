"""Per-component state machine for one orchestration run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Dependencies SUCCEEDED before RUNNING
- Cascade skipping of transitive dependents on failure
- Every transition kept in an in-memory history for the run report
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import NamedTuple

from chainregistry.core.component_graph import ComponentGraph
from chainregistry.core.errors import RegistryError
from chainregistry.models.deployments import utcnow
from chainregistry.models.orchestration import VALID_TRANSITIONS, ComponentState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RegistryError, RuntimeError):
    """Raised when a requested state transition is not valid."""


class DependencyNotMetError(RegistryError, RuntimeError):
    """Raised when a component cannot start because a dependency did not succeed."""


class Transition(NamedTuple):
    name: str
    source: ComponentState
    target: ComponentState
    at: datetime


class ComponentMachine:
    """Tracks component states for a single run.

    Parameters
    ----------
    graph:
        The validated component graph.
    """

    def __init__(self, graph: ComponentGraph) -> None:
        self._graph = graph
        self._states: dict[str, ComponentState] = {
            name: ComponentState.PENDING for name in graph.names
        }
        self.history: list[Transition] = []

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def state(self, name: str) -> ComponentState:
        return self._states[name]

    def states(self) -> dict[str, ComponentState]:
        """Snapshot of all component states."""
        return dict(self._states)

    def pending(self) -> list[str]:
        return [n for n, s in self._states.items() if s == ComponentState.PENDING]

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(self, name: str, target: ComponentState) -> list[str]:
        """Move ``name`` to ``target``.

        Returns the components skipped as a consequence (only non-empty when
        ``target`` is FAILED).
        """
        current = self._states[name]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {name} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target == ComponentState.RUNNING and not self._graph.are_dependencies_met(
            name, self._states
        ):
            reasons = self._graph.get_blocking_reasons(name, self._states)
            raise DependencyNotMetError(
                f"Cannot start {name}: dependencies not met. "
                f"Blocked by: {'; '.join(reasons)}"
            )

        self._record(name, current, target)

        skipped: list[str] = []
        if target == ComponentState.FAILED:
            skipped = self._graph.cascade_skip(name, self._states)
            for skipped_name in skipped:
                self.history.append(
                    Transition(
                        skipped_name, ComponentState.PENDING, ComponentState.SKIPPED, utcnow()
                    )
                )
            if skipped:
                logger.warning(
                    "%s failed; skipping dependents: %s", name, ", ".join(skipped)
                )
        return skipped

    def _record(self, name: str, source: ComponentState, target: ComponentState) -> None:
        self._states[name] = target
        self.history.append(Transition(name, source, target, utcnow()))
        logger.debug("%s: %s -> %s", name, source.value, target.value)

    def skip_remaining(self) -> list[str]:
        """Mark every still-PENDING component SKIPPED (run cancelled)."""
        remaining = self.pending()
        for name in remaining:
            self._record(name, ComponentState.PENDING, ComponentState.SKIPPED)
        return remaining

    def can_start(self, name: str) -> tuple[bool, list[str]]:
        """Check if a component can transition to RUNNING.

        Returns (can_start, blocking_reasons).
        """
        current = self._states[name]
        if current != ComponentState.PENDING:
            return False, [f"{name} is currently {current.value}, not pending"]
        if not self._graph.are_dependencies_met(name, self._states):
            return False, self._graph.get_blocking_reasons(name, self._states)
        return True, []

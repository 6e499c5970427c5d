"""Component dependency DAG with ranks and cascade skipping.

The graph enforces:
- Every dependency names a declared component; no self-dependencies.
- No cycles (Kahn's algorithm; ties broken by declaration order).
- A component never runs unless every dependency SUCCEEDED.
- When a component fails, all transitive dependents are SKIPPED.
"""

from __future__ import annotations

from collections import deque

from chainregistry.core.errors import CyclicDependencyError, UnknownDependencyError
from chainregistry.models.orchestration import (
    ComponentSpec,
    ComponentState,
    ExecutionPlan,
    ExecutionStep,
)


class ComponentGraph:
    """Directed acyclic graph of component dependencies.

    Built from a plan document's ``ComponentSpec`` list; validation happens
    in the constructor so an invalid plan never reaches execution.
    """

    def __init__(self, components: list[ComponentSpec]) -> None:
        self._components: dict[str, ComponentSpec] = {c.name: c for c in components}
        self._order: dict[str, int] = {
            c.name: c.declaration_index for c in components
        }
        self._validate_references()
        # Forward edges: name -> deps
        self._deps: dict[str, list[str]] = {
            c.name: list(dict.fromkeys(c.deps)) for c in components
        }
        # Reverse edges: name -> components depending on it
        self._dependents: dict[str, list[str]] = {c.name: [] for c in components}
        for c in components:
            for dep in self._deps[c.name]:
                self._dependents[dep].append(c.name)

        self._topo_order = self._topological_sort()
        self._ranks = self._compute_ranks()

    def _validate_references(self) -> None:
        for name, spec in self._components.items():
            for dep in spec.deps:
                if dep == name:
                    raise CyclicDependencyError(
                        f"component '{name}' cannot depend on itself"
                    )
                if dep not in self._components:
                    raise UnknownDependencyError(
                        f"component '{name}' depends on unknown component '{dep}'"
                    )

    def _by_declaration(self, names) -> list[str]:
        return sorted(names, key=lambda n: self._order[n])

    def _topological_sort(self) -> list[str]:
        """Kahn's algorithm; among ready nodes the earliest declared goes first."""
        in_degree = {name: len(deps) for name, deps in self._deps.items()}
        ready = self._by_declaration(n for n, deg in in_degree.items() if deg == 0)
        result: list[str] = []
        while ready:
            node = ready.pop(0)
            result.append(node)
            for dependent in self._dependents[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)
            ready = self._by_declaration(ready)

        if len(result) != len(self._components):
            stuck = self._by_declaration(n for n, deg in in_degree.items() if deg > 0)
            raise CyclicDependencyError(
                f"circular dependency detected among components: {', '.join(stuck)}"
            )
        return result

    def _compute_ranks(self) -> dict[str, int]:
        ranks: dict[str, int] = {}
        for name in self._topo_order:
            deps = self._deps[name]
            ranks[name] = 1 + max(ranks[d] for d in deps) if deps else 0
        return ranks

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def names(self) -> list[str]:
        """Component names in topological order."""
        return list(self._topo_order)

    def rank(self, name: str) -> int:
        return self._ranks[name]

    def get_dependencies(self, name: str) -> list[str]:
        """Direct dependencies of a component."""
        return list(self._deps[name])

    def get_dependents(self, name: str) -> list[str]:
        """All transitive dependents (BFS), in declaration order."""
        visited: set[str] = set()
        queue = deque(self._dependents.get(name, []))
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            queue.extend(self._dependents.get(node, []))
        return self._by_declaration(visited)

    def execution_plan(self, group: str) -> ExecutionPlan:
        """Steps sorted by (rank, declaration order)."""
        ordered = sorted(self._topo_order, key=lambda n: (self._ranks[n], self._order[n]))
        return ExecutionPlan(
            group=group,
            steps=[
                ExecutionStep(
                    name=name,
                    script=self._components[name].script,
                    rank=self._ranks[name],
                    deps=self._deps[name],
                    env=self._components[name].env,
                    declaration_index=self._order[name],
                )
                for name in ordered
            ],
        )

    # ------------------------------------------------------------------
    # Readiness and cascade skipping
    # ------------------------------------------------------------------

    def are_dependencies_met(
        self, name: str, states: dict[str, ComponentState]
    ) -> bool:
        return all(states.get(d) == ComponentState.SUCCEEDED for d in self._deps[name])

    def get_blocking_reasons(
        self, name: str, states: dict[str, ComponentState]
    ) -> list[str]:
        reasons = []
        for dep in self._deps[name]:
            state = states.get(dep, ComponentState.PENDING)
            if state != ComponentState.SUCCEEDED:
                reasons.append(f"{dep} is {state.value}")
        return reasons

    def cascade_skip(
        self, failed: str, states: dict[str, ComponentState]
    ) -> list[str]:
        """Mark every PENDING transitive dependent of ``failed`` as SKIPPED.

        Returns the newly skipped names in declaration order.
        """
        skipped = []
        for name in self.get_dependents(failed):
            if states.get(name, ComponentState.PENDING) == ComponentState.PENDING:
                states[name] = ComponentState.SKIPPED
                skipped.append(name)
        return skipped

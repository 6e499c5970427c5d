"""Orchestration models — component graph, execution plan, run report."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from chainregistry.models.deployments import utcnow


class ComponentState(str, Enum):
    """Strict state model for each orchestrated component."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


# Valid state transitions, enforced by ComponentMachine.
# SUCCEEDED, FAILED and SKIPPED are terminal.
VALID_TRANSITIONS: dict[ComponentState, set[ComponentState]] = {
    ComponentState.PENDING: {ComponentState.RUNNING, ComponentState.SKIPPED},
    ComponentState.RUNNING: {ComponentState.SUCCEEDED, ComponentState.FAILED},
    ComponentState.SUCCEEDED: set(),
    ComponentState.FAILED: set(),
    ComponentState.SKIPPED: set(),
}


class ComponentSpec(BaseModel):
    """One declared component of an orchestration plan document.

    ``deps`` encodes the DAG: a component cannot run until every named
    dependency has SUCCEEDED and its records are written.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    script: str
    deps: list[str] = []
    env: dict[str, str] = {}
    declaration_index: int = 0


class PlanDocument(BaseModel):
    """Parsed ``group`` + ``components`` orchestration document."""

    model_config = ConfigDict(frozen=True)

    group: str
    components: list[ComponentSpec]


class ExecutionStep(BaseModel):
    """A component annotated with its topological rank."""

    model_config = ConfigDict(frozen=True)

    name: str
    script: str
    rank: int
    deps: list[str] = []
    env: dict[str, str] = {}
    declaration_index: int = 0


class ExecutionPlan(BaseModel):
    """Linearised plan: steps sorted by (rank, declaration order)."""

    model_config = ConfigDict(frozen=True)

    group: str
    steps: list[ExecutionStep]

    def step(self, name: str) -> ExecutionStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    @property
    def names(self) -> list[str]:
        return [step.name for step in self.steps]


class RunOptions(BaseModel):
    """Global run configuration merged into every component invocation."""

    model_config = ConfigDict(frozen=True)

    network: str = ""
    namespace: str = "default"
    dry_run: bool = False
    debug: bool = False


class ComponentOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    state: ComponentState
    rank: int = 0
    error: str = ""
    skipped_because: str = ""  # name of the failed upstream component
    deployment_ids: list[str] = []
    transaction_ids: list[str] = []
    safe_tx_hashes: list[str] = []


class OrchestrationReport(BaseModel):
    """Full outcome of one ``orchestrate`` run — never just the first failure."""

    model_config = ConfigDict(frozen=True)

    group: str
    dry_run: bool = False
    outcomes: list[ComponentOutcome] = []
    unresolved_proxies: list[str] = []
    cancelled: bool = False
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    def _with_state(self, state: ComponentState) -> list[str]:
        return [o.name for o in self.outcomes if o.state == state]

    @property
    def succeeded(self) -> list[str]:
        return self._with_state(ComponentState.SUCCEEDED)

    @property
    def failed(self) -> list[str]:
        return self._with_state(ComponentState.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self._with_state(ComponentState.SKIPPED)

    @property
    def ok(self) -> bool:
        """True when every component succeeded and every proxy resolves."""
        return (
            not self.cancelled
            and not self.unresolved_proxies
            and all(o.state == ComponentState.SUCCEEDED for o in self.outcomes)
        )

    def outcome(self, name: str) -> ComponentOutcome:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        raise KeyError(name)

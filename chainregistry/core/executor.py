"""Orchestration Executor: run a component plan against a Script Runner.

Lifecycle of one run:

1. Build the component graph (validation errors raise before any script runs).
2. Walk the steps in (rank, declaration order).
3. For each PENDING step: RUNNING, invoke the runner, ingest and save the
   result (skipped in dry-run), SUCCEEDED.  A failure marks the step FAILED
   and every transitive dependent SKIPPED; independent branches continue.
4. Check that every proxy recorded during the run resolves to an
   implementation on its chain.

The run always returns an ``OrchestrationReport``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from chainregistry.bridge.protocols import ScriptRunner
from chainregistry.core.component_graph import ComponentGraph
from chainregistry.core.component_machine import ComponentMachine
from chainregistry.core.errors import RegistryError
from chainregistry.core.ingestion import IngestedRecords, build_records, ingest_result
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import Deployment, DeploymentType, utcnow
from chainregistry.models.execution import ExecutionRequest
from chainregistry.models.orchestration import (
    ComponentOutcome,
    ComponentState,
    ExecutionPlan,
    ExecutionStep,
    OrchestrationReport,
    PlanDocument,
    RunOptions,
)

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[ExecutionStep, ComponentState], None]


class OrchestrationExecutor:
    """Sequential executor for orchestration plans.

    Parameters
    ----------
    store:
        Registry the results are written into.
    runner:
        Script Runner collaborator.
    options:
        Global run configuration (network, namespace, dry-run, debug).
    on_transition:
        Optional callback invoked after every state change, for progress
        display.
    """

    def __init__(
        self,
        store: RegistryStore,
        runner: ScriptRunner,
        options: RunOptions | None = None,
        *,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self._store = store
        self._runner = runner
        self.options = options or RunOptions()
        self._on_transition = on_transition

    def plan(self, document: PlanDocument) -> ExecutionPlan:
        """Validate the document and return its linearised plan."""
        return ComponentGraph(document.components).execution_plan(document.group)

    def request_for(self, step: ExecutionStep) -> ExecutionRequest:
        """Global run config merged with the component's own env."""
        return ExecutionRequest(
            script=step.script,
            network=self.options.network,
            namespace=self.options.namespace,
            env=dict(step.env),
            dry_run=self.options.dry_run,
            debug=self.options.debug,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, document: PlanDocument) -> OrchestrationReport:
        graph = ComponentGraph(document.components)
        plan = graph.execution_plan(document.group)
        machine = ComponentMachine(graph)
        started_at = utcnow()

        errors: dict[str, str] = {}
        skipped_because: dict[str, str] = {}
        records: dict[str, IngestedRecords] = {}
        cancelled = False

        logger.info(
            "Orchestrating %s: %d components%s",
            plan.group,
            len(plan.steps),
            " (dry run)" if self.options.dry_run else "",
        )

        for step in plan.steps:
            if machine.state(step.name) != ComponentState.PENDING:
                continue
            self._transition(machine, step, ComponentState.RUNNING)
            try:
                records[step.name] = self._execute(step)
            except KeyboardInterrupt:
                errors[step.name] = "cancelled"
                for skipped in self._transition(machine, step, ComponentState.FAILED):
                    skipped_because[skipped] = step.name
                    self._notify(plan.step(skipped), ComponentState.SKIPPED)
                cancelled = True
                break
            except (RegistryError, OSError) as exc:
                errors[step.name] = str(exc)
                logger.error("Component %s failed: %s", step.name, exc)
                for skipped in self._transition(machine, step, ComponentState.FAILED):
                    skipped_because[skipped] = step.name
                    self._notify(plan.step(skipped), ComponentState.SKIPPED)
                continue
            self._transition(machine, step, ComponentState.SUCCEEDED)

        if cancelled:
            remaining = machine.skip_remaining()
            for name in remaining:
                self._notify(plan.step(name), ComponentState.SKIPPED)
            logger.warning(
                "Run cancelled; %d components not started: %s",
                len(remaining),
                ", ".join(remaining),
            )

        unresolved = self.unresolved_proxies(
            [d for r in records.values() for d in r.deployments], records.values()
        )
        for proxy_id in unresolved:
            logger.warning("Proxy %s has no recorded implementation", proxy_id)

        outcomes = []
        for step in plan.steps:
            ingested = records.get(step.name, IngestedRecords())
            outcomes.append(
                ComponentOutcome(
                    name=step.name,
                    state=machine.state(step.name),
                    rank=step.rank,
                    error=errors.get(step.name, ""),
                    skipped_because=skipped_because.get(step.name, ""),
                    deployment_ids=ingested.deployment_ids,
                    transaction_ids=ingested.transaction_ids,
                    safe_tx_hashes=ingested.safe_tx_hashes,
                )
            )
        return OrchestrationReport(
            group=plan.group,
            dry_run=self.options.dry_run,
            outcomes=outcomes,
            unresolved_proxies=unresolved,
            cancelled=cancelled,
            started_at=started_at,
            finished_at=utcnow(),
        )

    def _execute(self, step: ExecutionStep) -> IngestedRecords:
        result = self._runner.run(self.request_for(step))
        if self.options.dry_run:
            return build_records(self._store, result, self.options.namespace)
        ingested = ingest_result(self._store, result, self.options.namespace)
        # Dependents must see this component's records on disk.
        self._store.save()
        return ingested

    def _transition(
        self, machine: ComponentMachine, step: ExecutionStep, target: ComponentState
    ) -> list[str]:
        skipped = machine.transition(step.name, target)
        self._notify(step, target)
        return skipped

    def _notify(self, step: ExecutionStep, state: ComponentState) -> None:
        if self._on_transition is not None:
            self._on_transition(step, state)

    # ------------------------------------------------------------------
    # Post-run checks
    # ------------------------------------------------------------------

    def unresolved_proxies(
        self,
        deployments: list[Deployment],
        batches: Iterable[IngestedRecords] = (),
    ) -> list[str]:
        """Ids of proxies whose implementation address has no record.

        In a dry run nothing was written, so the run's own unsaved records
        also count as resolvable.
        """
        unsaved = {
            (d.chain_id, d.address.lower())
            for batch in batches
            for d in batch.deployments
        } if self.options.dry_run else set()

        unresolved = []
        for dep in deployments:
            if dep.type != DeploymentType.PROXY:
                continue
            impl = dep.proxy_info.implementation if dep.proxy_info else ""
            if not impl:
                unresolved.append(dep.id)
                continue
            if self._store.get_by_address(dep.chain_id, impl) is not None:
                continue
            if (dep.chain_id, impl.lower()) in unsaved:
                continue
            unresolved.append(dep.id)
        return sorted(set(unresolved))

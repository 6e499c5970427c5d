"""Tests for OrchestrationExecutor — ordering, failure cascade, dry run."""

from __future__ import annotations

import pytest
from conftest import FakeScriptRunner, addr

from chainregistry.core.errors import CyclicDependencyError, ScriptExecutionError
from chainregistry.core.executor import OrchestrationExecutor
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import DeploymentType
from chainregistry.models.execution import DeploymentEvent, ExecutionResult
from chainregistry.models.orchestration import (
    ComponentSpec,
    ComponentState,
    PlanDocument,
    RunOptions,
)


def document(**deps: list[str]) -> PlanDocument:
    return PlanDocument(
        group="core",
        components=[
            ComponentSpec(name=name, script=f"{name}.s.sol", deps=d, declaration_index=i)
            for i, (name, d) in enumerate(deps.items())
        ],
    )


@pytest.fixture
def diamond_runner(make_result) -> FakeScriptRunner:
    """Each of A-D deploys one contract named after itself."""
    return FakeScriptRunner(
        {
            f"{name}.s.sol": make_result(name, base=0x100 * (i + 1))
            for i, name in enumerate("ABCD")
        }
    )


DIAMOND = document(A=[], B=["A"], C=["A"], D=["B", "C"])


class TestRunOrder:
    def test_runs_in_rank_order(self, store, diamond_runner):
        report = OrchestrationExecutor(store, diamond_runner).run(DIAMOND)
        assert diamond_runner.scripts_run == ["A.s.sol", "B.s.sol", "C.s.sol", "D.s.sol"]
        assert report.ok
        assert report.succeeded == ["A", "B", "C", "D"]

    def test_records_written_and_saved(self, store, registry_path, diamond_runner):
        OrchestrationExecutor(store, diamond_runner, RunOptions(namespace="prod")).run(DIAMOND)
        reopened = RegistryStore(registry_path)
        assert [d.id for d in reopened.get_all_deployments()] == [
            "prod/1/A",
            "prod/1/B",
            "prod/1/C",
            "prod/1/D",
        ]

    def test_outcome_lists_records(self, store, diamond_runner):
        report = OrchestrationExecutor(store, diamond_runner, RunOptions(namespace="prod")).run(
            DIAMOND
        )
        outcome = report.outcome("B")
        assert outcome.rank == 1
        assert outcome.deployment_ids == ["prod/1/B"]
        assert len(outcome.transaction_ids) == 1

    def test_request_carries_run_options(self, store, make_result):
        runner = FakeScriptRunner({"A.s.sol": make_result("A")})
        doc = PlanDocument(
            group="g",
            components=[ComponentSpec(name="A", script="A.s.sol", env={"FEE": "30"})],
        )
        options = RunOptions(network="sepolia", namespace="staging", debug=True)
        OrchestrationExecutor(store, runner, options).run(doc)

        request = runner.requests[0]
        assert request.network == "sepolia"
        assert request.namespace == "staging"
        assert request.debug is True
        assert request.env == {"FEE": "30"}

    def test_invalid_plan_runs_nothing(self, store, diamond_runner):
        with pytest.raises(CyclicDependencyError):
            OrchestrationExecutor(store, diamond_runner).run(document(A=["B"], B=["A"]))
        assert diamond_runner.requests == []

    def test_transition_callback(self, store, diamond_runner):
        seen = []
        executor = OrchestrationExecutor(
            store, diamond_runner, on_transition=lambda step, state: seen.append((step.name, state))
        )
        executor.run(document(A=[]))
        assert seen == [("A", ComponentState.RUNNING), ("A", ComponentState.SUCCEEDED)]


class TestFailures:
    def test_root_failure_skips_everything(self, store, diamond_runner):
        """A failing root skips all dependents without invoking them."""
        diamond_runner.results["A.s.sol"] = ScriptExecutionError("forge exited 1")
        report = OrchestrationExecutor(store, diamond_runner).run(DIAMOND)

        assert diamond_runner.scripts_run == ["A.s.sol"]
        assert report.failed == ["A"]
        assert report.skipped == ["B", "C", "D"]
        assert report.outcome("D").skipped_because == "A"
        assert report.outcome("A").error == "forge exited 1"
        assert not report.ok

    def test_independent_branch_continues(self, store, diamond_runner, make_result):
        diamond_runner.results["B.s.sol"] = ScriptExecutionError("boom")
        diamond_runner.results["E.s.sol"] = make_result("E", base=0x900)
        doc = document(A=[], B=["A"], C=["A"], D=["B", "C"], E=[])
        report = OrchestrationExecutor(store, diamond_runner).run(doc)

        assert report.succeeded == ["A", "E", "C"]
        assert report.failed == ["B"]
        assert report.skipped == ["D"]
        assert "D.s.sol" not in diamond_runner.scripts_run

    def test_address_clash_fails_component(self, store, make_result):
        runner = FakeScriptRunner(
            {
                "A.s.sol": make_result("A", base=0x100),
                "B.s.sol": make_result("B", base=0x100),
            }
        )
        report = OrchestrationExecutor(store, runner).run(document(A=[], B=["A"]))
        assert report.outcome("B").state == ComponentState.FAILED
        assert "already belongs" in report.outcome("B").error
        assert store.get("default/1/B") is None

    def test_save_error_fails_component_and_still_reports(
        self, store, diamond_runner, monkeypatch
    ):
        def disk_full():
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", disk_full)
        report = OrchestrationExecutor(store, diamond_runner).run(DIAMOND)

        assert report.failed == ["A"]
        assert report.skipped == ["B", "C", "D"]
        assert "disk full" in report.outcome("A").error
        assert diamond_runner.scripts_run == ["A.s.sol"]

    def test_keyboard_interrupt_cancels_run(self, store, diamond_runner):
        diamond_runner.results["B.s.sol"] = KeyboardInterrupt()
        report = OrchestrationExecutor(store, diamond_runner).run(DIAMOND)

        assert report.cancelled is True
        assert report.outcome("B").state == ComponentState.FAILED
        assert report.outcome("B").error == "cancelled"
        assert report.skipped == ["C", "D"]
        assert report.succeeded == ["A"]


class TestDryRun:
    def test_dry_run_writes_nothing(self, store, registry_path, diamond_runner):
        options = RunOptions(dry_run=True)
        report = OrchestrationExecutor(store, diamond_runner, options).run(DIAMOND)

        assert report.ok
        assert report.dry_run is True
        assert report.outcome("A").deployment_ids == ["default/1/A"]
        assert len(store) == 0
        assert not registry_path.exists()
        assert all(r.dry_run for r in diamond_runner.requests)


class TestProxyResolution:
    def _proxy_result(self, implementation: str) -> ExecutionResult:
        return ExecutionResult(
            chain_id=1,
            deployments=[
                DeploymentEvent(
                    contract_name="TokenProxy",
                    address=addr(0x999),
                    type=DeploymentType.PROXY,
                    implementation=implementation,
                )
            ],
        )

    def test_unresolved_proxy_reported(self, store):
        runner = FakeScriptRunner({"P.s.sol": self._proxy_result(addr(0x777))})
        report = OrchestrationExecutor(store, runner).run(document(P=[]))
        assert report.succeeded == ["P"]
        assert report.unresolved_proxies == ["default/1/TokenProxy"]
        assert not report.ok

    def test_proxy_resolved_by_upstream_component(self, store, make_result):
        runner = FakeScriptRunner(
            {
                "Impl.s.sol": make_result("TokenImpl", base=0x777),
                "P.s.sol": self._proxy_result(addr(0x777)),
            }
        )
        report = OrchestrationExecutor(store, runner).run(document(Impl=[], P=["Impl"]))
        assert report.unresolved_proxies == []
        assert report.ok
        assert store.index.implementation_of("default/1/TokenProxy") == "default/1/TokenImpl"

    def test_dry_run_counts_unsaved_implementations(self, store, make_result):
        runner = FakeScriptRunner(
            {
                "Impl.s.sol": make_result("TokenImpl", base=0x777),
                "P.s.sol": self._proxy_result(addr(0x777)),
            }
        )
        options = RunOptions(dry_run=True)
        report = OrchestrationExecutor(store, runner, options).run(document(Impl=[], P=["Impl"]))
        assert report.unresolved_proxies == []

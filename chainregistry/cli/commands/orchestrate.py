"""``chainregistry orchestrate PLAN`` — run a component plan.

Shows the execution plan, runs each component through the configured
Script Runner, prints progress as states change, and finishes with a
summary of every component.  Exit status is 0 only when every component
succeeded and every recorded proxy resolves.
"""

from __future__ import annotations

from pathlib import Path

import typer

from chainregistry.bridge.script_runner import SubprocessScriptRunner
from chainregistry.cli.render import component_state, plan_table, report_table
from chainregistry.cli.support import cli_errors, console, get_config, open_store
from chainregistry.core.executor import OrchestrationExecutor
from chainregistry.core.plan_parser import load_plan_file
from chainregistry.models.orchestration import ComponentState, ExecutionStep, RunOptions


def _progress(step: ExecutionStep, state: ComponentState) -> None:
    console.print(f"  [cyan]{step.name}[/cyan] {component_state(state)}")


def orchestrate_cmd(
    ctx: typer.Context,
    plan_file: Path = typer.Argument(..., help="YAML orchestration plan."),
    network: str = typer.Option(None, "--network", help="Target network name."),
    namespace: str = typer.Option(None, "--namespace", "-n", help="Target namespace."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run scripts without writing the registry."
    ),
    plan_only: bool = typer.Option(
        False, "--plan", help="Only print the execution plan."
    ),
) -> None:
    """Execute a dependency-ordered set of deployment scripts."""
    config = get_config(ctx)
    with cli_errors():
        document = load_plan_file(plan_file)
        options = RunOptions(
            network=network or config.network,
            namespace=namespace or config.namespace,
            dry_run=dry_run,
            debug=config.debug,
        )
        with open_store(config) as store:
            executor = OrchestrationExecutor(
                store,
                SubprocessScriptRunner(
                    config.script_command, timeout=config.script_timeout_seconds
                ),
                options,
                on_transition=_progress,
            )
            plan = executor.plan(document)
            console.print(plan_table(plan))
            if plan_only:
                return
            report = executor.run(document)

    console.print(report_table(report))
    for proxy_id in report.unresolved_proxies:
        console.print(f"[red]Unresolved proxy implementation:[/red] {proxy_id}")
    if report.cancelled:
        console.print("[yellow]Run cancelled.[/yellow]")
        raise typer.Exit(code=130)
    if not report.ok:
        raise typer.Exit(code=1)
    console.print("[bold green]All components succeeded.[/bold green]")

"""Rich renderables for registry records, plans and run summaries.

Color scheme
------------
- green     : SUCCEEDED / EXECUTED / VERIFIED
- red       : FAILED
- yellow    : RUNNING / PENDING / QUEUED
- dim       : SKIPPED / not yet started
"""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chainregistry.models.deployments import Deployment, VerificationStatus
from chainregistry.models.orchestration import (
    ComponentState,
    ExecutionPlan,
    OrchestrationReport,
)
from chainregistry.models.sync import PruneCandidates, SyncReport
from chainregistry.models.transactions import SafeTransaction, Transaction


# ---------------------------------------------------------------------------
# State -> Rich markup
# ---------------------------------------------------------------------------

_COMPONENT_STATES: dict[ComponentState, str] = {
    ComponentState.PENDING: "[dim]PENDING[/dim]",
    ComponentState.RUNNING: "[yellow]RUNNING[/yellow]",
    ComponentState.SUCCEEDED: "[green]SUCCEEDED[/green]",
    ComponentState.FAILED: "[bold red]FAILED[/bold red]",
    ComponentState.SKIPPED: "[dim]SKIPPED[/dim]",
}

_STATUS_STYLES: dict[str, str] = {
    "EXECUTED": "green",
    "VERIFIED": "green",
    "FAILED": "bold red",
    "PENDING": "yellow",
    "QUEUED": "yellow",
    "PARTIAL": "yellow",
    "UNVERIFIED": "dim",
}


def component_state(state: ComponentState) -> str:
    return _COMPONENT_STATES[state]


def status_text(value: str) -> Text:
    return Text(value, style=_STATUS_STYLES.get(value, ""))


# ---------------------------------------------------------------------------
# Deployments
# ---------------------------------------------------------------------------


def deployments_table(deployments: list[Deployment], title: str = "Deployments") -> Table:
    table = Table(title=title)
    table.add_column("Chain", justify="right", style="cyan")
    table.add_column("Namespace")
    table.add_column("Contract", style="bold")
    table.add_column("Type")
    table.add_column("Address", style="green")
    table.add_column("Tags", style="magenta")
    for dep in deployments:
        table.add_row(
            str(dep.chain_id),
            dep.namespace,
            dep.display_name,
            dep.type.value,
            dep.address,
            ", ".join(dep.tags),
        )
    return table


def candidates_table(candidates: list[Deployment]) -> Table:
    """Numbered candidate list for interactive disambiguation."""
    table = Table(title="Multiple deployments match")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Id", style="cyan")
    table.add_column("Address", style="green")
    for number, dep in enumerate(candidates, start=1):
        table.add_row(str(number), dep.id, dep.address)
    return table


def deployment_panel(
    dep: Deployment,
    transaction: Transaction | None = None,
    implementation: Deployment | None = None,
    proxies: list[str] | None = None,
) -> Panel:
    lines = [
        f"[bold]Id:[/bold]          {dep.id}",
        f"[bold]Address:[/bold]     {dep.address}",
        f"[bold]Chain:[/bold]       {dep.chain_id}",
        f"[bold]Namespace:[/bold]   {dep.namespace}",
        f"[bold]Type:[/bold]        {dep.type.value}",
        f"[bold]Method:[/bold]      {dep.deployment_strategy.method.value}",
    ]
    if dep.deployment_strategy.salt:
        lines.append(f"[bold]Salt:[/bold]        {dep.deployment_strategy.salt}")
    if dep.artifact.path:
        lines.append(f"[bold]Artifact:[/bold]    {dep.artifact.path}")
    if dep.tags:
        lines.append(f"[bold]Tags:[/bold]        {', '.join(dep.tags)}")

    verification = dep.verification.status
    color = "green" if verification == VerificationStatus.VERIFIED else "yellow"
    lines.append(f"[bold]Verified:[/bold]    [{color}]{verification.value}[/{color}]")

    if dep.proxy_info is not None:
        lines.append("")
        lines.append(f"[bold]Proxy type:[/bold]  {dep.proxy_info.type or '-'}")
        impl = implementation.id if implementation else "[red]unresolved[/red]"
        lines.append(f"[bold]Implementation:[/bold] {dep.proxy_info.implementation} ({impl})")
        for upgrade in dep.proxy_info.history:
            lines.append(
                f"  [dim]{upgrade.upgraded_at:%Y-%m-%d %H:%M}[/dim] -> {upgrade.implementation_id}"
            )
    if proxies:
        lines.append("")
        lines.append(f"[bold]Proxies:[/bold]     {', '.join(proxies)}")

    if transaction is not None:
        lines.append("")
        lines.append(f"[bold]Transaction:[/bold] {transaction.hash or transaction.id}")
        lines.append(f"[bold]Status:[/bold]      {transaction.status.value}")
        if transaction.block_number is not None:
            lines.append(f"[bold]Block:[/bold]       {transaction.block_number}")
        if transaction.safe_context is not None:
            lines.append(f"[bold]Safe tx:[/bold]     {transaction.safe_context.safe_tx_hash}")

    return Panel(
        "\n".join(lines),
        title=f"[bold]{dep.display_name}[/bold]",
        border_style="cyan",
        padding=(1, 2),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def plan_table(plan: ExecutionPlan) -> Table:
    table = Table(title=f"Execution plan: {plan.group}")
    table.add_column("#", justify="right")
    table.add_column("Rank", justify="right", style="cyan")
    table.add_column("Component", style="bold")
    table.add_column("Script")
    table.add_column("Depends on", style="dim")
    for number, step in enumerate(plan.steps, start=1):
        table.add_row(
            str(number), str(step.rank), step.name, step.script, ", ".join(step.deps)
        )
    return table


def report_table(report: OrchestrationReport) -> Table:
    title = f"Run summary: {report.group}"
    if report.dry_run:
        title += " (dry run)"
    table = Table(title=title)
    table.add_column("Component", style="bold")
    table.add_column("State", justify="center")
    table.add_column("Deployments", justify="right")
    table.add_column("Detail")
    for outcome in report.outcomes:
        detail = outcome.error
        if outcome.skipped_because:
            detail = f"dependency {outcome.skipped_because} failed"
        table.add_row(
            outcome.name,
            component_state(outcome.state),
            str(len(outcome.deployment_ids)),
            detail,
        )
    return table


# ---------------------------------------------------------------------------
# Sync / prune
# ---------------------------------------------------------------------------


def sync_panel(report: SyncReport) -> Panel:
    lines = [
        f"[bold]Safe transactions checked:[/bold]   {report.safe_txs_checked}",
        f"[bold]  executed:[/bold]                  {report.safe_txs_executed}",
        f"[bold]  confirmations updated:[/bold]     {report.safe_txs_confirmations_updated}",
        f"[bold]Transactions checked:[/bold]        {report.transactions_checked}",
        f"[bold]  updated:[/bold]                   {report.transactions_updated}",
        f"[bold]  created:[/bold]                   {report.transactions_created}",
    ]
    if report.deployments_pruned or report.transactions_pruned:
        lines.append(
            f"[bold]Pruned:[/bold]                      "
            f"{len(report.deployments_pruned)} deployments, "
            f"{len(report.transactions_pruned)} transactions"
        )
    for issue in report.issues:
        lines.append(
            f"[yellow]! chain {issue.chain_id} {issue.record_id}: {issue.message}[/yellow]"
        )
    border = "yellow" if report.issues else "green"
    status = "changes written" if report.changed else "already up to date"
    return Panel(
        "\n".join(lines),
        title=f"[bold]Sync[/bold] ({status})",
        border_style=border,
        padding=(1, 2),
    )


def prune_table(candidates: PruneCandidates) -> Table:
    table = Table(title=f"Records absent on chain {candidates.chain_id}")
    table.add_column("Kind")
    table.add_column("Id", style="red")
    for dep_id in candidates.deployment_ids:
        table.add_row("deployment", dep_id)
    for tx_id in candidates.transaction_ids:
        table.add_row("transaction", tx_id)
    for safe_hash in candidates.safe_tx_hashes:
        table.add_row("safe transaction", safe_hash)
    return table


def safe_transactions_table(safe_txs: list[SafeTransaction]) -> Table:
    table = Table(title="Queued Safe transactions")
    table.add_column("Chain", justify="right", style="cyan")
    table.add_column("Safe tx hash")
    table.add_column("Status")
    table.add_column("Confirmations", justify="right")
    for stx in safe_txs:
        table.add_row(
            str(stx.chain_id),
            stx.safe_tx_hash,
            status_text(stx.status.value),
            str(len(stx.confirmations)),
        )
    return table

"""``chainregistry list`` — list deployments with optional filters."""

from __future__ import annotations

import json

import typer

from chainregistry.cli.render import deployments_table
from chainregistry.cli.support import cli_errors, console, get_config, open_store
from chainregistry.models.deployments import DeploymentFilter, DeploymentType


def list_cmd(
    ctx: typer.Context,
    namespace: str = typer.Option(None, "--namespace", "-n", help="Only this namespace."),
    chain: int = typer.Option(None, "--chain", "-c", help="Only this chain id."),
    contract: str = typer.Option(None, "--contract", help="Exact contract name."),
    label: str = typer.Option(None, "--label", help="Exact label."),
    type_: DeploymentType = typer.Option(
        None, "--type", "-t", case_sensitive=False, help="Deployment type."
    ),
    tag: str = typer.Option(None, "--tag", help="Only deployments carrying this tag."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """List recorded deployments, sorted by id."""
    config = get_config(ctx)
    with cli_errors():
        store = open_store(config)
        deployments = store.get_all_deployments(
            DeploymentFilter(
                namespace=namespace,
                chain_id=chain,
                contract_name=contract,
                label=label,
                type=type_,
                tag=tag,
            )
        )

    if as_json:
        typer.echo(
            json.dumps(
                [d.model_dump(mode="json", by_alias=True) for d in deployments], indent=2
            )
        )
        return
    if not deployments:
        console.print("[dim]No deployments found.[/dim]")
        return
    console.print(deployments_table(deployments))

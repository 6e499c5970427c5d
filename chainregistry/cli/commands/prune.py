"""``chainregistry prune --chain ID`` — delete records absent on-chain."""

from __future__ import annotations

import typer
from rich.prompt import Confirm

from chainregistry.bridge.chain_client import RpcChainClient
from chainregistry.cli.render import prune_table
from chainregistry.cli.support import cli_errors, console, get_config, open_store
from chainregistry.core.pruner import RegistryPruner


def prune_cmd(
    ctx: typer.Context,
    chain: int = typer.Option(..., "--chain", "-c", help="Chain id to check."),
    include_pending: bool = typer.Option(
        False, "--include-pending", help="Also prune pending transactions with no receipt."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Remove deployments whose address has no code on the given chain."""
    config = get_config(ctx)
    with cli_errors():
        with open_store(config) as store:
            client = RpcChainClient(config.rpc_urls, timeout=config.http_timeout_seconds)
            candidates = RegistryPruner(store, client).collect(
                chain, include_pending=include_pending
            )
            for record_id in candidates.unchecked:
                console.print(f"[yellow]Could not check {record_id}; keeping it.[/yellow]")
            if not candidates.total:
                console.print(f"[green]Nothing to prune on chain {chain}.[/green]")
                return

            console.print(prune_table(candidates))
            if not yes:
                if config.non_interactive:
                    console.print("[yellow]Refusing to prune without --yes.[/yellow]")
                    raise typer.Exit(code=1)
                if not Confirm.ask(f"Delete {candidates.total} records?", console=console):
                    console.print("[dim]Aborted.[/dim]")
                    return

            removed = store.prune(candidates)
            console.print(
                f"[bold]Pruned[/bold] {len(removed.deployment_ids)} deployments, "
                f"{len(removed.transaction_ids)} transactions."
            )

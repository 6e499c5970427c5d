"""``chainregistry sync`` — advance pending records from chain and Safe state."""

from __future__ import annotations

import typer

from chainregistry.bridge.chain_client import RpcChainClient
from chainregistry.bridge.safe_client import SafeServiceClient
from chainregistry.cli.render import safe_transactions_table, sync_panel
from chainregistry.cli.support import cli_errors, console, get_config, open_store
from chainregistry.core.sync import SyncEngine


def sync_cmd(
    ctx: typer.Context,
    clean: bool = typer.Option(
        False, "--clean", help="Also prune deployments with no code on-chain."
    ),
    workers: int = typer.Option(
        None, "--workers", "-w", help="Chains polled concurrently (default from config)."
    ),
) -> None:
    """Reconcile queued Safe transactions and pending transactions."""
    config = get_config(ctx)
    with cli_errors():
        with open_store(config) as store:
            engine = SyncEngine(
                store,
                RpcChainClient(config.rpc_urls, timeout=config.http_timeout_seconds),
                SafeServiceClient(
                    config.safe_service_urls, timeout=config.http_timeout_seconds
                ),
                max_workers=workers or config.sync_max_workers,
            )
            report = engine.sync(clean=clean)
            still_queued = store.pending_safe_transactions()

    console.print(sync_panel(report))
    if still_queued:
        console.print(safe_transactions_table(still_queued))

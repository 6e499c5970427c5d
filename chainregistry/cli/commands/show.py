"""``chainregistry show IDENT`` — show one deployment in detail.

IDENT may be an address, a full id, ``[namespace/][chainId/]Contract[:label]``
or a fragment of the contract name.
"""

from __future__ import annotations

import json

import typer

from chainregistry.cli.render import deployment_panel
from chainregistry.cli.support import (
    cli_errors,
    console,
    get_config,
    open_store,
    resolve_deployment,
)


def show_cmd(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Address, id or contract reference."),
    namespace: str = typer.Option(None, "--namespace", "-n", help="Restrict to a namespace."),
    chain: int = typer.Option(None, "--chain", "-c", help="Restrict to a chain id."),
    as_json: bool = typer.Option(False, "--json", help="Print the record as JSON."),
) -> None:
    """Show a single deployment, its transaction and proxy links."""
    config = get_config(ctx)
    with cli_errors():
        store = open_store(config)
        dep = resolve_deployment(store, identifier, config, namespace, chain)

    if as_json:
        typer.echo(json.dumps(dep.model_dump(mode="json", by_alias=True), indent=2))
        return

    impl_id = store.index.implementation_of(dep.id)
    console.print(
        deployment_panel(
            dep,
            transaction=store.get_transaction(dep.transaction_id) if dep.transaction_id else None,
            implementation=store.get(impl_id) if impl_id else None,
            proxies=store.index.proxies_of(dep.id),
        )
    )

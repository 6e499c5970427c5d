"""``chainregistry addresses`` — print the chainId -> namespace -> name -> address view."""

from __future__ import annotations

import json

import typer

from chainregistry.cli.support import cli_errors, get_config, open_store


def addresses_cmd(
    ctx: typer.Context,
    chain: int = typer.Option(None, "--chain", "-c", help="Only this chain id."),
    namespace: str = typer.Option(None, "--namespace", "-n", help="Only this namespace."),
) -> None:
    """Print deployed addresses as JSON, for consumption by other tools."""
    config = get_config(ctx)
    with cli_errors():
        view = open_store(config).address_view()

    if chain is not None:
        view = {k: v for k, v in view.items() if k == str(chain)}
    if namespace is not None:
        view = {
            k: {ns: names for ns, names in v.items() if ns == namespace}
            for k, v in view.items()
        }
        view = {k: v for k, v in view.items() if v}
    typer.echo(json.dumps(view, indent=2, sort_keys=True))

"""``chainregistry tag IDENT`` — add or remove deployment tags.

When IDENT matches several deployments the user picks one.  Applying the
change to every match requires ``--all``; non-interactive runs never
apply to all matches implicitly.
"""

from __future__ import annotations

import typer

from chainregistry.cli.support import choose, cli_errors, console, get_config, open_store
from chainregistry.core.errors import NotFoundError, ValidationError
from chainregistry.core.resolver import DeploymentResolver, ResolveOutcome


def tag_cmd(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Address, id or contract reference."),
    add: list[str] = typer.Option([], "--add", "-a", help="Tag to add (repeatable)."),
    remove: list[str] = typer.Option([], "--remove", "-r", help="Tag to remove (repeatable)."),
    namespace: str = typer.Option(None, "--namespace", "-n", help="Restrict to a namespace."),
    chain: int = typer.Option(None, "--chain", "-c", help="Restrict to a chain id."),
    all_matches: bool = typer.Option(
        False, "--all", help="Apply to every matching deployment."
    ),
) -> None:
    """Add or remove tags on one deployment (or every match with --all)."""
    config = get_config(ctx)
    with cli_errors():
        if not add and not remove:
            raise ValidationError("nothing to do: pass --add and/or --remove")
        with open_store(config) as store:
            resolution = DeploymentResolver(store).resolve(
                identifier, namespace=namespace, chain_id=chain
            )
            if resolution.outcome == ResolveOutcome.NOT_FOUND:
                raise NotFoundError(f"no deployment found matching '{identifier}'")
            if all_matches:
                targets = resolution.candidates
            else:
                targets = [choose(resolution, config.non_interactive)]

            for dep in targets:
                for tag in add:
                    dep = store.tag(dep.id, tag)
                for tag in remove:
                    dep = store.untag(dep.id, tag)
                console.print(
                    f"[bold]{dep.id}[/bold]: {', '.join(dep.tags) or '[dim]no tags[/dim]'}"
                )

"""Shared plumbing for CLI commands: config, store, errors, disambiguation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.prompt import IntPrompt

from chainregistry.cli.render import candidates_table
from chainregistry.config import RegistryConfig
from chainregistry.core.errors import AmbiguousMatchError, NotFoundError, RegistryError
from chainregistry.core.registry_store import RegistryStore
from chainregistry.core.resolver import DeploymentResolver, Resolution, ResolveOutcome
from chainregistry.models.deployments import Deployment

console = Console()
err_console = Console(stderr=True)


def get_config(ctx: typer.Context) -> RegistryConfig:
    """Config built by the app callback, or a fresh one from the environment."""
    if ctx.obj is None:
        ctx.obj = RegistryConfig()
    return ctx.obj


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn registry errors into a red message and exit status 1."""
    try:
        yield
    except RegistryError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}", highlight=False)
        raise typer.Exit(code=1) from exc


def open_store(config: RegistryConfig) -> RegistryStore:
    return RegistryStore(config.registry_path)


def choose(resolution: Resolution, non_interactive: bool) -> Deployment:
    """Pick one candidate from a resolution, asking the user if allowed."""
    if resolution.outcome == ResolveOutcome.NOT_FOUND:
        raise NotFoundError(f"no deployment found matching '{resolution.identifier}'")
    if resolution.outcome == ResolveOutcome.MATCH:
        return resolution.candidates[0]
    if non_interactive:
        raise AmbiguousMatchError(resolution.identifier, resolution.candidates)

    console.print(candidates_table(resolution.candidates))
    choice = IntPrompt.ask(
        "Select a deployment",
        choices=[str(n) for n in range(1, len(resolution.candidates) + 1)],
        show_choices=False,
        console=console,
    )
    return resolution.candidates[choice - 1]


def resolve_deployment(
    store: RegistryStore,
    identifier: str,
    config: RegistryConfig,
    namespace: str | None = None,
    chain_id: int | None = None,
) -> Deployment:
    resolution = DeploymentResolver(store).resolve(
        identifier, namespace=namespace, chain_id=chain_id
    )
    return choose(resolution, config.non_interactive)

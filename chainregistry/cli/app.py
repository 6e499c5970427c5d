"""Main Typer application — imports and registers all CLI commands.

Entry point: ``chainregistry`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

from pathlib import Path

import typer

from chainregistry.cli.commands.addresses import addresses_cmd
from chainregistry.cli.commands.list_cmd import list_cmd
from chainregistry.cli.commands.orchestrate import orchestrate_cmd
from chainregistry.cli.commands.prune import prune_cmd
from chainregistry.cli.commands.show import show_cmd
from chainregistry.cli.commands.sync_cmd import sync_cmd
from chainregistry.cli.commands.tag import tag_cmd
from chainregistry.config import RegistryConfig
from chainregistry.log import configure_logging

app = typer.Typer(
    name="chainregistry",
    help="Multi-chain deployment registry, orchestrator and Safe sync.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    registry: Path = typer.Option(
        None, "--registry", "-R", help="Path to registry.json."
    ),
    namespace: str = typer.Option(None, "--namespace", help="Default namespace."),
    non_interactive: bool = typer.Option(
        None,
        "--non-interactive/--interactive",
        help="Never prompt; ambiguous identifiers become errors.",
    ),
    log_level: str = typer.Option(None, "--log-level", help="Logging level."),
    debug: bool = typer.Option(None, "--debug", help="Verbose script output."),
) -> None:
    overrides = {
        key: value
        for key, value in {
            "registry_path": registry,
            "namespace": namespace,
            "non_interactive": non_interactive,
            "log_level": log_level,
            "debug": debug,
        }.items()
        if value is not None
    }
    config = RegistryConfig(**overrides)
    ctx.obj = config
    configure_logging("DEBUG" if config.debug else config.log_level)


# Register subcommands
app.command(name="list", help="List deployments.")(list_cmd)
app.command(name="show", help="Show one deployment.")(show_cmd)
app.command(name="tag", help="Add or remove deployment tags.")(tag_cmd)
app.command(name="sync", help="Sync pending Safe and chain transactions.")(sync_cmd)
app.command(name="prune", help="Delete records absent on-chain.")(prune_cmd)
app.command(name="orchestrate", help="Run a deployment orchestration plan.")(orchestrate_cmd)
app.command(name="addresses", help="Print the address view as JSON.")(addresses_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

"""chainregistry CLI — Typer-based command-line interface.

Provides the ``chainregistry`` command with subcommands for listing and
inspecting deployments, tagging, syncing pending records, pruning, and
orchestrating deployment plans.

All output uses Rich for formatted terminal display.
"""

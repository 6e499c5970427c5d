"""Logging setup for the CLI.

Library modules only ever do ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI entry point.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "chainregistry-rich"


def configure_logging(level: str | int = "INFO", console: Console | None = None) -> None:
    """Install a rich handler on the ``chainregistry`` package logger.

    Calling it again only changes the level.  Log records go to stderr so
    that command output on stdout stays machine-readable.
    """
    logger = logging.getLogger("chainregistry")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)

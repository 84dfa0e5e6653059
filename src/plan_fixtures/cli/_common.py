"""Shared utilities for CLI commands."""

import logging
import signal
import sys
from pathlib import Path
from typing import List, Tuple

import typer
from rich.logging import RichHandler

from plan_fixtures.cli._console import console, print_err
from plan_fixtures.config import GeneratorSettings
from plan_fixtures.startup import ensure_initialized

USAGE = "[SRC] DST"


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=console,  # stderr, keeps stdout for data
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def setup_signal_handlers() -> None:
    """Set up signal handlers for graceful shutdown."""
    def handler(signum, frame):
        console.print("\n[yellow]![/yellow] Generation interrupted by user. Exiting...")
        sys.exit(130)

    signal.signal(signal.SIGINT, handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handler)


def load_settings(**overrides) -> GeneratorSettings:
    """Initialized settings with non-None CLI overrides applied.

    Invalid environment values or options end the command with status 1.
    """
    try:
        return ensure_initialized().with_overrides(**overrides)
    except ValueError as e:  # includes pydantic ValidationError
        print_err(f"Invalid configuration: {e}")
        raise SystemExit(1)


def resolve_paths(paths: List[str], default_src: str) -> Tuple[Path, Path]:
    """Map positional arguments to (source, destination).

    One argument is the destination (source defaults to ``default_src``);
    two are source then destination.

    Raises:
        typer.BadParameter: For any other argument count
    """
    if len(paths) == 1:
        return Path(default_src), Path(paths[0])
    if len(paths) == 2:
        return Path(paths[0]), Path(paths[1])
    raise typer.BadParameter(
        f"expected 1 or 2 paths, got {len(paths)}. Usage: {USAGE}",
        param_hint=USAGE,
    )

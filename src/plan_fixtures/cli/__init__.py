"""CLI package: Typer-based command-line interface.

Usage:
    python -m plan_fixtures --help
    python -m plan_fixtures generate --help
"""

from plan_fixtures.cli._app import app

# Register command modules (side-effect imports)
import plan_fixtures.cli.cmd_generate  # noqa: F401
import plan_fixtures.cli.cmd_inspect  # noqa: F401

__all__ = ["app"]

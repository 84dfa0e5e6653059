"""Generate command: compile test cases into plan fixtures."""

from typing import List, Optional

import typer

from plan_fixtures.cli._app import app
from plan_fixtures.cli._common import (
    USAGE,
    load_settings,
    resolve_paths,
    setup_logging,
    setup_signal_handlers,
)
from plan_fixtures.cli._console import print_err, print_summary
from plan_fixtures.engine.base import EngineError
from plan_fixtures.generator import generate
from plan_fixtures.loader import FixtureLoadError


@app.command("generate", help="Generate plan fixtures from Rego test cases.")
def generate_cmd(
    ctx: typer.Context,
    paths: List[str] = typer.Argument(
        ...,
        metavar=USAGE,
        help="Destination root, optionally preceded by the source tree",
        show_default=False,
    ),
    opa: Optional[str] = typer.Option(
        None,
        "--opa",
        help="opa executable (default: $PLAN_FIXTURES_OPA or 'opa')",
    ),
    prune_unused: Optional[bool] = typer.Option(
        None,
        "--prune-unused/--no-prune-unused",
        help="Drop code not reachable from the entry points",
    ),
    v0_compatible: Optional[bool] = typer.Option(
        None,
        "--v0-compatible/--no-v0-compatible",
        help="Parse and compile modules as Rego v0",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-command engine timeout in seconds",
    ),
):
    """Compile every case, evaluate its expected result and write fixtures."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    setup_signal_handlers()

    settings = load_settings(
        opa_binary=opa,
        prune_unused=prune_unused,
        v0_compatible=v0_compatible,
        timeout_seconds=timeout,
    )

    src, dst = resolve_paths(paths, settings.default_src)

    try:
        summary = generate(src, dst, settings=settings)
    except (FixtureLoadError, EngineError, OSError) as e:
        print_err(str(e))
        raise SystemExit(1)

    print_summary(summary, ctx=ctx, brief=ctx.obj["quiet"])

"""Inspection commands for case entry points and the engine version."""

from pathlib import Path
from typing import Optional

import typer

from plan_fixtures.cli._app import app
from plan_fixtures.cli._common import load_settings, setup_logging
from plan_fixtures.cli._console import (
    output_json,
    print_entrypoint_rows,
    print_err,
    stdout_console,
)
from plan_fixtures.engine.base import EngineError
from plan_fixtures.evaluator import create_query
from plan_fixtures.generator import create_engine
from plan_fixtures.loader import FixtureLoadError, load_test_file
from plan_fixtures.modules import derive_entrypoints, get_module_files, module_sources


@app.command("entrypoints", help="Show derived entry points for each case in a file.")
def entrypoints_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Test definition file"),
    opa: Optional[str] = typer.Option(None, "--opa", help="opa executable"),
):
    """Parse each case's modules and print entry points and the result query."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    settings = load_settings(opa_binary=opa)
    engine = create_engine(settings)

    rows = []
    try:
        test_file = load_test_file(path)
        for case in test_file.cases:
            entrypoints = derive_entrypoints(
                get_module_files(engine, module_sources(case))
            )
            rows.append({
                "note": case.note,
                "entrypoints": entrypoints,
                "query": create_query(entrypoints),
            })
    except (FixtureLoadError, EngineError) as e:
        print_err(str(e))
        raise SystemExit(1)

    print_entrypoint_rows(rows, ctx=ctx, title=str(path))


@app.command("engine-version", help="Show the policy engine version.")
def engine_version_cmd(
    ctx: typer.Context,
    opa: Optional[str] = typer.Option(None, "--opa", help="opa executable"),
):
    """Print the version report of the configured engine."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    settings = load_settings(opa_binary=opa)

    try:
        report = create_engine(settings).version()
    except EngineError as e:
        print_err(str(e))
        raise SystemExit(1)

    if not output_json({"opa_binary": settings.opa_binary, "version": report}, ctx=ctx):
        stdout_console.print(report, markup=False, highlight=False)

# src/specguard/cli.py
"""specguard Command Line Interface.

Entry point for the specguard CLI tool.
"""

from __future__ import annotations

import importlib
import json
import pprint
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from specguard import __version__
from specguard.contracts.enums import ResultType
from specguard.core.config import CheckOptions, SpecguardSettings, load_settings, settings_from_env
from specguard.core.logging import configure_logging
from specguard.engine.instrument import default_manager
from specguard.engine.reporting import summarize
from specguard.engine.runner import check, testable_names

__all__ = [
    "app",
]

app = typer.Typer(
    name="specguard",
    help="specguard: generative testing of spec'ed Python callables.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"specguard version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """specguard: generative testing of spec'ed Python callables."""


def _load(settings_path: Path | None) -> SpecguardSettings:
    try:
        if settings_path is not None:
            return load_settings(settings_path)
        return settings_from_env()
    except FileNotFoundError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.secho("Configuration errors:", fg=typer.colors.RED, err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.secho(f"  - {loc}: {error['msg']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None


def _import_modules(modules: list[str]) -> None:
    """Import modules so their fn-specs register."""
    for module in modules:
        try:
            importlib.import_module(module)
        except ImportError as e:
            typer.secho(f"Error: cannot import {module}: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1) from None


@app.command("check")
def check_command(
    names: list[str] | None = typer.Argument(
        None,
        help="Units to check (module:qualname). Defaults to every testable unit.",
    ),
    module: list[str] | None = typer.Option(
        None,
        "--module",
        "-m",
        help="Module to import before checking (repeatable).",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to a specguard YAML settings file.",
    ),
    num_tests: int | None = typer.Option(
        None,
        "--num-tests",
        "-n",
        min=1,
        help="Generative trials per unit.",
    ),
    seed: int | None = typer.Option(
        None,
        "--seed",
        help="Fix the random seed for reproducible runs.",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        help="Emit results and summary as JSON lines.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Generatively test spec'ed units and print a summary."""
    settings = _load(settings_path)
    configure_logging(json_output=settings.json_logs, level=log_level or settings.log_level)
    _import_modules([*settings.modules, *(module or [])])

    engine_options: dict[str, Any] = dict(settings.engine_options)
    if seed is not None:
        engine_options["seed"] = seed
    options = CheckOptions.from_settings(settings, num_tests=num_tests, engine_options=engine_options)

    if output_json:

        def emit(x: Any) -> None:
            typer.echo(json.dumps(x, default=repr))
    else:

        def emit(x: Any) -> None:
            typer.echo(pprint.pformat(x))

    summary = summarize(check(names or None, options), emit=emit)

    if output_json:
        typer.echo(json.dumps({"summary": summary.as_dict()}))
    else:
        parts = [f"{kind.value}: {count}" for kind, count in sorted(summary.counts.items())]
        typer.echo(f"\nTotal: {summary.total}" + (f" | {' | '.join(parts)}" if parts else ""))

    if summary.total != summary[ResultType.PASSED]:
        raise typer.Exit(1)


@app.command("list")
def list_command(
    module: list[str] | None = typer.Option(
        None,
        "--module",
        "-m",
        help="Module to import before listing (repeatable).",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to a specguard YAML settings file.",
    ),
) -> None:
    """List testable units and the units currently instrumented."""
    settings = _load(settings_path)
    _import_modules([*settings.modules, *(module or [])])

    manager = default_manager()
    typer.echo("Testable units:")
    for name in sorted(testable_names(manager=manager)):
        typer.echo(f"  {name}")
    instrumented = sorted(manager.instrumented_names())
    if instrumented:
        typer.echo("Instrumented units:")
        for name in instrumented:
            typer.echo(f"  {name}")


if __name__ == "__main__":
    app()

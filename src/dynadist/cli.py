"""Typer-based CLI entry point."""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import load_family_config
from .distributions import get_family, list_families
from .dynamic import DynamicDistribution
from .errors import DynadistError

app = typer.Typer(help="dynadist runtime distribution factory CLI.")
console = Console()

VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose output.")
VERSION_OPTION = typer.Option(False, "--version", help="Show version and exit.")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML family definitions (file or directory) to register (repeat for multiples).",
    show_default=False,
)

NAME_ARGUMENT = typer.Argument(..., help="Distribution name or alias (case-insensitive).")

PARAM_OPTION = typer.Option(
    None,
    "--param",
    "-p",
    help="Parameter as key=value; any accepted alias works (repeat for multiples).",
    show_default=False,
)

POINTS_OPTION = typer.Option(
    None,
    "--at",
    "-x",
    help="Evaluation point (repeat for multiples).",
    show_default=False,
)

PROBABILITY_OPTION = typer.Option(
    None,
    "--probability",
    "-q",
    help="Probability in [0, 1] (repeat for multiples; defaults to common quantiles).",
    show_default=False,
)

PRECISION_OPTION = typer.Option(
    None,
    "--precision",
    help="Floating-point tier: float32, float64 or longdouble.",
    show_default=False,
)

DEFAULT_PROBABILITIES = (0.01, 0.05, 0.25, 0.5, 0.75, 0.95, 0.99)


@app.callback(invoke_without_command=True)
def cli_callback(  # noqa: B008
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,
    version: bool = VERSION_OPTION,
    config: list[Path] | None = CONFIG_OPTION,
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    if verbose or version:
        console.print(f"[bold green]dynadist {__version__}[/bold green]")
    if config:
        registered = load_family_config(config)
        if verbose and registered:
            console.print(f"Registered families: {', '.join(registered)}")
    if ctx.invoked_subcommand is None and not ctx.resilient_parsing:
        raise typer.Exit()


@app.command()
def registry() -> None:
    """List registered distribution families."""
    table = Table(title="Registered Distributions")
    table.add_column("Name", no_wrap=True)
    table.add_column("Aliases", overflow="fold")
    table.add_column("Parameters", overflow="fold")
    table.add_column("Description", overflow="fold")
    for name in list_families():
        family = get_family(name)
        aliases = ", ".join(alias for alias in family.aliases if alias != family.name)
        table.add_row(family.name, aliases, family.parameter_summary(), family.notes or "")
    console.print(table)


@app.command()
def evaluate(  # noqa: B008
    name: str = NAME_ARGUMENT,
    params: list[str] | None = PARAM_OPTION,
    points: list[float] | None = POINTS_OPTION,
    precision: str | None = PRECISION_OPTION,
) -> None:
    """Evaluate pointwise functions at one or more points."""
    if not points:
        console.print("[red]Provide at least one evaluation point with --at/-x.[/red]")
        raise typer.Exit(code=1)
    with _open(name, params, precision) as dist:
        table = Table(title=f"{dist.family_name} pointwise values")
        table.add_column("x", justify="right", no_wrap=True)
        for column in ("pdf", "cdf", "sf", "hazard", "chf"):
            table.add_column(column, justify="right", no_wrap=True)
        for x in points:
            row = [dist.pdf(x), dist.cdf(x), dist.sf(x), dist.hazard(x), dist.chf(x)]
            table.add_row(_format_metric(x), *(_format_metric(value) for value in row))
    console.print(table)


@app.command()
def describe(  # noqa: B008
    name: str = NAME_ARGUMENT,
    params: list[str] | None = PARAM_OPTION,
    precision: str | None = PRECISION_OPTION,
) -> None:
    """Show support and descriptive statistics."""
    with _open(name, params, precision) as dist:
        summary = dist.summary()
    table = Table(title=f"{summary.family} ({summary.precision})")
    table.add_column("Statistic", no_wrap=True)
    table.add_column("Value", justify="right", no_wrap=True)
    for key, value in summary.parameters.items():
        table.add_row(f"param {key}", _format_metric(value))
    table.add_row("support lower", _format_bound(summary.support_lower))
    table.add_row("support upper", _format_bound(summary.support_upper))
    table.add_row("discrete", "yes" if summary.is_discrete else "no")
    for field_name in (
        "mean",
        "variance",
        "skewness",
        "kurtosis",
        "kurtosis_excess",
        "mode",
        "median",
        "entropy",
    ):
        table.add_row(field_name, _format_metric(getattr(summary, field_name)))
    console.print(table)


@app.command()
def quantile(  # noqa: B008
    name: str = NAME_ARGUMENT,
    params: list[str] | None = PARAM_OPTION,
    probabilities: list[float] | None = PROBABILITY_OPTION,
    precision: str | None = PRECISION_OPTION,
) -> None:
    """Tabulate lower- and upper-tail quantiles."""
    chosen = probabilities or list(DEFAULT_PROBABILITIES)
    with _open(name, params, precision) as dist:
        table = Table(title=f"{dist.family_name} quantiles")
        table.add_column("p", justify="right", no_wrap=True)
        table.add_column("quantile", justify="right", no_wrap=True)
        table.add_column("complement", justify="right", no_wrap=True)
        for p in chosen:
            table.add_row(
                _format_metric(p),
                _format_metric(dist.quantile(p)),
                _format_metric(dist.quantile_complement(p)),
            )
    console.print(table)


def parse_parameters(items: Iterable[str] | None) -> dict[str, float]:
    """Parse ``key=value`` strings; later duplicates do not replace earlier ones."""
    parsed: dict[str, float] = {}
    for item in items or []:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{item}'. Expected key=value.")
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"Parameter '{key}' has a non-numeric value '{raw}'.") from exc
        parsed.setdefault(key, value)
    return parsed


def _open(name: str, params: list[str] | None, precision: str | None) -> DynamicDistribution:
    try:
        return DynamicDistribution(name, parse_parameters(params), precision=precision)
    except (DynadistError, ValueError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def main_entry() -> None:
    app()


def main() -> None:  # pragma: no cover - console entry
    main_entry()


def _format_metric(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, numbers.Real):
        val = float(value)
        if math.isnan(val) or math.isinf(val):
            return "-"
        return f"{val:.4f}"
    return str(value)


def _format_bound(value: float) -> str:
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return _format_metric(value)

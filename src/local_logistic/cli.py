"""Command-line interface for local logistic regression predictions.

Provides ``predict`` and ``inspect`` commands with rich terminal output
using the ``click`` and ``rich`` libraries.

Usage::

    local-logistic predict logreg.json --input '{"age": 50, "city": "Lyon"}'
    local-logistic predict logreg.json --input-file row.json --output json
    local-logistic inspect logreg.json
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .classifier import LocalLogisticRegression
from .config import Settings
from .errors import LogisticError
from .loader import load_resource
from .models import Prediction

console = Console()


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level_number,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(model_file: Path) -> LocalLogisticRegression:
    try:
        return LocalLogisticRegression(load_resource(model_file))
    except LogisticError as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)


@click.group()
@click.version_option(package_name="local-logistic")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Offline predictions from BigML logistic regression models."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    _setup_logging(settings)
    ctx.obj = settings


@main.command()
@click.argument("model_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--input", "-i", "input_json", default=None,
              help="Input row as a JSON object keyed by field name or id.")
@click.option("--input-file", "-f", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Read the input row from a JSON file.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_obj
def predict(
    settings: Settings,
    model_file: Path,
    input_json: str | None,
    input_file: Path | None,
    output: str,
) -> None:
    """Predict the objective category for one input row.

    Example: local-logistic predict logreg.json --input '{"age": 50}'
    """
    if (input_json is None) == (input_file is None):
        raise click.UsageError("Give exactly one of --input or --input-file.")
    raw = input_json if input_json is not None else input_file.read_text(encoding="utf-8")
    try:
        row = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="input") from e
    if not isinstance(row, dict):
        raise click.BadParameter("must be a JSON object", param_hint="input")

    local = _load(model_file)
    try:
        result = local.predict(row)
    except LogisticError as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)

    if output == "json":
        click.echo(json.dumps(result.to_dict(settings.precision), indent=2))
    else:
        _render_prediction(result, model_file.name, settings.precision)


@main.command()
@click.argument("model_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
def inspect(model_file: Path, output: str) -> None:
    """Show the objective, input fields, and coefficient layout of a model.

    Example: local-logistic inspect logreg.json
    """
    local = _load(model_file)
    model = local.model

    if output == "json":
        click.echo(json.dumps({
            "resource": model.resource_id,
            "objective_field": model.objective_field,
            "categories": list(model.categories),
            "missing_numerics": model.missing_numerics,
            "input_fields": [model.fields[fid].to_dict() for fid in model.input_fields],
        }, indent=2))
        return

    objective = model.fields[model.objective_field]
    console.print(Panel(
        f"[bold]{model.resource_id or model_file.name}[/]\n"
        f"Objective: {objective.name} ({model.objective_field}) | "
        f"Categories: {len(model.categories)} | "
        f"Missing numerics: {'yes' if model.missing_numerics else 'no'}",
        title="Logistic Regression",
        border_style="blue",
    ))

    table = Table(title="Input Fields", show_lines=False)
    table.add_column("#", justify="right", width=4)
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Optype")
    table.add_column("Terms", justify="right")
    table.add_column("Coefficients", justify="right")
    table.add_column("Coding")

    for i, field_id in enumerate(model.input_fields, 1):
        field = model.fields[field_id]
        coding = model.field_codings.get(field_id)
        table.add_row(
            str(i),
            field_id,
            field.name,
            field.optype,
            str(len(field.vocabulary)) if field.is_expanded else "-",
            f"{field.coefficients_shift}:{field.coefficients_shift + field.coefficients_length}",
            next(iter(coding)) if coding else "-",
        )

    console.print(table)
    console.print()


# ------------------------------------------------------------------
# Rich rendering helpers
# ------------------------------------------------------------------

def _render_prediction(result: Prediction, filename: str, precision: int) -> None:
    """Render a Prediction as a ranked table."""
    console.print()
    console.print(Panel(
        f"[bold]{result.prediction}[/] with probability "
        f"[bold green]{result.probability:.{precision}f}[/]",
        title=f"Prediction: {filename}",
        border_style="blue",
    ))

    table = Table(title="Distribution", show_lines=False)
    table.add_column("#", justify="right", width=4)
    table.add_column("Category", style="cyan")
    table.add_column("Probability", justify="right")

    for i, item in enumerate(result.distribution, 1):
        table.add_row(
            str(i),
            item.category,
            f"{item.probability:.{precision}f}",
            style="bold" if i == 1 else None,
        )

    console.print(table)
    console.print()


if __name__ == "__main__":
    main()

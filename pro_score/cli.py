"""CLI for the pro-score questionnaire scoring engine."""

import json
from pathlib import Path
from typing import Annotated

import jsonschema
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pro_score import __version__
from pro_score.bundle import ResponseGrouper
from pro_score.config import (
    GlobalConfig,
    get_config_path,
    get_pro_score_home,
    get_registry_path,
    load_global_config,
    save_global_config,
)
from pro_score.derivation import derive_for_config
from pro_score.engine import SummaryEngine
from pro_score.io import read_bundle, write_jsonl
from pro_score.log import setup_logging
from pro_score.registry import ConfigNotFoundError, ConfigRegistry, ConfigValidationError
from pro_score.registry.configs import load_schema, validate_config_data

app = typer.Typer(
    name="pro-score",
    help="Scoring and derivation engine for patient-reported outcome questionnaires.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

RegistryOption = Annotated[
    Path | None,
    typer.Option(
        "--registry",
        "-r",
        envvar="PRO_SCORE_REGISTRY",
        help="Instrument registry directory (containing instruments/*.json)",
    ),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"pro-score version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (default from config.yaml)"),
    ] = None,
) -> None:
    """pro-score: Questionnaire scoring and derivation engine."""
    setup_logging(log_level or load_global_config().log_level)


def _load_registry(registry: Path | None) -> ConfigRegistry:
    path = registry if registry is not None else get_registry_path()
    if path is not None and not path.exists():
        err_console.print(f"[red]Error:[/red] Registry not found: {path}")
        raise typer.Exit(1)
    try:
        config_registry = ConfigRegistry(path)
        config_registry.list_keys()
    except (ConfigNotFoundError, ConfigValidationError) as e:
        err_console.print(f"[red]Error loading registry:[/red] {e}")
        raise typer.Exit(1)
    return config_registry


def _load_bundle(input_path: Path) -> object:
    if not input_path.exists():
        err_console.print(f"[red]Error:[/red] Input file not found: {input_path}")
        raise typer.Exit(1)
    try:
        return read_bundle(input_path)
    except (json.JSONDecodeError, ValueError) as e:
        err_console.print(f"[red]Error:[/red] Could not read {input_path}: {e}")
        raise typer.Exit(1)


@app.command()
def init(
    registry: Annotated[
        Path | None,
        typer.Option("--registry", "-r", help="Instrument registry directory to use by default"),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Default log level"),
    ] = "WARNING",
    include_incomplete: Annotated[
        bool,
        typer.Option("--include-incomplete", help="Summarize non-completed responses by default"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config.yaml"),
    ] = False,
) -> None:
    """Initialize the pro-score home directory and config.yaml.

    Creates:
      ~/.config/pro-score/config.yaml
      ~/.config/pro-score/registry/instruments/
    """
    home = get_pro_score_home()
    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Warning:[/yellow] Config already exists at {config_path}")
        console.print("Use --force to overwrite")
        raise typer.Exit(1)

    console.print(f"[bold]Initializing pro-score at {home}[/bold]")
    (home / "registry" / "instruments").mkdir(parents=True, exist_ok=True)
    config = GlobalConfig(
        default_registry_path=str(registry.resolve()) if registry is not None else None,
        log_level=log_level.upper(),
        completed_only=not include_incomplete,
    )
    save_global_config(config)
    console.print(f"  [green]✓[/green] Created config at {config_path}")


@app.command()
def summarize(
    input_path: Annotated[
        Path,
        typer.Option("--in", "-i", help="Bundle file (JSON Bundle, JSON array or JSONL)"),
    ],
    output_path: Annotated[
        Path,
        typer.Option("--out", "-o", help="Output JSONL file path"),
    ],
    instrument: Annotated[
        str | None,
        typer.Option("--instrument", help="Only summarize this instrument key"),
    ] = None,
    include_incomplete: Annotated[
        bool | None,
        typer.Option(
            "--include-incomplete/--completed-only",
            help="Also summarize non-completed responses (default from config.yaml)",
        ),
    ] = None,
    registry: RegistryOption = None,
) -> None:
    """Summarize questionnaire responses into one JSONL record per questionnaire."""
    bundle = _load_bundle(input_path)
    config_registry = _load_registry(registry)
    engine = SummaryEngine(bundle=bundle, registry=config_registry)
    if include_incomplete is None:
        completed_only = load_global_config().completed_only
    else:
        completed_only = not include_incomplete

    if instrument:
        try:
            config = config_registry.get(instrument)
        except ConfigNotFoundError as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        summary = engine.summary_for_questionnaire(config, completed_only=completed_only)
        summaries = {instrument: summary} if summary is not None else {}
    else:
        summaries = engine.summaries_by_questionnaire(completed_only=completed_only)

    count = write_jsonl(
        output_path,
        (
            {"ref": ref, **summary.model_dump(mode="json", exclude={"questionnaire"})}
            for ref, summary in summaries.items()
        ),
    )

    table = Table(title="Summaries")
    table.add_column("Questionnaire")
    table.add_column("Rows", justify="right")
    table.add_column("Latest score", justify="right")
    table.add_column("Severity")
    for ref, summary in summaries.items():
        latest = summary.response_data[0] if summary.response_data else None
        table.add_row(
            ref,
            str(len(summary.response_data)),
            "" if latest is None or latest.score is None else f"{latest.score:g}",
            summary.error or (latest.score_severity if latest else ""),
        )
    console.print(table)
    console.print(f"[green]✓[/green] {count} summaries written to {output_path}")


@app.command()
def derive(
    input_path: Annotated[
        Path,
        typer.Option("--in", "-i", help="Bundle file with host responses"),
    ],
    output_path: Annotated[
        Path,
        typer.Option("--out", "-o", help="Output JSONL file path"),
    ],
    instrument: Annotated[
        str | None,
        typer.Option(
            "--instrument", help="Derived instrument key (e.g. CIRG-SI); default: all derived"
        ),
    ] = None,
    registry: RegistryOption = None,
) -> None:
    """Synthesize responses for derived instruments from their host responses."""
    bundle = _load_bundle(input_path)
    config_registry = _load_registry(registry)
    if instrument:
        try:
            config = config_registry.get(instrument)
        except ConfigNotFoundError as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        if config.derive_from is None:
            err_console.print(f"[red]Error:[/red] {instrument} is not a derived instrument")
            raise typer.Exit(1)
        configs = [config]
    else:
        configs = config_registry.derived_configs()

    grouper = ResponseGrouper()
    derived = []
    for config in configs:
        hosts = grouper.hosts_for(bundle, config.derive_from.host_ids)
        derived.extend(derive_for_config(hosts, config))
    count = write_jsonl(output_path, derived)
    console.print(f"[green]✓[/green] {count} derived responses written to {output_path}")


@app.command()
def instruments(registry: RegistryOption = None) -> None:
    """List the registered instruments."""
    config_registry = _load_registry(registry)
    table = Table(title="Instruments")
    table.add_column("Key")
    table.add_column("Title")
    table.add_column("Strategy")
    table.add_column("Derived from")
    for config in config_registry.configs():
        table.add_row(
            config.key,
            config.title,
            config.strategy or "generic",
            ", ".join(config.derive_from.host_ids) if config.derive_from else "",
        )
    console.print(table)


@app.command()
def validate(
    config_path: Annotated[
        Path,
        typer.Argument(help="Path to the instrument config file"),
    ],
    schema_path: Annotated[
        Path | None,
        typer.Option("--schema", "-s", help="Path to an alternative schema file"),
    ] = None,
) -> None:
    """Validate an instrument config file against the config schema."""
    if not config_path.exists():
        err_console.print(f"[red]Error:[/red] Config file not found: {config_path}")
        raise typer.Exit(1)
    if schema_path is not None and not schema_path.exists():
        err_console.print(f"[red]Error:[/red] Schema file not found: {schema_path}")
        raise typer.Exit(1)

    try:
        with open(config_path) as f:
            data = json.load(f)
        validate_config_data(data, load_schema(schema_path), source=str(config_path))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid:[/red] not valid JSON: {e}")
        raise typer.Exit(1)
    except (ConfigValidationError, ValidationError, jsonschema.SchemaError) as e:
        console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Valid:[/green] {config_path}")


if __name__ == "__main__":
    app()

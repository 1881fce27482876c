"""Command-line interface for rulegraph."""

import json
from pathlib import Path

import structlog
import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import EngineConfig, FailurePolicy, InputFormat, LogFormat, OutputFormat, load_config
from .core.loader import RuleLoader, RuleSet
from .core.reader import InputReader
from .dependency.graph import DependencyGraph
from .execution.runner import RuleRunner
from .observability import ReportGenerator, configure_logging
from .utils.exceptions import RuleGraphError

app = typer.Typer(
    name="rulegraph",
    help="rulegraph - Dependency-ordered rule evaluation for structured documents",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


def _setup(
    config_file: Path | None,
    log_level: str | None,
    json_logs: bool,
    log_filter: str | None = None,
) -> EngineConfig:
    """Load configuration and configure logging; CLI flags win over the file."""
    config = load_config(config_file)
    configure_logging(
        level=log_level or config.logging.level,
        json_logs=json_logs or config.logging.format is LogFormat.JSON,
        log_file=config.logging.file,
        log_filter=log_filter,
    )
    return config


def _load_rules(rules_path: Path) -> RuleSet:
    return RuleLoader().load([rules_path])


@app.command()
def run(
    rules_path: Path = typer.Argument(..., help="Rule file or directory", exists=True),
    input_paths: list[Path] = typer.Argument(..., help="Input files or directories", exists=True),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    baseline: str | None = typer.Option(None, "--baseline", "-b", help="Evaluate a baseline's rules only"),
    output_format: OutputFormat | None = typer.Option(
        None, "--format", "-f", help="Report format: table, json or yaml", case_sensitive=False
    ),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write the report to a file"),
    object_path: str | None = typer.Option(
        None, "--object-path", help="Dotted path to the objects inside each input document"
    ),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop at the first failed rule"),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log verbosity: TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
    log_filter: str | None = typer.Option(
        None, "--log-filter", help="Only log these components (comma-separated, e.g. 'graph,runner')"
    ),
) -> None:
    """
    Evaluate rules against input documents.

    Rules run in dependency order for every target object. A rule whose
    dependency failed is reported as SKIPPED. Exits with code 1 when any
    rule failed or errored.

    Examples:
        rulegraph run rules/ resources.yaml
        rulegraph run rules/ inputs/ --baseline Production --format json -o report.json
        rulegraph run rules.yaml deployment.json --object-path resources --fail-fast
    """
    try:
        config = _setup(config_file, log_level, json_logs, log_filter)

        if baseline:
            config.execution.baseline = baseline
        if fail_fast:
            config.execution.failure_policy = FailurePolicy.FAIL_FAST
        if output_format:
            config.output.format = output_format
        if output_file:
            config.output.path = output_file
        if object_path:
            config.input.object_path = object_path

        rule_set = _load_rules(rules_path)
        rules = rule_set.select(config.execution.baseline)
        logger.info("Rules selected", baseline=config.execution.baseline, rules=len(rules))

        runner = RuleRunner(rules, config.execution)
        targets = InputReader(config.input).read(input_paths)
        result = runner.run(targets)

        reporter = ReportGenerator(show_skipped=config.output.show_skipped)
        metrics = runner.metrics.get_summary() if runner.metrics else None

        if config.output.format is OutputFormat.TABLE:
            reporter.render_table(result, console)
            if config.output.path:
                reporter.write(result, "json", config.output.path, metrics)
        elif config.output.path:
            reporter.write(result, config.output.format.value, config.output.path, metrics)
            console.print(f"[green]OK:[/green] Report written to {config.output.path}")
        else:
            typer.echo(reporter.dumps(result, config.output.format.value, metrics))

    except (RuleGraphError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if result.failed or result.errors or result.aborted:
        raise typer.Exit(code=1)


@app.command()
def validate(
    rules_path: Path = typer.Argument(..., help="Rule file or directory", exists=True),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log verbosity"),
) -> None:
    """
    Validate rule documents without evaluating them.

    Checks:
    - Document schema (apiVersion, kind, expressions)
    - Field path syntax
    - Duplicate rule and baseline names
    - dependsOn references and cycles, for all rules and each baseline

    Examples:
        rulegraph validate rules/
    """
    console.print(f"\n[bold blue]Validating rules:[/bold blue] {rules_path}\n")

    try:
        _setup(config_file, log_level or "WARNING", json_logs=False)
        rule_set = _load_rules(rules_path)

        with DependencyGraph(rule_set.rules) as graph:
            graph.planned_order()

        for name in rule_set.baselines:
            with DependencyGraph(rule_set.select(name)) as graph:
                graph.planned_order()

    except (RuleGraphError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]FAIL:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]PASS:[/green] {len(rule_set.rules)} rule(s), "
        f"{len(rule_set.baselines)} baseline(s)"
    )


@app.command()
def plan(
    rules_path: Path = typer.Argument(..., help="Rule file or directory", exists=True),
    baseline: str | None = typer.Option(None, "--baseline", "-b", help="Plan a baseline's rules only"),
    dot_file: Path | None = typer.Option(
        None, "--dot", help="Write the dependency graph as a DOT file (for Graphviz)"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log verbosity"),
) -> None:
    """
    Show the order rules run in when every rule passes.

    Examples:
        rulegraph plan rules/
        rulegraph plan rules/ --baseline Production --dot deps.dot
    """
    try:
        _setup(None, log_level or "WARNING", json_logs=False)
        rule_set = _load_rules(rules_path)
        rules = rule_set.select(baseline)
        by_id = {rule.id: rule for rule in rules}

        with DependencyGraph(rules) as graph:
            order = graph.planned_order()
            dot = graph.to_dot()

    except (RuleGraphError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Execution Plan ({baseline})" if baseline else "Execution Plan")
    table.add_column("#", justify="right")
    table.add_column("Rule", style="cyan")
    table.add_column("Depends On")
    table.add_column("Level")

    for position, rule_id in enumerate(order, start=1):
        rule = by_id[rule_id]
        table.add_row(str(position), rule_id, ", ".join(rule.depends_on) or "-", rule.level.value)

    console.print(table)

    if dot_file:
        dot_file.parent.mkdir(parents=True, exist_ok=True)
        dot_file.write_text(dot, encoding="utf-8")
        console.print(f"[green]OK:[/green] Dependency graph written to {dot_file}")


@app.command()
def baselines(
    rules_path: Path = typer.Argument(..., help="Rule file or directory", exists=True),
    output_format: OutputFormat = typer.Option(
        OutputFormat.YAML, "--format", "-f", help="Output format: table, json or yaml", case_sensitive=False
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log verbosity"),
) -> None:
    """
    List baselines, or export them as Baseline documents.

    JSON and YAML output can be loaded back as rule files.

    Examples:
        rulegraph baselines rules/
        rulegraph baselines rules/ --format json > baselines.json
        rulegraph baselines rules/ --format table
    """
    try:
        _setup(None, log_level or "WARNING", json_logs=False)
        rule_set = _load_rules(rules_path)
    except (RuleGraphError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if output_format is OutputFormat.TABLE:
        table = Table(title="Baselines")
        table.add_column("Name", style="cyan")
        table.add_column("Include")
        table.add_column("Exclude")
        table.add_column("Synopsis")

        for baseline in rule_set.baselines.values():
            name = f"{baseline.name} [yellow](obsolete)[/yellow]" if baseline.obsolete else baseline.name
            table.add_row(
                name,
                ", ".join(baseline.include) or "(all)",
                ", ".join(baseline.exclude) or "-",
                baseline.synopsis or "",
            )

        console.print(table)
        return

    documents = [baseline.to_dict() for baseline in rule_set.baselines.values()]
    if output_format is OutputFormat.JSON:
        typer.echo(json.dumps(documents, indent=2, default=str))
    else:
        typer.echo(yaml.safe_dump_all(documents, sort_keys=False), nl=False)


@app.command()
def targets(
    input_paths: list[Path] = typer.Argument(..., help="Input files or directories", exists=True),
    input_format: InputFormat = typer.Option(
        InputFormat.DETECT, "--format", "-f", help="Input format: detect, yaml, json or jsonc", case_sensitive=False
    ),
    object_path: str | None = typer.Option(
        None, "--object-path", help="Dotted path to the objects inside each input document"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log verbosity"),
) -> None:
    """
    Print the target objects read from input documents as JSON.

    Useful to check target naming and --object-path before running rules.

    Examples:
        rulegraph targets resources.yaml
        rulegraph targets deployment.json --object-path resources
    """
    try:
        config = _setup(None, log_level or "WARNING", json_logs=False)
        config.input.format = input_format
        if object_path:
            config.input.object_path = object_path

        objects = [
            {"name": obj.name, "source": obj.source, "index": obj.index, "value": obj.value}
            for obj in InputReader(config.input).read(input_paths)
        ]
    except (RuleGraphError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    typer.echo(json.dumps(objects, indent=2, default=str))


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel.fit(
            "[bold]rulegraph[/bold]\n\n"
            f"Version: [cyan]{__version__}[/cyan]\n\n"
            "[bold]Features:[/bold]\n"
            "- YAML/JSON rule and baseline documents\n"
            "- Dependency-ordered evaluation with skip propagation\n"
            "- Cycle and unresolved dependency detection\n"
            "- Table, JSON and YAML reports",
            title="About",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()

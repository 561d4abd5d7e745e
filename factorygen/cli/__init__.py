"""Command-line interface for factorygen."""

from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from factorygen import __version__
from factorygen.cli.errors import handle_errors
from factorygen.config import (
    ConfigError,
    FactorygenConfig,
    generate_config_template,
    load_config,
    validate_config,
)
from factorygen.generator import FactoryGenerator, GenerationResult
from factorygen.logging_config import LogContext, configure_logging, get_logger

console = Console()
logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to config file (.factorygenrc or factorygen.toml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Set logging level (overrides config file)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "human"], case_sensitive=False),
    default=None,
    help="Log output format (overrides config file)",
)
@click.option(
    "--log-file",
    type=click.Path(),
    default=None,
    help="Write logs to file (overrides config file)",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None, log_format: str | None, log_file: str | None) -> None:
    """factorygen - generate factory_boy factories from SQLAlchemy models

    Configuration priority (highest to lowest):
    1. Command-line options
    2. Environment variables
    3. Config file (--config, .factorygenrc, factorygen.toml)
    4. Built-in defaults
    """
    try:
        loaded = load_config(config_file=config)
    except ConfigError as e:
        console.print(f"[yellow]⚠  Config error: {escape(str(e))}[/yellow]")
        console.print("[dim]Using default configuration[/dim]\n")
        loaded = FactorygenConfig()

    configure_logging(
        level=log_level or loaded.logging.level,
        json_output=((log_format or loaded.logging.format) == "json"),
        log_file=log_file or loaded.logging.file,
    )

    for warning in validate_config(loaded):
        logger.warning(warning)

    ctx.ensure_object(dict)
    ctx.obj["config"] = loaded


@cli.command()
@click.argument("models", nargs=-1)
@click.option("--dir", "-D", "models_dir", default=None, help="The model directory (default: app/models)")
@click.option("--namespace", "-N", default=None, help="Dotted package of the models root")
@click.option("--force", "-F", is_flag=True, default=False, help="Overwrite any existing model factory")
@click.option(
    "--recursive",
    "-R",
    is_flag=True,
    default=None,
    help="Mirror the model sub-package structure under the factories directory",
)
@click.option("--output-dir", "-o", default=None, help="Factories directory (default: tests/factories)")
@click.option("--database-url", default=None, help="Reflect columns from this database instead of model metadata")
@click.option("--dry-run", is_flag=True, default=False, help="Print factories instead of writing them")
@click.pass_context
@handle_errors
def generate(
    ctx: click.Context,
    models: tuple[str, ...],
    models_dir: str | None,
    namespace: str | None,
    force: bool,
    recursive: bool | None,
    output_dir: str | None,
    database_url: str | None,
    dry_run: bool,
) -> None:
    """Generate test factories for models.

    MODELS are class names (User, billing/Invoice) or import paths
    (app.models.user:User). Without MODELS every model in the model
    directory is processed.
    """
    config: FactorygenConfig = ctx.obj["config"]

    # CLI options override config
    if models_dir:
        config.models.dir = models_dir
        config.models.namespace = namespace
    elif namespace:
        config.models.namespace = namespace
    if recursive is not None:
        config.output.recursive = recursive
    if output_dir:
        config.output.dir = output_dir
        config.output.package = None
    if database_url:
        config.database.url = database_url

    generator = FactoryGenerator(config, root=Path.cwd(), console=console, force=force, dry_run=dry_run)

    with LogContext(operation="generate"):
        result = generator.handle(models)

    _display_summary(result, dry_run)


def _display_summary(result: GenerationResult, dry_run: bool) -> None:
    """Print a short table of what the run did."""
    total = len(result.created) + len(result.skipped) + len(result.failed)
    if not total:
        return

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Status")
    table.add_column("Count", justify="right")
    table.add_row("[green]Rendered[/green]" if dry_run else "[green]Created[/green]", str(len(result.created)))
    table.add_row("[yellow]Skipped[/yellow]", str(len(result.skipped)))
    table.add_row("[red]Failed[/red]", str(len(result.failed)))
    console.print(table)


@cli.command("config")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["yaml", "json", "toml"], case_sensitive=False),
    default="yaml",
    help="Template format",
)
@handle_errors
def config_template(fmt: str) -> None:
    """Print a configuration file template."""
    click.echo(generate_config_template(fmt.lower()))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

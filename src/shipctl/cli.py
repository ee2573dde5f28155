"""Main CLI entry point for shipctl."""

import sys
from collections.abc import Callable
from typing import Any

import click
from rich.console import Console

from shipctl import __version__
from shipctl.core.context import ShipCtlContext
from shipctl.core.exceptions import ShipCtlError
from shipctl.core.output import OutputFormat

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"shipctl version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-C",
    "--project-root",
    type=click.Path(exists=True, file_okay=False),
    envvar="SHIPCTL_PROJECT_ROOT",
    help="Project root (default: current directory)",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    envvar="SHIPCTL_CONFIG_DIR",
    help="Config directory (default: scripts/deployment/config)",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    project_root: str | None,
    config_dir: str | None,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    no_color: bool,
) -> None:
    """shipctl - quota-aware deployment and blue-green releases.

    \b
    Examples:
        shipctl validate --mode production
        shipctl plan
        shipctl deploy
        BLUE_GREEN_MODE=true shipctl release
        shipctl health

    \b
    Configuration:
        scripts/deployment/config/deployment-config.json   Base config
        scripts/deployment/config/production-config.json   Production overlay
        VALIDATION_MODE, STRICT_MODE, BLUE_GREEN_MODE, ... Environment
    """
    # A context injected by the caller (tests, embedding) is kept as is
    if isinstance(ctx.obj, ShipCtlContext):
        return
    ctx.obj = ShipCtlContext(
        project_root=project_root,
        config_dir=config_dir,
        output_format=output_format,
        verbose=verbose,
        quiet=quiet,
        color=not no_color,
    )


def register_commands() -> None:
    """Register all commands."""
    from shipctl.commands.config import config
    from shipctl.commands.deploy import deploy
    from shipctl.commands.health import health
    from shipctl.commands.plan import plan
    from shipctl.commands.release import release
    from shipctl.commands.validate import validate

    cli.add_command(validate)
    cli.add_command(plan)
    cli.add_command(deploy)
    cli.add_command(release)
    cli.add_command(health)
    cli.add_command(config)


register_commands()


def standalone(run: Callable[[ShipCtlContext], int], help_text: str) -> click.Command:
    """Build a single-purpose executable taking PROJECT_ROOT [CONFIG_DIR]."""

    @click.command(context_settings=CONTEXT_SETTINGS, help=help_text)
    @click.argument("project_root", default=".", type=click.Path(exists=True, file_okay=False))
    @click.argument("config_dir", required=False, type=click.Path(file_okay=False))
    @click.option("-v", "--verbose", count=True, help="Increase verbosity")
    @click.option("-q", "--quiet", is_flag=True, help="Suppress non-essential output")
    @click.option("--no-color", is_flag=True, help="Disable colored output")
    def command(project_root: str, config_dir: str | None, verbose: int, quiet: bool, no_color: bool) -> None:
        ctx = ShipCtlContext(
            project_root=project_root,
            config_dir=config_dir,
            verbose=verbose,
            quiet=quiet,
            color=not no_color,
        )
        try:
            code = run(ctx)
        except ShipCtlError as e:
            ctx.output.print_error(str(e))
            code = 1
        sys.exit(code)

    return command


def _validator(ctx: ShipCtlContext) -> int:
    from shipctl.commands.validate import run_validation

    return run_validation(ctx)


def _deployment_engine(ctx: ShipCtlContext) -> int:
    from shipctl.commands.deploy import run_deployment

    return run_deployment(ctx)


def _release(ctx: ShipCtlContext) -> int:
    from shipctl.commands.release import run_release

    return run_release(ctx)


def _health(ctx: ShipCtlContext) -> int:
    from shipctl.commands.health import run_health

    return run_health(ctx)


validator_cli = standalone(_validator, "Run pre-flight validation (mode from VALIDATION_MODE).")
deploy_cli = standalone(_deployment_engine, "Run the deployment engine once.")
release_cli = standalone(_release, "Run a production release (mode from DEPLOYMENT_MODE).")
health_cli = standalone(_health, "Run health checks; exits 2 on critical failure, 1 on failure.")


def _run(command: click.Command) -> None:
    try:
        command()
    except ShipCtlError as e:
        console = Console(stderr=True)
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


def main() -> None:
    """Main entry point."""
    _run(cli)


def validator_main() -> None:
    _run(validator_cli)


def deploy_main() -> None:
    _run(deploy_cli)


def release_main() -> None:
    _run(release_cli)


def health_main() -> None:
    _run(health_cli)


if __name__ == "__main__":
    main()

"""Pre-flight validation command."""

import sys

import click

from shipctl.core.async_utils import run_sync
from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.output import OutputFormat
from shipctl.validation import ValidationGate, ValidationReport


def print_report(ctx: ShipCtlContext, report: ValidationReport) -> None:
    """Print findings grouped by severity."""
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(report.to_dict())
        return

    ctx.output.print_header(f"Validation Results ({report.mode}, {report.target_environment})")
    ctx.output.print_section(f"Errors ({len(report.errors)})", report.errors, style="red")
    ctx.output.print_section(f"Warnings ({len(report.warnings)})", report.warnings, style="yellow")
    ctx.output.print_section(f"Info ({len(report.info)})", report.info, style="blue")

    if report.errors:
        ctx.output.print_error("Validation failed. Fix the errors above before deploying.")
    elif report.warnings:
        ctx.output.print_warning("Validation passed with warnings.")
    else:
        ctx.output.print_success("Validation passed.")


def run_validation(
    ctx: ShipCtlContext,
    mode: str | None = None,
    target_environment: str | None = None,
    strict: bool | None = None,
) -> int:
    """Run the gate and print the report; returns the exit code."""
    gate = ValidationGate(ctx.config, ctx.platform, ctx.runner)
    report = run_sync(gate.validate(mode, target_environment, strict))
    print_report(ctx, report)
    return report.exit_code


@click.command("validate")
@click.option(
    "--mode",
    type=click.Choice(["development", "production"]),
    default=None,
    help="Validation mode (default: VALIDATION_MODE)",
)
@click.option("--environment", "target_environment", default=None, help="Target environment name")
@click.option("--strict/--no-strict", default=None, help="Treat coverage shortfalls as errors")
@pass_context
def validate(
    ctx: ShipCtlContext,
    mode: str | None,
    target_environment: str | None,
    strict: bool | None,
) -> None:
    """Run pre-flight validation checks.

    Exits non-zero when any check reports an error.

    \b
    Examples:
        shipctl validate
        shipctl validate --mode production --strict
        shipctl -o json validate
    """
    code = run_validation(ctx, mode, target_environment, strict)
    if code:
        sys.exit(code)

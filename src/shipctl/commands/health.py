"""Health check command."""

import sys

import click

from shipctl.core.async_utils import run_sync
from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.output import OutputFormat
from shipctl.deploy import SlotColor
from shipctl.health import HealthChecker, HealthReport, HealthStatus, HealthVerdict

STATUS_STYLES = {
    HealthStatus.PASSED: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.FAILED: "red",
    HealthStatus.SKIPPED: "dim",
}

VERDICT_MESSAGES = {
    HealthVerdict.SUCCESS: "All health checks passed",
    HealthVerdict.WARNING: "Health checks passed with warnings",
    HealthVerdict.FAILURE: "Some health checks failed",
    HealthVerdict.CRITICAL_FAILURE: "Critical health checks failed",
}


def print_report(ctx: ShipCtlContext, report: HealthReport) -> None:
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(report.to_dict())
        return

    ctx.output.print_header("Health Check Results")
    for result in report.results:
        style = STATUS_STYLES[result.status]
        marker = " (critical)" if result.critical else ""
        ctx.output.print(f"[{style}]{result.status.value.upper():8}[/{style}] {result.name}{marker}: {result.message}")
    if report.stopped_early:
        ctx.output.print_warning("Stopped after a critical failure; remaining checks were not run")

    summary = report.summary()
    ctx.output.print(
        f"\nPassed: {summary['passed']}  Warnings: {summary['warnings']}  "
        f"Failed: {summary['failed']}  Skipped: {summary['skipped']}"
    )
    message = VERDICT_MESSAGES[report.verdict]
    if report.verdict.healthy:
        ctx.output.print_success(message)
    else:
        ctx.output.print_error(message)


def run_health(ctx: ShipCtlContext, slot: str | None = None) -> int:
    """Run the probes; returns 2, 1 or 0 by verdict."""
    checker = HealthChecker(ctx.config, ctx.platform, ctx.runner)
    report = run_sync(checker.run(checker.resolve_target(slot)))
    print_report(ctx, report)
    return report.verdict.exit_code


@click.command("health")
@click.option("--slot", type=click.Choice([c.value for c in SlotColor]), default=None, help="Probe one blue-green slot")
@pass_context
def health(ctx: ShipCtlContext, slot: str | None) -> None:
    """Run post-deployment health checks.

    Exit code: 2 on critical failure, 1 on failure, 0 otherwise.

    \b
    Examples:
        shipctl health
        shipctl health --slot green
    """
    code = run_health(ctx, slot)
    if code:
        sys.exit(code)

"""Production release command."""

import sys

import click

from shipctl.commands.validate import print_report as print_validation
from shipctl.core.async_utils import run_sync
from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.exceptions import ValidationError
from shipctl.core.output import OutputFormat
from shipctl.release import ReleaseController, ReleaseMode, ReleaseOutcome
from shipctl.reporting import Reporter


def print_outcome(ctx: ShipCtlContext, outcome: ReleaseOutcome) -> None:
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(outcome.to_dict())
        return

    ctx.output.print_header(f"Release {outcome.deployment_id}")
    for event in outcome.events:
        ctx.output.print(f"  [{event.timestamp.strftime('%H:%M:%S')}] {event.stage.value}: {event.message}")
    if outcome.target_slot:
        live = outcome.target_slot if outcome.success and not outcome.rolled_back else outcome.current_slot
        ctx.output.print(f"\nLive slot: {live.value if live else 'unknown'}")

    if outcome.success:
        ctx.output.print_success(f"Release {outcome.mode.value} completed")
    elif outcome.rolled_back:
        ctx.output.print_warning(f"Release rolled back: {outcome.error}")
    else:
        ctx.output.print_error(f"Release failed: {outcome.error}")


def run_release(ctx: ShipCtlContext, mode: str | None = None) -> int:
    """Run the controller in the given mode; returns 1 on any failure."""
    config = ctx.config
    controller = ReleaseController(config, ctx.platform, ctx.runner, sleep=ctx.sleep)
    try:
        outcome = run_sync(controller.run(mode))
    except ValidationError as e:
        ctx.output.print_section(f"Validation errors ({len(e.errors)})", e.errors, style="red")
        ctx.output.print_error(e.message)
        return 1

    print_outcome(ctx, outcome)
    if outcome.validation and ctx.verbose:
        print_validation(ctx, outcome.validation)

    reporter = Reporter(config.deployments_dir / outcome.deployment_id)
    _, summary = reporter.write(reporter.build_from_outcome(outcome))
    ctx.output.print_info(f"Report: {summary}")
    return 0 if outcome.success else 1


@click.command("release")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ReleaseMode]),
    default=None,
    help="Release mode (default: DEPLOYMENT_MODE)",
)
@pass_context
def release(ctx: ShipCtlContext, mode: str | None) -> None:
    """Validate, deploy and switch production traffic.

    With BLUE_GREEN_MODE=true the release goes to the standby slot, is
    canary-checked, and traffic is switched; a failed post-switch health
    check switches back automatically.

    \b
    Examples:
        BLUE_GREEN_MODE=true shipctl release
        ROLLBACK_VERSION=prod-2026-10-19T08-30-00-000Z-k3x9q2 shipctl release --mode rollback
        shipctl release --mode health-check
    """
    code = run_release(ctx, mode)
    if code:
        sys.exit(code)

"""Deployment engine command."""

import sys

import click

from shipctl.core.async_utils import run_sync
from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.output import OutputFormat, format_duration
from shipctl.deploy import DeploymentEngine, DeploymentResult, RunStatus, SlotColor
from shipctl.deploy.state import generate_deployment_id
from shipctl.recovery import RecoveryEngine
from shipctl.reporting import Reporter


def print_result(ctx: ShipCtlContext, result: DeploymentResult) -> None:
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(result.to_dict())
        return

    ctx.output.print_header("Deployment Summary")
    ctx.output.print(f"Status: {result.status.value}")
    ctx.output.print(f"Components: {result.components_deployed}/{result.total_components} ({result.success_rate}%)")
    ctx.output.print(f"Duration: {format_duration(result.duration)}")
    if result.restarts:
        ctx.output.print(f"Restarts after recovery: {result.restarts}")
    ctx.output.print_section("Errors", result.errors, style="red")
    ctx.output.print_section("Warnings", result.warnings, style="yellow")

    if result.aborted:
        ctx.output.print_error(f"Deployment aborted: {result.abort_reason}")
    elif result.status == RunStatus.SUCCESS:
        ctx.output.print_success("Deployment completed successfully")
    else:
        ctx.output.print_warning("Deployment completed with errors")


def run_deployment(ctx: ShipCtlContext, slot: str | None = None, report: bool = True) -> int:
    """Run the engine once; exits 1 only when the run aborted."""
    config = ctx.config
    deployment_id = generate_deployment_id("deploy")
    recovery = RecoveryEngine(config, ctx.runner, ctx.platform, sleep=ctx.sleep)
    engine = DeploymentEngine(
        config,
        ctx.platform,
        ctx.runner,
        recovery,
        sleep=ctx.sleep,
        slot=SlotColor(slot) if slot else None,
        run_id=deployment_id,
    )
    result = run_sync(engine.deploy())
    print_result(ctx, result)

    if report:
        reporter = Reporter(config.deployments_dir / deployment_id)
        _, summary = reporter.write(
            reporter.build(deployment_id, deployment=result, error_summary=recovery.summary())
        )
        ctx.output.print_info(f"Report: {summary}")
    return 1 if result.aborted else 0


@click.command("deploy")
@click.option("--slot", type=click.Choice([c.value for c in SlotColor]), default=None, help="Deploy hosting to a blue-green slot")
@click.option("--no-report", is_flag=True, help="Skip writing report files")
@pass_context
def deploy(ctx: ShipCtlContext, slot: str | None, no_report: bool) -> None:
    """Deploy rules, storage, functions (batched) and hosting.

    Exits 0 on success or partial failure, 1 when the run aborted.

    \b
    Examples:
        shipctl deploy
        shipctl deploy --slot green
    """
    code = run_deployment(ctx, slot, report=not no_report)
    if code:
        sys.exit(code)

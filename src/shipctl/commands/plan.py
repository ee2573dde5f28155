"""Batch plan command."""

import click

from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.output import OutputFormat
from shipctl.deploy import BatchPlanner, DeploymentEngine
from shipctl.deploy.batching import partition
from shipctl.recovery import RecoveryEngine


@click.command("plan")
@click.option("--count", type=int, default=None, help="Plan for N artifacts instead of discovering them")
@click.option("--size-mb", type=float, default=None, help="Total payload size in MB (with --count)")
@pass_context
def plan(ctx: ShipCtlContext, count: int | None, size_mb: float | None) -> None:
    """Show the function batching plan.

    \b
    Examples:
        shipctl plan
        shipctl plan --count 40 --size-mb 350
        shipctl -o json plan
    """
    config = ctx.config
    names: list[str] = []
    if count is not None:
        strategy = BatchPlanner(config.deployment.quota).plan(count, total_size_mb=size_mb)
    else:
        recovery = RecoveryEngine(config, ctx.runner, ctx.platform)
        engine = DeploymentEngine(config, ctx.platform, ctx.runner, recovery)
        artifacts = engine.discover_artifacts()
        names = engine.artifact_names(artifacts)
        strategy = engine.plan(artifacts)

    batches = partition(names, strategy.batch_size) if names else []
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data({**strategy.to_dict(), "batches": batches})
        return

    ctx.output.print_data(
        {
            "Artifacts": strategy.artifact_count,
            "Batch size": strategy.batch_size,
            "Batches": strategy.batch_count,
            "Delay between batches": f"{strategy.delay_between_batches:g}s",
            "Estimated duration": f"{strategy.estimated_total_minutes:.1f} min",
        },
        title="Deployment Plan",
    )
    if batches:
        ctx.output.print_data(
            [{"batch": i, "functions": ", ".join(batch)} for i, batch in enumerate(batches, start=1)],
            headers=["batch", "functions"],
            title="Batches",
        )

"""Configuration commands."""

import click

from shipctl.core.context import ShipCtlContext, pass_context


@click.group("config")
@pass_context
def config(ctx: ShipCtlContext) -> None:
    """Inspect the resolved deployment configuration.

    \b
    Examples:
        shipctl config show
        shipctl -o yaml config show --section production
    """
    pass


@config.command("show")
@click.option(
    "--section",
    type=click.Choice(["deployment", "production", "settings", "all"]),
    default="all",
    help="Only show one section",
)
@pass_context
def show(ctx: ShipCtlContext, section: str) -> None:
    """Show the merged configuration."""
    cfg = ctx.config
    data = {
        "project_root": str(cfg.project_root),
        "config_dir": str(cfg.config_dir),
        "deployment": cfg.deployment.model_dump(by_alias=True),
        "production": cfg.production.model_dump(by_alias=True),
        "settings": cfg.settings.model_dump(),
        "required_secrets": cfg.required_secrets,
    }
    if section != "all":
        data = {section: data[section]}
    ctx.output.print_data(data, title="Current Configuration")


@config.command("paths")
@pass_context
def paths(ctx: ShipCtlContext) -> None:
    """Show resolved project paths and whether they exist."""
    cfg = ctx.config
    rows = []
    for name in cfg.deployment.paths.model_dump():
        path = cfg.path(name)
        rows.append({"name": name, "path": str(path), "exists": "yes" if path.exists() else "no"})
    ctx.output.print_data(rows, headers=["name", "path", "exists"], title="Project Paths")

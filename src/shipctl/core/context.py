"""Click context object for sharing state across commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from shipctl.config import ShipCtlConfig, load_config
from shipctl.core.async_utils import SleepFunc, default_sleep
from shipctl.core.logging import StructuredLogger, setup_logging, verbosity_level
from shipctl.core.output import OutputFormat, OutputFormatter
from shipctl.core.process import CommandRunner

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient


class ShipCtlContext:
    """Shared context object for shipctl commands.

    This object is passed through Click's context mechanism and provides
    access to configuration, the platform client, and output utilities.
    """

    def __init__(
        self,
        config: ShipCtlConfig | None = None,
        project_root: str | Path | None = None,
        config_dir: str | Path | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        color: bool = True,
        runner: CommandRunner | None = None,
        platform: PlatformClient | None = None,
        sleep: SleepFunc = default_sleep,
    ):
        self._config = config
        self._project_root = project_root
        self._config_dir = config_dir
        self._output_format = output_format or OutputFormat.TABLE
        self._verbose = verbose
        self._quiet = quiet
        self._color = color
        self.sleep = sleep

        setup_logging(verbosity_level(verbose, quiet), color=color)
        self._logger = StructuredLogger("context")

        self._output = OutputFormatter(
            format=self._output_format,
            color=color,
            quiet=quiet,
        )

        self._runner = runner
        self._platform = platform

    @property
    def config(self) -> ShipCtlConfig:
        """Get the loaded configuration, loading it on first use."""
        if self._config is None:
            self._config = load_config(self._project_root, self._config_dir)
        return self._config

    @property
    def output(self) -> OutputFormatter:
        """Get the output formatter."""
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @property
    def verbose(self) -> int:
        return self._verbose

    @property
    def quiet(self) -> bool:
        return self._quiet

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = CommandRunner()
        return self._runner

    @property
    def platform(self) -> PlatformClient:
        """Get or create the platform client."""
        if self._platform is None:
            from shipctl.clients.platform import PlatformClient

            self._platform = PlatformClient(self.config, self.runner)
        return self._platform


# Click decorator for passing context
pass_context = click.make_pass_decorator(ShipCtlContext, ensure=True)

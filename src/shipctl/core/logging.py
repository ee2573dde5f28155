"""Logging setup for shipctl runs.

Diagnostics go to stderr so that JSON and YAML output on stdout stays
parseable. Loggers live under the ``shipctl`` namespace.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


def verbosity_level(verbose: int = 0, quiet: bool = False) -> int:
    """Map the -v/-q command line flags to a logging level."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    if quiet:
        return logging.ERROR
    return logging.WARNING


def setup_logging(level: int = logging.WARNING, color: bool = True) -> logging.Logger:
    """Install a single stderr handler on the root logger and return the shipctl logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True, no_color=not color),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logger = logging.getLogger("shipctl")
    logger.setLevel(level)

    # Health checks use httpx; its request lines drown out run progress
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    if name.startswith("shipctl"):
        return logging.getLogger(name)
    return logging.getLogger(f"shipctl.{name}")


class StructuredLogger:
    """Logger that appends bound run context (batch, slot, error type) to each message."""

    def __init__(self, name: str, context: dict[str, Any] | None = None):
        self._logger = get_logger(name)
        self._context: dict[str, Any] = context or {}

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        return StructuredLogger(self._logger.name, {**self._context, **kwargs})

    def _format_message(self, message: str, **kwargs: Any) -> str:
        context = {**self._context, **kwargs}
        if not context:
            return message
        return f"{message} [{' '.join(f'{k}={v}' for k, v in context.items())}]"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        self._logger.exception(self._format_message(message, **kwargs))

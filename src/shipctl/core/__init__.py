"""Core utilities and shared components for shipctl."""

# Import context lazily to avoid circular imports
# Use: from shipctl.core.context import ShipCtlContext, pass_context
from shipctl.core.exceptions import ConfigError, ShipCtlError
from shipctl.core.output import OutputFormatter

__all__ = [
    "ShipCtlError",
    "ConfigError",
    "OutputFormatter",
]

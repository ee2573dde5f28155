"""Post-deployment health checks."""

from shipctl.health.checker import HealthChecker
from shipctl.health.models import HealthReport, HealthStatus, HealthVerdict

__all__ = ["HealthChecker", "HealthReport", "HealthStatus", "HealthVerdict"]

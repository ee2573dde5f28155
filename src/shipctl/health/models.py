"""Health check data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HealthStatus(str, Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"


class HealthVerdict(str, Enum):
    """Aggregate verdict, most severe first."""

    CRITICAL_FAILURE = "critical_failure"
    FAILURE = "failure"
    WARNING = "warning"
    SUCCESS = "success"

    @property
    def exit_code(self) -> int:
        return {HealthVerdict.CRITICAL_FAILURE: 2, HealthVerdict.FAILURE: 1}.get(self, 0)

    @property
    def healthy(self) -> bool:
        return self in (HealthVerdict.SUCCESS, HealthVerdict.WARNING)


@dataclass(frozen=True)
class ProbeOutcome:
    """What a probe reports back."""

    status: HealthStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HealthCheckResult:
    """One probe's result within a run."""

    name: str
    priority: int
    critical: bool
    status: HealthStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "priority": self.priority,
            "critical": self.critical,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class HealthReport:
    """Aggregated results of a health check run."""

    results: list[HealthCheckResult]
    target: dict[str, Any] = field(default_factory=dict)
    stopped_early: bool = False

    def by_status(self, status: HealthStatus) -> list[HealthCheckResult]:
        return [r for r in self.results if r.status == status]

    @property
    def passed(self) -> list[HealthCheckResult]:
        return self.by_status(HealthStatus.PASSED)

    @property
    def warnings(self) -> list[HealthCheckResult]:
        return self.by_status(HealthStatus.WARNING)

    @property
    def failed(self) -> list[HealthCheckResult]:
        return self.by_status(HealthStatus.FAILED)

    @property
    def skipped(self) -> list[HealthCheckResult]:
        return self.by_status(HealthStatus.SKIPPED)

    @property
    def critical_failures(self) -> list[HealthCheckResult]:
        return [r for r in self.failed if r.critical]

    @property
    def verdict(self) -> HealthVerdict:
        if self.critical_failures:
            return HealthVerdict.CRITICAL_FAILURE
        if self.failed:
            return HealthVerdict.FAILURE
        if self.warnings:
            return HealthVerdict.WARNING
        return HealthVerdict.SUCCESS

    def summary(self) -> dict[str, Any]:
        return {
            "total_checks": len(self.results),
            "passed": len(self.passed),
            "warnings": len(self.warnings),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "critical_failures": len(self.critical_failures),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.verdict.value,
            "summary": self.summary(),
            "target": self.target,
            "stopped_early": self.stopped_early,
            "results": [r.to_dict() for r in self.results],
        }

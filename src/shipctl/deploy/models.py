"""Deployment data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Phase(str, Enum):
    """Deployment phases, in execution order."""

    INITIALIZING = "initializing"
    RULES = "rules"
    STORAGE = "storage"
    FUNCTIONS = "functions"
    HOSTING = "hosting"
    DONE = "done"

    @property
    def order(self) -> int:
        return list(Phase).index(self)


class RunStatus(str, Enum):
    """Outcome of one engine run."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


class SlotColor(str, Enum):
    """The two interchangeable release targets."""

    BLUE = "blue"
    GREEN = "green"

    @property
    def complement(self) -> "SlotColor":
        return SlotColor.GREEN if self == SlotColor.BLUE else SlotColor.BLUE


class SlotRole(str, Enum):
    ACTIVE = "active"
    STANDBY = "standby"


@dataclass(frozen=True)
class BatchingStrategy:
    """Quota-safe batching plan, computed once per run."""

    batch_count: int
    batch_size: int
    delay_between_batches: float  # seconds
    estimated_total_minutes: float
    artifact_count: int = 0
    total_size_mb: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_count": self.batch_count,
            "batch_size": self.batch_size,
            "delay_between_batches": self.delay_between_batches,
            "estimated_total_minutes": round(self.estimated_total_minutes, 2),
            "artifact_count": self.artifact_count,
            "total_size_mb": self.total_size_mb,
        }


@dataclass
class DeploymentState:
    """Mutable state of one engine run."""

    phase: Phase = Phase.INITIALIZING
    components_deployed: int = 0
    total_components: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    batching_strategy: BatchingStrategy | None = None
    planned_artifacts: list[str] = field(default_factory=list)
    completed_phases: list[Phase] = field(default_factory=list)
    phase_components: dict[Phase, int] = field(default_factory=dict)
    restarts: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def advance(self, phase: Phase) -> None:
        """Move to a later phase."""
        if phase.order < self.phase.order:
            raise ValueError(f"Cannot move from {self.phase.value} back to {phase.value}")
        self.phase = phase

    def record_deployed(self, count: int = 1) -> None:
        if self.components_deployed + count > self.total_components:
            raise ValueError("components_deployed cannot exceed total_components")
        self.components_deployed += count
        self.phase_components[self.phase] = self.phase_components.get(self.phase, 0) + count

    def reset(self) -> None:
        """Start over for a whole-run restart."""
        self.phase = Phase.INITIALIZING
        self.components_deployed = 0
        # The abandoned attempt lives on in the recovery history
        self.errors = []
        self.warnings = []
        self.completed_phases = []
        self.phase_components = {}

    def rewind_to(self, phase: Phase) -> None:
        """Resume at a failed phase, keeping completed phases."""
        self.components_deployed -= self.phase_components.pop(phase, 0)
        self.completed_phases = [p for p in self.completed_phases if p.order < phase.order]
        self.phase = phase

    @property
    def progress_percentage(self) -> float:
        if self.phase == Phase.DONE:
            return 100.0
        if self.total_components == 0:
            return 0.0
        return round(self.components_deployed / self.total_components * 100, 1)


@dataclass(frozen=True)
class DeploymentProgress:
    """Point-in-time snapshot of a run."""

    phase: Phase
    components_deployed: int
    total_components: int
    progress_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "components_deployed": self.components_deployed,
            "total_components": self.total_components,
            "progress_percentage": self.progress_percentage,
        }


@dataclass
class DeploymentResult:
    """Outcome returned by DeploymentEngine.deploy()."""

    status: RunStatus
    components_deployed: int
    total_components: int
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str | None = None
    restarts: int = 0
    batching_strategy: BatchingStrategy | None = None
    duration: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_components == 0:
            return 0.0
        return round(self.components_deployed / self.total_components * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "components_deployed": self.components_deployed,
            "total_components": self.total_components,
            "success_rate": self.success_rate,
            "errors": self.errors,
            "warnings": self.warnings,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "restarts": self.restarts,
            "batching_strategy": self.batching_strategy.to_dict() if self.batching_strategy else None,
            "duration": round(self.duration, 2),
        }


@dataclass
class DeploymentSlot:
    """One of the two release targets."""

    id: SlotColor
    role: SlotRole
    version: str | None = None
    deployed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "role": self.role.value,
            "version": self.version,
            "deployed_at": self.deployed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeploymentSlot":
        return cls(
            id=SlotColor(data["id"]),
            role=SlotRole(data["role"]),
            version=data.get("version"),
            deployed_at=data.get("deployed_at"),
        )

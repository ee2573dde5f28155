"""Release data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from shipctl.deploy.models import DeploymentResult, SlotColor
from shipctl.health.models import HealthReport
from shipctl.validation.models import ValidationReport


class ReleaseStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    DEPLOYING = "deploying"
    CANARY = "canary"
    SWITCHING = "switching"
    STANDBY = "standby"
    COMPLETE = "complete"
    ABORTING = "aborting"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class ReleaseMode(str, Enum):
    PRODUCTION = "production"
    ROLLBACK = "rollback"
    HEALTH_CHECK = "health-check"


@dataclass
class ReleaseEvent:
    stage: ReleaseStage
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage.value, "message": self.message, "timestamp": self.timestamp.isoformat()}


@dataclass
class ReleaseOutcome:
    """Everything one release run produced."""

    deployment_id: str
    mode: ReleaseMode
    blue_green: bool = False
    stage: ReleaseStage = ReleaseStage.IDLE
    success: bool = False
    current_slot: SlotColor | None = None
    target_slot: SlotColor | None = None
    validation: ValidationReport | None = None
    deployment: DeploymentResult | None = None
    canary_health: HealthReport | None = None
    health: HealthReport | None = None
    rolled_back: bool = False
    error: str | None = None
    error_summary: dict[str, Any] = field(default_factory=dict)
    events: list[ReleaseEvent] = field(default_factory=list)

    def enter(self, stage: ReleaseStage, message: str) -> None:
        """Move to a stage and record why."""
        self.stage = stage
        self.events.append(ReleaseEvent(stage, message))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "deployment_id": self.deployment_id,
            "mode": self.mode.value,
            "blue_green": self.blue_green,
            "stage": self.stage.value,
            "success": self.success,
            "current_slot": self.current_slot.value if self.current_slot else None,
            "target_slot": self.target_slot.value if self.target_slot else None,
            "rolled_back": self.rolled_back,
            "error": self.error,
            "validation": self.validation.to_dict() if self.validation else None,
            "deployment": self.deployment.to_dict() if self.deployment else None,
            "canary_health": self.canary_health.to_dict() if self.canary_health else None,
            "health": self.health.to_dict() if self.health else None,
            "error_summary": self.error_summary,
            "events": [e.to_dict() for e in self.events],
        }

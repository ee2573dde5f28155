"""Recovery data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorType(str, Enum):
    """Closed taxonomy of deployment errors."""

    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    BUILD_FAILURE = "BUILD_FAILURE"
    NETWORK_ISSUE = "NETWORK_ISSUE"
    AUTH_PROBLEM = "AUTH_PROBLEM"
    FUNCTION_ERROR = "FUNCTION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorRecord:
    """One handled error. Only `attempts` and `recovered` change after creation."""

    type: ErrorType
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    attempts: int = 0
    recovered: bool | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "message": self.message,
            "context": self.context,
            "attempts": self.attempts,
            "recovered": self.recovered,
        }


@dataclass(frozen=True)
class RecoveryStrategy:
    """Named remediation step; lower priority runs first."""

    name: str
    priority: int


@dataclass(frozen=True)
class StrategyGroup:
    """Strategies for one error type sharing a retry ceiling."""

    error_type: ErrorType
    strategies: tuple[RecoveryStrategy, ...]
    max_retries: int

    def ordered(self) -> list[RecoveryStrategy]:
        return sorted(self.strategies, key=lambda s: s.priority)


# Function memory (MB) and timeout (s) steps tried by function recovery
MEMORY_STEPS_MB = (256, 512, 1024, 2048)
TIMEOUT_STEPS_SECONDS = (60, 120, 300, 540)


@dataclass
class DeploymentTuning:
    """Adjustments made by recovery and read by the next engine attempt."""

    batch_size_cap: int | None = None
    extra_delay: float = 0.0
    function_memory_mb: int | None = None
    function_timeout_seconds: int | None = None
    env: dict[str, str] = field(default_factory=dict)

    def narrow_batches(self, floor: int = 1, start: int = 3) -> int:
        """Shrink the batch size cap by one step."""
        if self.batch_size_cap is None:
            self.batch_size_cap = start
        else:
            self.batch_size_cap = max(floor, self.batch_size_cap - 1)
        return self.batch_size_cap

    def raise_memory(self) -> bool:
        """Step function memory up; False when already at the top."""
        return self._step("function_memory_mb", MEMORY_STEPS_MB)

    def raise_timeout(self) -> bool:
        """Step function timeout up; False when already at the top."""
        return self._step("function_timeout_seconds", TIMEOUT_STEPS_SECONDS)

    def _step(self, attr: str, steps: tuple[int, ...]) -> bool:
        current = getattr(self, attr)
        for value in steps:
            if current is None or value > current:
                setattr(self, attr, value)
                return True
        return False

    def function_env(self) -> dict[str, str]:
        """Environment for function deploy child processes."""
        env = dict(self.env)
        if self.function_memory_mb is not None:
            env["SHIPCTL_FUNCTION_MEMORY_MB"] = str(self.function_memory_mb)
        if self.function_timeout_seconds is not None:
            env["SHIPCTL_FUNCTION_TIMEOUT"] = str(self.function_timeout_seconds)
        return env

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_size_cap": self.batch_size_cap,
            "extra_delay": self.extra_delay,
            "function_memory_mb": self.function_memory_mb,
            "function_timeout_seconds": self.function_timeout_seconds,
            "env": sorted(self.env),
        }

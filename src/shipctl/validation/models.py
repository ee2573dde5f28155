"""Validation data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FindingCategory(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ValidationFinding:
    category: FindingCategory
    message: str
    check: str = ""


@dataclass
class ValidationReport:
    """Findings of one gate run, in the order they were produced."""

    mode: str = "development"
    target_environment: str = "production"
    strict: bool = False
    findings: list[ValidationFinding] = field(default_factory=list)

    def add(self, category: FindingCategory, message: str, check: str = "") -> None:
        self.findings.append(ValidationFinding(category, message, check))

    def _messages(self, category: FindingCategory) -> list[str]:
        return [f.message for f in self.findings if f.category == category]

    @property
    def errors(self) -> list[str]:
        return self._messages(FindingCategory.ERROR)

    @property
    def warnings(self) -> list[str]:
        return self._messages(FindingCategory.WARNING)

    @property
    def info(self) -> list[str]:
        return self._messages(FindingCategory.INFO)

    @property
    def passed(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "mode": self.mode,
            "target_environment": self.target_environment,
            "strict": self.strict,
            "passed": self.passed,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info,
        }

"""Pre-flight validation gate."""

from shipctl.validation.gate import ValidationGate
from shipctl.validation.models import FindingCategory, ValidationReport

__all__ = ["FindingCategory", "ValidationGate", "ValidationReport"]

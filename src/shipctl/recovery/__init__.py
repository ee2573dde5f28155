"""Error classification and recovery."""

from shipctl.recovery.classifier import classify
from shipctl.recovery.engine import RecoveryEngine
from shipctl.recovery.models import ErrorRecord, ErrorType

__all__ = ["ErrorRecord", "ErrorType", "RecoveryEngine", "classify"]

"""Blue-green production releases."""

from shipctl.release.controller import ReleaseController
from shipctl.release.models import ReleaseMode, ReleaseOutcome, ReleaseStage

__all__ = ["ReleaseController", "ReleaseMode", "ReleaseOutcome", "ReleaseStage"]

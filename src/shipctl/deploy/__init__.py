"""Deployment orchestration module."""

from shipctl.deploy.batching import BatchPlanner
from shipctl.deploy.engine import DeploymentEngine
from shipctl.deploy.models import (
    BatchingStrategy,
    DeploymentResult,
    DeploymentState,
    Phase,
    RunStatus,
    SlotColor,
)
from shipctl.deploy.state import RunMetadataStore, SlotStore

__all__ = [
    "BatchPlanner",
    "BatchingStrategy",
    "DeploymentEngine",
    "DeploymentResult",
    "DeploymentState",
    "Phase",
    "RunMetadataStore",
    "RunStatus",
    "SlotColor",
    "SlotStore",
]

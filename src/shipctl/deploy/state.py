"""Durable run state: per-run metadata and blue-green slot roles."""

import json
import os
import secrets
import string
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from shipctl.core.exceptions import DeploymentError
from shipctl.core.logging import get_logger
from shipctl.deploy.models import DeploymentSlot, SlotColor, SlotRole

logger = get_logger(__name__)

SLOTS_FILENAME = "slots.json"
METADATA_FILENAME = "metadata.json"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_deployment_id(prefix: str = "prod", now: datetime | None = None) -> str:
    """Build an id like prod-2026-10-19T08-30-00-000Z-k3x9q2."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{stamp}-{suffix}"


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON via a temp file in the same directory and rename over."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RunMetadataStore:
    """Writes the metadata record of each run under <deployments>/<id>/."""

    def __init__(self, deployments_dir: str | Path):
        self._dir = Path(deployments_dir)

    def run_dir(self, deployment_id: str) -> Path:
        return self._dir / deployment_id

    def save(self, deployment_id: str, metadata: dict[str, Any]) -> Path:
        """Save run metadata.

        Args:
            deployment_id: Deployment ID
            metadata: JSON-serializable record

        Returns:
            Path of the written file
        """
        path = self.run_dir(deployment_id) / METADATA_FILENAME
        try:
            _atomic_write_json(path, metadata)
        except OSError as e:
            raise DeploymentError(
                f"Failed to save deployment metadata: {e}",
                details={"deployment_id": deployment_id},
            )
        logger.debug(f"Saved deployment metadata to {path}")
        return path

    def load(self, deployment_id: str) -> dict[str, Any]:
        path = self.run_dir(deployment_id) / METADATA_FILENAME
        if not path.exists():
            raise DeploymentError(
                f"Deployment not found: {deployment_id}",
                details={"deployment_id": deployment_id},
            )
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DeploymentError(
                f"Failed to load deployment metadata: {e}",
                details={"deployment_id": deployment_id},
            )


class SlotStore:
    """Persists the two blue-green slots in <deployments>/slots.json.

    A missing file means blue is active and green is standby. Writes go
    through a temp file and rename, so readers never see a half-written
    file and a failed write leaves the previous roles intact.
    """

    def __init__(self, deployments_dir: str | Path):
        self._path = Path(deployments_dir) / SLOTS_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[SlotColor, DeploymentSlot]:
        """Load both slots, defaulting to blue active."""
        slots = {
            SlotColor.BLUE: DeploymentSlot(SlotColor.BLUE, SlotRole.ACTIVE),
            SlotColor.GREEN: DeploymentSlot(SlotColor.GREEN, SlotRole.STANDBY),
        }
        if not self._path.exists():
            return slots

        try:
            with open(self._path) as f:
                data = json.load(f)
            for entry in data.get("slots", []):
                slot = DeploymentSlot.from_dict(entry)
                slots[slot.id] = slot
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise DeploymentError(f"Corrupt slot state in {self._path}: {e}")

        actives = [s for s in slots.values() if s.role == SlotRole.ACTIVE]
        if len(actives) != 1:
            raise DeploymentError(f"Slot state in {self._path} must have exactly one active slot")
        return slots

    def active(self) -> DeploymentSlot:
        return next(s for s in self.load().values() if s.role == SlotRole.ACTIVE)

    def find_version(self, version: str) -> DeploymentSlot | None:
        """Slot that holds a given release version."""
        for slot in self.load().values():
            if slot.version == version:
                return slot
        return None

    def commit(
        self,
        active: SlotColor,
        version: str | None = None,
        slots: dict[SlotColor, DeploymentSlot] | None = None,
    ) -> dict[SlotColor, DeploymentSlot]:
        """Make `active` the live slot and the other one standby.

        Args:
            active: Slot now receiving traffic
            version: Release id now deployed to `active` (None keeps the old one)
            slots: Current slots (loaded when None)

        Returns:
            The committed slots
        """
        current = slots or self.load()
        updated: dict[SlotColor, DeploymentSlot] = {}
        for color, slot in current.items():
            role = SlotRole.ACTIVE if color == active else SlotRole.STANDBY
            updated[color] = DeploymentSlot(
                id=color,
                role=role,
                version=slot.version,
                deployed_at=slot.deployed_at,
            )
        if version is not None:
            updated[active].version = version
            updated[active].deployed_at = datetime.now(timezone.utc).isoformat()

        _atomic_write_json(
            self._path,
            {
                "updated_at": datetime.now(timezone.utc).isoformat(),
                "slots": [updated[c].to_dict() for c in SlotColor],
            },
        )
        logger.info(f"Slot roles committed: {active.value} active")
        return updated

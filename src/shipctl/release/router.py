"""Live traffic routing between the blue and green hosting sites."""

from typing import TYPE_CHECKING

from shipctl.core.exceptions import CommandError, ReleaseError
from shipctl.core.logging import get_logger
from shipctl.deploy.models import SlotColor

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient

logger = get_logger(__name__)

LIVE_CHANNEL = "live"


class TrafficRouter:
    """Points the live site at one slot.

    Each slot is its own hosting site (`<project>-<slot>`). Switching
    clones the slot's live release onto the project's live channel.
    """

    def __init__(self, platform: "PlatformClient", timeout: float | None = None):
        self.platform = platform
        self.timeout = timeout

    def slot_site(self, project_id: str, slot: SlotColor) -> str:
        return f"{project_id}-{slot.value}"

    async def switch(self, project_id: str, slot: SlotColor) -> None:
        """Route live traffic to `slot`.

        Raises:
            ReleaseError: If the platform rejects the switch
        """
        source = f"{self.slot_site(project_id, slot)}:{LIVE_CHANNEL}"
        target = f"{project_id}:{LIVE_CHANNEL}"
        logger.info(f"Switching live traffic to {slot.value} ({source} -> {target})")
        try:
            await self.platform.clone_hosting(source, target, timeout=self.timeout)
        except CommandError as e:
            raise ReleaseError(
                f"Traffic switch to {slot.value} failed: {e.message}",
                stage="switching",
                details={"source": source, "target": target},
            )

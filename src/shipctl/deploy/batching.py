"""Quota-aware planning of function deployment batches."""

import math
from collections.abc import Sequence
from typing import TypeVar

from shipctl.config import QuotaConfig
from shipctl.deploy.models import BatchingStrategy

T = TypeVar("T")


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive batches of at most `size`.

    Every item lands in exactly one batch and input order is preserved.
    """
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchPlanner:
    """Computes a batching strategy from the artifact count.

    Pure function of its inputs and the quota constants; no I/O.
    """

    def __init__(self, quota: QuotaConfig | None = None):
        self.quota = quota or QuotaConfig()

    def batch_size_for(self, total_size_mb: float | None = None) -> int:
        q = self.quota
        size = q.default_batch_size
        if total_size_mb is not None:
            if total_size_mb > q.large_payload_mb:
                size = q.large_batch_size
            elif total_size_mb > q.medium_payload_mb:
                size = q.medium_batch_size
            if total_size_mb > q.max_total_payload_mb:
                size = max(q.min_batch_size, size // 2)
        return size

    def delay_for(self, batch_size: int, total_size_mb: float | None = None) -> float:
        """Seconds to wait between batches."""
        q = self.quota
        if total_size_mb is not None and total_size_mb > q.large_payload_mb:
            delay = q.large_payload_delay
        elif batch_size < 3:
            delay = q.small_batch_delay
        else:
            delay = q.base_delay
        # Never deploy faster than the window quota refills
        quota_floor = batch_size * q.window_seconds / max(q.deploys_per_window, 1)
        return float(max(delay, quota_floor))

    def plan(
        self,
        artifact_count: int,
        total_size_mb: float | None = None,
        max_batch_size: int | None = None,
        extra_delay: float = 0.0,
    ) -> BatchingStrategy:
        """Plan batches for `artifact_count` function artifacts.

        Args:
            artifact_count: Number of independently deployable functions
            total_size_mb: Combined source size, when known
            max_batch_size: Upper bound from recovery tuning
            extra_delay: Additional spacing from recovery tuning

        Returns:
            BatchingStrategy
        """
        if artifact_count < 0:
            raise ValueError("artifact_count must be >= 0")

        batch_size = self.batch_size_for(total_size_mb)
        if max_batch_size is not None:
            batch_size = max(1, min(batch_size, max_batch_size))

        batch_count = math.ceil(artifact_count / batch_size) if artifact_count else 0
        delay = self.delay_for(batch_size, total_size_mb) + extra_delay
        estimated = (
            batch_count * self.quota.minutes_per_batch
            + max(batch_count - 1, 0) * delay / 60
        )

        return BatchingStrategy(
            batch_count=batch_count,
            batch_size=batch_size,
            delay_between_batches=delay,
            estimated_total_minutes=estimated,
            artifact_count=artifact_count,
            total_size_mb=total_size_mb,
        )

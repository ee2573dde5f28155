"""Error classification and bounded recovery."""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from shipctl.core.async_utils import SleepFunc, default_sleep
from shipctl.core.logging import StructuredLogger
from shipctl.recovery.classifier import classify, error_text
from shipctl.recovery.models import DeploymentTuning, ErrorRecord, ErrorType, StrategyGroup
from shipctl.recovery.strategies import (
    ACTIONS,
    DEFAULT_GROUPS,
    RecoveryAction,
    RecoveryContext,
    backoff_delay,
)

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner

# Flat waits between strategies, indexed by attempts so far
RETRY_DELAYS = (5.0, 15.0, 30.0)


def retry_delay(error_type: ErrorType, attempts: int) -> float:
    """Wait before the next strategy after `attempts` failures."""
    if error_type == ErrorType.NETWORK_ISSUE:
        return backoff_delay(attempts)
    index = min(max(attempts - 1, 0), len(RETRY_DELAYS) - 1)
    return RETRY_DELAYS[index]


class RecoveryEngine:
    """Classifies errors and runs their recovery strategies.

    One instance belongs to one run: it owns the append-only error history
    and the DeploymentTuning the engine reads on its next attempt.
    """

    def __init__(
        self,
        config: "ShipCtlConfig",
        runner: "CommandRunner",
        platform: "PlatformClient",
        sleep: SleepFunc = default_sleep,
        tuning: DeploymentTuning | None = None,
        groups: Mapping[ErrorType, StrategyGroup] | None = None,
        actions: Mapping[str, RecoveryAction] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.runner = runner
        self.platform = platform
        self.sleep = sleep
        self.tuning = tuning or DeploymentTuning()
        self.groups = dict(groups or DEFAULT_GROUPS)
        self.actions: dict[str, RecoveryAction] = {name: cls() for name, cls in ACTIONS.items()}
        if actions:
            self.actions.update(actions)
        self.clock = clock
        self._history: list[ErrorRecord] = []
        self.logger = StructuredLogger("recovery")

    @property
    def history(self) -> list[ErrorRecord]:
        return list(self._history)

    async def handle_error(self, error: BaseException, context: dict[str, Any] | None = None) -> bool:
        """Classify an error and try its strategies in priority order.

        Args:
            error: The failure to recover from
            context: Where it happened (phase, batch, ...)

        Returns:
            True as soon as one strategy succeeds, False when all fail or
            the type's retry ceiling is reached
        """
        message, detail = error_text(error)
        record = ErrorRecord(type=classify(message, detail), message=message, context=dict(context or {}))
        self._history.append(record)

        log = self.logger.bind(type=record.type.value, **{k: v for k, v in record.context.items() if v is not None})
        log.info(f"Handling error: {message}")

        recovered = await self._attempt_recovery(record, log)
        record.recovered = recovered
        return recovered

    async def _attempt_recovery(self, record: ErrorRecord, log: StructuredLogger) -> bool:
        group = self.groups.get(record.type)
        if group is None:
            log.error("No recovery strategy for error type")
            return False

        ctx = RecoveryContext(
            config=self.config,
            runner=self.runner,
            platform=self.platform,
            sleep=self.sleep,
            tuning=self.tuning,
            record=record,
            history=self._history,
            clock=self.clock,
            logger=log,
        )
        strategies = group.ordered()

        for index, strategy in enumerate(strategies):
            if record.attempts >= group.max_retries:
                log.warning(f"Max retries ({group.max_retries}) reached")
                return False

            action = self.actions.get(strategy.name)
            if action is None:
                log.warning(f"Unknown recovery strategy: {strategy.name}")
                success = False
            else:
                log.info(f"Trying strategy {strategy.name} (priority {strategy.priority})")
                try:
                    success = await action.attempt(ctx)
                except Exception as e:
                    log.warning(f"Strategy {strategy.name} raised: {e}")
                    success = False

            if success:
                log.info(f"Recovered with strategy {strategy.name}")
                return True

            record.attempts += 1
            more = index + 1 < len(strategies)
            waits = action is None or not action.requires_human
            if more and waits and record.attempts < group.max_retries:
                delay = retry_delay(record.type, record.attempts)
                log.info(f"Waiting {delay:g}s before next strategy")
                await self.sleep(delay)

        log.error("All recovery strategies failed")
        return False

    def summary(self) -> dict[str, Any]:
        """Counts of handled errors by type and outcome."""
        by_type: dict[str, int] = {}
        for record in self._history:
            by_type[record.type.value] = by_type.get(record.type.value, 0) + 1
        return {
            "total": len(self._history),
            "by_type": by_type,
            "resolved": sum(1 for r in self._history if r.recovered),
            "unresolved": sum(1 for r in self._history if r.recovered is False),
        }

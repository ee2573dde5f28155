"""Production release controller: validation, blue-green switch, rollback."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from shipctl.core.async_utils import SleepFunc, default_sleep, run_with_timeout
from shipctl.core.exceptions import DeploymentError, ReleaseError, ShipCtlError, ValidationError
from shipctl.core.logging import StructuredLogger
from shipctl.deploy.engine import DeploymentEngine
from shipctl.deploy.models import DeploymentResult, SlotColor, SlotRole
from shipctl.deploy.state import RunMetadataStore, SlotStore, generate_deployment_id
from shipctl.health.checker import HealthChecker
from shipctl.health.models import HealthCheckResult, HealthReport, HealthStatus
from shipctl.health.probes import HealthTarget
from shipctl.recovery.engine import RecoveryEngine
from shipctl.release.models import ReleaseMode, ReleaseOutcome, ReleaseStage
from shipctl.release.router import TrafficRouter
from shipctl.validation.gate import ValidationGate

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner

EngineFactory = Callable[[SlotColor | None, str], DeploymentEngine]


class ReleaseController:
    """Drives one production release.

    Blue-green flow: validate, deploy to the standby slot, hold a canary
    and probe the slot, switch live traffic, keep the old slot as
    standby, then probe live and switch back if that fails. Slot roles
    are only persisted after a switch succeeds.

    Validation and deployment failures raise; canary and post-switch
    health failures end the run as rolled back instead.
    """

    def __init__(
        self,
        config: "ShipCtlConfig",
        platform: "PlatformClient",
        runner: "CommandRunner",
        gate: ValidationGate | None = None,
        checker: HealthChecker | None = None,
        router: TrafficRouter | None = None,
        slots: SlotStore | None = None,
        metadata: RunMetadataStore | None = None,
        engine_factory: EngineFactory | None = None,
        sleep: SleepFunc = default_sleep,
        deployment_id: str | None = None,
    ):
        self.config = config
        self.platform = platform
        self.runner = runner
        self.gate = gate or ValidationGate(config, platform, runner)
        self.checker = checker or HealthChecker(config, platform, runner)
        self.router = router or TrafficRouter(platform, timeout=config.deployment.deployment.hosting_timeout)
        self.slots = slots or SlotStore(config.deployments_dir)
        self.metadata = metadata or RunMetadataStore(config.deployments_dir)
        self.engine_factory = engine_factory or self._default_engine
        self.sleep = sleep
        self.deployment_id = deployment_id or generate_deployment_id()
        self.logger = StructuredLogger("release").bind(run=self.deployment_id)

    def _default_engine(self, slot: SlotColor | None, run_id: str) -> DeploymentEngine:
        recovery = RecoveryEngine(self.config, self.runner, self.platform, sleep=self.sleep)
        return DeploymentEngine(
            self.config,
            self.platform,
            self.runner,
            recovery,
            sleep=self.sleep,
            slot=slot,
            run_id=run_id,
        )

    @property
    def blue_green(self) -> bool:
        return self.config.settings.blue_green_mode and self.config.production.blue_green.enabled

    async def run(self, mode: ReleaseMode | str | None = None) -> ReleaseOutcome:
        """Run the release in the given (or DEPLOYMENT_MODE) mode."""
        mode = ReleaseMode(mode or self.config.settings.deployment_mode)
        if mode == ReleaseMode.ROLLBACK:
            return await self.rollback(self.config.settings.rollback_version)
        if mode == ReleaseMode.HEALTH_CHECK:
            return await self.check_health()
        return await self.release()

    async def release(self) -> ReleaseOutcome:
        """Validate, deploy and (in blue-green mode) switch traffic.

        Raises:
            ValidationError: If the production gate reports errors
            DeploymentError: If the deployment aborts
            ReleaseError: If traffic cannot be switched
        """
        outcome = ReleaseOutcome(self.deployment_id, ReleaseMode.PRODUCTION, blue_green=self.blue_green)
        self.logger.info(f"Starting production release ({'blue-green' if outcome.blue_green else 'direct'})")

        outcome.enter(ReleaseStage.VALIDATING, "Running production validation")
        report = await self.gate.validate(
            mode="production",
            target_environment=self.config.settings.target_environment,
            strict=True,
        )
        outcome.validation = report
        if not report.passed:
            raise ValidationError(
                f"Production validation failed with {len(report.errors)} errors",
                errors=report.errors,
            )

        self._save_metadata(outcome)
        if outcome.blue_green:
            return await self._blue_green(outcome)
        return await self._direct(outcome)

    def _save_metadata(self, outcome: ReleaseOutcome) -> None:
        self.metadata.save(
            self.deployment_id,
            {
                "deployment_id": self.deployment_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "mode": outcome.mode.value,
                "environment": self.config.settings.target_environment,
                "blue_green": outcome.blue_green,
                "config": self.config.production.model_dump(by_alias=True),
            },
        )

    async def _deploy(self, outcome: ReleaseOutcome, slot: SlotColor | None) -> DeploymentResult:
        engine = self.engine_factory(slot, self.deployment_id)
        try:
            result = await run_with_timeout(
                engine.deploy(),
                self.config.production.timeouts.deployment,
                "Deployment exceeded the configured deployment timeout",
            )
        finally:
            outcome.error_summary = engine.recovery.summary()
        outcome.deployment = result
        if result.aborted:
            raise DeploymentError(
                f"Deployment aborted: {result.abort_reason}",
                component=slot.value if slot else None,
                details={"errors": result.errors},
            )
        return result

    async def _health(self, target: HealthTarget | None = None) -> HealthReport:
        """Run the checker; a check run that errors counts as a critical failure."""
        try:
            return await run_with_timeout(
                self.checker.run(target),
                self.config.production.timeouts.health_check,
                "Health checks exceeded the configured timeout",
            )
        except ShipCtlError as e:
            self.logger.error(f"Health check run failed: {e.message}")
            result = HealthCheckResult("health_check_run", 0, True, HealthStatus.FAILED, e.message)
            return HealthReport(results=[result], target=target.to_dict() if target else {}, stopped_early=True)

    def _project_id(self) -> str:
        project = self.platform.project_id()
        if not project:
            raise ReleaseError("No project configured for traffic switching", stage=ReleaseStage.SWITCHING.value)
        return project

    async def _direct(self, outcome: ReleaseOutcome) -> ReleaseOutcome:
        outcome.enter(ReleaseStage.DEPLOYING, "Deploying without slot management")
        result = await self._deploy(outcome, None)
        outcome.enter(ReleaseStage.COMPLETE, f"Deployment finished: {result.status.value}")
        outcome.success = True
        return outcome

    async def _blue_green(self, outcome: ReleaseOutcome) -> ReleaseOutcome:
        policy = self.config.production.blue_green
        slots = self.slots.load()
        current = next(color for color, slot in slots.items() if slot.role == SlotRole.ACTIVE)
        target = current.complement
        outcome.current_slot, outcome.target_slot = current, target
        log = self.logger.bind(slot=target.value)

        outcome.enter(ReleaseStage.DEPLOYING, f"Deploying to {target.value} (live: {current.value})")
        await self._deploy(outcome, target)

        outcome.enter(ReleaseStage.CANARY, f"Holding canary for {policy.canary_duration:g}s")
        await self.sleep(policy.canary_duration)
        canary = await self._health(self.checker.resolve_target(target.value))
        outcome.canary_health = canary
        if not canary.verdict.healthy:
            outcome.enter(ReleaseStage.ABORTING, f"Canary health check failed: {canary.verdict.value}")
            log.error("Canary failed, live traffic stays on the current slot")
            outcome.enter(ReleaseStage.ROLLED_BACK, f"Traffic kept on {current.value}")
            outcome.rolled_back = True
            outcome.error = f"Canary health check failed: {canary.verdict.value}"
            return outcome

        outcome.enter(ReleaseStage.SWITCHING, f"Switching traffic to {target.value} in {policy.traffic_switch_delay:g}s")
        await self.sleep(policy.traffic_switch_delay)
        project = self._project_id()
        await self.router.switch(project, target)
        committed = self.slots.commit(target, version=self.deployment_id, slots=slots)

        outcome.enter(ReleaseStage.STANDBY, f"{current.value} kept as standby for rollback")

        health = await self._health()
        outcome.health = health
        if health.verdict.healthy:
            outcome.enter(ReleaseStage.COMPLETE, f"Release live on {target.value}")
            outcome.success = True
            return outcome

        reason = f"Post-switch health check failed: {health.verdict.value}"
        outcome.error = reason
        if not self.config.production.rollback.automatic_rollback_enabled:
            log.error(f"{reason}; automatic rollback disabled")
            outcome.enter(ReleaseStage.FAILED, reason)
            return outcome

        outcome.enter(ReleaseStage.ABORTING, reason)
        await run_with_timeout(
            self.router.switch(project, current),
            self.config.production.rollback.max_rollback_time,
            "Rollback exceeded the configured rollback time",
        )
        self.slots.commit(current, slots=committed)
        outcome.rolled_back = True
        outcome.enter(ReleaseStage.ROLLED_BACK, f"Traffic switched back to {current.value}")
        return outcome

    async def rollback(self, version: str | None) -> ReleaseOutcome:
        """Route live traffic to the slot holding `version`.

        Raises:
            ReleaseError: If no version is given or no slot holds it
        """
        outcome = ReleaseOutcome(self.deployment_id, ReleaseMode.ROLLBACK, blue_green=True)
        if not version:
            raise ReleaseError("ROLLBACK_VERSION is required for rollback", stage=ReleaseStage.SWITCHING.value)

        slots = self.slots.load()
        slot = next((s for s in slots.values() if s.version == version), None)
        if slot is None:
            raise ReleaseError(f"No slot holds version {version}", stage=ReleaseStage.SWITCHING.value)

        current = next(color for color, s in slots.items() if s.role == SlotRole.ACTIVE)
        outcome.current_slot, outcome.target_slot = current, slot.id
        if slot.id == current:
            outcome.enter(ReleaseStage.COMPLETE, f"Version {version} is already live on {current.value}")
        else:
            outcome.enter(ReleaseStage.SWITCHING, f"Rolling back to {version} on {slot.id.value}")
            await run_with_timeout(
                self.router.switch(self._project_id(), slot.id),
                self.config.production.timeouts.rollback,
                "Rollback exceeded the configured rollback timeout",
            )
            self.slots.commit(slot.id, slots=slots)
            outcome.enter(ReleaseStage.STANDBY, f"{current.value} kept as standby")

        outcome.health = await self._health()
        outcome.success = outcome.health.verdict.healthy
        if outcome.success:
            outcome.enter(ReleaseStage.COMPLETE, f"Rollback to {version} verified")
        else:
            outcome.error = f"Health check after rollback: {outcome.health.verdict.value}"
            outcome.enter(ReleaseStage.FAILED, outcome.error)
        return outcome

    async def check_health(self) -> ReleaseOutcome:
        """Run the health checks against the live target only."""
        outcome = ReleaseOutcome(self.deployment_id, ReleaseMode.HEALTH_CHECK)
        outcome.health = await self._health()
        outcome.success = outcome.health.verdict.healthy
        outcome.enter(
            ReleaseStage.COMPLETE if outcome.success else ReleaseStage.FAILED,
            f"Health verdict: {outcome.health.verdict.value}",
        )
        return outcome

"""Sequential deployment engine: rules, storage, function batches, hosting."""

import time
from pathlib import Path
from typing import TYPE_CHECKING

from shipctl.core.async_utils import SleepFunc, default_sleep
from shipctl.core.exceptions import CommandError, DeploymentError, ShipCtlError
from shipctl.core.logging import StructuredLogger
from shipctl.deploy.batching import BatchPlanner, partition
from shipctl.deploy.models import (
    BatchingStrategy,
    DeploymentProgress,
    DeploymentResult,
    DeploymentState,
    Phase,
    RunStatus,
    SlotColor,
)
from shipctl.recovery.classifier import error_text, is_critical

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner
    from shipctl.recovery.engine import RecoveryEngine

PHASE_ORDER = (Phase.RULES, Phase.STORAGE, Phase.FUNCTIONS, Phase.HOSTING)
# Later phases assume these succeeded
FOUNDATION_PHASES = (Phase.RULES, Phase.STORAGE)


class PhaseFailure(Exception):
    """A phase raised; carries the original error."""

    def __init__(self, phase: Phase, error: ShipCtlError, handled: bool = False):
        super().__init__(f"{phase.value}: {error}")
        self.phase = phase
        self.error = error
        # Recovery already ran for this error
        self.handled = handled


class DeploymentEngine:
    """Runs the deployment phases in order and tracks progress.

    A phase failure goes to the RecoveryEngine. When recovery succeeds
    the run starts over from the first phase (or, with resumeMode
    "resume", from the failed phase), at most maxRestarts times.
    Unrecovered failures abort on critical patterns or in the rules and
    storage phases; anything else is recorded and the run continues.
    """

    def __init__(
        self,
        config: "ShipCtlConfig",
        platform: "PlatformClient",
        runner: "CommandRunner",
        recovery: "RecoveryEngine",
        planner: BatchPlanner | None = None,
        sleep: SleepFunc = default_sleep,
        slot: SlotColor | None = None,
        run_id: str | None = None,
    ):
        self.config = config
        self.platform = platform
        self.runner = runner
        self.recovery = recovery
        self.planner = planner or BatchPlanner(config.deployment.quota)
        self.sleep = sleep
        self.slot = slot
        self.state = DeploymentState()
        self._settings = config.deployment.deployment
        self.logger = StructuredLogger("deploy.engine").bind(
            **{k: v for k, v in {"run": run_id, "slot": slot.value if slot else None}.items() if v}
        )

    def progress(self) -> DeploymentProgress:
        """Snapshot of the current run."""
        return DeploymentProgress(
            phase=self.state.phase,
            components_deployed=self.state.components_deployed,
            total_components=self.state.total_components,
            progress_percentage=self.state.progress_percentage,
        )

    def discover_artifacts(self) -> list[Path]:
        """Function source files, sorted by name."""
        source_dir = self.config.path("functions_source_dir")
        if not source_dir.is_dir():
            self.logger.warning(f"Functions directory not found: {source_dir}")
            return []
        suffix = self._settings.artifact_suffix
        excluded = tuple(self._settings.excluded_suffixes)
        return sorted(
            p
            for p in source_dir.iterdir()
            if p.is_file() and p.name.endswith(suffix) and not p.name.endswith(excluded)
        )

    def artifact_names(self, artifacts: list[Path]) -> list[str]:
        suffix = self._settings.artifact_suffix
        return [p.name[: -len(suffix)] if suffix else p.name for p in artifacts]

    def plan(self, artifacts: list[Path] | None = None) -> BatchingStrategy:
        """Batching strategy for the current artifacts and recovery tuning."""
        artifacts = self.discover_artifacts() if artifacts is None else artifacts
        total_mb = sum(p.stat().st_size for p in artifacts) / (1024 * 1024)
        tuning = self.recovery.tuning
        return self.planner.plan(
            len(artifacts),
            total_size_mb=total_mb,
            max_batch_size=tuning.batch_size_cap,
            extra_delay=tuning.extra_delay,
        )

    async def deploy(self) -> DeploymentResult:
        """Run all phases.

        Returns:
            DeploymentResult with status success or partial_failure
        """
        started = time.monotonic()
        self.state = DeploymentState()
        start = Phase.RULES
        self.logger.info("Starting deployment")

        while True:
            if start.order <= Phase.FUNCTIONS.order:
                self._initialize()
            try:
                await self._run_phases(start)
                break
            except PhaseFailure as failure:
                next_start = await self._handle_phase_failure(failure)
                if next_start is None:
                    return self._result(started, aborted=True, reason=failure.error.message)
                if next_start == Phase.DONE:
                    break
                start = next_start

        self.state.advance(Phase.DONE)
        result = self._result(started)
        self.logger.info(
            f"Deployment finished: {result.status.value} "
            f"({result.components_deployed}/{result.total_components} components)"
        )
        return result

    def _initialize(self) -> None:
        artifacts = self.discover_artifacts()
        strategy = self.plan(artifacts)
        self.state.batching_strategy = strategy
        self.state.planned_artifacts = self.artifact_names(artifacts)
        self.state.total_components = (
            int(self.config.path("access_rules_file").exists())
            + int(self.config.path("storage_rules_file").exists())
            + strategy.batch_count
            + 1
        )
        self.logger.info(
            f"Deployment strategy: {strategy.batch_count} batches of {strategy.batch_size}, "
            f"{strategy.estimated_total_minutes:.1f} min estimated"
        )

    async def _run_phases(self, start: Phase) -> None:
        runners = {
            Phase.RULES: self._deploy_rules,
            Phase.STORAGE: self._deploy_storage,
            Phase.FUNCTIONS: self._deploy_functions,
            Phase.HOSTING: self._deploy_hosting,
        }
        for phase in PHASE_ORDER:
            if phase.order < start.order:
                continue
            self.state.advance(phase)
            try:
                await runners[phase]()
            except PhaseFailure:
                raise
            except ShipCtlError as e:
                raise PhaseFailure(phase, e)
            self.state.completed_phases.append(phase)

    async def _handle_phase_failure(self, failure: PhaseFailure) -> Phase | None:
        """Decide where to continue after a failed phase.

        Returns:
            Phase to start from, Phase.DONE to finish, or None to abort
        """
        phase = failure.phase
        message, _ = error_text(failure.error)
        self.logger.error(f"Phase {phase.value} failed: {message}")

        if not failure.handled:
            recovered = await self.recovery.handle_error(
                failure.error, {"phase": phase.value, "component": "deployment-engine"}
            )
            if recovered and self.state.restarts < self._settings.max_restarts:
                self.state.restarts += 1
                if self._settings.resume_mode == "resume":
                    self.logger.info(f"Recovered, resuming at {phase.value}")
                    self.state.rewind_to(phase)
                    return phase
                self.logger.info("Recovered, restarting deployment")
                self.state.reset()
                return Phase.RULES
            if recovered:
                self.logger.warning(f"Restart limit ({self._settings.max_restarts}) reached")

        if not failure.handled:
            self.state.errors.append(f"{phase.value}: {message}")
        if is_critical(message) or phase in FOUNDATION_PHASES:
            self.logger.error(f"Aborting deployment after {phase.value} failure")
            return None

        later = [p for p in PHASE_ORDER if p.order > phase.order]
        return later[0] if later else Phase.DONE

    def _env(self, function_settings: bool = False) -> dict[str, str]:
        tuning = self.recovery.tuning
        env = tuning.function_env() if function_settings else dict(tuning.env)
        if self.slot:
            env["DEPLOYMENT_SLOT"] = self.slot.value
        return env

    async def _deploy_rules(self) -> None:
        if not self.config.path("access_rules_file").exists():
            self.logger.info("No access rules to deploy")
            return
        await self.platform.deploy(
            "firestore:rules", env=self._env(), timeout=self._settings.rules_timeout
        )
        self.state.record_deployed()
        self.logger.info("Access rules deployed")

    async def _deploy_storage(self) -> None:
        if not self.config.path("storage_rules_file").exists():
            self.logger.info("No storage rules to deploy")
            return
        await self.platform.deploy("storage", env=self._env(), timeout=self._settings.rules_timeout)
        self.state.record_deployed()
        self.logger.info("Storage rules deployed")

    async def _deploy_functions(self) -> None:
        strategy = self.state.batching_strategy
        names = self.state.planned_artifacts
        if not names or strategy is None:
            self.logger.info("No functions to deploy")
            return

        batches = partition(names, strategy.batch_size)
        self.logger.info(f"Deploying {len(names)} functions in {len(batches)} batches")

        for index, batch in enumerate(batches, start=1):
            deployed = await self._deploy_batch_with_recovery(batch, index, len(batches))
            if deployed and index < len(batches):
                self.logger.info(f"Waiting {strategy.delay_between_batches:g}s before next batch")
                await self.sleep(strategy.delay_between_batches)

    async def _deploy_batch_with_recovery(self, batch: list[str], index: int, count: int) -> bool:
        log = self.logger.bind(batch=f"{index}/{count}")
        log.info(f"Deploying batch ({len(batch)} functions)")
        try:
            await self._deploy_batch(batch)
        except CommandError as e:
            log.warning(f"Batch failed: {e.message}")
            recovered = await self.recovery.handle_error(
                e, {"phase": Phase.FUNCTIONS.value, "batch": index, "functions": ",".join(batch)}
            )
            error: CommandError = e
            if recovered:
                try:
                    await self._deploy_batch(batch)
                except CommandError as retry_error:
                    error = retry_error
                else:
                    self.state.record_deployed()
                    log.info("Batch deployed after recovery")
                    return True

            message = error.message
            self.state.errors.append(f"functions batch {index}: {message}")
            if is_critical(message):
                raise PhaseFailure(Phase.FUNCTIONS, error, handled=True)
            self.state.warnings.append(f"Batch {index} failed but continuing: {message}")
            return False

        self.state.record_deployed()
        log.info("Batch deployed")
        return True

    async def _deploy_batch(self, batch: list[str]) -> None:
        await self.platform.deploy(
            f"functions:{','.join(batch)}",
            force=True,
            env=self._env(function_settings=True),
            timeout=self._settings.batch_timeout,
        )

    async def _deploy_hosting(self) -> None:
        build_dir = self.config.path("hosting_build_dir")
        if not build_dir.exists():
            self.logger.info("Build not found, building frontend first")
            try:
                await self.runner.run(
                    self.config.deployment.scripts.argv("build"),
                    cwd=self.config.path("frontend_dir"),
                    timeout=self._settings.build_timeout,
                    check=True,
                )
            except CommandError as e:
                raise DeploymentError(
                    f"Build failed: {e.message}", phase=Phase.HOSTING.value, component="frontend"
                )

        target = f"hosting:{self.slot.value}" if self.slot else "hosting"
        await self.platform.deploy(target, env=self._env(), timeout=self._settings.hosting_timeout)
        self.state.record_deployed()
        self.logger.info("Hosting deployed")

    def _result(self, started: float, aborted: bool = False, reason: str | None = None) -> DeploymentResult:
        status = RunStatus.SUCCESS if not self.state.errors and not aborted else RunStatus.PARTIAL_FAILURE
        return DeploymentResult(
            status=status,
            components_deployed=self.state.components_deployed,
            total_components=self.state.total_components,
            errors=list(self.state.errors),
            warnings=list(self.state.warnings),
            aborted=aborted,
            abort_reason=reason,
            restarts=self.state.restarts,
            batching_strategy=self.state.batching_strategy,
            duration=time.monotonic() - started,
        )

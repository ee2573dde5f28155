"""Prioritized, short-circuiting health check runner."""

from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx

from shipctl.core.logging import StructuredLogger
from shipctl.health.models import HealthCheckResult, HealthReport, HealthStatus, ProbeOutcome
from shipctl.health.probes import HealthProbe, HealthTarget, ProbeContext, default_probes

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner


class HealthChecker:
    """Runs probes in priority order and aggregates a verdict.

    Execution stops at the first critical probe that fails (or raises);
    lower priority probes are then not run at all.
    """

    def __init__(
        self,
        config: "ShipCtlConfig",
        platform: "PlatformClient",
        runner: "CommandRunner",
        probes: Sequence[HealthProbe] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.platform = platform
        self.runner = runner
        # sorted() is stable, so equal priorities keep their declared order
        self.probes = sorted(probes if probes is not None else default_probes(), key=lambda p: p.priority)
        self._http = http_client
        self.logger = StructuredLogger("health")

    def resolve_target(self, slot: str | None = None) -> HealthTarget:
        """Live target, or the hosting site of one slot."""
        project = self.platform.project_id()
        if not project:
            return HealthTarget(project_id=None, hosting_url=None, functions_base_url=None, slot=slot)
        site = f"{project}-{slot}" if slot else None
        return HealthTarget(
            project_id=project,
            hosting_url=self.platform.hosting_url(project, site),
            functions_base_url=self.platform.functions_base_url(project),
            slot=slot,
        )

    async def run(self, target: HealthTarget | None = None) -> HealthReport:
        """Run the probe suite.

        Args:
            target: What to probe (live target when None)

        Returns:
            HealthReport
        """
        target = target or self.resolve_target()
        log = self.logger.bind(slot=target.slot) if target.slot else self.logger
        log.info(f"Running {len(self.probes)} health checks")

        if self._http is not None:
            return await self._run_probes(target, self._http, log)
        async with httpx.AsyncClient(timeout=self.config.deployment.health.probe_timeout) as client:
            return await self._run_probes(target, client, log)

    async def _run_probes(
        self,
        target: HealthTarget,
        client: httpx.AsyncClient,
        log: StructuredLogger,
    ) -> HealthReport:
        ctx = ProbeContext(
            config=self.config,
            platform=self.platform,
            runner=self.runner,
            http=client,
            target=target,
        )
        report = HealthReport(results=[], target=target.to_dict())

        for probe in self.probes:
            try:
                outcome = await probe.check(ctx)
            except Exception as e:
                log.exception(f"Probe {probe.name} raised")
                outcome = ProbeOutcome(HealthStatus.FAILED, str(e) or type(e).__name__, {"error": type(e).__name__})

            result = HealthCheckResult(
                name=probe.name,
                priority=probe.priority,
                critical=probe.critical,
                status=outcome.status,
                message=outcome.message,
                details=outcome.details,
            )
            report.results.append(result)
            log.info(f"{probe.name}: {result.status.value.upper()} - {result.message}")

            if result.status == HealthStatus.FAILED and probe.critical:
                log.error(f"Critical check {probe.name} failed, stopping health checks")
                report.stopped_early = True
                break

        log.info(f"Health verdict: {report.verdict.value}")
        return report

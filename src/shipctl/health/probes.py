"""Post-deployment health probes."""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from shipctl.core.exceptions import CommandError
from shipctl.health.models import HealthStatus, ProbeOutcome

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner


@dataclass(frozen=True)
class HealthTarget:
    """Where the probes point: the live site or one blue-green slot."""

    project_id: str | None
    hosting_url: str | None
    functions_base_url: str | None
    slot: str | None = None

    @property
    def insecure_hosting_url(self) -> str | None:
        if not self.hosting_url:
            return None
        return "http://" + self.hosting_url.split("://", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "hosting_url": self.hosting_url,
            "functions_base_url": self.functions_base_url,
            "slot": self.slot,
        }


@dataclass
class ProbeContext:
    config: "ShipCtlConfig"
    platform: "PlatformClient"
    runner: "CommandRunner"
    http: httpx.AsyncClient
    target: HealthTarget


async def timed_get(ctx: ProbeContext, url: str, timeout: float | None = None) -> tuple[httpx.Response, float]:
    """GET without following redirects; returns the response and elapsed ms."""
    started = time.monotonic()
    response = await ctx.http.get(
        url,
        timeout=timeout or ctx.config.deployment.health.probe_timeout,
        follow_redirects=False,
    )
    return response, (time.monotonic() - started) * 1000


class HealthProbe(ABC):
    """A named check. Lower priority runs first; critical failures stop the run."""

    name: str = ""
    priority: int = 1
    critical: bool = False

    @abstractmethod
    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        ...


class PlatformConnectivityProbe(HealthProbe):
    name = "platform_connectivity"
    priority = 1
    critical = True

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        projects = await ctx.platform.list_projects()
        project = ctx.target.project_id
        if project and any(p.get("projectId") == project for p in projects):
            return ProbeOutcome(
                HealthStatus.PASSED,
                f"Connected to project: {project}",
                {"project_id": project, "project_count": len(projects)},
            )
        return ProbeOutcome(HealthStatus.FAILED, "Current project not found in accessible projects")


class FunctionsStatusProbe(HealthProbe):
    name = "functions_deployment_status"
    priority = 1
    critical = True

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        functions = await ctx.platform.list_functions()
        active = [f for f in functions if f.get("status") == "ACTIVE"]
        counts = {"total_functions": len(functions), "active_functions": len(active)}

        if not active:
            return ProbeOutcome(HealthStatus.WARNING, "No active functions found", counts)
        inactive = [f for f in functions if f.get("status") != "ACTIVE"]
        if inactive:
            return ProbeOutcome(
                HealthStatus.WARNING,
                f"{len(inactive)} functions are not active",
                {**counts, "inactive": [{"name": f.get("name"), "status": f.get("status")} for f in inactive]},
            )
        return ProbeOutcome(HealthStatus.PASSED, f"{len(active)} functions are active", counts)


class HostingProbe(HealthProbe):
    name = "hosting_accessibility"
    priority = 1
    critical = True

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        url = ctx.target.hosting_url
        if not url:
            return ProbeOutcome(HealthStatus.FAILED, "Project ID not available for hosting check")
        response, elapsed = await timed_get(ctx, url)
        details = {"url": url, "status_code": response.status_code, "response_time_ms": round(elapsed)}
        if response.status_code == 200:
            return ProbeOutcome(HealthStatus.PASSED, "Hosting site is accessible", details)
        return ProbeOutcome(HealthStatus.WARNING, f"Hosting returned status {response.status_code}", details)


class DataStoreProbe(HealthProbe):
    name = "firestore_connectivity"
    priority = 2
    critical = True

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        databases = await ctx.platform.list_databases()
        if databases:
            return ProbeOutcome(HealthStatus.PASSED, "Data store is accessible", {"databases": len(databases)})
        return ProbeOutcome(HealthStatus.WARNING, "No databases found")


class ObjectStoreProbe(HealthProbe):
    name = "storage_accessibility"
    priority = 2
    critical = True

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        buckets = await ctx.platform.list_buckets()
        if buckets:
            return ProbeOutcome(HealthStatus.PASSED, "Object storage is accessible", {"buckets": len(buckets)})
        return ProbeOutcome(HealthStatus.WARNING, "No storage buckets found")


class FunctionEndpointsProbe(HealthProbe):
    name = "function_endpoints_health"
    priority = 3

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        base = ctx.target.functions_base_url
        if not base:
            return ProbeOutcome(HealthStatus.SKIPPED, "Project ID not available for endpoint testing")

        health = ctx.config.deployment.health
        endpoints = []
        for name in health.function_endpoints:
            try:
                response, elapsed = await timed_get(ctx, f"{base}/{name}", timeout=health.endpoint_timeout)
            except httpx.HTTPError as e:
                endpoints.append({"endpoint": name, "error": str(e) or type(e).__name__, "accessible": False})
                continue
            endpoints.append(
                {
                    "endpoint": name,
                    "status_code": response.status_code,
                    "response_time_ms": round(elapsed),
                    "accessible": response.status_code < 500,
                }
            )

        if not endpoints:
            return ProbeOutcome(HealthStatus.SKIPPED, "No function endpoints configured")
        reachable = sum(1 for e in endpoints if e["accessible"])
        details = {"endpoints": endpoints}
        if reachable == len(endpoints):
            return ProbeOutcome(HealthStatus.PASSED, f"All {len(endpoints)} endpoints are accessible", details)
        if reachable:
            return ProbeOutcome(HealthStatus.WARNING, f"{reachable}/{len(endpoints)} endpoints accessible", details)
        return ProbeOutcome(HealthStatus.FAILED, "No function endpoints are accessible", details)


class CorsProbe(HealthProbe):
    name = "cors_configuration"
    priority = 3

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        path = ctx.config.path("cors_file")
        if not path.exists():
            return ProbeOutcome(HealthStatus.WARNING, "CORS configuration file not found", {"path": str(path)})

        entries = json.loads(path.read_text())
        if not isinstance(entries, list):
            entries = [entries]
        issues = []
        if any("*" in (e.get("origin") or []) for e in entries):
            issues.append("Wildcard origins detected - consider restricting for production")
        if any("*" in (e.get("method") or []) for e in entries):
            issues.append("Wildcard methods detected - consider restricting methods")

        if issues:
            return ProbeOutcome(
                HealthStatus.WARNING,
                "CORS configuration has potential issues",
                {"issues": issues, "path": str(path)},
            )
        return ProbeOutcome(HealthStatus.PASSED, "CORS configuration looks good", {"path": str(path)})


class PerformanceProbe(HealthProbe):
    name = "performance_benchmarks"
    priority = 4

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        url = ctx.target.hosting_url
        if not url:
            return ProbeOutcome(HealthStatus.SKIPPED, "No performance benchmarks could be run")

        threshold = ctx.config.deployment.health.response_time_threshold_ms
        try:
            _, elapsed = await timed_get(ctx, url, timeout=ctx.config.deployment.health.endpoint_timeout)
            benchmark = {
                "test": "hosting_response_time",
                "value": round(elapsed),
                "unit": "ms",
                "threshold": threshold,
                "passed": elapsed < threshold,
            }
        except httpx.HTTPError as e:
            benchmark = {"test": "hosting_response_time", "error": str(e) or type(e).__name__, "passed": False}

        if benchmark["passed"]:
            return ProbeOutcome(HealthStatus.PASSED, "All 1 performance benchmarks passed", {"benchmarks": [benchmark]})
        return ProbeOutcome(HealthStatus.WARNING, "0/1 benchmarks passed", {"benchmarks": [benchmark]})


class SecurityProbe(HealthProbe):
    name = "security_validation"
    priority = 4

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        checks = []
        insecure_url = ctx.target.insecure_hosting_url
        if insecure_url:
            try:
                response, _ = await timed_get(ctx, insecure_url, timeout=5)
                redirected = 300 <= response.status_code < 400
                checks.append(
                    {
                        "check": "https_redirect",
                        "passed": redirected,
                        "message": "HTTP redirects to HTTPS" if redirected else "HTTP not redirected",
                    }
                )
            except httpx.HTTPError:
                checks.append(
                    {"check": "https_redirect", "passed": False, "message": "Could not test HTTP redirect"}
                )

        for check, key in (("access_rules", "access_rules_file"), ("storage_rules", "storage_rules_file")):
            present = ctx.config.path(key).exists()
            checks.append(
                {
                    "check": check,
                    "passed": present,
                    "message": f"{check.replace('_', ' ').capitalize()} {'configured' if present else 'missing'}",
                }
            )

        passed = sum(1 for c in checks if c["passed"])
        if passed == len(checks):
            return ProbeOutcome(
                HealthStatus.PASSED, f"All {len(checks)} security checks passed", {"security_checks": checks}
            )
        return ProbeOutcome(
            HealthStatus.WARNING, f"{passed}/{len(checks)} security checks passed", {"security_checks": checks}
        )


class IntegrationTestsProbe(HealthProbe):
    name = "api_integration_tests"
    priority = 5

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        if not ctx.config.path("functions_test_dir").exists():
            return ProbeOutcome(HealthStatus.SKIPPED, "No test directory found")

        try:
            result = await ctx.runner.run(
                ctx.config.deployment.scripts.argv("test"),
                cwd=ctx.config.path("functions_dir"),
                timeout=ctx.config.deployment.health.probe_timeout,
                check=True,
            )
        except CommandError as e:
            return ProbeOutcome(HealthStatus.WARNING, "Could not run integration tests", {"error": e.message[:500]})

        output = result.stdout + result.stderr
        if "PASS" in output or "0 tests" in output:
            return ProbeOutcome(HealthStatus.PASSED, "API integration tests passed", {"output": output[:500]})
        return ProbeOutcome(HealthStatus.WARNING, "Test results unclear", {"output": output[:500]})


def default_probes() -> list[HealthProbe]:
    return [
        PlatformConnectivityProbe(),
        FunctionsStatusProbe(),
        HostingProbe(),
        DataStoreProbe(),
        ObjectStoreProbe(),
        FunctionEndpointsProbe(),
        CorsProbe(),
        PerformanceProbe(),
        SecurityProbe(),
        IntegrationTestsProbe(),
    ]

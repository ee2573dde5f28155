"""Recovery actions, one class per named strategy."""

import json
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from shipctl.core.async_utils import SleepFunc
from shipctl.core.exceptions import CommandError
from shipctl.core.logging import StructuredLogger
from shipctl.recovery.models import (
    DeploymentTuning,
    ErrorRecord,
    ErrorType,
    RecoveryStrategy,
    StrategyGroup,
)

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner

BACKOFF_BASE_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 60.0
QUOTA_RESET_DELAY = 30.0
OFF_PEAK_DELAY = 60.0
PEAK_HOURS = range(9, 18)
ALTERNATIVE_ROUTE_DELAY = 10.0


def backoff_delay(attempt: int) -> float:
    """Exponential delay for the given attempt number."""
    return min(BACKOFF_BASE_SECONDS * (2**attempt), BACKOFF_MAX_SECONDS)


@dataclass
class RecoveryContext:
    """Everything a strategy may touch while remediating one error."""

    config: "ShipCtlConfig"
    runner: "CommandRunner"
    platform: "PlatformClient"
    sleep: SleepFunc
    tuning: DeploymentTuning
    record: ErrorRecord
    history: list[ErrorRecord] = field(default_factory=list)
    clock: Callable[[], datetime] = datetime.now
    logger: StructuredLogger = field(default_factory=lambda: StructuredLogger("recovery"))


class RecoveryAction(ABC):
    """One remediation step. attempt() returns True when the error is handled."""

    name: str = ""
    # Needs a person; always reports failure so the run moves on
    requires_human: bool = False

    @abstractmethod
    async def attempt(self, ctx: RecoveryContext) -> bool:
        ...


# Quota


class BatchDeployment(RecoveryAction):
    name = "batch_deployment"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        cap = ctx.tuning.narrow_batches(floor=1, start=ctx.config.deployment.quota.large_batch_size)
        ctx.logger.info(f"Narrowing function batches to at most {cap}")
        return True


class AddDelays(RecoveryAction):
    name = "add_delays"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        ctx.tuning.extra_delay += QUOTA_RESET_DELAY
        ctx.logger.info(f"Waiting {QUOTA_RESET_DELAY:g}s for quotas to reset")
        await ctx.sleep(QUOTA_RESET_DELAY)
        return True


class ScheduleOffPeak(RecoveryAction):
    name = "schedule_off_peak"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        if ctx.clock().hour in PEAK_HOURS:
            ctx.logger.warning("Peak hours detected, continuing with throttled deployment")
            await ctx.sleep(OFF_PEAK_DELAY)
        return True


# Build


class ClearCache(RecoveryAction):
    name = "clear_cache"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        try:
            await ctx.runner.run(
                ctx.config.deployment.scripts.argv("cache_clean"),
                cwd=ctx.config.project_root,
                check=True,
            )
        except CommandError as e:
            ctx.logger.warning(f"Failed to clear cache: {e.message}")
            return False
        for path in (ctx.config.path("hosting_build_dir"), ctx.config.path("functions_dir") / "lib"):
            shutil.rmtree(path, ignore_errors=True)
        ctx.logger.info("Build cache cleared")
        return True


class ReinstallDependencies(RecoveryAction):
    name = "reinstall_dependencies"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        scripts = ctx.config.deployment.scripts
        for package_dir in (ctx.config.path("frontend_dir"), ctx.config.path("functions_dir")):
            if not package_dir.exists():
                continue
            shutil.rmtree(package_dir / "node_modules", ignore_errors=True)
            (package_dir / "package-lock.json").unlink(missing_ok=True)
            try:
                await ctx.runner.run(scripts.argv("install"), cwd=package_dir, check=True)
            except CommandError as e:
                ctx.logger.warning(f"Reinstall failed in {package_dir.name}: {e.message}")
                return False
        ctx.logger.info("Dependencies reinstalled")
        return True


class FixTypeErrors(RecoveryAction):
    name = "fix_typescript_errors"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        argv = ctx.config.deployment.scripts.argv("type_check")
        for package_dir in (ctx.config.path("frontend_dir"), ctx.config.path("functions_dir")):
            result = await ctx.runner.run(argv, cwd=package_dir)
            if not result.ok:
                ctx.logger.warning(f"Type errors remain in {package_dir.name}; manual fix needed")
                return False
        return True


class BundleOptimization(RecoveryAction):
    name = "bundle_optimization"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        build_dir = ctx.config.path("hosting_build_dir")
        if build_dir.exists():
            sizes = sorted(
                ((p.stat().st_size, p) for p in build_dir.rglob("*") if p.is_file()),
                reverse=True,
            )
            for size, path in sizes[:3]:
                ctx.logger.info(f"Large asset {path.relative_to(build_dir)} ({size} bytes)")
        return True


# Network


class ExponentialBackoff(RecoveryAction):
    name = "exponential_backoff"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        # Earlier network errors in this run count toward the exponent
        earlier = sum(1 for r in ctx.history if r.type == ErrorType.NETWORK_ISSUE and r is not ctx.record)
        delay = backoff_delay(earlier + ctx.record.attempts)
        ctx.logger.info(f"Exponential backoff: waiting {delay:g}s")
        await ctx.sleep(delay)
        return True


class ConnectionValidation(RecoveryAction):
    name = "connection_validation"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        try:
            await ctx.platform.list_projects()
        except CommandError as e:
            ctx.logger.warning(f"Platform connection failed: {e.message}")
            return False
        return True


class AlternativeRoute(RecoveryAction):
    name = "alternative_route"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        await ctx.sleep(ALTERNATIVE_ROUTE_DELAY)
        return True


# Auth


class RefreshTokens(RecoveryAction):
    name = "refresh_tokens"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        try:
            logged_in = await ctx.platform.is_logged_in()
        except CommandError as e:
            ctx.logger.warning(f"Token refresh failed: {e.message}")
            return False
        if not logged_in:
            ctx.logger.warning(f"Not logged in. Run: {ctx.platform.executable} login")
        return logged_in


class ServiceAccountFallback(RecoveryAction):
    name = "service_account_fallback"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        key = ctx.config.path("service_account_key")
        if not key.exists():
            ctx.logger.warning("Service account key not found")
            return False
        ctx.tuning.env["GOOGLE_APPLICATION_CREDENTIALS"] = str(key)
        ctx.logger.info("Using service account credentials")
        return True


class Reauthenticate(RecoveryAction):
    name = "reauthenticate"
    requires_human = True

    async def attempt(self, ctx: RecoveryContext) -> bool:
        ctx.logger.warning(f"Re-authentication required. Run: {ctx.platform.executable} login")
        return False


# Function


class MemoryOptimization(RecoveryAction):
    name = "memory_optimization"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        if not ctx.tuning.raise_memory():
            return False
        ctx.logger.info(f"Function memory raised to {ctx.tuning.function_memory_mb}MB")
        return True


class TimeoutAdjustment(RecoveryAction):
    name = "timeout_adjustment"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        if not ctx.tuning.raise_timeout():
            return False
        ctx.logger.info(f"Function timeout raised to {ctx.tuning.function_timeout_seconds}s")
        return True


class DependencyCheck(RecoveryAction):
    name = "dependency_check"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        try:
            await ctx.runner.run(
                ctx.config.deployment.scripts.argv("audit_fix"),
                cwd=ctx.config.path("functions_dir"),
                check=True,
            )
        except CommandError as e:
            # Audit warnings do not block deployment
            ctx.logger.warning(f"Dependency check completed with warnings: {e.message}")
        return True


class FunctionWarming(RecoveryAction):
    name = "function_warming"

    async def attempt(self, ctx: RecoveryContext) -> bool:
        try:
            functions = await ctx.platform.list_functions()
        except CommandError as e:
            ctx.logger.warning(f"Could not list functions: {e.message}")
            return False
        ctx.logger.info(f"{len(functions)} functions reachable")
        return True


# Unknown


class LogAnalysis(RecoveryAction):
    name = "log_analysis"
    requires_human = True

    async def attempt(self, ctx: RecoveryContext) -> bool:
        recent = [r.type.value for r in ctx.history[-5:]]
        ctx.logger.info(f"Recent error patterns: {', '.join(recent)}")
        return False


class ManualReview(RecoveryAction):
    name = "manual_review"
    requires_human = True

    async def attempt(self, ctx: RecoveryContext) -> bool:
        history = json.dumps([r.to_dict() for r in ctx.history], indent=2, default=str)
        ctx.logger.warning(f"Manual review required. Error history:\n{history}")
        return False


ACTIONS: dict[str, type[RecoveryAction]] = {
    cls.name: cls
    for cls in (
        BatchDeployment,
        AddDelays,
        ScheduleOffPeak,
        ClearCache,
        ReinstallDependencies,
        FixTypeErrors,
        BundleOptimization,
        ExponentialBackoff,
        ConnectionValidation,
        AlternativeRoute,
        RefreshTokens,
        ServiceAccountFallback,
        Reauthenticate,
        MemoryOptimization,
        TimeoutAdjustment,
        DependencyCheck,
        FunctionWarming,
        LogAnalysis,
        ManualReview,
    )
}


def _group(error_type: ErrorType, max_retries: int, *names: str) -> StrategyGroup:
    return StrategyGroup(
        error_type=error_type,
        strategies=tuple(RecoveryStrategy(name, i) for i, name in enumerate(names, start=1)),
        max_retries=max_retries,
    )


DEFAULT_GROUPS: dict[ErrorType, StrategyGroup] = {
    g.error_type: g
    for g in (
        _group(ErrorType.QUOTA_EXCEEDED, 5, "batch_deployment", "add_delays", "schedule_off_peak"),
        _group(
            ErrorType.BUILD_FAILURE,
            3,
            "clear_cache",
            "reinstall_dependencies",
            "fix_typescript_errors",
            "bundle_optimization",
        ),
        _group(ErrorType.NETWORK_ISSUE, 5, "exponential_backoff", "connection_validation", "alternative_route"),
        _group(ErrorType.AUTH_PROBLEM, 3, "refresh_tokens", "service_account_fallback", "reauthenticate"),
        _group(
            ErrorType.FUNCTION_ERROR,
            3,
            "memory_optimization",
            "timeout_adjustment",
            "dependency_check",
            "function_warming",
        ),
        _group(ErrorType.UNKNOWN_ERROR, 2, "log_analysis", "manual_review"),
    )
}

"""Pre-flight validation gate."""

import json
import os
import re
import shutil
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from shipctl.core.exceptions import CommandError
from shipctl.core.logging import StructuredLogger
from shipctl.core.output import format_bytes
from shipctl.validation import scanners
from shipctl.validation.models import FindingCategory, ValidationReport
from shipctl.validation.secrets import (
    SecretState,
    combine,
    read_local_secrets,
    read_managed_secrets,
)

if TYPE_CHECKING:
    from shipctl.clients.platform import PlatformClient
    from shipctl.config import ShipCtlConfig
    from shipctl.core.process import CommandRunner

ERROR = FindingCategory.ERROR
WARNING = FindingCategory.WARNING
INFO = FindingCategory.INFO

REQUIRED_PLATFORM_SECTIONS = ("hosting", "functions", "firestore", "storage")
HSTS_HEADER = "strict-transport-security"


class ValidationGate:
    """Runs the pre-flight checks and collects findings.

    Any error finding is fatal to a run; warnings alone let it proceed.
    A check that raises is recorded as an error and the remaining checks
    still run.
    """

    def __init__(
        self,
        config: "ShipCtlConfig",
        platform: "PlatformClient",
        runner: "CommandRunner",
        environ: Mapping[str, str] | None = None,
    ):
        self.config = config
        self.platform = platform
        self.runner = runner
        self.environ = environ if environ is not None else os.environ
        self.logger = StructuredLogger("validation")

    async def validate(
        self,
        mode: str | None = None,
        target_environment: str | None = None,
        strict: bool | None = None,
    ) -> ValidationReport:
        """Run every check for the given mode.

        Args:
            mode: development or production (VALIDATION_MODE when None)
            target_environment: Environment name (TARGET_ENVIRONMENT when None)
            strict: Strict mode (STRICT_MODE when None)

        Returns:
            ValidationReport
        """
        settings = self.config.settings
        report = ValidationReport(
            mode=mode or settings.validation_mode,
            target_environment=target_environment or settings.target_environment,
            strict=settings.strict_mode if strict is None else strict,
        )
        self.logger.info(f"Starting {report.mode} validation for {report.target_environment}")

        checks: list[tuple[str, Callable[[ValidationReport], Awaitable[None]]]] = [
            ("environment", self._check_environment),
            ("authentication", self._check_authentication),
            ("code_quality", self._check_code_quality),
            ("dependencies", self._check_dependencies),
            ("platform_config", self._check_platform_config),
            ("quota", self._check_quota),
            ("security_rules", self._check_security_rules),
            ("secrets", self._check_secrets),
        ]
        if report.mode == "production":
            checks += [
                ("required_env_vars", self._check_required_env_vars),
                ("coverage", self._check_coverage),
                ("build_scripts", self._check_build_scripts),
                ("https", self._check_https),
                ("security_scan", self._check_security_scan),
                ("hardcoded_secrets", self._check_hardcoded_secrets),
                ("rollback_config", self._check_rollback_config),
                ("monitoring_config", self._check_monitoring_config),
            ]

        for name, check in checks:
            self.logger.debug(f"Validating {name}")
            try:
                await check(report)
            except Exception as e:
                report.add(ERROR, f"{name.replace('_', ' ').capitalize()} check failed: {e}", name)

        self.logger.info(
            f"Validation finished: {len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report

    def _rel(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.config.project_root))
        except ValueError:
            return str(path)

    # Common checks

    async def _check_environment(self, report: ValidationReport) -> None:
        runtime = self.config.deployment.runtime
        try:
            result = await self.runner.run(runtime.version_command, check=True)
            version = result.stdout.strip()
            match = re.search(r"(\d+)", version)
            major = int(match.group(1)) if match else 0
            if major < runtime.min_major_version:
                report.add(
                    ERROR,
                    f"Runtime version {version} is not supported. Minimum: {runtime.min_major_version}",
                    "environment",
                )
            else:
                report.add(INFO, f"Runtime version: {version}", "environment")
        except CommandError:
            report.add(ERROR, f"Runtime not found: {runtime.version_command.split()[0]}", "environment")

        try:
            report.add(INFO, f"Platform CLI: {await self.platform.version()}", "environment")
        except CommandError:
            report.add(ERROR, f"Platform CLI not found: {self.platform.executable}", "environment")

        try:
            result = await self.runner.run(runtime.vcs_command, check=True)
            report.add(INFO, result.stdout.strip(), "environment")
        except CommandError:
            report.add(WARNING, "Version control tool not found in PATH", "environment")

        try:
            free = shutil.disk_usage(self.config.project_root).free
        except OSError:
            report.add(WARNING, "Could not check disk space", "environment")
            return
        report.add(INFO, f"Available disk space: {format_bytes(free)}", "environment")
        if free < runtime.min_free_disk_bytes:
            report.add(WARNING, f"Low disk space: {format_bytes(free)}. Consider freeing up space.", "environment")

    async def _check_authentication(self, report: ValidationReport) -> None:
        cli = self.platform.executable
        try:
            listing = await self.platform.login_list()
            if not await self.platform.is_logged_in():
                report.add(ERROR, f"Not logged in to the platform. Run: {cli} login", "authentication")
            else:
                match = re.search(r"Logged in as (.+)", listing)
                user = match.group(1).strip() if match else "authenticated user"
                report.add(INFO, f"Platform user: {user}", "authentication")

            project = await self.platform.active_project()
            if not project:
                report.add(ERROR, f"No active project. Run: {cli} use <project-id>", "authentication")
            else:
                report.add(INFO, f"Active project: {project}", "authentication")
        except CommandError as e:
            report.add(ERROR, f"Authentication check failed: {e.message}", "authentication")

    async def _check_code_quality(self, report: ValidationReport) -> None:
        deployment = self.config.deployment
        for key, label in (("frontend_dir", "Frontend"), ("functions_dir", "Functions")):
            try:
                await self.runner.run(
                    deployment.scripts.argv("build"),
                    cwd=self.config.path(key),
                    timeout=deployment.deployment.build_timeout,
                    check=True,
                )
                report.add(INFO, f"{label} compilation: ok", "code_quality")
            except CommandError:
                report.add(ERROR, f"{label} compilation failed. Fix errors before deployment.", "code_quality")

        source_root = self.config.path("functions_dir") / "src"
        for issue in scanners.scan_sources(source_root, deployment.runtime.max_source_lines):
            rel = self._rel(issue.path)
            if issue.kind == "secret":
                report.add(WARNING, f"Potential hardcoded secrets in {rel}", "code_quality")
            elif issue.kind == "debug_print":
                report.add(WARNING, f"Debug print statements found in {rel}", "code_quality")
            else:
                report.add(WARNING, f"File {rel} has {issue.detail}", "code_quality")

    async def _check_dependencies(self, report: ValidationReport) -> None:
        for key in ("frontend_dir", "functions_dir"):
            package_dir = self.config.path(key)
            rel = self._rel(package_dir)
            if not (package_dir / "package.json").exists():
                report.add(ERROR, f"package.json not found in {rel}", "dependencies")
                continue
            if not (package_dir / "package-lock.json").exists():
                report.add(WARNING, f"package-lock.json not found in {rel}", "dependencies")
            if await self._audit(package_dir):
                report.add(INFO, f"Dependencies in {rel}: no security issues", "dependencies")
            else:
                report.add(WARNING, f"Security vulnerabilities found in {rel}", "dependencies")

    async def _audit(self, package_dir: Path) -> bool:
        try:
            await self.runner.run(self.config.deployment.scripts.argv("audit"), cwd=package_dir, check=True)
        except CommandError:
            return False
        return True

    def _platform_config(self) -> dict[str, Any]:
        path = self.config.path("platform_config_file")
        return json.loads(path.read_text())

    async def _check_platform_config(self, report: ValidationReport) -> None:
        runtime = self.config.deployment.runtime
        try:
            platform_config = self._platform_config()
        except (OSError, json.JSONDecodeError) as e:
            report.add(ERROR, f"Platform configuration validation failed: {e}", "platform_config")
            return

        missing = [s for s in REQUIRED_PLATFORM_SECTIONS if not platform_config.get(s)]
        if missing:
            report.add(WARNING, f"Missing platform config sections: {', '.join(missing)}", "platform_config")

        functions = platform_config.get("functions")
        if isinstance(functions, dict) and functions.get("runtime") != runtime.functions_runtime:
            report.add(
                WARNING,
                f"Functions runtime: {functions.get('runtime')} (recommended: {runtime.functions_runtime})",
                "platform_config",
            )
        hosting = platform_config.get("hosting")
        if isinstance(hosting, dict) and hosting.get("public") != runtime.hosting_public_dir:
            report.add(
                WARNING,
                f"Hosting public directory: {hosting.get('public')} (expected: {runtime.hosting_public_dir})",
                "platform_config",
            )
        report.add(INFO, "Platform configuration: ok", "platform_config")

    async def _check_quota(self, report: ValidationReport) -> None:
        source_dir = self.config.path("functions_source_dir")
        count = sum(1 for p in scanners.iter_source_files(source_dir, (".ts",)) if not scanners.is_test_file(p))
        threshold = self.config.deployment.quota.large_count_warning
        if count > threshold:
            report.add(WARNING, f"Large number of functions ({count}). Consider batching deployment.", "quota")
        report.add(INFO, f"Estimated functions to deploy: {count}", "quota")

    async def _check_security_rules(self, report: ValidationReport) -> None:
        for key, label in (("access_rules_file", "Access"), ("storage_rules_file", "Storage")):
            path = self.config.path(key)
            if not path.exists():
                report.add(ERROR, f"{label} rules file not found: {self._rel(path)}", "security_rules")
                continue
            if scanners.is_permissive(path.read_text()):
                report.add(
                    ERROR,
                    f"{label} rules allow unrestricted access (allow read, write: if true)",
                    "security_rules",
                )
            else:
                report.add(INFO, f"{label} rules: ok", "security_rules")

    async def _check_secrets(self, report: ValidationReport) -> None:
        names = self.config.required_secrets
        if not names:
            report.add(INFO, "No required secrets configured", "secrets")
            return

        local = read_local_secrets(self.config.path("local_secret_file"), names)
        managed = await read_managed_secrets(self.platform, names)
        secrets = combine(names, local, managed)

        for status in secrets.with_state(SecretState.CONFIGURED):
            report.add(INFO, f"{status.name}: available in {', '.join(status.sources)}", "secrets")
        for status in secrets.with_state(SecretState.EMPTY):
            report.add(
                WARNING,
                f"{status.name}: empty value in local secret file - set it locally or in the managed store",
                "secrets",
            )
        missing = [s.name for s in secrets.with_state(SecretState.MISSING)]
        if missing:
            report.add(
                ERROR,
                f"Missing required secrets: {', '.join(missing)} "
                f"(not in {self._rel(self.config.path('local_secret_file'))} or the managed secret store)",
                "secrets",
            )
        if not managed.available:
            report.add(WARNING, managed.reason or "Managed secret store not accessible", "secrets")

    # Production checks

    async def _check_required_env_vars(self, report: ValidationReport) -> None:
        required = self.config.production.validation.required_env_vars
        missing = [name for name in required if not self.environ.get(name)]
        if missing:
            report.add(ERROR, f"Missing required environment variables: {', '.join(missing)}", "required_env_vars")
        elif required:
            report.add(INFO, f"Required environment variables set ({len(required)})", "required_env_vars")

    async def _check_coverage(self, report: ValidationReport) -> None:
        required = self.config.production.validation.required_coverage
        severity = ERROR if report.strict else WARNING
        path = self.config.path("coverage_summary")
        try:
            summary = json.loads(path.read_text())
            pct = float(summary["total"]["lines"]["pct"])
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError):
            report.add(severity, f"Coverage report not found or unreadable: {self._rel(path)}", "coverage")
            return
        if pct < required:
            report.add(severity, f"Test coverage {pct:g}% is below the required {required:g}%", "coverage")
        else:
            report.add(INFO, f"Test coverage {pct:g}% (required {required:g}%)", "coverage")

    async def _check_build_scripts(self, report: ValidationReport) -> None:
        for key in ("frontend_dir", "functions_dir"):
            path = self.config.path(key) / "package.json"
            try:
                scripts = json.loads(path.read_text()).get("scripts") or {}
            except (OSError, json.JSONDecodeError):
                scripts = {}
            if "build" not in scripts:
                report.add(ERROR, f"No build script in {self._rel(path)}", "build_scripts")

    async def _check_https(self, report: ValidationReport) -> None:
        try:
            hosting = self._platform_config().get("hosting") or {}
        except (OSError, json.JSONDecodeError):
            hosting = {}
        sites = hosting if isinstance(hosting, list) else [hosting]
        enforced = any(
            header.get("key", "").lower() == HSTS_HEADER
            for site in sites
            for rule in site.get("headers", [])
            for header in rule.get("headers", [])
        )
        if enforced:
            report.add(INFO, "HTTPS enforced via Strict-Transport-Security header", "https")
        else:
            report.add(WARNING, "No Strict-Transport-Security header configured for hosting", "https")

    async def _check_security_scan(self, report: ValidationReport) -> None:
        policy = self.config.production.validation
        if not policy.require_security_scan:
            return
        severity = ERROR if policy.fail_on_security_vulnerabilities else WARNING
        for key in ("frontend_dir", "functions_dir"):
            package_dir = self.config.path(key)
            if not (package_dir / "package.json").exists():
                continue
            if not await self._audit(package_dir):
                report.add(severity, f"Security scan failed for {self._rel(package_dir)}", "security_scan")

    async def _check_hardcoded_secrets(self, report: ValidationReport) -> None:
        roots = (self.config.path("frontend_dir") / "src", self.config.path("functions_dir") / "src")
        for root in roots:
            for path in scanners.iter_source_files(root, (".ts", ".tsx", ".js", ".jsx")):
                if scanners.contains_secret(path.read_text(errors="replace")):
                    report.add(ERROR, f"Hard-coded secret in {self._rel(path)}", "hardcoded_secrets")

    async def _check_rollback_config(self, report: ValidationReport) -> None:
        rollback = self.config.production.rollback
        if rollback.automatic_rollback_enabled and rollback.rollback_triggers:
            report.add(INFO, f"Automatic rollback on: {', '.join(rollback.rollback_triggers)}", "rollback_config")
        else:
            report.add(WARNING, "Automatic rollback is not configured", "rollback_config")

    async def _check_monitoring_config(self, report: ValidationReport) -> None:
        monitoring = self.config.production.monitoring
        if monitoring.alerting_enabled:
            report.add(
                INFO, f"Alerting enabled (error threshold {monitoring.error_threshold:.0%})", "monitoring_config"
            )
        else:
            report.add(WARNING, "Monitoring alerting is disabled", "monitoring_config")

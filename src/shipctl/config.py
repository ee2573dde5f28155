"""Configuration management for shipctl using Pydantic."""

import json
import os
import shlex
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from shipctl.core.exceptions import ConfigError
from shipctl.core.logging import get_logger

logger = get_logger(__name__)

DEPLOYMENT_CONFIG_FILENAME = "deployment-config.json"
PRODUCTION_CONFIG_FILENAME = "production-config.json"
DEFAULT_CONFIG_DIR = Path("scripts") / "deployment" / "config"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PathsConfig(CamelModel):
    """Project-relative locations of deployable sources and state."""

    frontend_dir: str = "frontend"
    functions_dir: str = "functions"
    functions_source_dir: str = "functions/src/functions"
    functions_test_dir: str = "functions/src/test"
    hosting_build_dir: str = "frontend/dist"
    access_rules_file: str = "firestore.rules"
    storage_rules_file: str = "storage.rules"
    local_secret_file: str = "functions/.env"
    service_account_key: str = "service-account-key.json"
    platform_config_file: str = "firebase.json"
    project_alias_file: str = ".firebaserc"
    cors_file: str = "cors.json"
    coverage_summary: str = "functions/coverage/coverage-summary.json"
    deployments_dir: str = "deployments"


class ScriptsConfig(CamelModel):
    """Shell-style commands run inside the frontend or functions dirs."""

    build: str = "npm run build"
    audit: str = "npm audit --audit-level moderate"
    audit_fix: str = "npm audit fix"
    install: str = "npm install"
    cache_clean: str = "npm cache clean --force"
    type_check: str = "npx tsc --noEmit"
    test: str = "npm test -- --passWithNoTests --testTimeout=30000"

    def argv(self, name: str) -> list[str]:
        """Split a named script into an argument list."""
        return shlex.split(getattr(self, name))


class RuntimeConfig(CamelModel):
    """Toolchain expectations checked before a run."""

    version_command: str = "node --version"
    min_major_version: int = 18
    vcs_command: str = "git --version"
    functions_runtime: str = "nodejs20"
    hosting_public_dir: str = "frontend/dist"
    min_free_disk_bytes: int = 1024 * 1024 * 1024
    max_source_lines: int = 200


class PlatformConfig(CamelModel):
    """Hosting platform CLI and public endpoint layout."""

    executable: str = "firebase"
    region: str = "us-central1"
    hosting_domain: str = "web.app"
    functions_domain: str = "cloudfunctions.net"
    command_timeout: int = 60


class QuotaConfig(CamelModel):
    """Platform quota constants used to plan function batches."""

    deploys_per_window: int = 100
    window_seconds: int = 60
    default_batch_size: int = 5
    medium_batch_size: int = 4
    large_batch_size: int = 3
    min_batch_size: int = 2
    medium_payload_mb: float = 200
    large_payload_mb: float = 500
    max_total_payload_mb: float = 1000
    base_delay: float = 30
    large_payload_delay: float = 60
    small_batch_delay: float = 45
    minutes_per_batch: float = 2
    large_count_warning: int = 50


class DeploymentSection(CamelModel):
    """Engine behaviour and phase ceilings (seconds)."""

    resume_mode: Literal["restart", "resume"] = "restart"
    max_restarts: int = 3
    batch_timeout: int = 300
    rules_timeout: int = 120
    hosting_timeout: int = 300
    build_timeout: int = 300
    artifact_suffix: str = ".ts"
    excluded_suffixes: list[str] = Field(default_factory=lambda: [".test.ts"])

    @field_validator("max_restarts")
    @classmethod
    def validate_max_restarts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("maxRestarts must be >= 0")
        return v


class HealthSection(CamelModel):
    """Post-deployment probe settings."""

    probe_timeout: float = 30
    endpoint_timeout: float = 10
    function_endpoints: list[str] = Field(
        default_factory=lambda: ["generateCV", "optimizeCV", "generatePodcast"]
    )
    response_time_threshold_ms: int = 2000


class DeploymentConfig(CamelModel):
    """Base deployment configuration (deployment-config.json)."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    scripts: ScriptsConfig = Field(default_factory=ScriptsConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    deployment: DeploymentSection = Field(default_factory=DeploymentSection)
    health: HealthSection = Field(default_factory=HealthSection)
    required_secrets: list[str] = Field(default_factory=list)


class ValidationPolicy(CamelModel):
    require_security_scan: bool = True
    strict_mode_enabled: bool = True
    fail_on_security_vulnerabilities: bool = True
    required_coverage: float = 80
    required_env_vars: list[str] = Field(default_factory=list)


class BlueGreenPolicy(CamelModel):
    enabled: bool = True
    canary_duration: float = 180
    traffic_switch_delay: float = 60
    canary_percentage: int = 10
    health_check_duration: float = 300
    rollback_threshold: float = 0.95


class MonitoringPolicy(CamelModel):
    alerting_enabled: bool = True
    error_threshold: float = 0.05
    health_check_interval: float = 30


class RollbackPolicy(CamelModel):
    automatic_rollback_enabled: bool = True
    rollback_triggers: list[str] = Field(
        default_factory=lambda: ["healthCheckFailure", "errorThresholdExceeded", "performanceDegradation"]
    )
    max_rollback_time: float = 300


class TimeoutPolicy(CamelModel):
    deployment: float = 3600
    health_check: float = 600
    rollback: float = 300


class ProductionPolicy(CamelModel):
    """Production-only gates and blue-green parameters."""

    validation: ValidationPolicy = Field(default_factory=ValidationPolicy)
    blue_green: BlueGreenPolicy = Field(default_factory=BlueGreenPolicy)
    monitoring: MonitoringPolicy = Field(default_factory=MonitoringPolicy)
    rollback: RollbackPolicy = Field(default_factory=RollbackPolicy)
    timeouts: TimeoutPolicy = Field(default_factory=TimeoutPolicy)


class ProductionConfig(CamelModel):
    """Production overlay (production-config.json)."""

    production: ProductionPolicy = Field(default_factory=ProductionPolicy)


class ReleaseSettings(BaseSettings):
    """Run selectors read from the environment."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    validation_mode: Literal["development", "production"] = "development"
    target_environment: str = "production"
    strict_mode: bool = False
    blue_green_mode: bool = False
    rollback_version: str | None = None
    deployment_mode: Literal["production", "rollback", "health-check"] = "production"
    required_secrets: str | None = None

    def secret_names(self) -> list[str] | None:
        """Comma separated REQUIRED_SECRETS, or None when unset."""
        if self.required_secrets is None:
            return None
        return [name.strip() for name in self.required_secrets.split(",") if name.strip()]


class ShipCtlConfig(BaseModel):
    """Resolved configuration for one project root."""

    project_root: Path
    config_dir: Path
    deployment: DeploymentConfig = Field(default_factory=DeploymentConfig)
    production: ProductionPolicy = Field(default_factory=ProductionPolicy)
    settings: ReleaseSettings = Field(default_factory=ReleaseSettings)

    def path(self, name: str) -> Path:
        """Absolute path for a PathsConfig entry."""
        return self.project_root / getattr(self.deployment.paths, name)

    @property
    def deployments_dir(self) -> Path:
        return self.path("deployments_dir")

    @property
    def required_secrets(self) -> list[str]:
        from_env = self.settings.secret_names()
        if from_env is not None:
            return from_env
        return list(self.deployment.required_secrets)


class ConfigLoader:
    """Loads deployment config files and merges the production overlay."""

    def __init__(self, persist_defaults: bool = True):
        self.persist_defaults = persist_defaults

    def load(
        self,
        project_root: str | Path,
        config_dir: str | Path | None = None,
        settings: ReleaseSettings | None = None,
    ) -> ShipCtlConfig:
        """Load configuration for a project.

        Priority (highest to lowest):
        1. production-config.json overlay
        2. deployment-config.json
        3. Built-in defaults

        Args:
            project_root: Project root directory
            config_dir: Directory holding the JSON files
            settings: Environment settings (read from os.environ when None)

        Returns:
            Resolved configuration
        """
        root = Path(project_root).resolve()
        cfg_dir = Path(config_dir) if config_dir else root / DEFAULT_CONFIG_DIR
        if not cfg_dir.is_absolute():
            cfg_dir = (Path.cwd() / cfg_dir).resolve()

        base = self._load_json_file(cfg_dir / DEPLOYMENT_CONFIG_FILENAME) or {}
        overlay = self._load_production_overlay(cfg_dir)

        # Overlay sections take precedence over the base file
        merged = self._deep_merge(base, overlay)
        production_section = {"production": merged.pop("production", {})}

        try:
            deployment = DeploymentConfig.model_validate(merged)
            production = ProductionConfig.model_validate(production_section).production
        except ValidationError as e:
            raise ConfigError(f"Invalid deployment configuration: {e}")

        try:
            env_settings = settings or ReleaseSettings()
        except ValidationError as e:
            raise ConfigError(f"Invalid environment settings: {e}")

        return ShipCtlConfig(
            project_root=root,
            config_dir=cfg_dir,
            deployment=deployment,
            production=production,
            settings=env_settings,
        )

    def _load_production_overlay(self, config_dir: Path) -> dict[str, Any]:
        """Read the overlay, writing built-in defaults when it is absent."""
        path = config_dir / PRODUCTION_CONFIG_FILENAME
        content = self._load_json_file(path)
        if content is not None:
            return content

        defaults = ProductionConfig().model_dump(by_alias=True)
        if self.persist_defaults:
            try:
                config_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(defaults, indent=2) + "\n")
                logger.info(f"Wrote default production config to {path}")
            except OSError as e:
                logger.warning(f"Could not persist default production config: {e}")
        return defaults

    def _load_json_file(self, path: Path) -> dict[str, Any] | None:
        """Load a JSON config file, None when it does not exist."""
        if not path.exists():
            return None
        try:
            with open(path) as f:
                content = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")
        if not isinstance(content, dict):
            raise ConfigError(f"Expected a JSON object in {path}")
        return content

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def load_config(
    project_root: str | Path | None = None,
    config_dir: str | Path | None = None,
    settings: ReleaseSettings | None = None,
) -> ShipCtlConfig:
    """Load shipctl configuration.

    Args:
        project_root: Project root (defaults to the current directory)
        config_dir: Config directory (defaults to scripts/deployment/config)
        settings: Explicit environment settings

    Returns:
        Loaded configuration
    """
    return ConfigLoader().load(project_root or os.getcwd(), config_dir, settings)

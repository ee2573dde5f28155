"""Tests for configuration management."""

import json

import pytest

from shipctl.config import (
    DEFAULT_CONFIG_DIR,
    PRODUCTION_CONFIG_FILENAME,
    ConfigLoader,
    DeploymentConfig,
    DeploymentSection,
    ReleaseSettings,
    load_config,
)
from shipctl.core.exceptions import ConfigError


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestDefaults:
    def test_quota_defaults(self):
        quota = DeploymentConfig().quota
        assert quota.default_batch_size == 5
        assert quota.base_delay == 30

    def test_camel_case_aliases(self):
        config = DeploymentConfig.model_validate({"quota": {"defaultBatchSize": 2}, "requiredSecrets": ["API_KEY"]})
        assert config.quota.default_batch_size == 2
        assert config.required_secrets == ["API_KEY"]

    def test_negative_restarts_rejected(self):
        with pytest.raises(ValueError):
            DeploymentSection(max_restarts=-1)


class TestReleaseSettings:
    def test_defaults(self):
        settings = ReleaseSettings()
        assert settings.validation_mode == "development"
        assert settings.strict_mode is False
        assert settings.blue_green_mode is False
        assert settings.deployment_mode == "production"
        assert settings.secret_names() is None

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("VALIDATION_MODE", "production")
        monkeypatch.setenv("STRICT_MODE", "true")
        monkeypatch.setenv("BLUE_GREEN_MODE", "true")
        monkeypatch.setenv("DEPLOYMENT_MODE", "rollback")
        monkeypatch.setenv("ROLLBACK_VERSION", "prod-1")
        monkeypatch.setenv("REQUIRED_SECRETS", "API_KEY, DB_URL,,")

        settings = ReleaseSettings()

        assert settings.validation_mode == "production"
        assert settings.strict_mode is True
        assert settings.blue_green_mode is True
        assert settings.deployment_mode == "rollback"
        assert settings.rollback_version == "prod-1"
        assert settings.secret_names() == ["API_KEY", "DB_URL"]

    def test_invalid_mode(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPLOYMENT_MODE", "yolo")
        with pytest.raises(ConfigError, match="Invalid environment settings"):
            ConfigLoader(persist_defaults=False).load(tmp_path)


class TestConfigLoader:
    def test_missing_files_use_defaults(self, tmp_path):
        config = ConfigLoader(persist_defaults=False).load(tmp_path)

        assert config.project_root == tmp_path.resolve()
        assert config.config_dir == tmp_path.resolve() / DEFAULT_CONFIG_DIR
        assert config.deployment.quota.default_batch_size == 5
        assert config.production.blue_green.canary_duration == 180
        assert not (config.config_dir / PRODUCTION_CONFIG_FILENAME).exists()

    def test_writes_default_production_config(self, tmp_path):
        config = ConfigLoader().load(tmp_path)

        path = config.config_dir / PRODUCTION_CONFIG_FILENAME
        data = json.loads(path.read_text())
        assert data["production"]["blueGreen"]["trafficSwitchDelay"] == 60
        assert data["production"]["timeouts"]["deployment"] == 3600

    def test_reads_base_file(self, tmp_path):
        write_json(
            tmp_path / "cfg" / "deployment-config.json",
            {"quota": {"defaultBatchSize": 2}, "paths": {"frontendDir": "web"}},
        )

        config = ConfigLoader(persist_defaults=False).load(tmp_path, tmp_path / "cfg")

        assert config.deployment.quota.default_batch_size == 2
        # Unset keys keep their defaults
        assert config.deployment.quota.large_batch_size == 3
        assert config.path("frontend_dir") == tmp_path.resolve() / "web"

    def test_overlay_deep_merges(self, tmp_path):
        cfg = tmp_path / "cfg"
        write_json(cfg / "deployment-config.json", {"quota": {"defaultBatchSize": 2, "baseDelay": 10}})
        write_json(
            cfg / "production-config.json",
            {
                "quota": {"baseDelay": 90},
                "production": {"blueGreen": {"canaryDuration": 30}},
            },
        )

        config = ConfigLoader().load(tmp_path, cfg)

        assert config.deployment.quota.default_batch_size == 2
        assert config.deployment.quota.base_delay == 90
        assert config.production.blue_green.canary_duration == 30
        assert config.production.blue_green.traffic_switch_delay == 60

    def test_invalid_json(self, tmp_path):
        cfg = tmp_path / "cfg"
        cfg.mkdir()
        (cfg / "deployment-config.json").write_text("{nope")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            ConfigLoader().load(tmp_path, cfg)

    def test_non_object(self, tmp_path):
        write_json(tmp_path / "cfg" / "deployment-config.json", [1, 2])

        with pytest.raises(ConfigError, match="Expected a JSON object"):
            ConfigLoader().load(tmp_path, tmp_path / "cfg")

    def test_invalid_values(self, tmp_path):
        write_json(tmp_path / "cfg" / "deployment-config.json", {"deployment": {"resumeMode": "sometimes"}})

        with pytest.raises(ConfigError, match="Invalid deployment configuration"):
            ConfigLoader(persist_defaults=False).load(tmp_path, tmp_path / "cfg")

    def test_required_secrets_from_file(self, tmp_path):
        write_json(tmp_path / "cfg" / "deployment-config.json", {"requiredSecrets": ["API_KEY"]})

        config = ConfigLoader(persist_defaults=False).load(tmp_path, tmp_path / "cfg")

        assert config.required_secrets == ["API_KEY"]

    def test_env_secrets_win(self, tmp_path, monkeypatch):
        write_json(tmp_path / "cfg" / "deployment-config.json", {"requiredSecrets": ["API_KEY"]})
        monkeypatch.setenv("REQUIRED_SECRETS", "OTHER_KEY")

        config = ConfigLoader(persist_defaults=False).load(tmp_path, tmp_path / "cfg")

        assert config.required_secrets == ["OTHER_KEY"]


def test_load_config_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config.project_root == tmp_path.resolve()

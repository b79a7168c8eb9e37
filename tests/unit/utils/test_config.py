"""Unit tests for service configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

import src.soak.core.config as config_module
from src.soak.core.config import Config, ConfigLoader, get_config, reload_config
from src.soak.core.config_validator import ConfigValidator
from src.soak.core.exceptions import ConfigurationError

pytestmark = pytest.mark.unit

PROJECT_CONFIG_DIR = Path(__file__).parents[3] / "config"


def write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def base_yaml(tmp_path):
    return write_yaml(
        tmp_path / "default.yaml",
        {
            "APP_NAME": "Soak Harness",
            "APP_VERSION": "1.0.0",
            "APP_ENV": "development",
            "LOG_LEVEL": "INFO",
            "HARNESS_MAX_CONCURRENT_RUNS": 2,
            "API_CORS_ORIGINS": ["http://a", "http://b"],
        },
    )


class TestConfigLoader:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigLoader(tmp_path / "absent.yaml").load()
        defaults = Config().harness
        assert config.harness.HARNESS_MAX_CONCURRENT_RUNS == defaults.HARNESS_MAX_CONCURRENT_RUNS

    def test_loads_yaml(self, base_yaml):
        config = ConfigLoader(base_yaml).load()

        assert config.harness.HARNESS_MAX_CONCURRENT_RUNS == 2
        assert config.api.API_CORS_ORIGINS == ["http://a", "http://b"]

    def test_profile_inherits_default(self, tmp_path, base_yaml):
        profile = write_yaml(
            tmp_path / "production.yaml",
            {"APP_ENV": "production", "HARNESS_TELEMETRY_MODE": "system"},
        )
        config = ConfigLoader(profile).load()

        assert config.app.APP_ENV == "production"
        assert config.harness.HARNESS_TELEMETRY_MODE == "system"
        assert config.harness.HARNESS_MAX_CONCURRENT_RUNS == 2

    def test_env_overrides_file(self, base_yaml, monkeypatch):
        monkeypatch.setenv("SOAK_HARNESS_MAX_CONCURRENT_RUNS", "9")
        monkeypatch.setenv("SOAK_HARNESS_TIME_SCALE", "60")
        monkeypatch.setenv("SOAK_API_CORS_ENABLED", "no")

        config = ConfigLoader(base_yaml).load()

        assert config.harness.HARNESS_MAX_CONCURRENT_RUNS == 9
        assert config.harness.HARNESS_TIME_SCALE == 60.0
        assert config.api.API_CORS_ENABLED is False

    def test_schema_violation_raises(self, tmp_path):
        bad = write_yaml(
            tmp_path / "default.yaml",
            {
                "APP_NAME": "Soak Harness",
                "APP_VERSION": "1.0.0",
                "APP_ENV": "development",
                "LOG_LEVEL": "INFO",
                "APP_PORT": 70000,
            },
        )
        with pytest.raises(ConfigurationError, match="APP_PORT"):
            ConfigLoader(bad).load()

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "default.yaml"
        path.write_text("APP_NAME: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_env_override_validated(self, base_yaml, monkeypatch):
        monkeypatch.setenv("SOAK_HARNESS_TIME_SCALE", "0")
        with pytest.raises(ConfigurationError):
            ConfigLoader(base_yaml).load()


class TestConfigValidator:
    @pytest.mark.parametrize("name", ["default.yaml", "development.yaml", "production.yaml"])
    def test_shipped_files_are_valid(self, name):
        is_valid, errors = ConfigValidator().validate_yaml_file(PROJECT_CONFIG_DIR / name)
        if name == "default.yaml":
            assert is_valid, errors
        else:
            # Profiles only list overrides, so only type errors count
            assert not [e for e in errors if "required" not in e]

    def test_latency_range_cross_check(self):
        _, errors = ConfigValidator().validate_config_dict(
            {
                "APP_NAME": "x",
                "APP_VERSION": "1.0.0",
                "APP_ENV": "testing",
                "LOG_LEVEL": "INFO",
                "HARNESS_SIMULATED_LATENCY_MIN_MS": 200,
                "HARNESS_SIMULATED_LATENCY_MAX_MS": 100,
            }
        )
        assert any("LATENCY_MIN" in e for e in errors)

    def test_missing_file(self, tmp_path):
        is_valid, errors = ConfigValidator().validate_yaml_file(tmp_path / "nope.yaml")
        assert not is_valid
        assert "not found" in errors[0]


class TestConfigSingleton:
    def test_reload_replaces_instance(self, base_yaml, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)

        first = get_config(base_yaml)
        assert get_config() is first

        reloaded = reload_config(base_yaml)
        assert reloaded is not first
        assert get_config() is reloaded

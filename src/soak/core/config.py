"""
Configuration management for the soak harness service.
Loads configuration from YAML files and environment variables.

This is the service-level configuration (server, logging, harness
defaults). Per-run parameters live in ``RunConfig`` and are validated by
pydantic when a run is submitted.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.soak.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SOAK_"


@dataclass
class AppConfig:
    """Application configuration."""

    APP_NAME: str = "Soak Harness"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8090


@dataclass
class LoggingConfig:
    """Logging configuration."""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE_PATH: str = "logs/soak.log"
    LOG_FILE_MAX_BYTES: int = 10485760
    LOG_FILE_BACKUP_COUNT: int = 5
    LOG_ENABLE_CONSOLE: bool = True
    LOG_ENABLE_FILE: bool = True
    LOG_ENABLE_JOURNAL: bool = False


@dataclass
class APIConfig:
    """API configuration."""

    API_CORS_ENABLED: bool = True
    API_CORS_ORIGINS: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class HarnessConfig:
    """Defaults applied to every run started by this service."""

    HARNESS_MAX_CONCURRENT_RUNS: int = 4
    HARNESS_COLLABORATOR_TIMEOUT_S: float = 10.0
    HARNESS_TELEMETRY_MODE: str = "simulated"
    HARNESS_SIMULATED_LATENCY_MIN_MS: float = 50.0
    HARNESS_SIMULATED_LATENCY_MAX_MS: float = 150.0
    HARNESS_SIMULATED_FAILURE_RATE: float = 0.001
    HARNESS_TIME_SCALE: float = 1.0
    HARNESS_EXPORT_DIR: str = "data/exports"
    HARNESS_SHUTDOWN_TIMEOUT_S: float = 30.0

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if self.HARNESS_TELEMETRY_MODE not in ("simulated", "system"):
            raise ValueError(
                f"HARNESS_TELEMETRY_MODE must be 'simulated' or 'system', "
                f"got {self.HARNESS_TELEMETRY_MODE}"
            )
        if self.HARNESS_SIMULATED_LATENCY_MIN_MS > self.HARNESS_SIMULATED_LATENCY_MAX_MS:
            raise ValueError(
                "HARNESS_SIMULATED_LATENCY_MIN_MS must not exceed "
                "HARNESS_SIMULATED_LATENCY_MAX_MS"
            )


@dataclass
class DevelopmentConfig:
    """Development settings."""

    DEV_HOT_RELOAD: bool = False
    DEV_DEBUG_MODE: bool = False


@dataclass
class Config:
    """Main configuration container."""

    app: AppConfig = field(default_factory=AppConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    api: APIConfig = field(default_factory=APIConfig)
    harness: HarnessConfig = field(default_factory=HarnessConfig)
    development: DevelopmentConfig = field(default_factory=DevelopmentConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app": self.app.__dict__,
            "logging": self.logging.__dict__,
            "api": self.api.__dict__,
            "harness": self.harness.__dict__,
            "development": self.development.__dict__,
        }

    def section_for(self, key: str) -> Any | None:
        """Return the section owning a flat UPPERCASE key, by prefix."""
        prefixes = {
            "APP_": self.app,
            "LOG_": self.logging,
            "API_": self.api,
            "HARNESS_": self.harness,
            "DEV_": self.development,
        }
        for prefix, section in prefixes.items():
            if key.startswith(prefix):
                return section
        return None


class ConfigLoader:
    """Configuration loader that handles YAML files and environment variables."""

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to configuration file. Defaults to profile-based selection.
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent.parent

            profile = os.getenv(f"{ENV_PREFIX}CONFIG_PROFILE", "default")
            if profile in ["development", "dev"]:
                config_file = "development.yaml"
            elif profile in ["production", "prod"]:
                config_file = "production.yaml"
            else:
                config_file = "default.yaml"

            self.config_path = project_root / "config" / config_file
            logger.info(f"Selected configuration profile: {profile} -> {config_file}")
        else:
            self.config_path = Path(config_path)
        self.config = Config()

    def load(self) -> Config:
        """
        Load configuration from file and environment variables.

        Environment variables override file configuration.

        Returns:
            Loaded configuration object
        """
        config_data = self._load_with_inheritance()

        if config_data:
            from src.soak.core.config_validator import ConfigValidator

            validator = ConfigValidator()
            is_valid, errors = validator.validate_config_dict(config_data)
            if not is_valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(
                    f"  - {error}" for error in errors
                )
                logger.error(f"Failed to load configuration from {self.config_path}: {error_msg}")
                raise ConfigurationError(error_msg)

            self._apply_yaml_config(config_data)
            logger.info(f"Loaded and validated configuration from {self.config_path}")
        else:
            logger.warning(f"Configuration file {self.config_path} not found, using defaults")

        self._apply_env_overrides()
        self._validate_config()

        return self.config

    def _load_with_inheritance(self) -> dict[str, Any] | None:
        """
        Load configuration with inheritance from default.yaml.

        Profile files only need to list the keys they change.
        """
        if not self.config_path.exists():
            return None

        try:
            with open(self.config_path) as f:
                config_data = yaml.safe_load(f) or {}

            if self.config_path.name != "default.yaml":
                base_config_path = self.config_path.parent / "default.yaml"
                if base_config_path.exists():
                    with open(base_config_path) as f:
                        base_config = yaml.safe_load(f) or {}
                    base_config.update(config_data)
                    config_data = base_config
                    logger.info(f"Merged {self.config_path.name} over {base_config_path.name}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration root in {self.config_path} must be a mapping")
        return config_data

    def _apply_yaml_config(self, yaml_config: dict[str, Any]) -> None:
        """Apply configuration from YAML dictionary with proper type conversion."""
        for key, value in yaml_config.items():
            section = self.config.section_for(key)
            if section is None:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            if isinstance(value, list):
                value = ",".join(str(v) for v in value)
            self._set_config_value(section, key, str(value))

    def _apply_env_overrides(self) -> None:
        """Apply SOAK_-prefixed environment variable overrides."""
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            config_key = env_key[len(ENV_PREFIX) :]
            if config_key == "CONFIG_PROFILE":
                continue

            section = self.config.section_for(config_key)
            if section is not None:
                self._set_config_value(section, config_key, env_value)

    def _set_config_value(self, config_section: Any, key: str, value: str) -> None:
        """
        Set configuration value with appropriate type conversion.

        Args:
            config_section: Configuration section object
            key: Configuration key
            value: String value from YAML or environment
        """
        if not hasattr(config_section, key):
            logger.warning(f"Unknown configuration key: {key}")
            return

        current_value = getattr(config_section, key)

        converted_value: Any
        if isinstance(current_value, bool):
            converted_value = value.lower() in ("true", "1", "yes", "on")
        elif isinstance(current_value, int):
            try:
                converted_value = int(value)
            except ValueError:
                logger.error(f"Invalid integer value for {key}: {value}")
                return
        elif isinstance(current_value, float):
            try:
                converted_value = float(value)
            except ValueError:
                logger.error(f"Invalid float value for {key}: {value}")
                return
        elif isinstance(current_value, list):
            converted_value = [v.strip() for v in value.split(",") if v.strip()]
        else:
            converted_value = value

        setattr(config_section, key, converted_value)
        logger.debug(f"Set {key} = {converted_value}")

    def _validate_config(self) -> None:
        """Validate configuration after all loading is complete."""
        harness = self.config.harness
        try:
            harness._validate()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        if harness.HARNESS_MAX_CONCURRENT_RUNS < 1:
            raise ConfigurationError("HARNESS_MAX_CONCURRENT_RUNS must be at least 1")
        if harness.HARNESS_COLLABORATOR_TIMEOUT_S <= 0:
            raise ConfigurationError("HARNESS_COLLABORATOR_TIMEOUT_S must be positive")
        if harness.HARNESS_TIME_SCALE <= 0:
            raise ConfigurationError("HARNESS_TIME_SCALE must be positive")


# Global configuration instance
_config: Config | None = None


def get_config(config_path: str | Path | None = None) -> Config:
    """
    Get configuration instance (singleton pattern).

    Args:
        config_path: Optional path to configuration file

    Returns:
        Configuration object
    """
    global _config

    if _config is None:
        loader = ConfigLoader(config_path)
        _config = loader.load()

    return _config


def reload_config(config_path: str | Path | None = None) -> Config:
    """
    Reload configuration from file and environment.

    Args:
        config_path: Optional path to configuration file

    Returns:
        Reloaded configuration object
    """
    global _config

    loader = ConfigLoader(config_path)
    _config = loader.load()
    return _config

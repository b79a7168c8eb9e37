"""
Configuration validation for the soak harness service.
Provides JSON schema validation for YAML configuration files.
"""

import logging
from pathlib import Path
from typing import Any

import jsonschema
import yaml

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validates configuration files against JSON schemas."""

    def __init__(self) -> None:
        self.schemas = self._load_schemas()

    def _load_schemas(self) -> dict[str, dict[str, Any]]:
        """Load JSON schema definitions for configuration validation."""
        main_schema = {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "properties": {
                # Application settings
                "APP_NAME": {"type": "string", "minLength": 1},
                "APP_VERSION": {"type": "string", "pattern": r"^\d+\.\d+\.\d+$"},
                "APP_ENV": {"type": "string", "enum": ["development", "production", "testing"]},
                "APP_HOST": {"type": "string", "minLength": 1},
                "APP_PORT": {"type": "integer", "minimum": 1, "maximum": 65535},
                # Logging
                "LOG_LEVEL": {
                    "type": "string",
                    "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                },
                "LOG_FORMAT": {"type": "string", "minLength": 10},
                "LOG_FILE_PATH": {"type": "string", "minLength": 1},
                "LOG_FILE_MAX_BYTES": {
                    "type": "integer",
                    "minimum": 1048576,
                    "maximum": 1073741824,
                },
                "LOG_FILE_BACKUP_COUNT": {"type": "integer", "minimum": 1, "maximum": 50},
                "LOG_ENABLE_CONSOLE": {"type": "boolean"},
                "LOG_ENABLE_FILE": {"type": "boolean"},
                "LOG_ENABLE_JOURNAL": {"type": "boolean"},
                # API
                "API_CORS_ENABLED": {"type": "boolean"},
                "API_CORS_ORIGINS": {"type": "array", "items": {"type": "string"}},
                # Harness defaults
                "HARNESS_MAX_CONCURRENT_RUNS": {"type": "integer", "minimum": 1, "maximum": 64},
                "HARNESS_COLLABORATOR_TIMEOUT_S": {
                    "type": "number",
                    "exclusiveMinimum": 0,
                    "maximum": 600,
                },
                "HARNESS_TELEMETRY_MODE": {"type": "string", "enum": ["simulated", "system"]},
                "HARNESS_SIMULATED_LATENCY_MIN_MS": {"type": "number", "minimum": 0},
                "HARNESS_SIMULATED_LATENCY_MAX_MS": {"type": "number", "minimum": 0},
                "HARNESS_SIMULATED_FAILURE_RATE": {"type": "number", "minimum": 0, "maximum": 1},
                "HARNESS_TIME_SCALE": {"type": "number", "exclusiveMinimum": 0},
                "HARNESS_EXPORT_DIR": {"type": "string", "minLength": 1},
                "HARNESS_SHUTDOWN_TIMEOUT_S": {"type": "number", "minimum": 0},
                # Development
                "DEV_HOT_RELOAD": {"type": "boolean"},
                "DEV_DEBUG_MODE": {"type": "boolean"},
            },
            "required": ["APP_NAME", "APP_VERSION", "APP_ENV", "LOG_LEVEL"],
            "additionalProperties": True,
        }

        return {"main": main_schema}

    def validate_yaml_file(self, file_path: Path) -> tuple[bool, list[str]]:
        """
        Validate a YAML configuration file against its schema.

        Args:
            file_path: Path to the YAML file to validate

        Returns:
            Tuple of (is_valid, error_messages)
        """
        if not file_path.exists():
            return False, [f"Configuration file not found: {file_path}"]

        with open(file_path) as f:
            try:
                config_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                line_info = "unknown"
                if hasattr(e, "problem_mark") and e.problem_mark:
                    line_info = str(e.problem_mark.line + 1)
                return False, [f"YAML syntax error at line {line_info}: {e}"]

        is_valid, errors = self.validate_config_dict(config_data or {})
        if is_valid:
            logger.info(f"Configuration file validation passed: {file_path}")
        return is_valid, errors

    def validate_config_dict(self, config_data: dict[str, Any]) -> tuple[bool, list[str]]:
        """
        Validate configuration data dictionary against schema.

        All schema violations are reported, not only the first one.

        Args:
            config_data: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, error_messages)
        """
        schema = self.schemas["main"]
        validator = jsonschema.Draft7Validator(schema)

        errors = []
        for error in sorted(validator.iter_errors(config_data), key=lambda e: list(e.path)):
            error_path = " -> ".join(str(p) for p in error.absolute_path) or "root"
            errors.append(f"Validation error at {error_path}: {error.message}")

        errors.extend(self.validate_parameter_ranges(config_data))
        return len(errors) == 0, errors

    def validate_parameter_ranges(self, config_data: dict[str, Any]) -> list[str]:
        """Cross-field checks the schema cannot express."""
        errors = []

        low = config_data.get("HARNESS_SIMULATED_LATENCY_MIN_MS")
        high = config_data.get("HARNESS_SIMULATED_LATENCY_MAX_MS")
        if isinstance(low, int | float) and isinstance(high, int | float) and low > high:
            errors.append(
                "HARNESS_SIMULATED_LATENCY_MIN_MS must not exceed HARNESS_SIMULATED_LATENCY_MAX_MS"
            )

        return errors

"""
Custom exception classes for the soak harness.

Harness code raises these instead of generic exceptions so the run
controller and API layer can tell configuration and lifecycle mistakes
apart from failures of the measurement apparatus itself.
"""


class SoakHarnessError(Exception):
    """Base exception for all soak harness custom exceptions."""

    pass


class ConfigurationError(SoakHarnessError):
    """Exception raised for configuration errors."""

    pass


class RunStateError(SoakHarnessError):
    """Exception raised for invalid run lifecycle transitions."""

    pass


class RunNotFoundError(SoakHarnessError):
    """Exception raised when a run id is not registered."""

    pass


class RunCapacityError(SoakHarnessError):
    """Exception raised when the run registry is full."""

    pass


class AlertNotFoundError(SoakHarnessError):
    """Exception raised when an alert id is not part of a run."""

    pass


class AlertResolutionError(SoakHarnessError):
    """Exception raised when an alert cannot be resolved."""

    pass


class TelemetryError(SoakHarnessError):
    """Exception raised when resource telemetry cannot be sampled."""

    pass


class ReportGenerationError(SoakHarnessError):
    """Exception raised when the final report cannot be produced."""

    pass

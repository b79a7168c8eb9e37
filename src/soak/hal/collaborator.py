"""
Boundary to the system under test.

The harness only needs two awaitable operations from the service it
drives; anything that provides them can be soak tested.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ValidationResult:
    """Answer of the collaborator's input validator."""

    valid: bool
    error: str | None = None
    error_type: str | None = None  # type | range | format | security | system
    severity: str | None = None


@dataclass(frozen=True)
class ExecutionResult:
    """Answer of the collaborator's business operation."""

    success: bool
    error: str | None = None
    error_type: str | None = None
    severity: str | None = None
    result: Any = None


@runtime_checkable
class Collaborator(Protocol):
    """The two operations the harness drives."""

    async def validate(self, payload: dict[str, Any]) -> ValidationResult: ...

    async def execute(self, payload: dict[str, Any]) -> ExecutionResult: ...

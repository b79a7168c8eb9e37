"""
Mock collaborators for tests and dry runs.
"""

import asyncio
import random
from typing import Any

from src.soak.hal.collaborator import ExecutionResult, ValidationResult


class FlakyCollaborator:
    """Accepts every input and fails ``execute`` at a fixed seeded rate."""

    def __init__(self, failure_rate: float = 0.0, seed: int = 0, classify_failures: bool = True):
        self.failure_rate = failure_rate
        self.classify_failures = classify_failures
        self._rng = random.Random(seed)
        self.validate_calls = 0
        self.execute_calls = 0

    async def validate(self, payload: dict[str, Any]) -> ValidationResult:
        self.validate_calls += 1
        return ValidationResult(valid=True)

    async def execute(self, payload: dict[str, Any]) -> ExecutionResult:
        self.execute_calls += 1
        if self._rng.random() < self.failure_rate:
            return ExecutionResult(
                success=False,
                error="Injected failure",
                error_type="server" if self.classify_failures else None,
                severity="high",
            )
        return ExecutionResult(success=True)


class RaisingCollaborator:
    """Raises from ``execute``; simulates an unclassified crash."""

    def __init__(self, exc: Exception | None = None):
        self.exc = exc or ConnectionError("connection reset by peer")

    async def validate(self, payload: dict[str, Any]) -> ValidationResult:
        return ValidationResult(valid=True)

    async def execute(self, payload: dict[str, Any]) -> ExecutionResult:
        raise self.exc


class HangingCollaborator:
    """Never answers ``execute`` within any reasonable timeout."""

    def __init__(self, delay_seconds: float = 3600.0):
        self.delay_seconds = delay_seconds

    async def validate(self, payload: dict[str, Any]) -> ValidationResult:
        return ValidationResult(valid=True)

    async def execute(self, payload: dict[str, Any]) -> ExecutionResult:
        await asyncio.sleep(self.delay_seconds)
        return ExecutionResult(success=True)

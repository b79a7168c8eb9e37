"""
Request Executor.

Runs one descriptor against the collaborator and classifies what happened.
The outcome always reports the collaborator's actual answer; expectations
only decide how a failure is labelled.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime

from src.soak.hal.collaborator import Collaborator
from src.soak.models.schemas import RequestDescriptor, RequestOutcome, Severity, utc_now
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_CATEGORY = "system"


def _severity(value: str | None, fallback: Severity | None) -> Severity | None:
    if value is None:
        return fallback
    try:
        return Severity(value)
    except ValueError:
        return fallback


class RequestExecutor:
    """Executes descriptors with a per-call timeout."""

    def __init__(
        self,
        collaborator: Collaborator,
        timeout_seconds: float = 10.0,
        now: Callable[[], datetime] = utc_now,
    ):
        self.collaborator = collaborator
        self.timeout_seconds = timeout_seconds
        self._now = now

    async def execute(self, descriptor: RequestDescriptor) -> RequestOutcome:
        started = time.perf_counter()
        try:
            return await self._run(descriptor, started)
        except asyncio.TimeoutError:
            return self._system_failure(
                descriptor,
                started,
                f"Collaborator call exceeded {self.timeout_seconds:g}s timeout",
                timed_out=True,
            )
        except Exception as e:
            # Unexpected collaborator failure; classified, never fatal to the run
            logger.debug(f"Collaborator raised {type(e).__name__}: {e}")
            return self._system_failure(descriptor, started, f"{type(e).__name__}: {e}")

    async def execute_batch(self, descriptors: list[RequestDescriptor]) -> list[RequestOutcome]:
        """Run a batch concurrently and wait for all of it."""
        return list(await asyncio.gather(*(self.execute(d) for d in descriptors)))

    async def _run(self, descriptor: RequestDescriptor, started: float) -> RequestOutcome:
        validation = await asyncio.wait_for(
            self.collaborator.validate(descriptor.payload), self.timeout_seconds
        )
        adversarial = descriptor.kind == "adversarial"

        if not validation.valid:
            return RequestOutcome(
                timestamp=self._now(),
                success=False,
                response_time_ms=self._elapsed_ms(started),
                kind=descriptor.kind,
                error_type=validation.error_type or "validation",
                error_message=validation.error,
                severity=_severity(validation.severity, descriptor.severity),
                category=descriptor.category_tag if adversarial else None,
                expected_rejection=adversarial,
            )

        bypass = adversarial and descriptor.expects_rejection
        if bypass:
            logger.debug(f"Validator accepted adversarial input from {descriptor.category}")

        result = await asyncio.wait_for(
            self.collaborator.execute(descriptor.payload), self.timeout_seconds
        )
        return RequestOutcome(
            timestamp=self._now(),
            success=result.success,
            response_time_ms=self._elapsed_ms(started),
            kind=descriptor.kind,
            error_type=None if result.success else result.error_type,
            error_message=None if result.success else result.error,
            severity=None if result.success else _severity(result.severity, descriptor.severity),
            category=descriptor.category_tag,
            validation_bypass=bypass,
        )

    def _system_failure(
        self,
        descriptor: RequestDescriptor,
        started: float,
        message: str,
        timed_out: bool = False,
    ) -> RequestOutcome:
        return RequestOutcome(
            timestamp=self._now(),
            success=False,
            response_time_ms=self._elapsed_ms(started),
            kind=descriptor.kind,
            error_type=None,
            error_message=message,
            severity=Severity.HIGH,
            category=SYSTEM_CATEGORY,
            timed_out=timed_out,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000.0

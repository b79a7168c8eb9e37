"""
Simulated currency-conversion service used as the default system under test.

Mirrors the validation rules of the real service closely enough that the
adversarial fixture pools exercise every rejection path, and adds a
configurable network latency and transient failure rate to the
conversion call.
"""

import asyncio
import math
import random
import re
from typing import Any

from src.soak.constants.scenarios import MAX_SAFE_INTEGER
from src.soak.hal.collaborator import ExecutionResult, ValidationResult
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

# Units of each currency per 1 USD
USD_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85235,
    "GBP": 0.73456,
    "JPY": 110.234,
    "CAD": 1.25678,
    "AUD": 1.34567,
    "CHF": 0.91234,
    "CNY": 6.45678,
    "INR": 74.5678,
    "BRL": 5.23456,
    "MXN": 20.1234,
    "KRW": 1180.234,
    "SGD": 1.35678,
    "HKD": 7.78901,
    "SEK": 8.56789,
    "NOK": 8.6789,
    "DKK": 6.34567,
    "PLN": 3.84512,
    "CZK": 21.6734,
    "HUF": 298.456,
    "ZAR": 14.7823,
    "THB": 32.4567,
    "MYR": 4.15678,
    "PHP": 50.1234,
    "IDR": 14234.56,
}

SUPPORTED_CURRENCIES = frozenset(USD_RATES)

SECURITY_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[<>]"), "HTML/XML tags"),
    (re.compile(r"['\";]"), "SQL injection characters"),
    (re.compile(r"[&|;`]"), "Command injection characters"),
    (re.compile(r"\.\."), "Path traversal"),
    (re.compile(r"\$\{|\{\{"), "Template injection"),
    (re.compile(r"javascript:", re.IGNORECASE), "JavaScript protocol"),
    (re.compile(r"data:", re.IGNORECASE), "Data protocol"),
    (re.compile(r"vbscript:", re.IGNORECASE), "VBScript protocol"),
]

CURRENCY_CODE = re.compile(r"[A-Z]{3}")

TRANSIENT_ERRORS = [
    ("Request timeout - please try again", "network", "medium"),
    ("Network error - check your connection", "network", "high"),
    ("Rate limit exceeded - please wait", "rate_limit", "medium"),
    ("Server error - please try again later", "server", "high"),
    ("Invalid response from currency service", "service", "medium"),
]


def _reject(error: str, error_type: str, severity: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error, error_type=error_type, severity=severity)


def _coerce_amount(payload: dict[str, Any]) -> float | ValidationResult:
    if "amount" not in payload:
        return _reject("Amount is required", "type", "high")

    amount = payload["amount"]
    if amount is None:
        return _reject("Amount cannot be null", "type", "high")
    # bool is an int subclass, check it first
    if isinstance(amount, bool):
        return _reject("Amount cannot be a boolean value", "type", "medium")
    if isinstance(amount, str):
        try:
            amount = float(amount.strip())
        except ValueError:
            return _reject("Amount must be a valid number", "type", "medium")
    elif callable(amount):
        return _reject("Amount cannot be a function", "type", "medium")
    elif not isinstance(amount, int | float):
        return _reject("Amount must be a valid number", "type", "medium")

    try:
        numeric = float(amount)
    except OverflowError:
        return _reject("Amount is too large to process accurately", "range", "high")

    if not math.isfinite(numeric):
        return _reject("Amount must be a finite number", "range", "high")
    if numeric <= 0:
        return _reject("Amount must be greater than 0", "range", "medium")
    if numeric > MAX_SAFE_INTEGER:
        return _reject("Amount is too large to process accurately", "range", "high")
    return numeric


def _check_currency(code: Any) -> ValidationResult | None:
    if not isinstance(code, str):
        return _reject("Currency code must be a string", "type", "medium")

    for pattern, name in SECURITY_PATTERNS:
        if pattern.search(code):
            logger.debug(f"Rejected currency code containing {name}")
            return _reject("Currency code contains invalid characters", "security", "critical")

    if len(code) != 3:
        return _reject("Currency code must be exactly 3 characters", "format", "medium")
    if code != code.upper():
        return _reject("Currency code must be uppercase", "format", "low")
    if not CURRENCY_CODE.fullmatch(code):
        return _reject("Invalid currency code format", "format", "medium")
    if code not in SUPPORTED_CURRENCIES:
        return _reject(f"Invalid currency code: {code}", "format", "medium")
    return None


def validate_currency_input(payload: dict[str, Any]) -> ValidationResult:
    """Apply the conversion service's input rules to one payload."""
    amount = _coerce_amount(payload)
    if isinstance(amount, ValidationResult):
        return amount

    for key in ("from_currency", "to_currency"):
        rejection = _check_currency(payload.get(key))
        if rejection is not None:
            return rejection

    return ValidationResult(valid=True)


class SimulatedCurrencyService:
    """In-process stand-in for the currency-conversion service."""

    def __init__(
        self,
        latency_min_ms: float = 50.0,
        latency_max_ms: float = 150.0,
        failure_rate: float = 0.001,
        seed: int | None = None,
    ):
        if latency_min_ms > latency_max_ms:
            raise ValueError("latency_min_ms must not exceed latency_max_ms")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")

        self.latency_min_ms = latency_min_ms
        self.latency_max_ms = latency_max_ms
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        self.conversions = 0

    async def validate(self, payload: dict[str, Any]) -> ValidationResult:
        return validate_currency_input(payload)

    async def execute(self, payload: dict[str, Any]) -> ExecutionResult:
        """Convert an amount, re-validating first as the real endpoint does."""
        validation = validate_currency_input(payload)
        if not validation.valid:
            return ExecutionResult(
                success=False,
                error=validation.error,
                error_type=validation.error_type,
                severity=validation.severity,
            )

        delay_ms = self._rng.uniform(self.latency_min_ms, self.latency_max_ms)
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

        if self._rng.random() < self.failure_rate:
            error, error_type, severity = self._rng.choice(TRANSIENT_ERRORS)
            return ExecutionResult(
                success=False, error=error, error_type=error_type, severity=severity
            )

        amount = float(payload["amount"])
        rate = USD_RATES[payload["to_currency"]] / USD_RATES[payload["from_currency"]]
        converted = amount * rate
        if not math.isfinite(converted):
            return ExecutionResult(
                success=False,
                error="Conversion result out of range",
                error_type="range",
                severity="high",
            )

        self.conversions += 1
        return ExecutionResult(success=True, result=round(converted, 6))

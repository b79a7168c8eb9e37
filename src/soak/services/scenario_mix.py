"""
Scenario Mix Builder.

Turns the percentage weights of a ``RunConfig`` into a shuffled, finite
sequence of request descriptors that the foreground loop consumes
cyclically.
"""

import math
import random
from collections import Counter
from typing import Any

from src.soak.constants.scenarios import SCENARIO_CATALOG, VALID_REQUESTS
from src.soak.models.schemas import RequestDescriptor, RunConfig, Severity
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

# Samples per 100 %; a weight of w % yields floor(w/100 * SEQUENCE_SCALE) entries
SEQUENCE_SCALE = 100


def sample_count(weight: float) -> int:
    return math.floor(weight * SEQUENCE_SCALE / 100)


def _cyclic(pool: list[dict[str, Any]], count: int) -> list[dict[str, Any]]:
    return [pool[i % len(pool)] for i in range(count)]


def build_scenario_mix(config: RunConfig, rng: random.Random) -> list[RequestDescriptor]:
    """Build and shuffle the descriptor sequence for one run."""
    descriptors: list[RequestDescriptor] = []

    for category, weight in config.scenario_weights.items():
        scenario = SCENARIO_CATALOG[category]
        severity = Severity(scenario["severity"])
        for payload in _cyclic(scenario["inputs"], sample_count(weight)):
            descriptors.append(
                RequestDescriptor(
                    kind="adversarial",
                    payload=payload,
                    category=category,
                    severity=severity,
                    category_tag=scenario["category_tag"],
                    expects_rejection=scenario["expects_rejection"],
                )
            )

    if config.include_valid_requests:
        for payload in _cyclic(VALID_REQUESTS, sample_count(config.valid_request_percentage)):
            descriptors.append(RequestDescriptor(kind="valid", payload=payload))

    # random.shuffle is Fisher-Yates
    rng.shuffle(descriptors)

    logger.info(
        f"Built scenario mix with {len(descriptors)} descriptors "
        f"across {len(config.scenario_weights)} adversarial categories"
    )
    return descriptors


def mix_composition(descriptors: list[RequestDescriptor]) -> dict[str, int]:
    """Count descriptors per category; valid requests are counted under ``"valid"``."""
    return dict(Counter(d.category or "valid" for d in descriptors))


class ScenarioSequence:
    """Cyclic cursor over a fixed descriptor sequence."""

    def __init__(self, descriptors: list[RequestDescriptor]):
        if not descriptors:
            raise ValueError("Scenario sequence cannot be empty")
        self._descriptors = tuple(descriptors)
        self._index = 0

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def position(self) -> int:
        return self._index

    def next(self) -> RequestDescriptor:
        descriptor = self._descriptors[self._index % len(self._descriptors)]
        self._index += 1
        return descriptor

    def take(self, count: int) -> list[RequestDescriptor]:
        return [self.next() for _ in range(count)]

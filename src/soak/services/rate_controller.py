"""
Rate Controller.

Pure function of its inputs: the caller passes the weekday and hour so the
same call always returns the same rate.
"""

import math
from datetime import datetime

from src.soak.models.schemas import RunConfig

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6
BUSINESS_START_HOUR = 9
BUSINESS_END_HOUR = 17
BUSINESS_HOURS_BOOST = 1.3
ENDURANCE_FLOOR = 0.8
ENDURANCE_SLOPE = 0.2
WEEKEND_DAYS = (5, 6)  # datetime.weekday(): Saturday, Sunday


def is_night(hour: int) -> bool:
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def is_business_hours(hour: int) -> bool:
    return BUSINESS_START_HOUR <= hour <= BUSINESS_END_HOUR


def weekend_modifier(config: RunConfig, weekday: int) -> float:
    if config.load_variation and weekday in WEEKEND_DAYS:
        return 1.0 - config.weekend_mode_reduction / 100.0
    return 1.0


def day_night_modifier(config: RunConfig, hour: int) -> float:
    if not config.load_variation:
        return 1.0
    if is_night(hour):
        return 1.0 - config.night_mode_reduction / 100.0
    if is_business_hours(hour):
        return BUSINESS_HOURS_BOOST
    return 1.0


def endurance_decay(config: RunConfig, elapsed_hours: float) -> float:
    """Linear throttle from 1.0 at start to the floor at the end of the run."""
    progress = min(1.0, max(0.0, elapsed_hours / config.duration_hours))
    return max(ENDURANCE_FLOOR, 1.0 - ENDURANCE_SLOPE * progress)


def target_rate(
    config: RunConfig,
    elapsed_hours: float,
    weekday: int,
    hour: int,
    stress_multiplier: float = 1.0,
) -> int:
    """
    Requests per second the foreground loop should aim for.

    Args:
        config: Run configuration
        elapsed_hours: Active run time so far
        weekday: 0 = Monday ... 6 = Sunday
        hour: Hour of day, 0-23
        stress_multiplier: Factor applied while a stress test interval is active

    Returns:
        Integer rate, at least 1
    """
    rate = (
        config.base_request_rate
        * weekend_modifier(config, weekday)
        * day_night_modifier(config, hour)
        * endurance_decay(config, elapsed_hours)
        * stress_multiplier
    )
    return max(1, math.floor(rate))


def target_rate_at(
    config: RunConfig, elapsed_hours: float, now: datetime, stress_multiplier: float = 1.0
) -> int:
    """Convenience wrapper taking a wall-clock timestamp."""
    return target_rate(config, elapsed_hours, now.weekday(), now.hour, stress_multiplier)

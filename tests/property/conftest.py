"""Hypothesis profiles for the property-based suite.

Select one with the HYPOTHESIS_PROFILE environment variable.
"""

import os

from hypothesis import HealthCheck, settings

settings.register_profile(
    "ci",
    max_examples=100,
    deadline=2000,
    suppress_health_check=[HealthCheck.too_slow],
    print_blob=True,
)

settings.register_profile("dev", max_examples=50, deadline=1000, print_blob=True)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    print_blob=True,
    verbosity=2,
)

settings.register_profile("thorough", max_examples=1000, deadline=5000, print_blob=True)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

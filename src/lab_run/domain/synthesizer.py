"""Synthetic measurement generation for test runs.

Values are biased toward the reference range so that generated panels look
like realistic patient results while still exercising the abnormal branches:

    75.0%   inside  [low, high]
    12.5%   below   [low * 0.5, low - 0.1 * low]   (never negative)
    12.5%   above   [high + max(1, 0.01 * (high - low)), high * 1.5]

The random source is always passed in, so a seeded ``random.Random`` gives
reproducible panels.
"""

import random
from typing import Optional

from lab_run.domain.ranges import ReferenceRange

IN_RANGE_PROBABILITY = 0.75
BELOW_RANGE_PROBABILITY = 0.125

FALLBACK_LOW = 1.0
FALLBACK_HIGH = 100.0


def _uniform(rng: random.Random, a: float, b: float) -> float:
    return a + rng.random() * (b - a)


def synthesize(reference_range: Optional[ReferenceRange], rng: random.Random) -> float:
    """Draw one synthetic measurement for a parameter."""
    if reference_range is None:
        return round(_uniform(rng, FALLBACK_LOW, FALLBACK_HIGH), 1)

    low = reference_range.low
    high = reference_range.high
    p = rng.random()

    if p < IN_RANGE_PROBABILITY:
        return _uniform(rng, low, high)

    if p < IN_RANGE_PROBABILITY + BELOW_RANGE_PROBABILITY:
        return max(0.0, _uniform(rng, max(0.0, low * 0.5), low - 0.1 * low))

    return _uniform(rng, high + max(1.0, 0.01 * (high - low)), high * 1.5)

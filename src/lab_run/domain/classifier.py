"""Classification of measurements against reference ranges."""

import math
import random
from dataclasses import dataclass
from typing import Optional

from lab_run.domain.ranges import ReferenceRange

FLAG_NORMAL = "Normal"
FLAG_HIGH = "High"
FLAG_LOW = "Low"
FLAG_CRITICAL = "Critical"

ABNORMAL_FLAGS = frozenset({FLAG_HIGH, FLAG_LOW, FLAG_CRITICAL})

NO_DEVIATION = "0%"
NO_EVALUATION = "-"
HIGH_EVALUATIONS = ("High-v1", "High-v2")
LOW_EVALUATION = "Low-v1"


@dataclass(frozen=True)
class Classification:
    flag: str
    deviation: str


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity."""
    return int(math.floor(value + 0.5))


def classify(value: float, reference_range: Optional[ReferenceRange]) -> Classification:
    """
    Flag a value and compute its signed deviation from the nearest bound.

    Examples:
        classify(11000, ReferenceRange(4000, 10000)) -> High, "+10%"
        classify(500, ReferenceRange(4000, 10000))   -> Low, "-88%"
    """
    if reference_range is None:
        return Classification(flag=FLAG_NORMAL, deviation=NO_DEVIATION)

    low = reference_range.low
    high = reference_range.high

    if value < low:
        pct = round_half_up((low - value) / (low or 1) * 100)
        return Classification(flag=FLAG_LOW, deviation=f"-{pct}%")

    if value > high:
        pct = round_half_up((value - high) / (high or 1) * 100)
        return Classification(flag=FLAG_HIGH, deviation=f"+{pct}%")

    return Classification(flag=FLAG_NORMAL, deviation=NO_DEVIATION)


def evaluation_label(flag: str, rng: random.Random) -> str:
    """Pick the applied evaluation rule label for a flag."""
    if flag == FLAG_HIGH:
        return HIGH_EVALUATIONS[0] if rng.random() < 0.5 else HIGH_EVALUATIONS[1]
    if flag == FLAG_LOW:
        return LOW_EVALUATION
    return NO_EVALUATION

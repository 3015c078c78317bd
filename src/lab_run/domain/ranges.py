"""Reference range parsing."""

import math
import re
from dataclasses import dataclass
from typing import Optional

_SEPARATOR = re.compile(r"–|—|-|to")
_NOISE = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class ReferenceRange:
    low: float
    high: float

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high


def _to_number(token: str) -> Optional[float]:
    cleaned = _NOISE.sub("", token)
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_range(text: Optional[str]) -> Optional[ReferenceRange]:
    """
    Parse a textual interval such as "4,000–10,000" or "4.2 to 5.4".

    Returns None when the text does not hold two numeric tokens; callers
    treat that as an unconstrained parameter.
    """
    if not text or not isinstance(text, str):
        return None

    parts = [p.strip() for p in _SEPARATOR.split(text)]
    if len(parts) < 2:
        return None

    first = _to_number(parts[0])
    second = _to_number(parts[1])
    if first is None or second is None:
        return None

    return ReferenceRange(low=min(first, second), high=max(first, second))

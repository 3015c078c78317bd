"""Display formatting of measurement values.

Precision is chosen by the first rule whose token appears (case-insensitive)
in the parameter key. Add a rule here to support a new parameter.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Tuple


def _quantize(value: float, places: int) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def _grouped_integer(value: float) -> str:
    return f"{int(_quantize(value, 0)):,}"


def _integer(value: float) -> str:
    return str(int(_quantize(value, 0)))


def _plain(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)


def _fixed(places: int) -> Callable[[float], str]:
    def render(value: float) -> str:
        return f"{_quantize(value, places):.{places}f}"
    return render


FORMAT_RULES: List[Tuple[Tuple[str, ...], Callable[[float], str]]] = [
    (("wbc", "plt"), _grouped_integer),  # counts per microliter
    (("rbc",), _fixed(2)),
    (("hgb",), _fixed(1)),
    (("hct",), _integer),
    (("mcv", "mch", "mchc"), _integer),  # cell indices
]


def format_result(key: str, value: float) -> str:
    """Render a synthesized value for display according to the parameter key."""
    lowered = str(key).lower()
    for tokens, render in FORMAT_RULES:
        if any(token in lowered for token in tokens):
            return render(value)
    return _plain(value)

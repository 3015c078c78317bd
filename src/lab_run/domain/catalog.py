"""Parameter reference catalog for the CBC panel.

Every run synthesizes one result row per template, in this order. The
reference ranges are textual intervals and are parsed at run time by
``lab_run.domain.ranges``.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ParameterTemplate:
    key: str
    parameter: str
    unit: str
    reference_range: str


PARAMETER_TEMPLATES: Tuple[ParameterTemplate, ...] = (
    ParameterTemplate(key="WBC", parameter="WBC", unit="cells/µL", reference_range="4,000–10,000"),
    ParameterTemplate(key="HGB", parameter="HGB", unit="g/dL", reference_range="14–18"),
    ParameterTemplate(key="HCT", parameter="HCT", unit="%", reference_range="42–52"),
    ParameterTemplate(key="PLT", parameter="PLT", unit="cells/µL", reference_range="150,000–350,000"),
    ParameterTemplate(key="MCV", parameter="MCV", unit="fL", reference_range="80–100"),
    ParameterTemplate(key="RBC", parameter="RBC", unit="million/µL", reference_range="4.2–5.4"),
    ParameterTemplate(key="MCH", parameter="MCH", unit="pg", reference_range="27–33"),
    ParameterTemplate(key="MCHC", parameter="MCHC", unit="g/dL", reference_range="32–36"),
)

PANEL_CODE = "CBC"
PANEL_NAME = "Complete Blood Count"

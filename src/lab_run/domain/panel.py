"""Assembly of a full measurement panel from the parameter catalog."""

import random
from typing import Iterable, List

from lab_run.domain.catalog import PARAMETER_TEMPLATES, ParameterTemplate
from lab_run.domain.classifier import classify, evaluation_label
from lab_run.domain.formatter import format_result
from lab_run.domain.model import ResultRow
from lab_run.domain.ranges import parse_range
from lab_run.domain.synthesizer import synthesize


def evaluate_template(template: ParameterTemplate, value: float, rng: random.Random) -> ResultRow:
    reference_range = parse_range(template.reference_range)
    classification = classify(value, reference_range)
    return ResultRow(
        parameter=template.parameter,
        result=format_result(template.key, value),
        unit=template.unit,
        reference_range=template.reference_range,
        deviation=classification.deviation,
        flag=classification.flag,
        applied_evaluate=evaluation_label(classification.flag, rng),
    )


def synthesize_panel(
    rng: random.Random,
    templates: Iterable[ParameterTemplate] = PARAMETER_TEMPLATES,
) -> List[ResultRow]:
    """One row per catalog entry: synthesize, classify, format."""
    rows = []
    for template in templates:
        value = synthesize(parse_range(template.reference_range), rng)
        rows.append(evaluate_template(template, value, rng))
    return rows

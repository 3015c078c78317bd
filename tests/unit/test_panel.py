import random

from lab_run.domain.catalog import PARAMETER_TEMPLATES
from lab_run.domain.panel import evaluate_template, synthesize_panel


def test_one_row_per_template_in_catalog_order():
    rows = synthesize_panel(random.Random(3))
    assert [r.parameter for r in rows] == [t.parameter for t in PARAMETER_TEMPLATES]
    assert [r.unit for r in rows] == [t.unit for t in PARAMETER_TEMPLATES]
    assert [r.reference_range for r in rows] == [t.reference_range for t in PARAMETER_TEMPLATES]


def test_flags_agree_with_deviation_and_label():
    for seed in range(50):
        for row in synthesize_panel(random.Random(seed)):
            if row.flag == "Normal":
                assert row.deviation == "0%"
                assert row.applied_evaluate == "-"
            elif row.flag == "High":
                assert row.deviation.startswith("+")
                assert row.applied_evaluate in ("High-v1", "High-v2")
            else:
                assert row.flag == "Low"
                assert row.deviation.startswith("-")
                assert row.applied_evaluate == "Low-v1"


def test_same_seed_same_panel():
    assert synthesize_panel(random.Random(8)) == synthesize_panel(random.Random(8))


def test_evaluate_wbc_template():
    wbc = PARAMETER_TEMPLATES[0]
    row = evaluate_template(wbc, 11000, random.Random(0))
    assert row.result == "11,000"
    assert row.flag == "High"
    assert row.deviation == "+10%"

"""HL7 v2.5 ORU^R01 rendering of a completed run."""

import logging
from datetime import datetime
from typing import List, Optional

from lab_run.domain.catalog import PANEL_CODE, PANEL_NAME
from lab_run.domain.model import ResultRow, TestOrder

logger = logging.getLogger(__name__)

FLAG_CODES = {"High": "H", "Low": "L", "Normal": "N", "Critical": "C"}
REVIEW_NOTE = "Some parameters flagged high/low - please review applied rules."


def _hl7_timestamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d%H%M%S")


def _flag_code(flag: str) -> str:
    if flag in FLAG_CODES:
        return FLAG_CODES[flag]
    return flag[:1] if flag else ""


def build_oru_message(
    run_id: str,
    order: Optional[TestOrder],
    instrument_name: str,
    rows: List[ResultRow],
    performed_at: datetime,
    requester: str = "",
) -> str:
    """
    Render the run as an ORU^R01 message: MSH, PID, OBR, one OBX per row, NTE.

    Segments are separated by newlines.
    """
    ts = _hl7_timestamp(performed_at)

    patient_name = (order.patient_name if order else None) or "Unknown"
    patient_id = (order.patient_id or order.id) if order else ""
    name_parts = patient_name.split(" ")
    family = name_parts[0]
    given = "^".join(name_parts[1:])
    pid_name = f"{given}^{family}" if given else patient_name
    sex_code = ((order.sex if order else None) or "U")[:1]

    segments = [
        f"MSH|^~\\&|LIS|LAB|HIS|HOSPITAL|{ts}||ORU^R01|{run_id}|P|2.5",
        f"PID|1||{patient_id}^^^Hospital^MR||{pid_name}||||{sex_code}",
        f"OBR|1|ORD{run_id[:8]}|RES{run_id[:8]}|{PANEL_CODE}^{PANEL_NAME}^L|||{ts}||||||{requester}|{instrument_name}",
    ]

    for seq, row in enumerate(rows, start=1):
        reference = row.reference_range.replace(",", "")
        segments.append(
            f"OBX|{seq}|NM|{row.parameter}^{row.parameter}^L||{row.result}|{row.unit}|"
            f"{reference}|{_flag_code(row.flag)}|{row.deviation}|F||{row.applied_evaluate or ''}"
        )

    segments.append(f"NTE|1||{REVIEW_NOTE}")
    logger.debug(f"Built ORU^R01 message for run {run_id} with {len(rows)} OBX segments")
    return "\n".join(segments)

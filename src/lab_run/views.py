"""
Views for read operations - separate from command/write path.

The list view unifies two sources: orders that have not been run yet
(shown as "In Progress") and result records (shown as "Completed").
The detail view projects one result record for display.
"""
import logging
from typing import Any, Dict, List, Optional

from lab_run.domain.exceptions import InstrumentNotFound
from lab_run.domain.model import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    ResultRow,
    TestOrder,
    TestResult,
)
from lab_run.service_layer.eligibility import is_runnable
from lab_run.service_layer.handlers import resolve_result
from lab_run.service_layer.reagents import resolve_reagents
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def _tester(order: TestOrder) -> str:
    raw = order.raw
    return str(raw.get("tester") or raw.get("requester") or raw.get("runByName") or "")


def _in_progress_entry(order: TestOrder) -> Dict[str, Any]:
    return {
        "id": order.id,
        "patientName": order.patient_name or "Unknown",
        "date": order.created_at,
        "tester": _tester(order),
        "status": STATUS_IN_PROGRESS,
        "source": "order",
        "runId": None,
    }


def _completed_entry(result: TestResult, order: Optional[TestOrder]) -> Dict[str, Any]:
    tester = result.run_by_name
    if not tester or tester == "unknown":
        tester = _tester(order) if order is not None else ""
    return {
        "id": order.id if order is not None else result.id,
        "patientName": result.patient_name,
        "date": result.performed_at,
        "tester": tester,
        "status": STATUS_COMPLETED,
        "source": "result",
        "runId": result.run_id,
    }


async def list_results(uow: AbstractUnitOfWork) -> List[Dict[str, Any]]:
    """
    Unified list of in-progress orders and completed results.

    Completed entries take the id of the order linked to their run when
    there is one, so an order never appears in both states.
    """
    async with uow:
        orders = await uow.orders.list()
        results = await uow.results.list()

    orders_by_run = {o.run_id: o for o in orders if o.has_run}

    completed = [
        _completed_entry(r, orders_by_run.get(r.run_id))
        for r in results
        if r.status.strip().lower() == STATUS_COMPLETED.lower()
    ]
    completed_ids = {str(entry["id"]) for entry in completed}

    in_progress = [
        _in_progress_entry(o)
        for o in orders
        if is_runnable(o) and o.id not in completed_ids
    ]

    logger.info(f"Listing {len(in_progress)} in-progress and {len(completed)} completed entries")
    return in_progress + completed


async def get_result_detail(uow: AbstractUnitOfWork, identifier: str) -> Dict[str, Any]:
    """
    Detail projection of one result.

    ``identifier`` may be the result record id, its run id, or the id of
    the order linked to it.

    Raises:
        ResultNotFound: If nothing resolves
    """
    async with uow:
        result = await resolve_result(identifier, uow)
        rows = result.rows
        if not rows:
            mirrored = await uow.result_rows.list_by_run_id(result.run_id)
            rows = [ResultRow.from_record(r) for r in mirrored]
            result.rows = rows

    return {
        "id": result.id,
        "run_id": result.run_id,
        "order_id": result.order_id,
        "patientName": result.patient_name,
        "sex": result.sex,
        "collected": result.collected or result.performed_at,
        "performed_at": result.performed_at,
        "instrument": result.instrument,
        "status": result.status,
        "notes": result.notes,
        "criticalCount": result.critical_value_count(),
        "summary": result.summary(),
        "rows": [r.to_record() for r in rows],
        "comments": result.comments_record(),
        "hl7_raw": result.hl7_raw,
        "runByName": result.run_by_name,
        "reviewedBy": result.reviewed_by,
        "reviewedAt": result.reviewed_at,
    }


async def get_instrument_reagents(instrument_id: str, uow: AbstractUnitOfWork) -> List[Dict[str, Any]]:
    """Reagents the instrument consumes per run, with the default amount used."""
    async with uow:
        instrument = await uow.instruments.get(instrument_id)
        if instrument is None:
            raise InstrumentNotFound(instrument_id)
        resolved = await resolve_reagents(instrument, uow)
    return [r.to_dict() for r in resolved]


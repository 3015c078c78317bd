"""
Lab Run API - execute test orders and review their results.
Following Cosmic Python pattern: thin API layer dispatches commands to the
message bus and delegates reads to views.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

import config
from lab_run import views
from lab_run.adapters.api_client import LabApiError
from lab_run.adapters.redis_publisher import RedisEventPublisher
from lab_run.domain.commands import (
    AddComment,
    DeleteComment,
    DeleteTestResult,
    EditComment,
    RunTest,
)
from lab_run.domain.exceptions import (
    CommentNotFound,
    CommentPersistenceError,
    ConfirmationRequired,
    EmptyComment,
    InstrumentNotFound,
    LabRunError,
    NoInstrumentSelected,
    OrderAlreadyRun,
    OrderDeleted,
    OrderNotFound,
    ResultCreationFailed,
    ResultNotFound,
)
from lab_run.domain.model import ReagentUsage, TestOrder
from lab_run.service_layer import eligibility, messagebus
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork, HttpUnitOfWork

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

publisher = RedisEventPublisher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await publisher.aclose()
    logger.info("Event publisher closed")


app = FastAPI(
    title="Lab Run API",
    description="Execute laboratory test orders and review their results",
    version="1.0.0",
    lifespan=lifespan,
)


def get_uow() -> AbstractUnitOfWork:
    return HttpUnitOfWork(publisher=publisher)


# ---------- Request models ----------

class ReagentUsageRequest(BaseModel):
    reagent_id: str = Field(alias="reagentId")
    amount_used: Optional[float] = Field(default=None, alias="amountUsed")
    unit: Optional[str] = None

    model_config = {"populate_by_name": True}


class RunTestRequest(BaseModel):
    order_id: str
    instrument_id: Optional[str] = None
    used_reagents: List[ReagentUsageRequest] = []
    sex: Optional[str] = None
    run_by_user_id: Optional[str] = None
    run_by_name: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "order_id": "O1",
                "instrument_id": "I1",
                "used_reagents": [{"reagent_id": "R1", "amount_used": 5}],
            }
        }
    }


class AddCommentRequest(BaseModel):
    text: str
    author: Optional[str] = None
    role: str = ""


class EditCommentRequest(BaseModel):
    text: str


# ---------- Error mapping ----------

ERROR_STATUS = [
    (OrderAlreadyRun, 409),
    (OrderDeleted, 409),
    (NoInstrumentSelected, 422),
    (OrderNotFound, 404),
    (InstrumentNotFound, 404),
    (ResultNotFound, 404),
    (CommentNotFound, 404),
    (EmptyComment, 400),
    (ConfirmationRequired, 400),
    (ResultCreationFailed, 502),
    (CommentPersistenceError, 502),
    (LabApiError, 502),
]


def _to_http_error(e: Exception) -> HTTPException:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(e, error_type):
            return HTTPException(status_code=status_code, detail=str(e))
    logger.error(f"Unexpected error: {e}")
    return HTTPException(status_code=500, detail="Internal server error")


def _order_dict(order: TestOrder):
    return {
        "id": order.id,
        "patient_id": order.patient_id,
        "patientName": order.patient_name,
        "sex": order.sex,
        "testType": order.test_type,
        "created_at": order.created_at,
    }


# ---------- Endpoints ----------

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "lab-run-api",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/api/v1/orders/runnable")
async def get_runnable_orders(uow: AbstractUnitOfWork = Depends(get_uow)):
    """Orders that have not been run yet."""
    try:
        orders = await eligibility.list_runnable_orders(uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return {"count": len(orders), "orders": [_order_dict(o) for o in orders]}


@app.get("/api/v1/orders/{order_id}/instruments")
async def get_order_instruments(order_id: str, uow: AbstractUnitOfWork = Depends(get_uow)):
    """
    Instruments able to run the order.

    An empty list means the order cannot be executed.
    """
    try:
        async with uow:
            order = await uow.orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        instruments = await eligibility.instruments_for(order, uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)

    return {
        "order_id": order.id,
        "testType": order.test_type,
        "instruments": [
            {"id": i.id, "name": i.display_name, "status": i.status, "supportedTest": i.supported_tests}
            for i in instruments
        ],
    }


@app.get("/api/v1/instruments/{instrument_id}/reagents")
async def get_instrument_reagents(instrument_id: str, uow: AbstractUnitOfWork = Depends(get_uow)):
    try:
        reagents = await views.get_instrument_reagents(instrument_id, uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return {"instrument_id": instrument_id, "reagents": reagents}


@app.post("/api/v1/test-runs", status_code=201)
async def run_test(request: RunTestRequest, uow: AbstractUnitOfWork = Depends(get_uow)):
    """
    Execute a test order on the selected instrument.

    Returns the run outcome with the generated rows and the outcome of every
    best-effort side effect.
    """
    logger.info(f"Run requested for order {request.order_id} on instrument {request.instrument_id}")
    command = RunTest(
        order_id=request.order_id,
        instrument_id=request.instrument_id,
        used_reagents=[
            ReagentUsage(reagent_id=u.reagent_id, amount_used=u.amount_used, unit=u.unit)
            for u in request.used_reagents
        ],
        sex=request.sex,
        run_by_user_id=request.run_by_user_id,
        run_by_name=request.run_by_name,
    )
    try:
        results = await messagebus.handle(command, uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return results[0].to_dict()


@app.get("/api/v1/test-results")
async def list_test_results(uow: AbstractUnitOfWork = Depends(get_uow)):
    try:
        entries = await views.list_results(uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return {"count": len(entries), "results": entries}


@app.get("/api/v1/test-results/{identifier}")
async def get_test_result(identifier: str, uow: AbstractUnitOfWork = Depends(get_uow)):
    """Result detail by result id, run id or order id."""
    try:
        return await views.get_result_detail(uow, identifier)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)


@app.delete("/api/v1/test-results/{identifier}")
async def delete_test_result(identifier: str, confirm: bool = False, uow: AbstractUnitOfWork = Depends(get_uow)):
    try:
        results = await messagebus.handle(DeleteTestResult(identifier, confirmed=confirm), uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return {"deleted": identifier, "side_effects": [o.to_dict() for o in results[0]]}


@app.post("/api/v1/test-results/{identifier}/comments", status_code=201)
async def add_comment(identifier: str, request: AddCommentRequest, uow: AbstractUnitOfWork = Depends(get_uow)):
    command = AddComment(identifier, request.text, author=request.author, role=request.role)
    try:
        results = await messagebus.handle(command, uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return results[0].to_record()


@app.put("/api/v1/test-results/{identifier}/comments/{comment_id}")
async def edit_comment(
    identifier: str,
    comment_id: str,
    request: EditCommentRequest,
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    try:
        results = await messagebus.handle(EditComment(identifier, comment_id, request.text), uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return results[0].to_record()


@app.delete("/api/v1/test-results/{identifier}/comments/{comment_id}")
async def delete_comment(
    identifier: str,
    comment_id: str,
    confirm: bool = False,
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    try:
        results = await messagebus.handle(DeleteComment(identifier, comment_id, confirmed=confirm), uow)
    except (LabRunError, LabApiError) as e:
        raise _to_http_error(e)
    return {"comments": [c.to_record() for c in results[0]]}


def main():
    uvicorn.run(app, **config.get_api_host_and_port())


if __name__ == "__main__":
    main()

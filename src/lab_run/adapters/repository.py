import logging
from typing import Any, Dict, List, Optional

import config
from lab_run.adapters.api_client import AbstractLabApiClient, ResourceNotFound
from lab_run.adapters.upsert import upsert_merge
from lab_run.domain.model import (
    Instrument,
    Reagent,
    ResultRow,
    TestOrder,
    TestResult,
    utcnow,
)

logger = logging.getLogger(__name__)

INSTRUMENTS = "instruments"
REAGENTS = "reagents"
RESULTS = "test_results"
RESULT_ROWS = "test_result_rows"


class OrderRepository:
    def __init__(self, client: AbstractLabApiClient, resource: Optional[str] = None):
        self.client = client
        self.resource = resource or config.get_orders_resource()

    async def get(self, order_id) -> Optional[TestOrder]:
        try:
            record = await self.client.get(self.resource, str(order_id))
        except ResourceNotFound:
            return None
        return TestOrder.from_record(record)

    async def list(self) -> List[TestOrder]:
        records = await self.client.list(self.resource)
        return [TestOrder.from_record(r) for r in records]

    async def find_by_run_id(self, run_id: str) -> List[TestOrder]:
        records = await self.client.list(self.resource, params={"run_id": run_id})
        return [TestOrder.from_record(r) for r in records if str(r.get("run_id")) == str(run_id)]

    async def update(self, order_id, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await upsert_merge(self.client, self.resource, str(order_id), changes)


class InstrumentRepository:
    def __init__(self, client: AbstractLabApiClient):
        self.client = client

    async def get(self, instrument_id) -> Optional[Instrument]:
        try:
            record = await self.client.get(INSTRUMENTS, str(instrument_id))
        except ResourceNotFound:
            return None
        return Instrument.from_record(record)

    async def list(self) -> List[Instrument]:
        records = await self.client.list(INSTRUMENTS)
        return [Instrument.from_record(r) for r in records]


class ReagentRepository:
    def __init__(self, client: AbstractLabApiClient):
        self.client = client

    async def get(self, reagent_id) -> Optional[Reagent]:
        try:
            record = await self.client.get(REAGENTS, str(reagent_id))
        except ResourceNotFound:
            return None
        return Reagent.from_record(record)

    async def list(self) -> List[Reagent]:
        records = await self.client.list(REAGENTS)
        return [Reagent.from_record(r) for r in records]

    async def update_quantity(self, reagent_id: str, quantity: float) -> Dict[str, Any]:
        return await upsert_merge(self.client, REAGENTS, reagent_id, {"quantity": quantity})


class ResultRepository:
    """Repository for result records; tracks every aggregate it hands out."""

    def __init__(self, client: AbstractLabApiClient):
        self.client = client
        self.seen = []  # type: List[TestResult]

    def _track(self, result: TestResult) -> TestResult:
        if not any(r is result for r in self.seen):
            self.seen.append(result)
        return result

    async def add(self, result: TestResult) -> Dict[str, Any]:
        self._track(result)
        return await self.client.create(RESULTS, result.to_record())

    async def get(self, result_id) -> Optional[TestResult]:
        try:
            record = await self.client.get(RESULTS, str(result_id))
        except ResourceNotFound:
            return None
        return self._track(TestResult.from_record(record))

    async def find_by_run_id(self, run_id: str) -> Optional[TestResult]:
        records = await self.client.list(RESULTS, params={"run_id": run_id})
        matches = [r for r in records if str(r.get("run_id")) == str(run_id)]
        if not matches:
            return None
        return self._track(TestResult.from_record(matches[0]))

    async def list(self) -> List[TestResult]:
        records = await self.client.list(RESULTS)
        return [TestResult.from_record(r) for r in records]

    async def save_comments(self, result: TestResult) -> Dict[str, Any]:
        self._track(result)
        return await upsert_merge(
            self.client,
            RESULTS,
            str(result.id),
            {"comments": result.comments_record(), "updatedAt": utcnow().isoformat()},
        )

    async def delete(self, result_id: str) -> None:
        await self.client.delete(RESULTS, str(result_id))


class ResultRowRepository:
    """Per-row mirror of result rows kept for older readers."""

    def __init__(self, client: AbstractLabApiClient):
        self.client = client

    async def add(self, run_id: str, result_id: str, row: ResultRow) -> Dict[str, Any]:
        return await self.client.create(
            RESULT_ROWS,
            {
                "run_id": run_id,
                "test_result_id": result_id,
                "parameter_name": row.parameter,
                "result_value": row.result,
                "flag": row.flag,
                "evaluate": row.applied_evaluate,
                "deviation": row.deviation,
                "unit": row.unit,
                "referenceRange": row.reference_range,
            },
        )

    async def list_by_run_id(self, run_id: str) -> List[Dict[str, Any]]:
        records = await self.client.list(RESULT_ROWS, params={"run_id": run_id})
        return [r for r in records if str(r.get("run_id")) == str(run_id)]

    async def delete(self, row_id: str) -> None:
        await self.client.delete(RESULT_ROWS, str(row_id))

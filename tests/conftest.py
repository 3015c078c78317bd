# pylint: disable=redefined-outer-name
import asyncio
import copy
import itertools
import random

import pytest

from lab_run.adapters.api_client import AbstractLabApiClient, LabApiError, ResourceNotFound
from lab_run.adapters.redis_publisher import AbstractEventPublisher
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork


class FakeLabApiClient(AbstractLabApiClient):
    """
    In-memory stand-in for the REST resource store.

    Every call yields to the event loop once so concurrent runs interleave
    the way they would against a real server. ``fail_on`` holds
    ``(method, resource)`` pairs that raise LabApiError.
    """

    def __init__(self, data=None):
        self.store = {}
        self.calls = []
        self.fail_on = set()
        self._ids = itertools.count(1)
        for resource, records in (data or {}).items():
            self.store[resource] = {str(r["id"]): copy.deepcopy(r) for r in records}

    async def _enter(self, method, resource, record_id=None):
        self.calls.append((method, resource, record_id))
        await asyncio.sleep(0)
        if (method, resource) in self.fail_on:
            raise LabApiError(f"{method} {resource} failed")

    def _collection(self, resource):
        return self.store.setdefault(resource, {})

    async def list(self, resource, params=None):
        await self._enter("list", resource)
        records = list(self._collection(resource).values())
        for key, value in (params or {}).items():
            records = [r for r in records if str(r.get(key)) == str(value)]
        return copy.deepcopy(records)

    async def get(self, resource, record_id):
        await self._enter("get", resource, record_id)
        record = self._collection(resource).get(str(record_id))
        if record is None:
            raise ResourceNotFound(f"/{resource}/{record_id} not found")
        return copy.deepcopy(record)

    async def create(self, resource, payload):
        await self._enter("create", resource)
        record = copy.deepcopy(payload)
        record.setdefault("id", f"{resource}-{next(self._ids)}")
        self._collection(resource)[str(record["id"])] = record
        return copy.deepcopy(record)

    async def patch(self, resource, record_id, changes):
        await self._enter("patch", resource, record_id)
        record = self._collection(resource).get(str(record_id))
        if record is None:
            raise ResourceNotFound(f"/{resource}/{record_id} not found")
        record.update(copy.deepcopy(changes))
        return copy.deepcopy(record)

    async def put(self, resource, record_id, payload):
        await self._enter("put", resource, record_id)
        record = copy.deepcopy(payload)
        record["id"] = str(record_id)
        self._collection(resource)[str(record_id)] = record
        return copy.deepcopy(record)

    async def delete(self, resource, record_id):
        await self._enter("delete", resource, record_id)
        if self._collection(resource).pop(str(record_id), None) is None:
            raise ResourceNotFound(f"/{resource}/{record_id} not found")

    def records(self, resource):
        return list(self._collection(resource).values())

    def record(self, resource, record_id):
        return self._collection(resource).get(str(record_id))

    def count(self, method, resource):
        return sum(1 for m, r, _ in self.calls if m == method and r == resource)


class FakePublisher(AbstractEventPublisher):
    def __init__(self):
        self.published = []

    async def publish(self, channel, event):
        self.published.append((channel, event))


class FakeUnitOfWork(AbstractUnitOfWork):
    def __init__(self, client, seed=42, id_seed=None):
        self.client = client
        self.publisher = FakePublisher()
        self.rng = random.Random(seed)
        self.id_rng = random.Random(id_seed) if id_seed is not None else None
        self.committed = False
        self._bind_repositories(client)

    async def __aenter__(self):
        self._bind_repositories(self.client)
        return await super().__aenter__()

    async def _commit(self):
        self.committed = True

    async def rollback(self):
        pass


def cbc_store():
    """Store holding one pending CBC order, one instrument and one reagent."""
    return {
        "test_orders": [
            {
                "id": "O1",
                "patient_id": "P1",
                "patientName": "Doe Jane",
                "sex": "F",
                "testType": "CBC",
                "run_id": None,
                "created_at": "2026-10-01T08:00:00Z",
                "requester": "Dr. House",
            },
        ],
        "instruments": [
            {
                "id": "I1",
                "name": "Sysmex XN-1000",
                "status": "active",
                "supportedTest": ["CBC"],
                "supportedReagents": ["R1"],
            },
        ],
        "reagents": [
            {"id": "R1", "name": "Lyse", "unit": "mL", "quantity": 100, "usage_per_run": 5},
        ],
        "test_results": [],
        "test_result_rows": [],
    }


@pytest.fixture
def fake_client():
    return FakeLabApiClient(cbc_store())


@pytest.fixture
def uow(fake_client):
    return FakeUnitOfWork(fake_client)

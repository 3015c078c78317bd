"""Unit tests for the REST-backed repositories."""

import pytest

from conftest import FakeLabApiClient, cbc_store
from lab_run.adapters import repository
from lab_run.domain.model import ResultRow, TestResult

ROW = ResultRow("WBC", "11,000", "cells/µL", "4,000–10,000", "+10%", "High", "High-v2")


def make_result():
    return TestResult(run_id="run-1", instrument="Sysmex", performed_at="t", patient_name="Doe Jane", sex="F",
                      rows=[ROW], order_id="O1")


@pytest.mark.asyncio
async def test_order_get_missing_returns_none():
    orders = repository.OrderRepository(FakeLabApiClient(cbc_store()))
    assert await orders.get("nope") is None
    assert (await orders.get("O1")).patient_name == "Doe Jane"


@pytest.mark.asyncio
async def test_orders_resource_from_config(monkeypatch):
    monkeypatch.setenv("LAB_API_ORDERS_RESOURCE", "test_order")
    client = FakeLabApiClient({"test_order": [{"id": "O9", "testType": "CBC"}]})
    orders = repository.OrderRepository(client)
    assert [o.id for o in await orders.list()] == ["O9"]


@pytest.mark.asyncio
async def test_order_find_by_run_id():
    client = FakeLabApiClient({"test_orders": [{"id": "O1", "run_id": "a"}, {"id": "O2", "run_id": "b"}]})
    found = await repository.OrderRepository(client).find_by_run_id("b")
    assert [o.id for o in found] == ["O2"]


@pytest.mark.asyncio
async def test_result_add_tracks_aggregate_and_writes_wire_shape():
    client = FakeLabApiClient()
    results = repository.ResultRepository(client)
    result = make_result()

    record = await results.add(result)

    assert results.seen == [result]
    stored = client.record("test_results", record["id"])
    assert stored["run_id"] == "run-1"
    assert stored["patientName"] == "Doe Jane"
    assert stored["rows"][0]["referenceRange"] == "4,000–10,000"
    assert stored["criticalCount"] == 1


@pytest.mark.asyncio
async def test_result_find_by_run_id():
    client = FakeLabApiClient({"test_results": [{"id": "res-1", "run_id": "run-1", "rows": []}]})
    results = repository.ResultRepository(client)

    assert (await results.find_by_run_id("run-1")).id == "res-1"
    assert await results.find_by_run_id("run-2") is None
    assert len(results.seen) == 1


@pytest.mark.asyncio
async def test_save_comments_overwrites_array():
    client = FakeLabApiClient({"test_results": [{"id": "res-1", "run_id": "run-1", "comments": [{"id": "old"}]}]})
    results = repository.ResultRepository(client)
    result = await results.get("res-1")
    result.comments = []

    await results.save_comments(result)

    stored = client.record("test_results", "res-1")
    assert stored["comments"] == []
    assert "updatedAt" in stored


@pytest.mark.asyncio
async def test_reagent_update_quantity():
    client = FakeLabApiClient(cbc_store())
    reagents = repository.ReagentRepository(client)
    await reagents.update_quantity("R1", 95.0)
    assert (await reagents.get("R1")).quantity == 95.0


@pytest.mark.asyncio
async def test_mirrored_row_payload():
    client = FakeLabApiClient()
    rows = repository.ResultRowRepository(client)
    await rows.add("run-1", "res-1", ROW)

    [mirrored] = await rows.list_by_run_id("run-1")
    assert mirrored["parameter_name"] == "WBC"
    assert mirrored["result_value"] == "11,000"
    assert mirrored["evaluate"] == "High-v2"
    assert mirrored["test_result_id"] == "res-1"
    assert await rows.list_by_run_id("run-2") == []

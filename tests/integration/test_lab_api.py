"""Integration tests for the Lab Run API using FastAPI's TestClient."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import FakeLabApiClient, FakeUnitOfWork, cbc_store
from lab_run.entrypoints import lab_api


@pytest.fixture
def store():
    return FakeLabApiClient(cbc_store())


@pytest.fixture
def api(store):
    lab_api.app.dependency_overrides[lab_api.get_uow] = lambda: FakeUnitOfWork(store)
    yield TestClient(lab_api.app)
    lab_api.app.dependency_overrides.clear()


def run_o1(api):
    response = api.post("/api/v1/test-runs", json={"order_id": "O1", "instrument_id": "I1"})
    assert response.status_code == 201
    return response.json()


def test_health(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_runnable_orders(api):
    body = api.get("/api/v1/orders/runnable").json()
    assert body["count"] == 1
    assert body["orders"][0]["id"] == "O1"


def test_order_instruments(api):
    body = api.get("/api/v1/orders/O1/instruments").json()
    assert [i["id"] for i in body["instruments"]] == ["I1"]
    assert api.get("/api/v1/orders/O404/instruments").status_code == 404


def test_instrument_reagents(api):
    body = api.get("/api/v1/instruments/I1/reagents").json()
    assert body["reagents"][0]["amountUsed"] == 5.0
    assert api.get("/api/v1/instruments/I404/reagents").status_code == 404


class TestRunEndpoint:

    def test_run_returns_outcome(self, api, store):
        body = run_o1(api)

        assert body["state"] == "done"
        assert len(body["rows"]) == 8
        assert body["rows"][0]["parameter"] == "WBC"
        assert body["rows"][0]["run_id"] == body["run_id"]
        assert store.record("reagents", "R1")["quantity"] == 95

    def test_second_run_conflicts(self, api):
        run_o1(api)
        response = api.post("/api/v1/test-runs", json={"order_id": "O1", "instrument_id": "I1"})
        assert response.status_code == 409

    def test_missing_instrument(self, api):
        response = api.post("/api/v1/test-runs", json={"order_id": "O1"})
        assert response.status_code == 422
        assert "No instrument selected" in response.json()["detail"]

    def test_unknown_order(self, api):
        response = api.post("/api/v1/test-runs", json={"order_id": "O404", "instrument_id": "I1"})
        assert response.status_code == 404

    def test_fatal_creation_failure(self, api, store):
        store.fail_on.update({("create", "test_results"), ("list", "test_results")})
        response = api.post("/api/v1/test-runs", json={"order_id": "O1", "instrument_id": "I1"})
        assert response.status_code == 502

    def test_reagent_overrides(self, api, store):
        response = api.post(
            "/api/v1/test-runs",
            json={"order_id": "O1", "instrument_id": "I1", "used_reagents": [{"reagent_id": "R1", "amount_used": 1}]},
        )
        assert response.status_code == 201
        assert store.record("reagents", "R1")["quantity"] == 99

    def test_reagent_overrides_accept_listing_field_names(self, api, store):
        listed = api.get("/api/v1/instruments/I1/reagents").json()["reagents"]
        overrides = [{"reagentId": r["id"], "amountUsed": 12, "unit": r["unit"]} for r in listed]

        response = api.post(
            "/api/v1/test-runs",
            json={"order_id": "O1", "instrument_id": "I1", "used_reagents": overrides},
        )

        assert response.status_code == 201
        assert store.record("reagents", "R1")["quantity"] == 88

    def test_deleted_order_conflicts(self, api, store):
        store.record("test_orders", "O1")["deleted"] = True
        response = api.post("/api/v1/test-runs", json={"order_id": "O1", "instrument_id": "I1"})
        assert response.status_code == 409
        assert store.records("test_results") == []


class TestResultEndpoints:

    def test_list_and_detail(self, api):
        run = run_o1(api)

        listing = api.get("/api/v1/test-results").json()
        assert listing["results"][0]["status"] == "Completed"

        detail = api.get("/api/v1/test-results/O1").json()
        assert detail["run_id"] == run["run_id"]
        assert api.get("/api/v1/test-results/unknown").status_code == 404

    def test_comment_lifecycle(self, api):
        run = run_o1(api)
        base = f"/api/v1/test-results/{run['result_id']}/comments"

        created = api.post(base, json={"text": "Check smear", "author": "Ann Lee"})
        assert created.status_code == 201
        comment_id = created.json()["id"]

        assert api.post(base, json={"text": " "}).status_code == 400

        edited = api.put(f"{base}/{comment_id}", json={"text": "Smear ok"})
        assert edited.json()["text"] == "Smear ok"
        assert api.put(f"{base}/c0", json={"text": "x"}).status_code == 404

        assert api.delete(f"{base}/{comment_id}").status_code == 400
        deleted = api.delete(f"{base}/{comment_id}", params={"confirm": "true"})
        assert deleted.json() == {"comments": []}

    def test_delete_result(self, api, store):
        run = run_o1(api)

        assert api.delete(f"/api/v1/test-results/{run['result_id']}").status_code == 400

        response = api.delete(f"/api/v1/test-results/{run['result_id']}", params={"confirm": "true"})
        assert response.status_code == 200
        assert api.get(f"/api/v1/test-results/{run['run_id']}").status_code == 404
        assert store.record("test_orders", "O1")["deleted"] is True


def test_shutdown_closes_publisher(monkeypatch):
    publisher = AsyncMock()
    monkeypatch.setattr(lab_api, "publisher", publisher)

    with TestClient(lab_api.app) as client:
        assert client.get("/health").status_code == 200
        publisher.aclose.assert_not_awaited()

    publisher.aclose.assert_awaited_once()

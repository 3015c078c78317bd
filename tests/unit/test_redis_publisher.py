"""Unit tests for the Redis event publisher."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from lab_run.adapters.redis_publisher import RedisEventPublisher, _serialize_event
from lab_run.domain.events import TestRunCompleted

EVENT = TestRunCompleted(
    run_id="run-1",
    result_id="res-1",
    order_id="O1",
    instrument="Sysmex",
    critical_count=2,
    degraded=False,
    completed_at=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
)


def test_serialize_event_adds_type_and_iso_dates():
    payload = json.loads(_serialize_event(EVENT))
    assert payload["event_type"] == "TestRunCompleted"
    assert payload["completed_at"] == "2026-10-01T12:00:00+00:00"
    assert payload["critical_count"] == 2


@pytest.mark.asyncio
async def test_publish_sends_serialized_event():
    client = AsyncMock()
    publisher = RedisEventPublisher(client=client)

    await publisher.publish("lab:test-runs", EVENT)

    client.publish.assert_awaited_once()
    channel, message = client.publish.await_args.args
    assert channel == "lab:test-runs"
    assert json.loads(message)["run_id"] == "run-1"


@pytest.mark.asyncio
async def test_aclose_closes_client():
    client = AsyncMock()
    await RedisEventPublisher(client=client).aclose()
    client.aclose.assert_awaited_once()

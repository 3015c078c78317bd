"""Redis adapter for publishing test run events following Cosmic Python pattern."""

import abc
import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis

import config
from lab_run.domain.events import Event

logger = logging.getLogger(__name__)


def _serialize_event(event: Event) -> str:
    """Serialize event to JSON, handling datetime objects."""
    event_dict = asdict(event)

    for key, value in event_dict.items():
        if isinstance(value, datetime):
            event_dict[key] = value.isoformat()

    event_dict["event_type"] = type(event).__name__
    return json.dumps(event_dict)


class AbstractEventPublisher(abc.ABC):
    @abc.abstractmethod
    async def publish(self, channel: str, event: Event) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class RedisEventPublisher(AbstractEventPublisher):
    def __init__(self, client: Optional[aioredis.Redis] = None):
        self.client = client or aioredis.from_url(config.get_redis_url())

    async def publish(self, channel: str, event: Event) -> None:
        """Publish event to Redis channel."""
        logger.info("publishing: channel=%s, event=%s", channel, event)
        await self.client.publish(channel, _serialize_event(event))

    async def aclose(self) -> None:
        await self.client.aclose()

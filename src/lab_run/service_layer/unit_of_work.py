# pylint: disable=attribute-defined-outside-init
from __future__ import annotations
import abc
import random
from typing import List, Optional

from lab_run.adapters import api_client, redis_publisher, repository
from lab_run.domain.events import Event


class AbstractUnitOfWork(abc.ABC):
    client: api_client.AbstractLabApiClient
    orders: repository.OrderRepository
    instruments: repository.InstrumentRepository
    reagents: repository.ReagentRepository
    results: repository.ResultRepository
    result_rows: repository.ResultRowRepository
    publisher: redis_publisher.AbstractEventPublisher
    rng: random.Random
    id_rng: Optional[random.Random] = None

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    async def commit(self):
        await self._commit()

    def collect_new_events(self) -> List[Event]:
        events = []
        if not hasattr(self, "results"):
            return events
        for result in self.results.seen:
            while result.events:
                events.append(result.events.pop(0))
        return events

    def _bind_repositories(self, client: api_client.AbstractLabApiClient):
        self.client = client
        self.orders = repository.OrderRepository(client)
        self.instruments = repository.InstrumentRepository(client)
        self.reagents = repository.ReagentRepository(client)
        self.results = repository.ResultRepository(client)
        self.result_rows = repository.ResultRowRepository(client)

    @abc.abstractmethod
    async def _commit(self):
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self):
        raise NotImplementedError


class HttpUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work over the REST resource store.

    The store has no transactions: every write is applied as soon as it is
    sent, so commit and rollback have nothing to flush or undo.
    """

    def __init__(
        self,
        client_factory=None,
        publisher: Optional[redis_publisher.AbstractEventPublisher] = None,
        rng: Optional[random.Random] = None,
        id_rng: Optional[random.Random] = None,
    ):
        self.client_factory = client_factory or api_client.HTTPLabApiClient
        self.publisher = publisher or redis_publisher.RedisEventPublisher()
        self.rng = rng or random.Random()
        self.id_rng = id_rng

    async def __aenter__(self):
        self._bind_repositories(self.client_factory())
        return await super().__aenter__()

    async def __aexit__(self, *args):
        await super().__aexit__(*args)
        await self.client.aclose()

    async def _commit(self):
        pass

    async def rollback(self):
        pass

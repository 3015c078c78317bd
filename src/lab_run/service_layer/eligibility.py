"""Selection of orders that can still be run, and of instruments able to run them."""

import logging
from typing import List

from lab_run.domain.model import Instrument, TestOrder
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def is_runnable(order: TestOrder) -> bool:
    return not order.has_run and not order.deleted


def compatible_instruments(order: TestOrder, instruments: List[Instrument]) -> List[Instrument]:
    """Active instruments whose supported tests contain the order's test type."""
    return [
        instrument
        for instrument in instruments
        if instrument.is_active and instrument.supports(order.test_type)
    ]


async def list_runnable_orders(uow: AbstractUnitOfWork) -> List[TestOrder]:
    """Orders without a run-link (None, empty or whitespace-only)."""
    async with uow:
        orders = await uow.orders.list()
    runnable = [o for o in orders if is_runnable(o)]
    logger.info(f"{len(runnable)} of {len(orders)} test orders are runnable")
    return runnable


async def instruments_for(order: TestOrder, uow: AbstractUnitOfWork) -> List[Instrument]:
    """
    Instruments able to run ``order``.

    An empty list means no test can be created for the order; callers must
    disable execution rather than fall back to another instrument.
    """
    async with uow:
        instruments = await uow.instruments.list()
    matched = compatible_instruments(order, instruments)
    if not matched:
        logger.warning(f"No compatible instrument for order {order.id} (test type {order.test_type!r})")
    return matched

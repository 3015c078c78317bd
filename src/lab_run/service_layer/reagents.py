"""Reagent resolution and per-run stock depletion."""

import logging
from typing import Dict, List, Optional

from lab_run.adapters.api_client import LabApiError
from lab_run.domain.model import (
    Instrument,
    Reagent,
    ReagentUsage,
    ResolvedReagent,
    SideEffectOutcome,
)
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

STEP_DEPLETE = "deplete_reagent"


def amount_for(reagent: Reagent, overrides: Optional[List[ReagentUsage]]) -> float:
    """Caller override for this reagent if one was given, else its usage per run."""
    for usage in overrides or []:
        if usage.amount_used is not None and reagent.matches(usage.reagent_id):
            return max(0.0, float(usage.amount_used))
    return max(0.0, reagent.usage_per_run)


async def _fetch_pool(uow: AbstractUnitOfWork) -> Optional[List[Reagent]]:
    try:
        return await uow.reagents.list()
    except LabApiError as e:
        logger.warning(f"Could not fetch reagent pool, falling back to point lookups: {e}")
        return None


async def _resolve_reference(
    reference: str,
    pool: Optional[List[Reagent]],
    index: Dict[str, Reagent],
    uow: AbstractUnitOfWork,
) -> Optional[Reagent]:
    if pool is None:
        try:
            return await uow.reagents.get(reference)
        except LabApiError as e:
            logger.warning(f"Point lookup of reagent {reference} failed: {e}")
            return None

    if reference in index:
        return index[reference]
    return next((r for r in pool if r.matches(reference)), None)


async def resolve_reagents(
    instrument: Instrument,
    uow: AbstractUnitOfWork,
    overrides: Optional[List[ReagentUsage]] = None,
) -> List[ResolvedReagent]:
    """
    Expand the instrument's reagent references into full reagent records.

    The reagent pool is fetched once and indexed by id; references missing
    from the index are matched by id or case-insensitive name. References
    that match nothing are dropped.
    """
    pool = await _fetch_pool(uow)
    index = {r.id: r for r in pool} if pool is not None else {}

    resolved = []
    for reference in instrument.reagent_refs:
        reagent = await _resolve_reference(reference, pool, index, uow)
        if reagent is None:
            logger.debug(f"Reagent reference {reference!r} on instrument {instrument.id} not found, skipping")
            continue
        resolved.append(ResolvedReagent(reagent=reagent, amount_used=amount_for(reagent, overrides)))
    return resolved


async def _deplete_one(item: ResolvedReagent, uow: AbstractUnitOfWork) -> SideEffectOutcome:
    try:
        current = await uow.reagents.get(item.id) or item.reagent
        new_quantity = max(0.0, current.quantity - item.amount_used)

        if new_quantity == current.quantity:
            logger.info(f"Reagent {item.id} quantity unchanged ({current.quantity})")
            return SideEffectOutcome.success(STEP_DEPLETE, item.id)

        await uow.reagents.update_quantity(item.id, new_quantity)
        logger.info(f"Reagent {item.id} quantity {current.quantity} -> {new_quantity}")
        return SideEffectOutcome.success(STEP_DEPLETE, item.id)

    except LabApiError as e:
        logger.error(f"Failed to deplete reagent {item.id}: {e}")
        return SideEffectOutcome.failure(STEP_DEPLETE, item.id, e)


async def deplete_reagents(
    instrument: Instrument,
    uow: AbstractUnitOfWork,
    overrides: Optional[List[ReagentUsage]] = None,
) -> List[SideEffectOutcome]:
    """
    Subtract each reagent's usage from its current stock, clamped at zero.

    Reagents are handled independently; a failure on one is reported in the
    returned outcomes and does not stop the others.
    """
    resolved = await resolve_reagents(instrument, uow, overrides)
    outcomes = []
    for item in resolved:
        outcomes.append(await _deplete_one(item, uow))
    return outcomes

"""
Test run orchestration.

A run moves through

    IDLE -> VALIDATING -> SYNTHESIZING -> PERSISTING -> LINKING
         -> DEPLETING_REAGENTS -> DONE

and can end in FAILED from any step. Only VALIDATING rejects a request
outright. Once the result record exists it may already be visible to other
readers, so every later step degrades (recording a failed SideEffectOutcome)
instead of aborting.

The one-run-per-order rule is a pre-check on the order's run-link. Two
concurrent runs on the same order can both pass it; both will persist a
result and the last link write to the order wins.
"""

import logging
from typing import List, Optional, Tuple

from lab_run.adapters.api_client import LabApiError
from lab_run.adapters.hl7 import build_oru_message
from lab_run.domain import identifiers
from lab_run.domain.commands import RunTest
from lab_run.domain.exceptions import (
    InstrumentNotFound,
    NoInstrumentSelected,
    OrderAlreadyRun,
    OrderDeleted,
    OrderNotFound,
    ResultCreationFailed,
)
from lab_run.domain.model import (
    Instrument,
    RunOutcome,
    RunState,
    SideEffectOutcome,
    TestOrder,
    TestResult,
    count_critical,
    is_blank,
    utcnow,
)
from lab_run.domain.panel import synthesize_panel
from lab_run.service_layer.reagents import deplete_reagents
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

STEP_MIRROR_ROW = "mirror_row"
STEP_LINK_ORDER = "link_order"


class TestRunOrchestrator:
    """Executes one RunTest command against an entered unit of work."""
    __test__ = False

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow
        self.state = RunState.IDLE
        self.history = [RunState.IDLE]  # type: List[RunState]

    def _transition(self, state: RunState) -> None:
        logger.debug(f"run state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def run(self, command: RunTest) -> RunOutcome:
        try:
            return await self._run(command)
        except Exception:
            self._transition(RunState.FAILED)
            raise

    async def _run(self, command: RunTest) -> RunOutcome:
        self._transition(RunState.VALIDATING)
        order, instrument = await self._validate(command)

        self._transition(RunState.SYNTHESIZING)
        rows = synthesize_panel(self.uow.rng)
        logger.info(f"Synthesized {len(rows)} rows for order {order.id}")

        self._transition(RunState.PERSISTING)
        result = self._build_result(command, order, instrument, rows)
        result_id, synthetic = await self._persist(result)
        side_effects = await self._mirror_rows(result, result_id)

        self._transition(RunState.LINKING)
        side_effects.append(await self._link_order(command, order, result.run_id, result_id))

        self._transition(RunState.DEPLETING_REAGENTS)
        side_effects.extend(await deplete_reagents(instrument, self.uow, command.used_reagents))

        outcome = RunOutcome(
            run_id=result.run_id,
            result_id=result_id,
            order_id=order.id,
            rows=rows,
            state=RunState.DONE,
            side_effects=side_effects,
            result_id_synthetic=synthetic,
        )
        result.complete(result_id, degraded=outcome.degraded)
        self._transition(RunState.DONE)

        if outcome.degraded:
            logger.warning(
                f"Run {result.run_id} for order {order.id} completed with "
                f"{len(outcome.failed_side_effects)} failed side effects"
            )
        return outcome

    async def _validate(self, command: RunTest) -> Tuple[TestOrder, Instrument]:
        order = await self.uow.orders.get(command.order_id)
        if order is None:
            raise OrderNotFound(command.order_id)
        if order.has_run:
            raise OrderAlreadyRun(order.id, order.run_id)
        if order.deleted:
            raise OrderDeleted(order.id)
        if is_blank(command.instrument_id):
            raise NoInstrumentSelected(order.id)

        instrument = await self.uow.instruments.get(command.instrument_id)
        if instrument is None:
            raise InstrumentNotFound(command.instrument_id)
        return order, instrument

    def _build_result(self, command: RunTest, order: TestOrder, instrument: Instrument, rows) -> TestResult:
        run_id = identifiers.generate_run_id(self.uow.id_rng)
        performed_at = utcnow()
        return TestResult(
            run_id=run_id,
            order_id=order.id,
            instrument=instrument.display_name,
            performed_at=performed_at.isoformat(),
            collected=performed_at.isoformat(),
            patient_name=order.patient_name or "Unknown",
            sex=command.sex or order.sex or "Unknown",
            rows=rows,
            notes=f"Auto-generated for order {order.id}",
            hl7_raw=build_oru_message(
                run_id,
                order,
                instrument.display_name,
                rows,
                performed_at,
                requester=str(order.raw.get("requester") or ""),
            ),
            run_by_user_id=command.run_by_user_id,
            run_by_name=command.run_by_name,
            critical_count=count_critical(rows),
        )

    async def _persist(self, result: TestResult) -> Tuple[str, bool]:
        """
        Create the result record and return (result_id, synthetic).

        Raises:
            ResultCreationFailed: If neither the create nor the lookup by
                run id could reach the store
        """
        create_error = None  # type: Optional[LabApiError]
        result_id = None
        try:
            record = await self.uow.results.add(result)
            result_id = record.get("id")
        except LabApiError as e:
            logger.warning(f"Creating result for run {result.run_id} failed: {e}")
            create_error = e

        if result_id:
            return str(result_id), False

        try:
            found = await self.uow.results.find_by_run_id(result.run_id)
        except LabApiError as e:
            if create_error is not None:
                raise ResultCreationFailed(
                    f"Could not create or locate result for run {result.run_id}: {create_error}"
                ) from e
            found = None

        if found is not None and found.id:
            logger.info(f"Located result {found.id} for run {result.run_id} by run id")
            return found.id, False

        synthetic_id = identifiers.local_result_id()
        logger.warning(f"Result for run {result.run_id} not locatable, using synthetic id {synthetic_id}")
        return synthetic_id, True

    async def _mirror_rows(self, result: TestResult, result_id: str) -> List[SideEffectOutcome]:
        outcomes = []
        for row in result.rows:
            target = f"{result.run_id}:{row.parameter}"
            try:
                await self.uow.result_rows.add(result.run_id, result_id, row)
                outcomes.append(SideEffectOutcome.success(STEP_MIRROR_ROW, target))
            except LabApiError as e:
                logger.warning(f"Mirroring row {target} failed: {e}")
                outcomes.append(SideEffectOutcome.failure(STEP_MIRROR_ROW, target, e))
        return outcomes

    async def _link_order(self, command: RunTest, order: TestOrder, run_id: str, result_id: str) -> SideEffectOutcome:
        changes = {
            "run_id": run_id,
            "testResultId": result_id,
            "runByUserId": command.run_by_user_id or "unknown",
        }
        tester = command.run_by_name or order.raw.get("tester") or order.raw.get("requester")
        if tester:
            changes["tester"] = tester

        try:
            await self.uow.orders.update(order.id, changes)
            logger.info(f"Linked order {order.id} to run {run_id}")
            return SideEffectOutcome.success(STEP_LINK_ORDER, order.id)
        except LabApiError as e:
            logger.error(f"Linking order {order.id} to run {run_id} failed: {e}")
            return SideEffectOutcome.failure(STEP_LINK_ORDER, order.id, e)


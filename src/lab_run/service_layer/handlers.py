import logging
from typing import List

import config
from lab_run.adapters.api_client import LabApiError
from lab_run.domain.commands import (
    AddComment,
    DeleteComment,
    DeleteTestResult,
    EditComment,
    RunTest,
)
from lab_run.domain.events import TestRunCompleted
from lab_run.domain.exceptions import (
    CommentPersistenceError,
    ConfirmationRequired,
    ResultNotFound,
)
from lab_run.domain.model import (
    CommentItem,
    RunOutcome,
    SideEffectOutcome,
    TestResult,
)
from lab_run.service_layer.orchestrator import TestRunOrchestrator
from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


async def run_test(command: RunTest, uow: AbstractUnitOfWork) -> RunOutcome:
    """
    Execute a pending test order on the selected instrument.

    Flow:
    1. Validate the order has no run-link and an instrument is selected
    2. Synthesize and classify the CBC panel
    3. Persist the result record (and mirror its rows)
    4. Link the order to the run
    5. Deplete the instrument's reagents

    Args:
        command: RunTest command with order id, instrument id and reagent overrides
        uow: Unit of work exposing the REST repositories

    Returns:
        RunOutcome with run id, result id, rows and side-effect outcomes

    Raises:
        PreconditionViolation: If the order was already run or no instrument was chosen
        ResultCreationFailed: If the result record could not be created or located
    """
    logger.info(f"Processing RunTest command for order {command.order_id} on instrument {command.instrument_id}")

    async with uow:
        orchestrator = TestRunOrchestrator(uow)
        outcome = await orchestrator.run(command)
        await uow.commit()

    logger.info(f"Run {outcome.run_id} stored as result {outcome.result_id} for order {command.order_id}")
    return outcome


async def resolve_result(identifier: str, uow: AbstractUnitOfWork) -> TestResult:
    """Find a result by record id, then by run id, then by order id."""
    result = await uow.results.get(identifier)
    if result is None:
        result = await uow.results.find_by_run_id(identifier)
    if result is None:
        order = await uow.orders.get(identifier)
        if order is not None and order.has_run:
            result = await uow.results.find_by_run_id(order.run_id)
    if result is None:
        raise ResultNotFound(identifier)
    return result


async def _save_comments(result: TestResult, uow: AbstractUnitOfWork) -> None:
    try:
        await uow.results.save_comments(result)
    except LabApiError as e:
        logger.error(f"Failed to persist comments for result {result.id}: {e}")
        raise CommentPersistenceError(f"Failed to persist comments for result {result.id}") from e


async def add_comment(command: AddComment, uow: AbstractUnitOfWork) -> CommentItem:
    async with uow:
        result = await resolve_result(command.result_identifier, uow)
        comment = result.add_comment(command.text, command.author, uow.rng, role=command.role)
        await _save_comments(result, uow)
        await uow.commit()
    logger.info(f"Added comment {comment.id} to result {result.id}")
    return comment


async def edit_comment(command: EditComment, uow: AbstractUnitOfWork) -> CommentItem:
    async with uow:
        result = await resolve_result(command.result_identifier, uow)
        comment = result.edit_comment(command.comment_id, command.text)
        await _save_comments(result, uow)
        await uow.commit()
    logger.info(f"Edited comment {comment.id} on result {result.id}")
    return comment


async def delete_comment(command: DeleteComment, uow: AbstractUnitOfWork) -> List[CommentItem]:
    async with uow:
        result = await resolve_result(command.result_identifier, uow)
        result.delete_comment(command.comment_id, confirmed=command.confirmed)
        await _save_comments(result, uow)
        await uow.commit()
    logger.info(f"Deleted comment {command.comment_id} from result {result.id}")
    return result.comments


async def delete_test_result(command: DeleteTestResult, uow: AbstractUnitOfWork) -> List[SideEffectOutcome]:
    """
    Remove a result record and its mirrored rows, and soft-delete its order.

    The order keeps its run-link so it can never be run again.
    """
    if not command.confirmed:
        raise ConfirmationRequired(f"Deleting result {command.result_identifier} requires confirmation")

    outcomes = []
    async with uow:
        result = await resolve_result(command.result_identifier, uow)
        await uow.results.delete(result.id)
        logger.info(f"Deleted result {result.id} (run {result.run_id})")

        try:
            for row in await uow.result_rows.list_by_run_id(result.run_id):
                await uow.result_rows.delete(row.get("id"))
            outcomes.append(SideEffectOutcome.success("delete_rows", result.run_id))
        except LabApiError as e:
            logger.warning(f"Deleting mirrored rows of run {result.run_id} failed: {e}")
            outcomes.append(SideEffectOutcome.failure("delete_rows", result.run_id, e))

        try:
            for order in await uow.orders.find_by_run_id(result.run_id):
                await uow.orders.update(order.id, {"deleted": True})
                outcomes.append(SideEffectOutcome.success("soft_delete_order", order.id))
        except LabApiError as e:
            logger.warning(f"Soft-deleting order of run {result.run_id} failed: {e}")
            outcomes.append(SideEffectOutcome.failure("soft_delete_order", result.run_id, e))

        result.mark_deleted()
        await uow.commit()
    return outcomes


async def publish_run_event(event, uow: AbstractUnitOfWork):
    """
    Publish a test run event so list views refresh.

    Args:
        event: TestRunCompleted, CommentsUpdated or TestResultDeleted event
        uow: Unit of work
    """
    logger.info(f"Publishing {type(event).__name__} for run {event.run_id}")
    try:
        await uow.publisher.publish(config.get_events_channel(), event)
    except Exception as e:
        logger.error(f"Failed to publish {type(event).__name__} for run {event.run_id}: {e}")
        # Don't re-raise - external failures shouldn't break the flow


async def log_degraded_run(event: TestRunCompleted, uow: AbstractUnitOfWork):
    if event.degraded:
        logger.warning(f"Run {event.run_id} (result {event.result_id}) completed in degraded state")

# pylint: disable=broad-except
"""Message bus for the lab run engine following Cosmic Python pattern."""

from __future__ import annotations
import logging
from typing import List, Dict, Callable, Type, Union, TYPE_CHECKING

from lab_run.domain.commands import (
    Command,
    AddComment,
    DeleteComment,
    DeleteTestResult,
    EditComment,
    RunTest,
)
from lab_run.domain.events import CommentsUpdated, Event, TestResultDeleted, TestRunCompleted
from lab_run.service_layer import handlers

if TYPE_CHECKING:
    from lab_run.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

Message = Union[
    RunTest,
    AddComment,
    EditComment,
    DeleteComment,
    DeleteTestResult,
    TestRunCompleted,
    CommentsUpdated,
    TestResultDeleted,
]


async def handle(
    message: Message,
    uow: AbstractUnitOfWork,
):
    """Handle message (command or event) with the appropriate handler."""
    results = []
    queue = [message]

    while queue:
        message = queue.pop(0)

        if isinstance(message, Event):
            await handle_event(message, queue, uow)
        elif isinstance(message, Command):
            cmd_result = await handle_command(message, queue, uow)
            results.append(cmd_result)
        else:
            raise Exception(f"{message} was not an Event or Command")

    return results


async def handle_event(
    event: Event,
    queue: List[Message],
    uow: AbstractUnitOfWork,
):
    """Handle event by calling all registered event handlers."""
    for handler in EVENT_HANDLERS[type(event)]:
        try:
            logger.debug(f"handling event {event} with handler {handler}")
            await handler(event, uow=uow)
            queue.extend(uow.collect_new_events())
        except Exception:
            logger.exception("Exception handling event %s", event)
            continue


async def handle_command(
    command: Command,
    queue: List[Message],
    uow: AbstractUnitOfWork,
):
    """Handle command by calling the registered command handler."""
    logger.debug(f"handling command {command}")
    try:
        handler = COMMAND_HANDLERS[type(command)]
        result = await handler(command, uow=uow)
        queue.extend(uow.collect_new_events())
        return result
    except Exception:
        logger.exception("Exception handling command %s", command)
        raise


# Event handlers - multiple handlers can respond to same event
EVENT_HANDLERS = {
    TestRunCompleted: [
        handlers.log_degraded_run,
        handlers.publish_run_event,
    ],
    CommentsUpdated: [handlers.publish_run_event],
    TestResultDeleted: [handlers.publish_run_event],
}  # type: Dict[Type[Event], List[Callable]]

# Command handlers - single handler per command type
COMMAND_HANDLERS = {
    RunTest: handlers.run_test,
    AddComment: handlers.add_comment,
    EditComment: handlers.edit_comment,
    DeleteComment: handlers.delete_comment,
    DeleteTestResult: handlers.delete_test_result,
}  # type: Dict[Type[Command], Callable]

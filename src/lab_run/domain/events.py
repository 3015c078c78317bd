"""Domain events for the lab run engine."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Event:
    """Base class for all domain events."""
    pass


@dataclass
class TestRunCompleted(Event):
    """Event raised when a test run has produced a result record."""
    __test__ = False

    run_id: str
    result_id: str
    order_id: str
    instrument: str
    critical_count: int
    degraded: bool
    completed_at: datetime


@dataclass
class CommentsUpdated(Event):
    """Event raised after the comment array of a result has been overwritten."""
    result_id: str
    run_id: str
    comment_count: int
    updated_at: datetime


@dataclass
class TestResultDeleted(Event):
    """Event raised when a result record has been removed."""
    __test__ = False

    result_id: str
    run_id: str
    deleted_at: datetime

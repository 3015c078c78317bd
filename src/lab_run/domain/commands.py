"""Commands for the lab run engine."""

from dataclasses import dataclass, field
from typing import List, Optional

from lab_run.domain.model import ReagentUsage


@dataclass
class Command:
    """Base class for all commands."""
    pass


@dataclass
class RunTest(Command):
    """Command to execute a test order on an instrument (one run per order)."""
    order_id: str
    instrument_id: Optional[str]
    used_reagents: List[ReagentUsage] = field(default_factory=list)
    sex: Optional[str] = None
    run_by_user_id: Optional[str] = None
    run_by_name: Optional[str] = None


@dataclass
class AddComment(Command):
    """Command to append a comment to a result (identified by result id or run id)."""
    result_identifier: str
    text: str
    author: Optional[str] = None
    role: str = ""


@dataclass
class EditComment(Command):
    result_identifier: str
    comment_id: str
    text: str


@dataclass
class DeleteComment(Command):
    result_identifier: str
    comment_id: str
    confirmed: bool = False


@dataclass
class DeleteTestResult(Command):
    """Command to remove a result record, its mirrored rows, and soft-delete its order."""
    result_identifier: str
    confirmed: bool = False

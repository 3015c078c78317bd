"""Domain model for test runs, results and the records they touch.

Records arrive from the REST resource store as loosely-typed JSON objects.
Each entity has a ``from_record`` constructor that tolerates the field
spellings used by older writers, and entities written back by the engine
have a ``to_record`` that produces the canonical wire shape.
"""

import enum
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lab_run.domain import identifiers
from lab_run.domain.classifier import (
    ABNORMAL_FLAGS,
    FLAG_HIGH,
    FLAG_LOW,
    FLAG_NORMAL,
    NO_DEVIATION,
)
from lab_run.domain.events import CommentsUpdated, TestResultDeleted, TestRunCompleted
from lab_run.domain.exceptions import (
    CommentNotFound,
    ConfirmationRequired,
    EmptyComment,
)

STATUS_COMPLETED = "Completed"
STATUS_IN_PROGRESS = "In Progress"
DEFAULT_COMMENT_AUTHOR = "Admin User"

_LIST_SEPARATOR = re.compile(r"[,;|]")


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def _first(record: Dict[str, Any], *keys: str, default=None):
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> List[str]:
    """Normalize an array-or-scalar field into a list of trimmed strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value]
    else:
        items = [part.strip() for part in _LIST_SEPARATOR.split(str(value))]
    return [item for item in items if item]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SYNTHESIZING = "synthesizing"
    PERSISTING = "persisting"
    LINKING = "linking"
    DEPLETING_REAGENTS = "depleting_reagents"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TestOrder:
    __test__ = False

    id: str
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    sex: Optional[str] = None
    test_type: str = ""
    run_id: Optional[str] = None
    created_at: Optional[str] = None
    deleted: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def has_run(self) -> bool:
        return not is_blank(self.run_id)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TestOrder":
        return cls(
            id=str(record.get("id", "")),
            patient_id=_first(record, "patient_id", "patientId"),
            patient_name=_first(record, "patientName", "patient_name"),
            sex=record.get("sex"),
            test_type=str(_first(record, "testType", "test_type", default="")).strip(),
            run_id=record.get("run_id"),
            created_at=_first(record, "created_at", "createdAt"),
            deleted=bool(record.get("deleted", False)),
            raw=dict(record),
        )


@dataclass
class Instrument:
    id: str
    name: str = ""
    status: Optional[str] = None
    supported_tests: List[str] = field(default_factory=list)
    reagent_refs: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_active(self) -> bool:
        return is_blank(self.status) or str(self.status).strip().lower() == "active"

    def supports(self, test_type: str) -> bool:
        return test_type in self.supported_tests

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Instrument":
        refs = record.get("supportedReagents") or []
        if not isinstance(refs, (list, tuple)):
            refs = [refs]
        return cls(
            id=str(record.get("id", "")),
            name=str(record.get("name") or ""),
            status=record.get("status"),
            supported_tests=_as_list(record.get("supportedTest")),
            reagent_refs=[str(ref) for ref in refs if not is_blank(ref)],
        )


@dataclass
class Reagent:
    id: str
    name: str = ""
    unit: str = ""
    quantity: float = 0.0
    usage_per_run: float = 0.0
    expiry_date: Optional[str] = None
    location: Optional[str] = None

    def matches(self, reference: str) -> bool:
        ref = str(reference)
        return self.id == ref or (bool(self.name) and self.name.lower() == ref.lower())

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Reagent":
        return cls(
            id=str(record.get("id", "")),
            name=str(record.get("name") or ""),
            unit=str(record.get("unit") or ""),
            quantity=_to_float(record.get("quantity")),
            usage_per_run=_to_float(record.get("usage_per_run")),
            expiry_date=_first(record, "expiry_date", "expiryDate"),
            location=record.get("location"),
        )


@dataclass
class ReagentUsage:
    """Caller-supplied override of how much of a reagent a run consumes."""
    reagent_id: str
    amount_used: Optional[float] = None
    unit: Optional[str] = None


@dataclass
class ResolvedReagent:
    reagent: Reagent
    amount_used: float

    @property
    def id(self) -> str:
        return self.reagent.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.reagent.id,
            "name": self.reagent.name,
            "unit": self.reagent.unit,
            "quantity": self.reagent.quantity,
            "usage_per_run": self.reagent.usage_per_run,
            "amountUsed": self.amount_used,
        }


@dataclass(frozen=True)
class ResultRow:
    parameter: str
    result: str
    unit: str
    reference_range: str
    deviation: str
    flag: str
    applied_evaluate: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "result": self.result,
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "deviation": self.deviation,
            "flag": self.flag,
            "appliedEvaluate": self.applied_evaluate,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ResultRow":
        # mirrored rows use parameter_name/result_value/evaluate
        deviation = str(record.get("deviation") or "")
        flag = record.get("flag")
        if not flag:
            flag = FLAG_HIGH if deviation and deviation != NO_DEVIATION else FLAG_NORMAL
        return cls(
            parameter=str(_first(record, "parameter", "parameter_name", "parameter_id", default="")),
            result=str(_first(record, "result", "result_value", "value", default="")),
            unit=str(_first(record, "unit", "uom", default="")),
            reference_range=str(_first(record, "referenceRange", "reference_range", default="")),
            deviation=deviation,
            flag=str(flag),
            applied_evaluate=_first(record, "appliedEvaluate", "evaluate"),
        )


def initials_for(name: str) -> str:
    """Initials from the first letters of up to two name words."""
    return "".join(part[0] for part in name.split() if part)[:2].upper()


@dataclass
class CommentItem:
    id: str
    author: str
    author_initials: str
    text: str
    created_at: str
    role: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "authorInitials": self.author_initials,
            "role": self.role,
            "text": self.text,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CommentItem":
        author = str(record.get("author") or "")
        return cls(
            id=str(record.get("id", "")),
            author=author,
            author_initials=str(record.get("authorInitials") or initials_for(author)),
            text=str(record.get("text") or ""),
            created_at=str(_first(record, "createdAt", "created_at", default="")),
            role=str(record.get("role") or ""),
        )


def count_critical(rows: List[ResultRow]) -> int:
    return sum(1 for row in rows if row.flag in ABNORMAL_FLAGS)


@dataclass(eq=False)
class TestResult:
    """
    Result record of one run.

    Rows are fixed at creation. Comments are the only part mutated
    afterwards, always by rewriting the whole array.
    """
    __test__ = False

    run_id: str
    instrument: str
    performed_at: str
    patient_name: str
    sex: str
    rows: List[ResultRow] = field(default_factory=list)
    comments: List[CommentItem] = field(default_factory=list)
    order_id: Optional[str] = None
    id: Optional[str] = None
    status: str = STATUS_COMPLETED
    collected: Optional[str] = None
    notes: Optional[str] = None
    hl7_raw: str = ""
    run_by_user_id: Optional[str] = None
    run_by_name: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    critical_count: Optional[int] = None
    events: List = field(default_factory=list, repr=False)

    def critical_value_count(self) -> int:
        if self.critical_count is not None:
            return self.critical_count
        return count_critical(self.rows)

    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.rows),
            "normal": sum(1 for r in self.rows if r.flag == FLAG_NORMAL),
            "high": sum(1 for r in self.rows if r.flag == FLAG_HIGH),
            "low": sum(1 for r in self.rows if r.flag == FLAG_LOW),
        }

    def complete(self, result_id: str, degraded: bool) -> None:
        """Record the persisted id and raise TestRunCompleted."""
        self.id = result_id
        self.events.append(
            TestRunCompleted(
                run_id=self.run_id,
                result_id=result_id,
                order_id=self.order_id or "",
                instrument=self.instrument,
                critical_count=self.critical_value_count(),
                degraded=degraded,
                completed_at=utcnow(),
            )
        )

    def add_comment(self, text: str, author: Optional[str], rng: random.Random, role: str = "") -> CommentItem:
        body = (text or "").strip()
        if not body:
            raise EmptyComment()
        author_name = author.strip() if author and author.strip() else DEFAULT_COMMENT_AUTHOR
        comment = CommentItem(
            id=identifiers.generate_comment_id(rng),
            author=author_name,
            author_initials=initials_for(author_name),
            text=body,
            created_at=utcnow().isoformat(),
            role=role,
        )
        self.comments.append(comment)
        self._comments_changed()
        return comment

    def edit_comment(self, comment_id: str, text: str) -> CommentItem:
        body = (text or "").strip()
        if not body:
            raise EmptyComment()
        comment = self._find_comment(comment_id)
        comment.text = body
        self._comments_changed()
        return comment

    def delete_comment(self, comment_id: str, confirmed: bool) -> None:
        if not confirmed:
            raise ConfirmationRequired(f"Deleting comment {comment_id} requires confirmation")
        comment = self._find_comment(comment_id)
        self.comments = [c for c in self.comments if c is not comment]
        self._comments_changed()

    def mark_deleted(self) -> None:
        self.events.append(
            TestResultDeleted(
                result_id=self.id or "",
                run_id=self.run_id,
                deleted_at=utcnow(),
            )
        )

    def _find_comment(self, comment_id: str) -> CommentItem:
        for comment in self.comments:
            if comment.id == str(comment_id):
                return comment
        raise CommentNotFound(comment_id)

    def _comments_changed(self) -> None:
        self.events.append(
            CommentsUpdated(
                result_id=self.id or "",
                run_id=self.run_id,
                comment_count=len(self.comments),
                updated_at=utcnow(),
            )
        )

    def comments_record(self) -> List[Dict[str, Any]]:
        return [c.to_record() for c in self.comments]

    def to_record(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "order_id": self.order_id,
            "instrument": self.instrument,
            "performed_at": self.performed_at,
            "status": self.status,
            "patientName": self.patient_name,
            "sex": self.sex,
            "collected": self.collected or self.performed_at,
            "criticalCount": self.critical_value_count(),
            "rows": [r.to_record() for r in self.rows],
            "comments": self.comments_record(),
            "notes": self.notes,
            "hl7_raw": self.hl7_raw,
            "runByUserId": self.run_by_user_id or "unknown",
            "runByName": self.run_by_name or "unknown",
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TestResult":
        rows = record.get("rows") if isinstance(record.get("rows"), list) else []
        comments = record.get("comments") if isinstance(record.get("comments"), list) else []
        critical = record.get("criticalCount")
        run_id = _first(record, "run_id", "id", default="")
        return cls(
            id=None if record.get("id") is None else str(record["id"]),
            run_id=str(run_id),
            order_id=record.get("order_id"),
            instrument=str(record.get("instrument") or "Unknown"),
            performed_at=str(_first(record, "performed_at", "created_at", "createdAt", default="")),
            status=str(record.get("status") or ""),
            patient_name=str(_first(record, "patientName", "patient_name", default="Unknown")),
            sex=str(record.get("sex") or "Unknown"),
            collected=record.get("collected"),
            notes=record.get("notes"),
            hl7_raw=str(_first(record, "hl7_raw", "raw_hl7", default="")),
            run_by_user_id=record.get("runByUserId"),
            run_by_name=record.get("runByName"),
            reviewed_by=_first(record, "reviewedBy", "reviewed_by"),
            reviewed_at=_first(record, "reviewedAt", "reviewed_at"),
            critical_count=int(critical) if isinstance(critical, (int, float)) else None,
            rows=[ResultRow.from_record(r) for r in rows if isinstance(r, dict)],
            comments=[CommentItem.from_record(c) for c in comments if isinstance(c, dict)],
        )


@dataclass
class SideEffectOutcome:
    """Outcome of one best-effort step (row mirroring, linking, depletion...)."""
    step: str
    target: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, step: str, target: str) -> "SideEffectOutcome":
        return cls(step=step, target=target, ok=True)

    @classmethod
    def failure(cls, step: str, target: str, error: Exception) -> "SideEffectOutcome":
        return cls(step=step, target=target, ok=False, error=str(error) or type(error).__name__)

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "target": self.target, "ok": self.ok, "error": self.error}


@dataclass
class RunOutcome:
    run_id: str
    result_id: str
    order_id: str
    rows: List[ResultRow]
    state: RunState
    side_effects: List[SideEffectOutcome] = field(default_factory=list)
    result_id_synthetic: bool = False

    @property
    def degraded(self) -> bool:
        return self.result_id_synthetic or any(not o.ok for o in self.side_effects)

    @property
    def failed_side_effects(self) -> List[SideEffectOutcome]:
        return [o for o in self.side_effects if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "result_id": self.result_id,
            "order_id": self.order_id,
            "state": self.state.value,
            "degraded": self.degraded,
            "rows": [
                {
                    "run_id": self.run_id,
                    "test_result_id": self.result_id,
                    **row.to_record(),
                }
                for row in self.rows
            ],
            "side_effects": [o.to_dict() for o in self.side_effects],
        }

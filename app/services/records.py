"""
Domain records for the breeding engine.

These are plain, immutable values decoupled from the SQLAlchemy rows in
``app/models.py``. PD fields live in a single optional ``PDOutcome`` so a
cycle can never carry a PD result without ``pd_done`` (and vice versa).
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ValidationError
from .due_dates import as_date


class AIStatus(str, Enum):
    DONE = "done"
    PENDING = "pending"
    FAILED = "failed"


class PDResult(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    INCONCLUSIVE = "inconclusive"


class CycleStatus(str, Enum):
    DELIVERED = "Delivered"
    PREGNANT = "Pregnant"
    NOT_PREGNANT = "Not Pregnant"
    FAILED = "Failed"
    PENDING = "Pending"


class SortGroup(str, Enum):
    """Priority buckets, most urgent first."""
    MOVE_TO_MILKING = "move_to_milking"
    ABOUT_TO_DELIVER = "about_to_deliver"
    PD_OVERDUE = "pd_overdue"
    PD_DUE = "pd_due"
    FLAGGED_FOR_MOVE = "flagged_for_move"
    OTHERS = "others"

    @property
    def rank(self) -> int:
        return _SORT_GROUP_ORDER.index(self)


_SORT_GROUP_ORDER = list(SortGroup)


def _enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field_name}: {value!r}") from e


@dataclass(frozen=True)
class PDOutcome:
    result: PDResult
    date: date

    def __post_init__(self):
        object.__setattr__(self, "result", _enum(PDResult, self.result, "pd_result"))
        d = as_date(self.date, "pd_date")
        if d is None:
            raise ValidationError("A PD outcome needs a pd_date")
        object.__setattr__(self, "date", d)


@dataclass(frozen=True)
class BreedingCycle:
    cow_id: Any
    service_number: int
    ai_date: date
    ai_status: AIStatus = AIStatus.DONE
    pd: Optional[PDOutcome] = None
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    calf_gender: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[Any] = None

    def __post_init__(self):
        try:
            number = int(self.service_number)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid service_number: {self.service_number!r}") from e
        if number < 1:
            raise ValidationError(f"service_number must be positive, got {self.service_number!r}")
        object.__setattr__(self, "service_number", number)
        object.__setattr__(self, "ai_date", as_date(self.ai_date, "ai_date"))
        if self.ai_date is None:
            raise ValidationError("ai_date is required")
        object.__setattr__(self, "ai_status", _enum(AIStatus, self.ai_status, "ai_status"))
        object.__setattr__(
            self, "expected_delivery_date", as_date(self.expected_delivery_date, "expected_delivery_date")
        )
        object.__setattr__(
            self, "actual_delivery_date", as_date(self.actual_delivery_date, "actual_delivery_date")
        )

    @property
    def pd_done(self) -> bool:
        return self.pd is not None

    @property
    def pd_result(self) -> Optional[PDResult]:
        return self.pd.result if self.pd else None

    @property
    def pd_date(self) -> Optional[date]:
        return self.pd.date if self.pd else None

    def with_pd(self, result, pd_date) -> "BreedingCycle":
        return replace(self, pd=PDOutcome(result=result, date=pd_date))

    @classmethod
    def from_fields(
        cls,
        *,
        cow_id: Any,
        service_number: int,
        ai_date,
        ai_status="done",
        pd_done: bool = False,
        pd_result=None,
        pd_date=None,
        expected_delivery_date=None,
        actual_delivery_date=None,
        calf_gender: Optional[str] = None,
        notes: Optional[str] = None,
        id: Optional[Any] = None,
    ) -> "BreedingCycle":
        """Build from flat, row-shaped fields, enforcing PD consistency."""
        if pd_done:
            if pd_result is None or pd_date is None:
                raise ValidationError("pd_done requires both pd_result and pd_date")
            pd = PDOutcome(result=pd_result, date=pd_date)
        else:
            if pd_result is not None or pd_date is not None:
                raise ValidationError("pd_result/pd_date are only allowed once pd_done is set")
            pd = None
        return cls(
            cow_id=cow_id,
            service_number=service_number,
            ai_date=ai_date,
            ai_status=ai_status,
            pd=pd,
            expected_delivery_date=expected_delivery_date,
            actual_delivery_date=actual_delivery_date,
            calf_gender=calf_gender,
            notes=notes,
            id=id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "cow_id": self.cow_id,
            "service_number": self.service_number,
            "ai_date": self.ai_date.isoformat(),
            "ai_status": self.ai_status.value,
            "pd_done": self.pd_done,
            "pd_result": self.pd_result.value if self.pd_result else None,
            "pd_date": self.pd_date.isoformat() if self.pd_date else None,
            "expected_delivery_date": _iso(self.expected_delivery_date),
            "actual_delivery_date": _iso(self.actual_delivery_date),
            "calf_gender": self.calf_gender,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class MilkingFlags:
    needs_milking_move: bool = False
    needs_milking_move_at: Optional[datetime] = None
    moved_to_milking: bool = False
    moved_to_milking_at: Optional[datetime] = None


@dataclass(frozen=True)
class Cow:
    id: Any
    cow_number: str
    flags: MilkingFlags = field(default_factory=MilkingFlags)

    @property
    def needs_milking_move(self) -> bool:
        return self.flags.needs_milking_move

    @property
    def moved_to_milking(self) -> bool:
        return self.flags.moved_to_milking


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil.parser import isoparse

from ..errors import ValidationError

DateLike = Union[date, str]

# Closed intervals, in days to delivery
ABOUT_TO_DELIVER_WINDOW = (0, 35)
MOVE_TO_CLOSE_UP_WINDOW = (28, 35)
MOVE_TO_MILKING_WINDOW = (45, 75)  # about two months before delivery

@dataclass(frozen=True)
class AlertConfig:
    """Thresholds used by every due-date computation.

    ``pd_overdue_days`` is the grace threshold after which a missing PD counts
    as overdue rather than just due. When unset it equals ``pd_alert_days``, so
    "due" fires on the threshold day and "overdue" the day after.
    """
    pd_alert_days: int = 60
    delivery_expected_days: int = 283
    pd_overdue_days: Optional[int] = None
    delivery_alert_days: int = 7

    @property
    def overdue_days(self) -> int:
        return self.pd_alert_days if self.pd_overdue_days is None else self.pd_overdue_days

DEFAULT_CONFIG = AlertConfig()

def as_date(value: Optional[DateLike], field: str = "date") -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return isoparse(value.strip()).date()
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid {field}: {value!r}") from e
    raise ValidationError(f"Invalid {field}: expected a date, got {type(value).__name__}")

def _required(value: Optional[DateLike], field: str) -> date:
    d = as_date(value, field)
    if d is None:
        raise ValidationError(f"Missing {field}")
    return d

def days_since_ai(ai_date: DateLike, today: DateLike) -> int:
    return (_required(today, "today") - _required(ai_date, "ai_date")).days

def pd_target_date(ai_date: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> date:
    return _required(ai_date, "ai_date") + timedelta(days=config.pd_alert_days)

def days_to_pd(ai_date: DateLike, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> int:
    """Days left until the PD target date (negative once past it)."""
    return (pd_target_date(ai_date, config) - _required(today, "today")).days

def is_pd_due(ai_date: DateLike, pd_done: bool, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> bool:
    if pd_done:
        return False
    return _required(today, "today") >= pd_target_date(ai_date, config)

def is_pd_overdue(ai_date: DateLike, pd_done: bool, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> bool:
    if pd_done:
        return False
    return days_since_ai(ai_date, today) > config.overdue_days

def delivery_due_date(cycle, config: AlertConfig = DEFAULT_CONFIG) -> date:
    explicit = as_date(getattr(cycle, "expected_delivery_date", None), "expected_delivery_date")
    if explicit is not None:
        return explicit
    return _required(cycle.ai_date, "ai_date") + timedelta(days=config.delivery_expected_days)

def days_to_delivery(expected_date: Optional[DateLike], today: DateLike) -> Optional[int]:
    expected = as_date(expected_date, "expected_delivery_date")
    if expected is None:
        return None
    return (expected - _required(today, "today")).days

def _in_window(days: Optional[int], window) -> bool:
    if days is None:
        return False
    lo, hi = window
    return lo <= days <= hi

def is_about_to_deliver(days: Optional[int]) -> bool:
    return _in_window(days, ABOUT_TO_DELIVER_WINDOW)

def is_move_to_close_up(days: Optional[int]) -> bool:
    return _in_window(days, MOVE_TO_CLOSE_UP_WINDOW)

def is_move_to_milking(days: Optional[int], moved_to_milking: bool = False) -> bool:
    return not moved_to_milking and _in_window(days, MOVE_TO_MILKING_WINDOW)

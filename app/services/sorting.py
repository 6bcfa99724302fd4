from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .due_dates import (
    AlertConfig,
    DEFAULT_CONFIG,
    DateLike,
    as_date,
    days_to_delivery,
    days_to_pd,
    is_about_to_deliver,
    is_move_to_milking,
    is_pd_due,
    is_pd_overdue,
)
from .records import CycleStatus, SortGroup
from .summary import CowSummary

class FilterView(str, Enum):
    ALL = "all"
    ABOUT_TO_DELIVER = "about_to_deliver"
    PD_DUE = "pd_due"
    FLAGGED = "flagged"

@dataclass(frozen=True)
class ClassifiedSummary:
    bucket: SortGroup
    summary: CowSummary
    day_count: Optional[int] = None

    def sort_key(self):
        return (
            self.bucket.rank,
            self.day_count if self.day_count is not None else 0,
            self.summary.cow_number,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = self.summary.to_dict()
        out["bucket"] = self.bucket.value
        out["day_count"] = self.day_count
        return out

def _expecting(summary: CowSummary) -> bool:
    # Positive PD and not yet delivered
    return summary.status == CycleStatus.PREGNANT

def classify(summary: CowSummary, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> ClassifiedSummary:
    today = as_date(today, "today")
    to_delivery = days_to_delivery(summary.expected_delivery_date, today)
    expecting = _expecting(summary)

    if expecting and is_move_to_milking(to_delivery, summary.moved_to_milking):
        return ClassifiedSummary(SortGroup.MOVE_TO_MILKING, summary, to_delivery)
    if expecting and is_about_to_deliver(to_delivery):
        return ClassifiedSummary(SortGroup.ABOUT_TO_DELIVER, summary, to_delivery)

    ai_date = summary.latest_ai_date
    if is_pd_overdue(ai_date, summary.pd_done, today, config):
        return ClassifiedSummary(SortGroup.PD_OVERDUE, summary, days_to_pd(ai_date, today, config))
    if is_pd_due(ai_date, summary.pd_done, today, config):
        return ClassifiedSummary(SortGroup.PD_DUE, summary, days_to_pd(ai_date, today, config))

    if summary.needs_milking_move and not summary.moved_to_milking:
        return ClassifiedSummary(SortGroup.FLAGGED_FOR_MOVE, summary)
    return ClassifiedSummary(SortGroup.OTHERS, summary)

def classify_and_sort(
    summaries: Iterable[CowSummary],
    today: DateLike,
    config: AlertConfig = DEFAULT_CONFIG,
) -> List[ClassifiedSummary]:
    """Bucket every summary and return them most urgent first.

    Order is bucket, then the bucket's day count (soonest deadline first),
    then cow number, so identical inputs always give the same order.
    """
    today = as_date(today, "today")
    classified = [classify(s, today, config) for s in summaries]
    classified.sort(key=ClassifiedSummary.sort_key)
    return classified

def filter_summaries(
    summaries: Iterable[CowSummary],
    view: FilterView,
    today: DateLike,
    config: AlertConfig = DEFAULT_CONFIG,
    include_delivered: bool = True,
) -> List[CowSummary]:
    today = as_date(today, "today")
    view = FilterView(view)
    out = []
    for s in summaries:
        if not include_delivered and s.status == CycleStatus.DELIVERED:
            continue
        if view == FilterView.ABOUT_TO_DELIVER:
            keep = _expecting(s) and is_about_to_deliver(days_to_delivery(s.expected_delivery_date, today))
        elif view == FilterView.PD_DUE:
            keep = is_pd_due(s.latest_ai_date, s.pd_done, today, config)
        elif view == FilterView.FLAGGED:
            keep = s.needs_milking_move and not s.moved_to_milking
        else:
            keep = True
        if keep:
            out.append(s)
    return out

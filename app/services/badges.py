from __future__ import annotations
from typing import List, Optional

from .due_dates import AlertConfig, DEFAULT_CONFIG, DateLike, days_to_delivery, is_move_to_close_up, is_pd_due, pd_target_date
from .records import CycleStatus
from .summary import CowSummary

def delivery_badge(days: Optional[int]) -> Optional[str]:
    if days is None:
        return None
    if days == 0:
        return "Due Today"
    if days == 1:
        return "Due Tomorrow"
    if 2 <= days <= 10:
        return f"Due in {days} days"
    if is_move_to_close_up(days):
        return "Move to Close-up Group"
    return None

def pd_badge(summary: CowSummary, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> Optional[str]:
    if not is_pd_due(summary.latest_ai_date, summary.pd_done, today, config):
        return None
    return f"PD Due ({pd_target_date(summary.latest_ai_date, config).strftime('%d-%m')})"

def summary_badges(summary: CowSummary, today: DateLike, config: AlertConfig = DEFAULT_CONFIG) -> List[str]:
    badges: List[str] = []
    if summary.status == CycleStatus.PREGNANT:
        b = delivery_badge(days_to_delivery(summary.expected_delivery_date, today))
        if b:
            badges.append(b)
    b = pd_badge(summary, today, config)
    if b:
        badges.append(b)
    if summary.needs_milking_move and not summary.moved_to_milking:
        badges.append("Flagged for Move")
    if summary.moved_to_milking:
        badges.append("Moved to Milking")
    return badges

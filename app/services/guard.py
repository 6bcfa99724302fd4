"""
Guard for opening a new breeding cycle.

A cow may carry at most one unresolved cycle: a new AI attempt is only allowed
once the PD outcome of the current cycle has been recorded. The check runs
against the record store (anything with ``list_cycles_for_cow``), not against
derived summaries.

The check and the subsequent ``create_cycle`` are two separate steps and are
not atomic. ``SqlRecordStore.create_cycle`` re-runs the check inside its own
transaction and the ``uix_open_cycle_per_cow`` index rejects a concurrent
second open cycle at the storage level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .records import BreedingCycle
from .summary import select_current_cycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardResult:
    allowed: bool
    blocking_record: Optional[BreedingCycle] = None

    def to_dict(self):
        return {
            "allowed": self.allowed,
            "blocking_record": self.blocking_record.to_dict() if self.blocking_record else None,
        }


def check_cycles(cycles: Iterable[BreedingCycle]) -> GuardResult:
    current = select_current_cycle(cycles)
    if current is None or current.pd_done:
        return GuardResult(allowed=True)
    return GuardResult(allowed=False, blocking_record=current)


def can_start_new_cycle(cow_id: Any, store) -> GuardResult:
    result = check_cycles(store.list_cycles_for_cow(cow_id))
    if not result.allowed:
        logger.warning(
            "New cycle blocked for cow %s: service #%s from %s has no PD yet.",
            cow_id, result.blocking_record.service_number, result.blocking_record.ai_date,
        )
    return result

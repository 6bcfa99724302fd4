from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from .due_dates import AlertConfig, DEFAULT_CONFIG, delivery_due_date
from .records import BreedingCycle, Cow, CycleStatus, PDResult
from .status import derive_status

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CowSummary:
    cow_id: Any
    cow_number: str
    latest_ai_date: date
    service_number: int
    status: CycleStatus
    expected_delivery_date: date
    pd_date: Optional[date]
    delivered_date: Optional[date]
    notes: Optional[str]
    needs_milking_move: bool
    needs_milking_move_at: Optional[datetime]
    moved_to_milking: bool
    moved_to_milking_at: Optional[datetime]
    cycle: BreedingCycle

    @property
    def pd_done(self) -> bool:
        return self.cycle.pd_done

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cow_id": self.cow_id,
            "cow_number": self.cow_number,
            "latest_ai_date": self.latest_ai_date.isoformat(),
            "service_number": self.service_number,
            "status": self.status.value,
            "expected_delivery_date": self.expected_delivery_date.isoformat(),
            "pd_done": self.pd_done,
            "pd_date": self.pd_date.isoformat() if self.pd_date else None,
            "delivered_date": self.delivered_date.isoformat() if self.delivered_date else None,
            "notes": self.notes,
            "needs_milking_move": self.needs_milking_move,
            "needs_milking_move_at": self.needs_milking_move_at.isoformat() if self.needs_milking_move_at else None,
            "moved_to_milking": self.moved_to_milking,
            "moved_to_milking_at": self.moved_to_milking_at.isoformat() if self.moved_to_milking_at else None,
            "cycle_id": self.cycle.id,
        }

def select_current_cycle(cycles: Iterable[BreedingCycle]) -> Optional[BreedingCycle]:
    """Latest cycle by AI date; equal dates resolve to the higher service number."""
    current = None
    for c in cycles:
        if current is None or (c.ai_date, c.service_number) > (current.ai_date, current.service_number):
            current = c
    return current

def build_summary(cow: Cow, cycle: BreedingCycle, config: AlertConfig = DEFAULT_CONFIG) -> CowSummary:
    status = derive_status(cycle)
    if status == CycleStatus.DELIVERED and cycle.pd_result != PDResult.POSITIVE:
        logger.warning(
            "Cow %s cycle #%s has a delivery without a positive PD.",
            cow.cow_number, cycle.service_number,
        )
    return CowSummary(
        cow_id=cow.id,
        cow_number=cow.cow_number,
        latest_ai_date=cycle.ai_date,
        service_number=cycle.service_number,
        status=status,
        expected_delivery_date=delivery_due_date(cycle, config),
        pd_date=cycle.pd_date,
        delivered_date=cycle.actual_delivery_date,
        notes=cycle.notes,
        needs_milking_move=cow.flags.needs_milking_move,
        needs_milking_move_at=cow.flags.needs_milking_move_at,
        moved_to_milking=cow.flags.moved_to_milking,
        moved_to_milking_at=cow.flags.moved_to_milking_at,
        cycle=cycle,
    )

def build_summaries(
    cycles: Iterable[BreedingCycle],
    cows: Iterable[Cow],
    config: AlertConfig = DEFAULT_CONFIG,
) -> List[CowSummary]:
    cow_map = {c.id: c for c in cows}

    by_cow: Dict[Any, List[BreedingCycle]] = defaultdict(list)
    for cycle in cycles:
        by_cow[cycle.cow_id].append(cycle)

    summaries: List[CowSummary] = []
    for cow_id, cow_cycles in by_cow.items():
        cow = cow_map.get(cow_id)
        if cow is None:
            logger.warning("Skipping %d cycle(s) for unknown cow %s.", len(cow_cycles), cow_id)
            continue
        current = select_current_cycle(cow_cycles)
        summaries.append(build_summary(cow, current, config))
    return summaries

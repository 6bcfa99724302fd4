from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Any, Dict, Iterable, List

from .due_dates import AlertConfig, DEFAULT_CONFIG, DateLike, as_date, delivery_due_date
from .records import BreedingCycle, Cow, CycleStatus
from .status import derive_status
from .summary import select_current_cycle

@dataclass(frozen=True)
class Alert:
    type: str
    title: str
    body: str
    cow_numbers: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def build_alerts(
    cycles: Iterable[BreedingCycle],
    cows: Iterable[Cow],
    today: DateLike,
    config: AlertConfig = DEFAULT_CONFIG,
) -> List[Alert]:
    """Daily digest: PD checks that are due and deliveries expected soon.

    Only each cow's current cycle is considered, so a resolved older cycle
    never raises an alert.
    """
    today = as_date(today, "today")
    cow_map = {c.id: c for c in cows}

    by_cow: Dict[Any, List[BreedingCycle]] = {}
    for cycle in cycles:
        by_cow.setdefault(cycle.cow_id, []).append(cycle)

    pd_cutoff = today - timedelta(days=config.pd_alert_days)
    delivery_end = today + timedelta(days=config.delivery_alert_days)

    pd_due: List[str] = []
    deliveries: List[tuple] = []
    for cow_id, cow_cycles in by_cow.items():
        cow = cow_map.get(cow_id)
        if cow is None:
            continue
        current = select_current_cycle(cow_cycles)

        if not current.pd_done and current.ai_date <= pd_cutoff:
            pd_due.append(cow.cow_number)

        if derive_status(current) == CycleStatus.PREGNANT:
            expected = delivery_due_date(current, config)
            if today <= expected <= delivery_end:
                deliveries.append((expected, cow.cow_number))

    alerts: List[Alert] = []
    if pd_due:
        pd_due.sort()
        alerts.append(Alert(
            type="pd_check_due",
            title=f"PD Check Due - {len(pd_due)} cow(s)",
            body=f"PD check needed for: {', '.join(pd_due)}",
            cow_numbers=pd_due,
        ))

    for expected, cow_number in sorted(deliveries):
        alerts.append(Alert(
            type="delivery_due",
            title="Delivery Expected Soon",
            body=f"Cow {cow_number} expected to deliver by {expected.isoformat()}",
            cow_numbers=[cow_number],
        ))
    return alerts

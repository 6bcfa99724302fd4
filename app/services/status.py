from __future__ import annotations

from .records import AIStatus, BreedingCycle, CycleStatus, PDResult

def derive_status(cycle: BreedingCycle) -> CycleStatus:
    """Lifecycle status of one breeding cycle; first matching rule wins.

    An ``inconclusive`` PD matches neither PD rule and so reads as Pending:
    the cow still needs a conclusive diagnosis.
    """
    if cycle.actual_delivery_date is not None:
        return CycleStatus.DELIVERED
    if cycle.pd_result == PDResult.POSITIVE:
        return CycleStatus.PREGNANT
    if cycle.pd_result == PDResult.NEGATIVE:
        return CycleStatus.NOT_PREGNANT
    if cycle.ai_status == AIStatus.FAILED:
        return CycleStatus.FAILED
    return CycleStatus.PENDING

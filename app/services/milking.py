from __future__ import annotations
from dataclasses import asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import TransitionError
from .records import Cow, MilkingFlags

class MilkingState(str, Enum):
    NORMAL = "normal"
    FLAGGED_FOR_MOVE = "flagged_for_move"
    MOVED_TO_MILKING = "moved_to_milking"

class MilkingAction(str, Enum):
    FLAG_FOR_MOVE = "flag_for_move"
    UNDO_FLAG = "undo_flag"
    MARK_MOVED = "mark_moved"

# MOVED_TO_MILKING is terminal: nothing leads back to NORMAL.
TRANSITIONS = {
    (MilkingState.NORMAL, MilkingAction.FLAG_FOR_MOVE): MilkingState.FLAGGED_FOR_MOVE,
    (MilkingState.FLAGGED_FOR_MOVE, MilkingAction.UNDO_FLAG): MilkingState.NORMAL,
    (MilkingState.FLAGGED_FOR_MOVE, MilkingAction.MARK_MOVED): MilkingState.MOVED_TO_MILKING,
}

def milking_state(flags: MilkingFlags) -> MilkingState:
    if flags.moved_to_milking:
        return MilkingState.MOVED_TO_MILKING
    if flags.needs_milking_move:
        return MilkingState.FLAGGED_FOR_MOVE
    return MilkingState.NORMAL

def apply_transition(
    flags: MilkingFlags,
    action: MilkingAction,
    now: datetime,
    cow_id: Any = None,
) -> MilkingFlags:
    action = MilkingAction(action)
    state = milking_state(flags)
    if (state, action) not in TRANSITIONS:
        raise TransitionError(cow_id, state.value, action.value)

    if action == MilkingAction.FLAG_FOR_MOVE:
        return replace(flags, needs_milking_move=True, needs_milking_move_at=now)
    if action == MilkingAction.UNDO_FLAG:
        return replace(flags, needs_milking_move=False, needs_milking_move_at=None)
    return replace(
        flags,
        moved_to_milking=True,
        moved_to_milking_at=now,
        needs_milking_move=False,
        needs_milking_move_at=None,
    )

def flags_patch(before: MilkingFlags, after: MilkingFlags) -> Dict[str, Any]:
    """Only the fields a transition changed, ready for ``update_cow_flags``."""
    old, new = asdict(before), asdict(after)
    return {k: v for k, v in new.items() if old[k] != v}

class MilkingGroupWorkflow:
    """
    Drives the milking-group move flags of a cow through the record store.

    The store needs ``get_cow(cow_id) -> Cow`` and
    ``update_cow_flags(cow_id, patch) -> Cow``.
    """

    def __init__(self, store):
        self.store = store

    def _run(self, cow_id: Any, action: MilkingAction, now: Optional[datetime]) -> Cow:
        cow = self.store.get_cow(cow_id)
        updated = apply_transition(cow.flags, action, now or datetime.utcnow(), cow_id=cow_id)
        return self.store.update_cow_flags(cow_id, flags_patch(cow.flags, updated))

    def flag_for_move(self, cow_id: Any, now: Optional[datetime] = None) -> Cow:
        return self._run(cow_id, MilkingAction.FLAG_FOR_MOVE, now)

    def undo_flag(self, cow_id: Any, now: Optional[datetime] = None) -> Cow:
        return self._run(cow_id, MilkingAction.UNDO_FLAG, now)

    def mark_moved(self, cow_id: Any, now: Optional[datetime] = None) -> Cow:
        return self._run(cow_id, MilkingAction.MARK_MOVED, now)

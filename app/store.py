"""
SQLAlchemy-backed record store for cows, breeding cycles and alert settings.

Rows are converted to the immutable records of ``app.services.records`` on the
way out, so the engine never touches ORM objects.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .errors import ConflictError, CycleGuardError, NotFoundError, ValidationError
from .models import AppSetting, BreedingCycle as CycleRow, Cow as CowRow
from .services.due_dates import AlertConfig, as_date
from .services.guard import check_cycles
from .services.records import BreedingCycle, Cow, MilkingFlags, PDResult
from .services.summary import select_current_cycle

logger = logging.getLogger(__name__)

ALERT_SETTING_KEYS = ("pd_alert_days", "delivery_expected_days")

CYCLE_FIELDS = {
    "ai_date", "ai_status", "semen_batch", "technician_name",
    "pd_done", "pd_result", "pd_date",
    "expected_delivery_date", "actual_delivery_date", "calf_gender", "notes",
}
DATE_FIELDS = {"ai_date", "pd_date", "expected_delivery_date", "actual_delivery_date"}
FLAG_FIELDS = {"needs_milking_move", "needs_milking_move_at", "moved_to_milking", "moved_to_milking_at"}

def cycle_from_row(row: CycleRow) -> BreedingCycle:
    return BreedingCycle.from_fields(
        id=row.id,
        cow_id=row.cow_id,
        service_number=row.service_number,
        ai_date=row.ai_date,
        ai_status=row.ai_status,
        pd_done=bool(row.pd_done),
        pd_result=row.pd_result,
        pd_date=row.pd_date,
        expected_delivery_date=row.expected_delivery_date,
        actual_delivery_date=row.actual_delivery_date,
        calf_gender=row.calf_gender,
        notes=row.notes,
    )

def cow_from_row(row: CowRow) -> Cow:
    return Cow(
        id=row.id,
        cow_number=row.cow_number,
        flags=MilkingFlags(
            needs_milking_move=bool(row.needs_milking_move),
            needs_milking_move_at=row.needs_milking_move_at,
            moved_to_milking=bool(row.moved_to_milking),
            moved_to_milking_at=row.moved_to_milking_at,
        ),
    )

def _value(v):
    return v.value if hasattr(v, "value") else v

def _cycle_fields(data: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
    """Column values for a cycle row, enums unwrapped and dates parsed."""
    fields = {}
    for key, value in data.items():
        if key not in CYCLE_FIELDS:
            if strict:
                raise ValueError(f"Unknown breeding cycle field: {key}")
            continue
        value = _value(value)
        if key in DATE_FIELDS:
            value = as_date(value, key)
        fields[key] = value
    return fields

class SqlRecordStore:
    def __init__(self, db: Session):
        self.db = db

    # ---------------------------
    # Cows
    # ---------------------------
    def _cow_row(self, cow_id: Any) -> CowRow:
        row = self.db.get(CowRow, cow_id)
        if row is None:
            raise NotFoundError(f"Cow {cow_id} not found.")
        return row

    def list_cows(self) -> List[Cow]:
        return [cow_from_row(r) for r in self.db.query(CowRow).order_by(CowRow.cow_number).all()]

    def get_cow(self, cow_id: Any) -> Cow:
        return cow_from_row(self._cow_row(cow_id))

    def find_cow_by_number(self, cow_number: str) -> Optional[Cow]:
        row = self.db.query(CowRow).filter(CowRow.cow_number == cow_number).first()
        return cow_from_row(row) if row else None

    def create_cow(self, cow_number: str, breed: str = "Holstein") -> Cow:
        row = CowRow(cow_number=cow_number, breed=breed)
        self.db.add(row)
        self._commit()
        logger.info("Created cow %s (id=%s).", row.cow_number, row.id)
        return cow_from_row(row)

    def update_cow_flags(self, cow_id: Any, patch: Dict[str, Any]) -> Cow:
        row = self._cow_row(cow_id)
        for key, value in patch.items():
            if key not in FLAG_FIELDS:
                raise ValueError(f"Unknown cow flag field: {key}")
            setattr(row, key, value)
        self._commit()
        logger.info("Updated milking flags for cow %s: %s", row.cow_number, sorted(patch))
        return cow_from_row(row)

    # ---------------------------
    # Breeding cycles
    # ---------------------------
    def _cycle_row(self, cycle_id: Any) -> CycleRow:
        row = self.db.get(CycleRow, cycle_id)
        if row is None:
            raise NotFoundError(f"Breeding cycle {cycle_id} not found.")
        return row

    def get_cycle(self, cycle_id: Any) -> BreedingCycle:
        return cycle_from_row(self._cycle_row(cycle_id))

    def list_cycles_for_cow(self, cow_id: Any) -> List[BreedingCycle]:
        rows = (
            self.db.query(CycleRow)
            .filter(CycleRow.cow_id == cow_id)
            .order_by(CycleRow.ai_date, CycleRow.service_number)
            .all()
        )
        return [cycle_from_row(r) for r in rows]

    def list_all_cycles(self) -> List[BreedingCycle]:
        rows = self.db.query(CycleRow).order_by(CycleRow.cow_id, CycleRow.ai_date).all()
        return [cycle_from_row(r) for r in rows]

    def next_service_number(self, cow_id: Any) -> int:
        """One past the highest number used, so deleted cycles never free a number."""
        highest = self.db.query(func.max(CycleRow.service_number)).filter(CycleRow.cow_id == cow_id).scalar()
        return int(highest or 0) + 1

    def create_cycle(self, data: Dict[str, Any]) -> BreedingCycle:
        """Insert a new AI attempt, re-checking the open-cycle guard first.

        The new AI date may not precede the current cycle's, otherwise the
        new open cycle would never become current and the guard could not
        see it.
        """
        cow_id = data["cow_id"]
        self._cow_row(cow_id)

        cycles = self.list_cycles_for_cow(cow_id)
        guard = check_cycles(cycles)
        if not guard.allowed:
            raise CycleGuardError(cow_id, guard.blocking_record)

        fields = _cycle_fields(data)
        fields.setdefault("ai_status", "done")
        fields["pd_done"] = False
        fields.pop("pd_result", None)
        fields.pop("pd_date", None)

        current = select_current_cycle(cycles)
        ai_date = fields.get("ai_date")
        if current is not None and ai_date is not None and ai_date < current.ai_date:
            raise ValidationError(
                f"AI date {ai_date} is before the current cycle's AI date {current.ai_date}."
            )

        row = CycleRow(cow_id=cow_id, service_number=self.next_service_number(cow_id), **fields)
        # validates the record before it is written
        cycle_from_row(row)
        self.db.add(row)
        self._commit()
        logger.info("Created cycle #%s for cow %s (AI %s).", row.service_number, cow_id, row.ai_date)
        return cycle_from_row(row)

    def update_cycle(self, cycle_id: Any, patch: Dict[str, Any]) -> BreedingCycle:
        row = self._cycle_row(cycle_id)
        try:
            for key, value in _cycle_fields(patch, strict=True).items():
                setattr(row, key, value)
            cycle = cycle_from_row(row)
        except ValueError:
            self.db.rollback()
            raise
        self._commit()
        return cycle

    def record_pd(self, cycle_id: Any, pd_result, pd_date: date) -> BreedingCycle:
        row = self._cycle_row(cycle_id)
        if row.pd_done:
            raise ConflictError(f"PD already recorded for cycle {cycle_id}.")
        logger.info("Recording PD %s for cycle %s.", _value(pd_result), cycle_id)
        return self.update_cycle(cycle_id, {"pd_done": True, "pd_result": pd_result, "pd_date": pd_date})

    def record_delivery(
        self,
        cycle_id: Any,
        actual_delivery_date: date,
        calf_gender: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BreedingCycle:
        row = self._cycle_row(cycle_id)
        if row.actual_delivery_date is not None:
            raise ConflictError(f"Delivery already recorded for cycle {cycle_id}.")
        if row.pd_result != PDResult.POSITIVE.value:
            raise ConflictError("Delivery can only be recorded after a positive PD.")
        patch: Dict[str, Any] = {"actual_delivery_date": actual_delivery_date, "calf_gender": calf_gender}
        if notes is not None:
            patch["notes"] = notes
        logger.info("Recording delivery for cycle %s on %s.", cycle_id, actual_delivery_date)
        return self.update_cycle(cycle_id, patch)

    def delete_cycle(self, cycle_id: Any) -> None:
        row = self._cycle_row(cycle_id)
        self.db.delete(row)
        self._commit()
        logger.info("Deleted cycle %s.", cycle_id)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise

# ---------------------------
# Alert configuration
# ---------------------------
def get_alert_config(db: Session) -> AlertConfig:
    """Stored alert settings, falling back to the environment defaults."""
    rows = {r.key: r.value for r in db.query(AppSetting).filter(AppSetting.key.in_(ALERT_SETTING_KEYS)).all()}

    def pick(key: str, default: int) -> int:
        value = rows.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            return default
        return int(value)

    return AlertConfig(
        pd_alert_days=pick("pd_alert_days", settings.PD_ALERT_DAYS),
        delivery_expected_days=pick("delivery_expected_days", settings.DELIVERY_EXPECTED_DAYS),
        pd_overdue_days=settings.PD_OVERDUE_DAYS,
        delivery_alert_days=settings.DELIVERY_ALERT_DAYS,
    )

def save_alert_settings(db: Session, values: Dict[str, Optional[int]]) -> AlertConfig:
    for key, value in values.items():
        if key not in ALERT_SETTING_KEYS or value is None:
            continue
        row = db.get(AppSetting, key)
        if row is None:
            db.add(AppSetting(key=key, value=value))
        else:
            row.value = value
    db.commit()
    return get_alert_config(db)

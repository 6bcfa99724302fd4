from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .db import Base, engine, get_db
from .errors import ConflictError, CycleGuardError, NotFoundError, ValidationError
from .schemas import AlertSettingsUpdate, BreedingCycleCreate, CowCreate, DeliveryUpdate, PDUpdate
from .services.alerts import build_alerts
from .services.badges import summary_badges
from .services.guard import can_start_new_cycle
from .services.milking import MilkingGroupWorkflow, milking_state
from .services.sorting import FilterView, classify_and_sort, filter_summaries
from .services.summary import build_summaries
from .store import SqlRecordStore, get_alert_config, save_alert_settings

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Cow Breeding Monitor", version="0.5.0")
Base.metadata.create_all(bind=engine)

def get_store(db: Session = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)

# ---------------------------
# Error mapping
# ---------------------------
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": "not_found", "detail": str(exc)})

@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"error": "validation_error", "detail": str(exc)})

@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    content = {"error": "conflict", "detail": str(exc)}
    if isinstance(exc, CycleGuardError) and exc.blocking_record is not None:
        content["error"] = "cycle_unresolved"
        content["blocking_record"] = exc.blocking_record.to_dict()
    return JSONResponse(status_code=409, content=content)

@app.exception_handler(IntegrityError)
async def integrity_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error: %s", exc.orig)
    return JSONResponse(status_code=409, content={"error": "conflict", "detail": str(exc.orig)})

@app.get("/")
def root():
    return {"service": "Cow Breeding Monitor API", "docs": "/docs", "health": "/health"}

@app.get("/health")
def health():
    return {"ok": True}

# ---------------------------
# Cows
# ---------------------------
def _cow_dict(cow):
    return {
        "id": cow.id,
        "cow_number": cow.cow_number,
        "milking_state": milking_state(cow.flags).value,
        "needs_milking_move": cow.flags.needs_milking_move,
        "needs_milking_move_at": cow.flags.needs_milking_move_at.isoformat() if cow.flags.needs_milking_move_at else None,
        "moved_to_milking": cow.flags.moved_to_milking,
        "moved_to_milking_at": cow.flags.moved_to_milking_at.isoformat() if cow.flags.moved_to_milking_at else None,
    }

@app.get("/cows")
def list_cows(store: SqlRecordStore = Depends(get_store)):
    return [_cow_dict(c) for c in store.list_cows()]

@app.post("/cows")
def create_cow(payload: CowCreate, store: SqlRecordStore = Depends(get_store)):
    if store.find_cow_by_number(payload.cow_number):
        raise HTTPException(status_code=409, detail="cow_number already exists.")
    cow = store.create_cow(cow_number=payload.cow_number, breed=payload.breed)
    return {"created": True, **_cow_dict(cow)}

@app.get("/cows/{cow_id}/cycles")
def cow_cycles(cow_id: int, store: SqlRecordStore = Depends(get_store)):
    store.get_cow(cow_id)
    return [c.to_dict() for c in store.list_cycles_for_cow(cow_id)]

@app.get("/cows/{cow_id}/can-start-cycle")
def can_start_cycle(cow_id: int, store: SqlRecordStore = Depends(get_store)):
    store.get_cow(cow_id)
    result = can_start_new_cycle(cow_id, store)
    return {**result.to_dict(), "next_service_number": store.next_service_number(cow_id)}

@app.post("/cows/{cow_id}/flag-move")
def flag_move(cow_id: int, store: SqlRecordStore = Depends(get_store)):
    return _cow_dict(MilkingGroupWorkflow(store).flag_for_move(cow_id))

@app.post("/cows/{cow_id}/undo-flag")
def undo_flag(cow_id: int, store: SqlRecordStore = Depends(get_store)):
    return _cow_dict(MilkingGroupWorkflow(store).undo_flag(cow_id))

@app.post("/cows/{cow_id}/mark-moved")
def mark_moved(cow_id: int, store: SqlRecordStore = Depends(get_store)):
    return _cow_dict(MilkingGroupWorkflow(store).mark_moved(cow_id))

# ---------------------------
# Breeding cycles
# ---------------------------
@app.get("/cycles")
def list_cycles(store: SqlRecordStore = Depends(get_store)):
    return [c.to_dict() for c in store.list_all_cycles()]

@app.post("/cycles")
def create_cycle(payload: BreedingCycleCreate, store: SqlRecordStore = Depends(get_store)):
    cycle = store.create_cycle(payload.model_dump())
    return {"created": True, **cycle.to_dict()}

@app.post("/cycles/{cycle_id}/pd")
def record_pd(cycle_id: int, payload: PDUpdate, store: SqlRecordStore = Depends(get_store)):
    return store.record_pd(cycle_id, payload.pd_result, payload.pd_date).to_dict()

@app.post("/cycles/{cycle_id}/delivery")
def record_delivery(cycle_id: int, payload: DeliveryUpdate, store: SqlRecordStore = Depends(get_store)):
    cycle = store.record_delivery(
        cycle_id,
        actual_delivery_date=payload.actual_delivery_date,
        calf_gender=payload.calf_gender,
        notes=payload.notes,
    )
    return cycle.to_dict()

@app.delete("/cycles/{cycle_id}")
def delete_cycle(cycle_id: int, store: SqlRecordStore = Depends(get_store)):
    store.delete_cycle(cycle_id)
    return {"deleted": True, "id": cycle_id}

# ---------------------------
# Herd view + alerts
# ---------------------------
@app.get("/summaries")
def summaries(
    view: FilterView = Query(default=FilterView.ALL),
    include_delivered: bool = Query(default=True),
    today: Optional[date] = Query(default=None, description="Defaults to the server date"),
    db: Session = Depends(get_db),
):
    store = SqlRecordStore(db)
    config = get_alert_config(db)
    as_of = today or date.today()

    built = build_summaries(store.list_all_cycles(), store.list_cows(), config)
    built = filter_summaries(built, view, as_of, config, include_delivered=include_delivered)

    results = []
    for item in classify_and_sort(built, as_of, config):
        row = item.to_dict()
        row["badges"] = summary_badges(item.summary, as_of, config)
        results.append(row)
    return results

@app.get("/alerts")
def alerts(
    today: Optional[date] = Query(default=None, description="Defaults to the server date"),
    db: Session = Depends(get_db),
):
    store = SqlRecordStore(db)
    config = get_alert_config(db)
    found = build_alerts(store.list_all_cycles(), store.list_cows(), today or date.today(), config)
    return {"alerts_found": len(found), "alerts": [a.to_dict() for a in found]}

# ---------------------------
# Settings
# ---------------------------
def _config_dict(config):
    return {
        "pd_alert_days": config.pd_alert_days,
        "delivery_expected_days": config.delivery_expected_days,
        "pd_overdue_days": config.overdue_days,
        "delivery_alert_days": config.delivery_alert_days,
    }

@app.get("/settings/alerts")
def get_alert_settings(db: Session = Depends(get_db)):
    return _config_dict(get_alert_config(db))

@app.put("/settings/alerts")
def put_alert_settings(payload: AlertSettingsUpdate, db: Session = Depends(get_db)):
    return _config_dict(save_alert_settings(db, payload.model_dump()))

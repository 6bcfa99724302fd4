from __future__ import annotations

import random
from datetime import date, datetime, timedelta
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.config import settings
from app.db import Base, engine, SessionLocal
from app.models import Cow, BreedingCycle

random.seed(42)

def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

def add_cycle(
    db: Session,
    cow: Cow,
    service_number: int,
    ai_date: date,
    pd_result: str | None = None,
    pd_after_days: int = 60,
    delivered: bool = False,
    ai_status: str = "done",
    calf_gender: str | None = None,
):
    cycle = BreedingCycle(
        cow_id=cow.id,
        service_number=service_number,
        ai_date=ai_date,
        ai_status=ai_status,
        semen_batch=f"SB-{random.randint(100, 999)}",
        technician_name=random.choice(["Ravi", "Meena", "Arjun"]),
        pd_done=pd_result is not None,
        pd_result=pd_result,
        pd_date=ai_date + timedelta(days=pd_after_days) if pd_result else None,
    )
    if delivered:
        cycle.actual_delivery_date = ai_date + timedelta(days=settings.DELIVERY_EXPECTED_DAYS + random.randint(-4, 4))
        cycle.calf_gender = calf_gender or random.choice(["male", "female"])
    db.add(cycle)
    return cycle

def seed_scenarios(db: Session):
    today = date.today()
    gestation = settings.DELIVERY_EXPECTED_DAYS

    # Fixed demo cows (numbers you can reference during presentations)
    demo = {
        # A) AI 64 days ago, no PD yet -> PD overdue
        "DEMO-A-PD-OVERDUE": dict(),
        # B) Pregnant, 4 days to delivery -> about to deliver
        "DEMO-B-DELIVERY": dict(),
        # C) Open cycle -> guard blocks a new AI
        "DEMO-C-OPEN": dict(),
        # D) Flagged for move, no date pressure
        "DEMO-D-FLAGGED": dict(flagged=True),
        # E) Pregnant, 50 days to delivery, not moved -> move to milking
        "DEMO-E-MILKING": dict(),
    }

    cows = {}
    for number, opts in demo.items():
        cow = Cow(cow_number=number, breed="Holstein")
        if opts.get("flagged"):
            cow.needs_milking_move = True
            cow.needs_milking_move_at = datetime.utcnow() - timedelta(days=2)
        db.add(cow)
        cows[number] = cow
    db.flush()

    add_cycle(db, cows["DEMO-A-PD-OVERDUE"], 1, today - relativedelta(months=8), pd_result="negative")
    add_cycle(db, cows["DEMO-A-PD-OVERDUE"], 2, today - timedelta(days=64))

    add_cycle(db, cows["DEMO-B-DELIVERY"], 1, today - timedelta(days=gestation - 4), pd_result="positive")

    add_cycle(db, cows["DEMO-C-OPEN"], 1, today - timedelta(days=20))

    add_cycle(db, cows["DEMO-D-FLAGGED"], 1, today - timedelta(days=120), pd_result="positive", pd_after_days=45)

    add_cycle(db, cows["DEMO-E-MILKING"], 1, today - timedelta(days=gestation - 50), pd_result="positive")
    db.commit()

def seed_random_herd(db: Session, n_cows: int = 35):
    today = date.today()

    for i in range(n_cows):
        cow = Cow(cow_number=f"COW-{2000+i}", breed=random.choice(["Holstein", "Jersey", "Holstein"]))
        db.add(cow)
        db.flush()

        ai_date = today - relativedelta(months=random.randint(18, 30)) - timedelta(days=random.randint(0, 20))
        service = 1
        while ai_date <= today:
            days_ago = (today - ai_date).days
            if days_ago < 60 and random.random() < 0.7:
                # latest cycle still waiting on PD
                add_cycle(db, cow, service, ai_date)
                break

            outcome = random.choices(["positive", "negative", "inconclusive"], weights=[6, 3, 1])[0]
            pd_after = min(random.randint(45, 60), days_ago)
            if outcome == "positive":
                delivered = days_ago > settings.DELIVERY_EXPECTED_DAYS + 5
                add_cycle(db, cow, service, ai_date, pd_result=outcome, pd_after_days=pd_after, delivered=delivered)
                if not delivered:
                    break
                ai_date = ai_date + timedelta(days=settings.DELIVERY_EXPECTED_DAYS + random.randint(60, 110))
            else:
                add_cycle(db, cow, service, ai_date, pd_result=outcome, pd_after_days=pd_after)
                ai_date = ai_date + timedelta(days=pd_after + random.randint(10, 30))
            service += 1

        if random.random() < 0.08:
            cow.needs_milking_move = True
            cow.needs_milking_move_at = datetime.utcnow() - timedelta(days=random.randint(0, 5))

    db.commit()

def main():
    reset_db()
    db = SessionLocal()
    try:
        seed_scenarios(db)
        seed_random_herd(db, n_cows=35)
        db.commit()
        print("Seed complete: scenario-based demo cows + random herd created.")
        print("Demo cow numbers:")
        print("  DEMO-A-PD-OVERDUE, DEMO-B-DELIVERY, DEMO-C-OPEN, DEMO-D-FLAGGED, DEMO-E-MILKING")
    finally:
        db.close()

if __name__ == "__main__":
    main()

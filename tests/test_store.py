from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, CycleGuardError, NotFoundError, TransitionError, ValidationError
from app.models import BreedingCycle as CycleRow
from app.services.guard import can_start_new_cycle
from app.services.milking import MilkingGroupWorkflow
from app.store import get_alert_config, save_alert_settings


@pytest.fixture
def cow(store):
    return store.create_cow("101")


def test_service_numbers_follow_cycle_count(store, cow):
    first = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    assert first.service_number == 1
    store.record_pd(first.id, "negative", date(2024, 3, 1))

    second = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 3, 20)})
    assert second.service_number == 2
    assert store.next_service_number(cow.id) == 3


def test_create_rechecks_guard(store, cow):
    blocking = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})

    assert can_start_new_cycle(cow.id, store).blocking_record == blocking
    with pytest.raises(CycleGuardError) as exc:
        store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 2, 1)})
    assert exc.value.blocking_record == blocking
    assert len(store.list_cycles_for_cow(cow.id)) == 1


def test_storage_rejects_second_open_cycle(db, store, cow):
    store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    # bypass the guard, as a concurrent session would
    db.add(CycleRow(cow_id=cow.id, service_number=2, ai_date=date(2024, 1, 2), ai_status="done", pd_done=False))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_pd_can_only_be_recorded_once(store, cow):
    cycle = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    done = store.record_pd(cycle.id, "positive", date(2024, 3, 1))
    assert done.pd_done and done.pd_result.value == "positive"
    with pytest.raises(ConflictError):
        store.record_pd(cycle.id, "negative", date(2024, 3, 2))


def test_delivery_requires_positive_pd(store, cow):
    cycle = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    with pytest.raises(ConflictError):
        store.record_delivery(cycle.id, date(2024, 10, 10))

    store.record_pd(cycle.id, "positive", date(2024, 3, 1))
    delivered = store.record_delivery(cycle.id, date(2024, 10, 10), calf_gender="female")
    assert delivered.actual_delivery_date == date(2024, 10, 10)
    assert delivered.calf_gender == "female"

    with pytest.raises(ConflictError):
        store.record_delivery(cycle.id, date(2024, 10, 11))


def test_update_cycle_keeps_pd_fields_consistent(store, cow):
    cycle = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    with pytest.raises(ValueError):
        store.update_cycle(cycle.id, {"pd_done": True})
    assert store.get_cycle(cycle.id).pd_done is False


def test_unknown_records(store):
    with pytest.raises(NotFoundError):
        store.get_cow(404)
    with pytest.raises(NotFoundError):
        store.create_cycle({"cow_id": 404, "ai_date": date(2024, 1, 1)})
    with pytest.raises(NotFoundError):
        store.delete_cycle(404)


def test_milking_workflow_persists_flags(store, cow):
    workflow = MilkingGroupWorkflow(store)
    now = datetime(2024, 3, 5, 8, 0)

    flagged = workflow.flag_for_move(cow.id, now=now)
    assert store.get_cow(cow.id).flags.needs_milking_move_at == now
    assert flagged.needs_milking_move is True

    moved = workflow.mark_moved(cow.id, now=now)
    assert moved.moved_to_milking is True
    assert store.get_cow(cow.id).needs_milking_move is False

    with pytest.raises(TransitionError):
        workflow.undo_flag(cow.id)


def test_alert_config_defaults_and_overrides(db):
    config = get_alert_config(db)
    assert (config.pd_alert_days, config.delivery_expected_days) == (60, 283)

    updated = save_alert_settings(db, {"pd_alert_days": 45, "delivery_expected_days": None})
    assert updated.pd_alert_days == 45
    assert updated.delivery_expected_days == 283
    assert updated.overdue_days == 45


def test_deleting_an_older_cycle_does_not_reuse_service_numbers(store, cow):
    ids = []
    for ai in (date(2023, 1, 1), date(2023, 4, 1), date(2023, 7, 1)):
        cycle = store.create_cycle({"cow_id": cow.id, "ai_date": ai})
        store.record_pd(cycle.id, "negative", ai.replace(day=28))
        ids.append(cycle.id)

    store.delete_cycle(ids[1])
    assert store.next_service_number(cow.id) == 4

    created = store.create_cycle({"cow_id": cow.id, "ai_date": date(2023, 10, 1)})
    assert created.service_number == 4
    assert [c.service_number for c in store.list_cycles_for_cow(cow.id)] == [1, 3, 4]


def test_backdated_ai_is_rejected(store, cow):
    resolved = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 6, 1)})
    store.record_pd(resolved.id, "negative", date(2024, 8, 1))

    with pytest.raises(ValidationError):
        store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})
    assert len(store.list_cycles_for_cow(cow.id)) == 1

    # the guard and storage still agree, so a later AI goes through
    assert can_start_new_cycle(cow.id, store).allowed is True
    later = store.create_cycle({"cow_id": cow.id, "ai_date": "2024-09-01"})
    assert later.service_number == 2
    assert later.ai_date == date(2024, 9, 1)


def test_same_day_ai_becomes_current(store, cow):
    first = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 6, 1)})
    store.record_pd(first.id, "inconclusive", date(2024, 8, 1))
    second = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 6, 1)})
    assert can_start_new_cycle(cow.id, store).blocking_record == second


def test_update_cycle_parses_iso_dates(store, cow):
    cycle = store.create_cycle({"cow_id": cow.id, "ai_date": date(2024, 1, 1)})

    updated = store.update_cycle(cycle.id, {"expected_delivery_date": "2024-10-01"})
    assert updated.expected_delivery_date == date(2024, 10, 1)
    assert store.get_cycle(cycle.id).expected_delivery_date == date(2024, 10, 1)

    with pytest.raises(ValidationError):
        store.update_cycle(cycle.id, {"expected_delivery_date": "2024-13-40"})
    assert store.get_cycle(cycle.id).expected_delivery_date == date(2024, 10, 1)

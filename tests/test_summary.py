from datetime import date

from app.services.records import CycleStatus
from app.services.summary import build_summaries, select_current_cycle
from factories import make_cow, make_cycle, positive


def test_one_summary_per_cow_with_latest_ai_date(config):
    cycles = [
        make_cycle(cow_id=1, service_number=1, ai_date="2023-03-01", pd_done=True, pd_result="negative", pd_date="2023-05-01"),
        make_cycle(cow_id=1, service_number=3, ai_date="2023-09-01"),
        make_cycle(cow_id=1, service_number=2, ai_date="2023-06-01", pd_done=True, pd_result="negative", pd_date="2023-08-01"),
        positive(cow_id=2, service_number=1, ai_date="2023-12-01", pd_date="2024-02-01"),
    ]
    summaries = {s.cow_id: s for s in build_summaries(cycles, [make_cow(1), make_cow(2)], config)}

    assert len(summaries) == 2
    assert summaries[1].latest_ai_date == max(c.ai_date for c in cycles if c.cow_id == 1)
    assert summaries[1].service_number == 3
    assert summaries[1].status == CycleStatus.PENDING
    assert summaries[2].status == CycleStatus.PREGNANT


def test_cow_without_cycles_is_omitted(config):
    summaries = build_summaries([make_cycle(cow_id=1)], [make_cow(1), make_cow(2)], config)
    assert [s.cow_id for s in summaries] == [1]


def test_cycles_for_unknown_cow_skipped(config):
    assert build_summaries([make_cycle(cow_id=99)], [make_cow(1)], config) == []


def test_equal_ai_dates_prefer_higher_service_number():
    a = make_cycle(service_number=1, ai_date="2024-01-01", pd_done=True, pd_result="negative", pd_date="2024-01-01")
    b = make_cycle(service_number=2, ai_date="2024-01-01")
    assert select_current_cycle([b, a]) is b
    assert select_current_cycle([a, b]) is b


def test_no_cycles_gives_none():
    assert select_current_cycle([]) is None


def test_summary_combines_cow_flags_and_resolved_delivery_date(config):
    cow = make_cow(1, cow_number="A-7", needs_milking_move=True)
    summary = build_summaries([positive(ai_date="2024-01-01")], [cow], config)[0]

    assert summary.cow_number == "A-7"
    assert summary.needs_milking_move is True
    assert summary.moved_to_milking is False
    assert summary.expected_delivery_date == date(2024, 10, 10)
    assert summary.pd_date == date(2024, 3, 1)
    assert summary.to_dict()["status"] == "Pregnant"


def test_delivery_without_positive_pd_is_kept_but_logged(config, caplog):
    odd = make_cycle(actual_delivery_date="2024-10-01")
    summary = build_summaries([odd], [make_cow(1)], config)[0]
    assert summary.status == CycleStatus.DELIVERED
    assert "without a positive PD" in caplog.text

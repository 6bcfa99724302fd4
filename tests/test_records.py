from datetime import date

import pytest

from app.errors import ValidationError
from app.services.records import AIStatus, BreedingCycle, PDResult
from factories import make_cycle


def test_pd_fields_only_exist_once_pd_done():
    cycle = make_cycle()
    assert cycle.pd_done is False
    assert cycle.pd_result is None
    assert cycle.pd_date is None

    done = cycle.with_pd("positive", "2024-03-01")
    assert done.pd_done is True
    assert done.pd_result == PDResult.POSITIVE
    assert done.pd_date == date(2024, 3, 1)


def test_pd_done_without_result_rejected():
    with pytest.raises(ValidationError):
        make_cycle(pd_done=True, pd_result=None, pd_date="2024-03-01")


def test_pd_result_without_pd_done_rejected():
    with pytest.raises(ValidationError):
        make_cycle(pd_done=False, pd_result="negative")


def test_unknown_enum_values_rejected():
    with pytest.raises(ValidationError):
        make_cycle(ai_status="maybe")
    with pytest.raises(ValidationError):
        make_cycle(pd_done=True, pd_result="probably", pd_date="2024-03-01")


def test_service_number_must_be_positive():
    with pytest.raises(ValidationError):
        make_cycle(service_number=0)


@pytest.mark.parametrize("bad", ["three", None, "2.5"])
def test_non_numeric_service_number_rejected(bad):
    with pytest.raises(ValidationError):
        make_cycle(service_number=bad)


def test_numeric_string_service_number_normalized():
    assert make_cycle(service_number="3").service_number == 3


def test_bad_ai_date_rejected():
    with pytest.raises(ValidationError):
        BreedingCycle(cow_id=1, service_number=1, ai_date="01/02/2024x")


def test_to_dict_serializes_enums_and_dates():
    d = make_cycle(ai_status=AIStatus.PENDING, id=7).to_dict()
    assert d["id"] == 7
    assert d["ai_status"] == "pending"
    assert d["ai_date"] == "2024-01-01"
    assert d["pd_done"] is False

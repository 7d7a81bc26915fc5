import math
from dataclasses import replace

import pytest

from remipk.errors import InvalidInputError, ValidationError
from remipk.types import DoseEvent, Patient
from remipk.validation import (
    check_structure, require_valid, review_schedule, validate_dose_event, validate_patient,
)


def test_valid_patient(standard_patient):
    result = validate_patient(standard_patient)
    assert result.is_valid
    assert result.errors == ()


def test_patient_collects_every_violation(standard_patient):
    bad = replace(standard_patient, id="  ", age=12, weight_kg=250.0)
    result = validate_patient(bad)
    assert not result.is_valid
    joined = " | ".join(result.errors)
    assert "ID" in joined and "Age" in joined and "Weight" in joined
    assert len(result.errors) >= 3


def test_extreme_bmi_is_rejected(standard_patient):
    # 200 kg at 190 cm is inside the weight and height ranges but BMI 55
    result = validate_patient(replace(standard_patient, weight_kg=200.0, height_cm=190.0))
    assert not result.is_valid
    assert any("BMI" in e for e in result.errors)


def test_dose_event_ranges():
    assert validate_dose_event(DoseEvent(0, 10, 1.0)).is_valid
    assert validate_dose_event(DoseEvent(1440, 100, 20)).is_valid
    result = validate_dose_event(DoseEvent(-1, 150, 25))
    assert len(result.errors) == 3


def test_review_schedule_warnings():
    events = [DoseEvent(0, 5, 0.0), DoseEvent(2, 0, 3.0), DoseEvent(2, 1.0, 3.0)]
    result = review_schedule(events)
    assert result.is_valid
    assert any("rapid rate change" in w for w in result.warnings)
    assert any("same time" in w for w in result.warnings)
    assert result.messages == result.errors + result.warnings


def test_review_empty_schedule():
    assert not review_schedule([]).is_valid


def test_require_valid_raises_with_all_errors(standard_patient):
    with pytest.raises(ValidationError) as info:
        require_valid(replace(standard_patient, age=10), [DoseEvent(0, 500, 0)])
    assert len(info.value.errors) == 2


def test_structure_accepts_out_of_range_but_rejects_malformed(standard_patient):
    check_structure(replace(standard_patient, age=110), [DoseEvent(-5, 1.0)])

    with pytest.raises(InvalidInputError) as info:
        check_structure(replace(standard_patient, weight_kg=math.nan, sex=3),
                        [DoseEvent(0, -1.0), "not an event"])
    assert len(info.value.errors) == 4


def test_structure_rejects_non_patient():
    with pytest.raises(InvalidInputError):
        check_structure({"id": "x"}, [])


def test_structure_rejects_bool_weight():
    p = Patient(id="P", age=40, weight_kg=True, height_cm=170)
    with pytest.raises(InvalidInputError):
        check_structure(p, [])

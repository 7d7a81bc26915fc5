import numpy as np
import pytest

from remipk.dosing import (
    combine_schedules, from_explicit_schedule, normalize, preset_regimens,
    single_bolus, stepwise_infusion,
)
from remipk.errors import EmptyScheduleError
from remipk.helpers import bolus_totals_by_time, segment_boundaries
from remipk.types import DoseEvent, InfusionStep


def test_normalize_sorts_without_touching_input():
    events = [DoseEvent(30, 0, 2.0), DoseEvent(0, 5, 0), DoseEvent(5, 0, 1.0)]
    original = list(events)
    plan = normalize(events)

    assert events == original
    assert [e.time_min for e in plan.events] == [0, 5, 30]
    assert plan.start_time_min == 0.0


def test_normalize_boluses_and_steps(stepped_schedule):
    plan = normalize(stepped_schedule)
    assert [(b.time_min, b.amount_mg) for b in plan.boluses] == [(0.0, 5.0)]
    # no step at t=0 because the rate there is still 0, so one is prepended
    assert plan.infusion.steps == (
        InfusionStep(0.0, 0.0),
        InfusionStep(5.0, 1.0),
        InfusionStep(30.0, 2.0),
        InfusionStep(60.0, 0.0),
    )


def test_rate_lookup_is_right_continuous(stepped_schedule):
    sched = normalize(stepped_schedule).infusion
    assert sched.rate_at(4.999) == 0.0
    assert sched.rate_at(5.0) == 1.0
    assert sched.rate_at(10.0) == 1.0
    assert sched.rate_at(30.0) == 2.0
    assert sched.rate_at(45.0) == 2.0
    assert sched.rate_at(60.0) == 0.0
    assert sched.rate_at(-1.0) == 0.0

    t = np.array([0.0, 10.0, 45.0, 60.0, 200.0])
    assert np.array_equal(sched.rates_at(t), [0.0, 1.0, 2.0, 0.0, 0.0])


def test_unchanged_rate_adds_no_step():
    plan = normalize([DoseEvent(0, 0, 1.0), DoseEvent(10, 2.0, 1.0), DoseEvent(20, 0, 1.0)])
    assert plan.infusion.steps == (InfusionStep(0.0, 1.0),)
    assert len(plan.boluses) == 1


def test_same_instant_changes_collapse_to_last():
    plan = normalize([DoseEvent(0, 0, 1.0), DoseEvent(10, 0, 3.0), DoseEvent(10, 0, 2.0)])
    assert plan.infusion.steps == (InfusionStep(0.0, 1.0), InfusionStep(10.0, 2.0))

    # collapsing back to the previous rate leaves no change at all
    plan = normalize([DoseEvent(0, 0, 1.0), DoseEvent(10, 0, 3.0), DoseEvent(10, 0, 1.0)])
    assert plan.infusion.steps == (InfusionStep(0.0, 1.0),)


def test_same_instant_boluses_stay_separate_but_sum():
    plan = normalize([DoseEvent(0, 3.0), DoseEvent(0, 2.0)])
    assert len(plan.boluses) == 2
    assert bolus_totals_by_time(plan.boluses) == {0.0: 5.0}
    assert plan.bolus_total_between(-0.5, 0.5) == 5.0


def test_negative_times_move_start():
    plan = normalize([DoseEvent(-5, 2.0), DoseEvent(0, 0, 1.0)])
    assert plan.start_time_min == -5.0
    assert plan.infusion.steps[0] == InfusionStep(-5.0, 0.0)


def test_empty_schedule_raises():
    with pytest.raises(EmptyScheduleError):
        normalize([])


def test_segment_boundaries_clip_and_dedupe(stepped_schedule):
    plan = normalize(stepped_schedule)
    assert segment_boundaries(0.0, 40.0, plan.boluses, plan.infusion.steps) == [0.0, 5.0, 30.0, 40.0]


def test_step_profile_corners(stepped_schedule):
    t, r = normalize(stepped_schedule).infusion.step_profile(90.0)
    assert t[0] == 0.0 and t[-1] == 90.0
    assert list(zip(t, r))[1:3] == [(5.0, 0.0), (5.0, 1.0)]
    assert r[-1] == 0.0


def test_builders():
    assert single_bolus(8.0) == [DoseEvent(0.0, 8.0, 0.0)]
    with pytest.raises(ValueError):
        single_bolus(0.0)

    steps = stepwise_infusion([(20, 0.5), (0, 1.0)], stop_min=60)
    assert [(e.time_min, e.continuous_mg_kg_h) for e in steps] == [(0.0, 1.0), (20.0, 0.5), (60.0, 0.0)]
    with pytest.raises(ValueError):
        stepwise_infusion([(0, -1.0)])

    explicit = from_explicit_schedule([(5, 0, 1.0), (0, 5, 0)])
    assert explicit[0] == DoseEvent(0.0, 5.0, 0.0)

    merged = combine_schedules(single_bolus(5.0), steps)
    assert len(merged) == 4
    assert [e.time_min for e in merged] == sorted(e.time_min for e in merged)


def test_preset_regimens_scale_bolus(standard_patient):
    presets = preset_regimens(standard_patient)
    assert set(presets) == {"standard_induction", "gentle_induction", "maintenance_only", "stepwise_example"}
    std = presets["standard_induction"].events[0].bolus_mg
    assert std == pytest.approx(67.3 * 0.15)
    assert presets["gentle_induction"].events[0].bolus_mg == pytest.approx(std / 2)
    assert preset_regimens()["standard_induction"].events[0].bolus_mg == 8.0

    # offset by a start time
    shifted = preset_regimens(standard_patient, start_time_min=10)
    assert shifted["stepwise_example"].events[-1].time_min == 70.0

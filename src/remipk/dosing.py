# src/remipk/dosing.py
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import EmptyScheduleError
from .types import BolusEntry, DoseEvent, InfusionStep, Patient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InfusionSchedule:
    """
    Right-continuous step function of infusion rate (mg/kg/hr).

    steps are strictly increasing in time; the rate at t is the rate of the
    last step with time_min <= t, and 0 before the first step.
    """
    steps: Tuple[InfusionStep, ...]

    @property
    def times(self) -> list[float]:
        return [s.time_min for s in self.steps]

    def rate_at(self, t: float) -> float:
        idx = bisect.bisect_right(self.times, t) - 1
        return self.steps[idx].rate_mg_kg_h if idx >= 0 else 0.0

    def rates_at(self, t: np.ndarray) -> np.ndarray:
        """Vectorised rate_at."""
        t = np.asarray(t, dtype=float)
        if not self.steps:
            return np.zeros_like(t)
        times = np.asarray(self.times, dtype=float)
        rates = np.asarray([s.rate_mg_kg_h for s in self.steps], dtype=float)
        idx = np.searchsorted(times, t, side="right") - 1
        return np.where(idx >= 0, rates[np.clip(idx, 0, None)], 0.0)

    def step_profile(self, end_time_min: float) -> tuple[np.ndarray, np.ndarray]:
        """
        Corner points of the step function up to end_time_min, suitable for
        drawing it as a polyline: each change contributes (t, old) and (t, new).
        """
        t_pts: list[float] = []
        r_pts: list[float] = []
        current = 0.0
        for s in self.steps:
            if s.time_min > end_time_min:
                break
            if t_pts:
                t_pts.append(s.time_min)
                r_pts.append(current)
            t_pts.append(s.time_min)
            r_pts.append(s.rate_mg_kg_h)
            current = s.rate_mg_kg_h
        if not t_pts:
            t_pts, r_pts = [0.0], [0.0]
        t_pts.append(float(end_time_min))
        r_pts.append(current)
        return np.asarray(t_pts), np.asarray(r_pts)


@dataclass(frozen=True)
class DosingPlan:
    """Canonical form of a schedule: bolus impulses plus the infusion step function."""
    boluses: Tuple[BolusEntry, ...]
    infusion: InfusionSchedule
    events: Tuple[DoseEvent, ...]   # time-sorted copy of the input
    start_time_min: float

    def bolus_total_between(self, lo: float, hi: float) -> float:
        """Sum of bolus amounts with lo <= time < hi."""
        return float(sum(b.amount_mg for b in self.boluses if lo <= b.time_min < hi))


def normalize(dose_events: Sequence[DoseEvent], start_time_min: Optional[float] = None) -> DosingPlan:
    """
    Convert an unordered list of dose events into a DosingPlan.

    - A stable sort of a copy by time; the caller's sequence is untouched.
    - One BolusEntry per event with bolus_mg > 0. Same-instant boluses stay
      separate; the integrator sums them.
    - An InfusionStep only where the rate differs from the currently tracked
      one (initially 0). Several changes at one instant collapse to the last.
    - If no step sits at the start time, a (start, 0) step is prepended.

    start_time_min defaults to min(0, earliest event time).
    """
    if len(dose_events) == 0:
        raise EmptyScheduleError()

    ordered = tuple(sorted(dose_events, key=lambda e: e.time_min))
    start = min(0.0, float(ordered[0].time_min)) if start_time_min is None else float(start_time_min)

    boluses = tuple(BolusEntry(float(e.time_min), float(e.bolus_mg)) for e in ordered if e.bolus_mg > 0)

    steps: list[InfusionStep] = []
    current = 0.0
    for e in ordered:
        rate = float(e.continuous_mg_kg_h)
        if rate == current:
            continue
        t = float(e.time_min)
        if steps and steps[-1].time_min == t:
            steps.pop()
            previous = steps[-1].rate_mg_kg_h if steps else 0.0
            if rate != previous:
                steps.append(InfusionStep(t, rate))
        else:
            steps.append(InfusionStep(t, rate))
        current = rate

    if not steps or steps[0].time_min > start:
        steps.insert(0, InfusionStep(start, 0.0))

    plan = DosingPlan(boluses=boluses, infusion=InfusionSchedule(tuple(steps)),
                      events=ordered, start_time_min=start)
    logger.debug("Normalized %d events into %d boluses and %d infusion steps",
                 len(ordered), len(boluses), len(steps))
    return plan


# --------------------------
# Schedule builders
# --------------------------
def single_bolus(amount_mg: float, time_min: float = 0.0) -> list[DoseEvent]:
    """One bolus with no infusion, e.g. 10 mg at t=0."""
    _validate_positive("amount_mg", amount_mg)
    _validate_non_negative("time_min", time_min)
    return [DoseEvent(time_min=float(time_min), bolus_mg=float(amount_mg), continuous_mg_kg_h=0.0)]


def stepwise_infusion(steps: Sequence[Tuple[float, float]], stop_min: Optional[float] = None) -> list[DoseEvent]:
    """
    Infusion changed stepwise: steps=[(time_min, rate_mg_kg_h), ...].
    Example: [(0, 1.0), (20, 0.5)] with stop_min=60 stops the infusion at 60 min.
    """
    events: list[DoseEvent] = []
    for time_min, rate in steps:
        _validate_non_negative("time_min", time_min)
        _validate_non_negative("rate_mg_kg_h", rate)
        events.append(DoseEvent(time_min=float(time_min), continuous_mg_kg_h=float(rate)))
    if stop_min is not None:
        _validate_non_negative("stop_min", stop_min)
        events.append(DoseEvent(time_min=float(stop_min), continuous_mg_kg_h=0.0))
    events.sort(key=lambda e: e.time_min)
    return events


def combine_schedules(*schedules: Sequence[DoseEvent]) -> list[DoseEvent]:
    """
    Merge schedules (e.g. an induction bolus plus a maintenance infusion).
    Events are concatenated and stably sorted by time.
    """
    all_events: list[DoseEvent] = []
    for s in schedules:
        all_events.extend(s)
    return sorted(all_events, key=lambda e: e.time_min)


def from_explicit_schedule(entries: Sequence[Tuple[float, float, float]]) -> list[DoseEvent]:
    """
    Build a schedule from (time_min, bolus_mg, continuous_mg_kg_h) rows.
    Example: [(0, 5, 0), (5, 0, 1.0), (30, 0, 2.0), (60, 0, 0)]
    """
    events: list[DoseEvent] = []
    for time_min, bolus_mg, rate in entries:
        _validate_non_negative("bolus_mg", bolus_mg)
        _validate_non_negative("continuous_mg_kg_h", rate)
        events.append(DoseEvent(time_min=float(time_min), bolus_mg=float(bolus_mg),
                                continuous_mg_kg_h=float(rate)))
    events.sort(key=lambda e: e.time_min)
    return events


@dataclass(frozen=True)
class PresetRegimen:
    name: str
    description: str
    events: Tuple[DoseEvent, ...]


def preset_regimens(patient: Optional[Patient] = None, start_time_min: float = 0.0) -> dict[str, PresetRegimen]:
    """
    Stock regimens. The induction bolus is 0.15 mg/kg limited to 6-12 mg
    (8 mg without a patient); the gentle induction uses half of it.
    """
    if patient is not None:
        standard_bolus = min(12.0, max(6.0, patient.weight_kg * 0.15))
    else:
        standard_bolus = 8.0
    gentle_bolus = standard_bolus * 0.5
    t0 = float(start_time_min)

    return {
        "standard_induction": PresetRegimen(
            "Standard induction", "Standard induction protocol",
            (DoseEvent(t0, standard_bolus, 0.0),
             DoseEvent(t0, 0.0, 1.0),
             DoseEvent(t0 + 5, 0.0, 0.5)),
        ),
        "gentle_induction": PresetRegimen(
            "Gentle induction", "For elderly or haemodynamically unstable patients",
            (DoseEvent(t0, gentle_bolus, 0.0),
             DoseEvent(t0, 0.0, 0.5),
             DoseEvent(t0 + 10, 0.0, 0.3)),
        ),
        "maintenance_only": PresetRegimen(
            "Maintenance only", "Maintenance infusion after induction",
            (DoseEvent(t0, 0.0, 0.3),),
        ),
        "stepwise_example": PresetRegimen(
            "Stepwise example", "Infusion rate changed in steps",
            (DoseEvent(t0, 6.0, 0.0),
             DoseEvent(t0 + 2, 0.0, 0.3),
             DoseEvent(t0 + 20, 0.0, 0.5),
             DoseEvent(t0 + 40, 0.0, 0.2),
             DoseEvent(t0 + 60, 0.0, 0.0)),
        ),
    }


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise ValueError(f"{name} must be > 0 (got {x}).")


def _validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise ValueError(f"{name} must be >= 0 (got {x}).")

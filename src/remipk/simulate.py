# src/remipk/simulate.py
"""
Top-level entry points: patient + dose events -> SimulationResult.

    result = simulate(patient, events)
    result = Simulator(config).run(patient, events, duration=180, effect_site_methods="all")

No state is shared between runs; a Simulator only holds its configuration,
so independent runs can be executed concurrently.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence, Union

from .config import DEFAULT_CONFIG, EngineConfig, IntegrationMethod
from .dosing import DosingPlan, normalize
from .effect_site import EffectSiteMethod, estimate_all, resolve_methods
from .errors import EmptyScheduleError, InvalidInputError
from .parameters import compute_pk_parameters
from .results import EffectSiteComparison, SimulationResult
from .solvers import integrate, time_grid
from .types import DoseEvent, Patient, ResultKind, TimePoint
from .validation import check_structure

logger = logging.getLogger(__name__)

MethodSelection = Union[None, str, EffectSiteMethod, Iterable[Union[str, EffectSiteMethod]]]


class Simulator:
    """
    Runs simulations with a fixed configuration.

    method overrides config.integrator.method when given.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG,
                 method: Optional[Union[str, IntegrationMethod]] = None):
        if method is not None:
            settings = replace(config.integrator, method=IntegrationMethod(method))
            config = replace(config, integrator=settings)
        self.config = config

    @property
    def method(self) -> IntegrationMethod:
        return self.config.integrator.method

    def run(self, patient: Patient, dose_events: Sequence[DoseEvent],
            duration: Optional[float] = None,
            effect_site_methods: MethodSelection = None) -> SimulationResult:
        """
        Simulate one regimen.

        duration is the end of the horizon in elapsed minutes; by default it is
        the last event time plus config.integrator.horizon_extension_min.
        effect_site_methods ("all", a method name or several) adds an
        EffectSiteComparison computed from the same plasma trace.
        """
        check_structure(patient, dose_events)
        if len(dose_events) == 0:
            raise EmptyScheduleError()
        methods = resolve_methods(effect_site_methods)
        settings = self.config.integrator

        params = compute_pk_parameters(patient, self.config)
        # the grid starts on a whole sampling interval so that t=0 is always sampled
        interval = settings.sample_interval_min
        earliest = min(0.0, min(float(e.time_min) for e in dose_events))
        plan = normalize(dose_events, start_time_min=math.floor(earliest / interval) * interval)

        start = plan.start_time_min
        if duration is None:
            end = float(plan.events[-1].time_min) + settings.horizon_extension_min
        else:
            end = float(duration)
        if not end > start:
            raise InvalidInputError(f"Simulation end ({end:g} min) must be after its start ({start:g} min)")

        t = time_grid(start, end, settings.sample_interval_min)
        logger.debug("Simulating %s: %d samples over [%g, %g] min", patient.id, len(t), start, end)

        states = integrate(params, plan, t, end, settings)
        cp = states[:, 0] / params.V1
        ce = states[:, 3]

        time_points = tuple(
            TimePoint(time_min=float(ti), plasma_ug_ml=float(cpi), effect_site_ug_ml=float(cei),
                      dose_event=_event_near(plan, ti, settings.annotation_tolerance_min))
            for ti, cpi, cei in zip(t, cp, ce)
        )

        comparison = None
        if methods:
            estimates = estimate_all(cp, t, params.ke0, methods,
                                     discrete_dt=settings.discrete_substep_min,
                                     taylor_threshold=settings.taylor_threshold)
            comparison = EffectSiteComparison(times=t, plasma=cp, reference=ce, estimates=estimates)

        return SimulationResult(
            time_points=time_points,
            patient=patient,
            parameters=params,
            method=settings.method,
            calculated_at=datetime.now(),
            plan=plan,
            kind=ResultKind.EFFECT_SITE_COMPARISON if comparison is not None else ResultKind.STANDARD,
            comparison=comparison,
            formats=self.config.formats,
            annotation_tolerance_min=settings.annotation_tolerance_min,
        )

    def run_regimens(self, patient: Patient, regimens: Mapping[str, Sequence[DoseEvent]],
                     duration: Optional[float] = None) -> dict[str, SimulationResult]:
        """Simulate several named regimens for one patient, each independently."""
        return {name: self.run(patient, events, duration) for name, events in regimens.items()}


def _event_near(plan: DosingPlan, t: float, tolerance: float) -> Optional[DoseEvent]:
    for ev in plan.events:
        if abs(ev.time_min - t) < tolerance:
            return ev
    return None


def simulate(patient: Patient, dose_events: Sequence[DoseEvent], duration: Optional[float] = None,
             *, config: EngineConfig = DEFAULT_CONFIG,
             method: Optional[Union[str, IntegrationMethod]] = None,
             effect_site_methods: MethodSelection = None) -> SimulationResult:
    """
    High-level wrapper around Simulator.run.
    """
    return Simulator(config, method).run(patient, dose_events, duration, effect_site_methods)


def simulate_regimens(patient: Patient, regimens: Mapping[str, Sequence[DoseEvent]],
                      duration: Optional[float] = None, *, config: EngineConfig = DEFAULT_CONFIG,
                      method: Optional[Union[str, IntegrationMethod]] = None) -> dict[str, SimulationResult]:
    """
    Compare dosing regimens for the same patient.
    regimens: name -> list of DoseEvent
    """
    return Simulator(config, method).run_regimens(patient, regimens, duration)

# src/remipk/results.py
"""
Simulation result container.

A SimulationResult is one record type with a kind tag. Standard runs carry
kind=ResultKind.STANDARD and no comparison payload; runs that also computed
alternative effect-site estimates carry kind=ResultKind.EFFECT_SITE_COMPARISON
and an EffectSiteComparison. Code that needs the payload switches on the tag.
"""
from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import numpy as np

from . import metrics
from .clock import ClockTranslator
from .config import DisplayFormats, IntegrationMethod
from .dosing import DosingPlan
from .effect_site import EffectSiteMethod
from .errors import InvalidInputError
from .types import AsaClass, PKParameters, Patient, ResultKind, Sex, TimePoint

REFERENCE_METHOD = "integrator"


@dataclass(frozen=True)
class MethodDifference:
    """Difference statistics of one Ce trace against a reference trace (ug/mL, %)."""
    mean_abs_diff: float
    max_abs_diff: float
    mean_rel_diff_pct: float
    max_rel_diff_pct: float
    rmse: float


@dataclass(frozen=True)
class ComparisonRow:
    target_time_min: float
    actual_time_min: float
    method: str
    plasma_ug_ml: float
    effect_site_ug_ml: float


@dataclass(frozen=True, eq=False)
class EffectSiteComparison:
    """
    Ce traces from the alternative estimators next to the integrator's own.

    times, plasma and reference (the integrator Ce) share one grid; estimates
    maps each estimator to its Ce trace on that grid.
    """
    times: np.ndarray
    plasma: np.ndarray
    reference: np.ndarray
    estimates: Mapping[EffectSiteMethod, np.ndarray]

    def available_methods(self) -> tuple[str, ...]:
        return (REFERENCE_METHOD,) + tuple(m.value for m in self.estimates)

    def effect_site_by_method(self, method: Union[str, EffectSiteMethod]) -> np.ndarray:
        if method == REFERENCE_METHOD:
            return self.reference
        try:
            return self.estimates[EffectSiteMethod(method)]
        except (KeyError, ValueError):
            raise KeyError(f"Method {method!r} not found; available: {self.available_methods()}") from None

    def max_effect_site_by_method(self, method: Union[str, EffectSiteMethod]) -> float:
        return metrics.cmax(self.effect_site_by_method(method))

    def compare_at_times(self, target_times: Sequence[float]) -> list[ComparisonRow]:
        """Values of every method at the samples nearest to each target time."""
        rows: list[ComparisonRow] = []
        for target in target_times:
            idx = int(np.argmin(np.abs(self.times - target)))
            for method in self.available_methods():
                rows.append(ComparisonRow(
                    target_time_min=float(target),
                    actual_time_min=float(self.times[idx]),
                    method=method,
                    plasma_ug_ml=float(self.plasma[idx]),
                    effect_site_ug_ml=float(self.effect_site_by_method(method)[idx]),
                ))
        return rows

    def method_differences(self, reference: str = REFERENCE_METHOD) -> dict[str, MethodDifference]:
        ref = self.effect_site_by_method(reference)
        out: dict[str, MethodDifference] = {}
        for method in self.available_methods():
            if method == reference:
                continue
            ce = self.effect_site_by_method(method)
            rel = metrics.relative_diff_pct(ce, ref)
            out[method] = MethodDifference(
                mean_abs_diff=metrics.mean_abs_diff(ce, ref),
                max_abs_diff=metrics.max_abs_diff(ce, ref),
                mean_rel_diff_pct=float(np.mean(rel)),
                max_rel_diff_pct=float(np.max(rel)),
                rmse=metrics.rmse(ce, ref),
            )
        return out

    def to_csv(self, formats: DisplayFormats = DisplayFormats()) -> str:
        methods = self.available_methods()
        header = ["Time(min)", "Cp(ug/mL)"] + [f"Ce_{m}(ug/mL)" for m in methods]
        traces = [self.effect_site_by_method(m) for m in methods]
        nd = formats.concentration_decimals
        lines = [",".join(header)]
        for i, t in enumerate(self.times):
            parts = [f"{t:.{formats.time_decimals}f}", f"{self.plasma[i]:.{nd}f}"]
            parts.extend(f"{tr[i]:.{nd}f}" for tr in traces)
            lines.append(",".join(parts))
        return "\n".join(lines)


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Sampled concentration time course plus the inputs that produced it.

    time_points    : ordered samples
    patient        : the (immutable) patient the run used
    parameters     : PK parameters the run used
    method         : integration method tag
    calculated_at  : completion timestamp
    plan           : normalized dosing plan, used for rate look-ups on export
    kind           : ResultKind tag; EFFECT_SITE_COMPARISON requires comparison
    """
    time_points: tuple[TimePoint, ...]
    patient: Patient
    parameters: PKParameters
    method: IntegrationMethod
    calculated_at: datetime
    plan: DosingPlan
    kind: ResultKind = ResultKind.STANDARD
    comparison: Optional[EffectSiteComparison] = None
    formats: DisplayFormats = field(default_factory=DisplayFormats)
    annotation_tolerance_min: float = 0.5

    def __post_init__(self):
        if (self.kind == ResultKind.EFFECT_SITE_COMPARISON) != (self.comparison is not None):
            raise InvalidInputError(
                f"kind={self.kind.value} does not match comparison payload "
                f"({'present' if self.comparison is not None else 'absent'})"
            )

    # --- series -----------------------------------------------------------
    @property
    def times(self) -> np.ndarray:
        return np.asarray([tp.time_min for tp in self.time_points], dtype=float)

    @property
    def plasma(self) -> np.ndarray:
        return np.asarray([tp.plasma_ug_ml for tp in self.time_points], dtype=float)

    @property
    def effect_site(self) -> np.ndarray:
        return np.asarray([tp.effect_site_ug_ml for tp in self.time_points], dtype=float)

    # --- summaries --------------------------------------------------------
    def max_plasma_concentration(self) -> float:
        return metrics.cmax(self.plasma)

    def max_effect_site_concentration(self) -> float:
        return metrics.cmax(self.effect_site)

    def duration_minutes(self) -> float:
        """Time of the last sample (0 for an empty result)."""
        return self.time_points[-1].time_min if self.time_points else 0.0

    def time_of_max_plasma(self) -> float:
        return metrics.tmax(self.times, self.plasma)

    def time_of_max_effect_site(self) -> float:
        return metrics.tmax(self.times, self.effect_site)

    def plasma_auc(self) -> float:
        return metrics.auc_trapz(self.times, self.plasma)

    def time_above_plasma(self, threshold_ug_ml: float) -> float:
        """Minutes with Cp at or above the threshold."""
        return metrics.time_above(self.times, self.plasma, threshold_ug_ml)

    def time_above_effect_site(self, threshold_ug_ml: float) -> float:
        """Minutes with Ce at or above the threshold."""
        return metrics.time_above(self.times, self.effect_site, threshold_ug_ml)

    def summary(self) -> dict[str, float]:
        t = self.times
        max_cp, tmax_cp = metrics.cmax_tmax(t, self.plasma)
        max_ce, tmax_ce = metrics.cmax_tmax(t, self.effect_site)
        return {
            "max_cp_ug_ml": max_cp,
            "max_ce_ug_ml": max_ce,
            "tmax_cp_min": tmax_cp,
            "tmax_ce_min": tmax_ce,
            "auc_cp_ug_min_ml": self.plasma_auc(),
            "duration_min": self.duration_minutes(),
        }

    # --- dosing look-ups --------------------------------------------------
    def bolus_at(self, t: float) -> float:
        """Total bolus scheduled within the annotation window around t."""
        tol = self.annotation_tolerance_min
        return self.plan.bolus_total_between(t - tol, t + tol)

    def continuous_rate_at(self, t: float) -> float:
        return self.plan.infusion.rate_at(t)

    def clock_times(self) -> list[str]:
        clock = ClockTranslator(self.patient.anesthesia_start)
        return [clock.format_clock(tp.time_min, self.formats.clock_format) for tp in self.time_points]

    # --- export -----------------------------------------------------------
    def to_csv(self) -> str:
        """
        Header line plus one row per sample:
        time, bolus at that sample, infusion rate in effect, Cp, Ce.
        """
        f = self.formats
        lines = [f.csv_header]
        for tp in self.time_points:
            lines.append(",".join((
                f"{tp.time_min:.{f.time_decimals}f}",
                f"{self.bolus_at(tp.time_min):.{f.bolus_decimals}f}",
                f"{self.continuous_rate_at(tp.time_min):.{f.continuous_decimals}f}",
                f"{tp.plasma_ug_ml:.{f.concentration_decimals}f}",
                f"{tp.effect_site_ug_ml:.{f.concentration_decimals}f}",
            )))
        return "\n".join(lines)

    def metadata_lines(self, now: Optional[datetime] = None) -> list[str]:
        now = now or datetime.now()
        p = self.patient
        lines = [
            f"# Patient: {p.id}, age {p.age}, {p.weight_kg:.1f} kg, {p.height_cm:.1f} cm, "
            f"{Sex(p.sex).name.lower()}, ASA {'I-II' if p.asa_class == AsaClass.CLASS_1_2 else 'III-IV'}",
            f"# Anesthesia start: {p.anesthesia_start:%Y-%m-%d %H:%M}",
            f"# Generated: {now:%Y-%m-%d %H:%M:%S}",
            f"# Calculation method: {self.method.value}",
        ]
        if self.kind == ResultKind.EFFECT_SITE_COMPARISON:
            lines.append("# Effect-site methods: " + ", ".join(self.comparison.available_methods()))
        return lines

    def write_csv(self, path: Union[str, Path], include_metadata: bool = True,
                  now: Optional[datetime] = None) -> Path:
        path = Path(path)
        body = self.to_csv()
        if include_metadata:
            body = "\n".join(self.metadata_lines(now) + [body])
        path.write_text(body + "\n", encoding="utf-8")
        return path

    def export_filename(self, now: Optional[datetime] = None) -> str:
        """<prefix>_<sanitised patient id>_<timestamp>.csv"""
        now = now or datetime.now()
        patient_id = re.sub(r"[^A-Za-z0-9_-]", "_", self.patient.id.strip()) or "patient"
        suffix = "_compare" if self.kind == ResultKind.EFFECT_SITE_COMPARISON else ""
        return f"{self.formats.csv_file_prefix}_{patient_id}{suffix}_{now.strftime(self.formats.timestamp_format)}.csv"


def parse_csv(text: str) -> dict[str, np.ndarray]:
    """
    Read the numeric columns of a to_csv() export back into arrays keyed by
    header name. '#' metadata lines are skipped.
    """
    lines = [ln for ln in text.splitlines() if ln.strip() and not ln.startswith("#")]
    if not lines:
        raise InvalidInputError("CSV text is empty")
    header = lines[0].split(",")
    data = np.loadtxt(io.StringIO("\n".join(lines[1:])), delimiter=",", ndmin=2)
    if data.shape[1] != len(header):
        raise InvalidInputError(f"CSV has {data.shape[1]} columns but {len(header)} header fields")
    return {name: data[:, i] for i, name in enumerate(header)}

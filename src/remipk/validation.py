# src/remipk/validation.py
"""
Input checks.

Two levels:
  * range validation (validate_patient / validate_dose_event / review_schedule)
    for the caller, returning every violated rule;
  * structural checks (check_structure) that the engine itself runs before a
    simulation. They reject malformed values but not out-of-range ones.
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from typing import Sequence

from .config import ValidationLimits
from .errors import InvalidInputError, ValidationError
from .types import AsaClass, DoseEvent, Patient, Sex


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = field(default=())

    @property
    def messages(self) -> tuple[str, ...]:
        return self.errors + self.warnings


def validate_patient(patient: Patient, limits: ValidationLimits = ValidationLimits()) -> ValidationResult:
    errors: list[str] = []

    if not isinstance(patient.id, str) or not patient.id.strip():
        errors.append("Patient ID is empty")

    _check_range(errors, "Age", patient.age, limits.age_y, "years")
    _check_range(errors, "Weight", patient.weight_kg, limits.weight_kg, "kg")
    _check_range(errors, "Height", patient.height_cm, limits.height_cm, "cm")

    if _is_number(patient.weight_kg) and _is_number(patient.height_cm) and patient.height_cm > 0:
        bmi = patient.bmi
        lo, hi = limits.bmi
        if not (lo <= bmi <= hi):
            errors.append(f"BMI is extreme (calculated {bmi:.1f}, allowed {lo:g}-{hi:g})")

    return ValidationResult(is_valid=not errors, errors=tuple(errors))


def validate_dose_event(event: DoseEvent, limits: ValidationLimits = ValidationLimits()) -> ValidationResult:
    errors: list[str] = []
    _check_range(errors, "Dose time", event.time_min, limits.time_min, "min")
    _check_range(errors, "Bolus dose", event.bolus_mg, limits.bolus_mg, "mg")
    _check_range(errors, "Continuous rate", event.continuous_mg_kg_h, limits.continuous_mg_kg_h, "mg/kg/hr")
    return ValidationResult(is_valid=not errors, errors=tuple(errors))


def review_schedule(events: Sequence[DoseEvent],
                    limits: ValidationLimits = ValidationLimits()) -> ValidationResult:
    """
    Range-check a whole schedule and add clinical warnings.

    Warnings (do not invalidate the schedule):
      - a rate change larger than limits.rapid_change_mg_kg_h within
        limits.rapid_change_window_min of the previous event
      - several events at the same time
    """
    if len(events) == 0:
        return ValidationResult(is_valid=False, errors=("Dosing schedule is empty",))

    errors: list[str] = []
    warnings: list[str] = []
    ordered = sorted(events, key=lambda e: e.time_min)

    for i, ev in enumerate(ordered):
        for msg in validate_dose_event(ev, limits).errors:
            errors.append(f"Event {i + 1} (t={ev.time_min:g} min): {msg}")

    for prev, curr in zip(ordered, ordered[1:]):
        gap = curr.time_min - prev.time_min
        jump = abs(curr.continuous_mg_kg_h - prev.continuous_mg_kg_h)
        if gap < limits.rapid_change_window_min and jump > limits.rapid_change_mg_kg_h:
            warnings.append(f"t={curr.time_min:.1f} min: rapid rate change ({jump:.2f} mg/kg/hr)")

    times = [e.time_min for e in ordered]
    if len(set(times)) != len(times):
        warnings.append("Several dose events share the same time")

    return ValidationResult(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def require_valid(patient: Patient, events: Sequence[DoseEvent],
                  limits: ValidationLimits = ValidationLimits()) -> None:
    """Raise ValidationError listing every range violation in patient and events."""
    errors = list(validate_patient(patient, limits).errors)
    for i, ev in enumerate(events):
        errors.extend(f"Event {i + 1}: {msg}" for msg in validate_dose_event(ev, limits).errors)
    if errors:
        raise ValidationError(errors)


def check_structure(patient: Patient, events: Sequence[DoseEvent]) -> None:
    """
    Structural completeness checks run by the engine.

    Raises InvalidInputError with all problems found.
    """
    errors: list[str] = []

    if not isinstance(patient, Patient):
        raise InvalidInputError(f"Expected a Patient, got {type(patient).__name__}")

    if not isinstance(patient.id, str) or not patient.id.strip():
        errors.append("patient.id must be a non-empty string")
    for name in ("age", "weight_kg", "height_cm"):
        value = getattr(patient, name)
        if not _is_number(value) or value <= 0:
            errors.append(f"patient.{name} must be a positive finite number (got {value!r})")
    if patient.sex not in tuple(Sex):
        errors.append(f"patient.sex must be one of {[s.name for s in Sex]} (got {patient.sex!r})")
    if patient.asa_class not in tuple(AsaClass):
        errors.append(f"patient.asa_class must be one of {[a.name for a in AsaClass]} (got {patient.asa_class!r})")

    for i, ev in enumerate(events):
        if not isinstance(ev, DoseEvent):
            errors.append(f"event {i + 1} is not a DoseEvent (got {type(ev).__name__})")
            continue
        if not _is_number(ev.time_min):
            errors.append(f"event {i + 1}: time_min must be finite (got {ev.time_min!r})")
        if not _is_number(ev.bolus_mg) or ev.bolus_mg < 0:
            errors.append(f"event {i + 1}: bolus_mg must be finite and >= 0 (got {ev.bolus_mg!r})")
        if not _is_number(ev.continuous_mg_kg_h) or ev.continuous_mg_kg_h < 0:
            errors.append(f"event {i + 1}: continuous_mg_kg_h must be finite and >= 0 "
                          f"(got {ev.continuous_mg_kg_h!r})")

    if errors:
        raise InvalidInputError(errors)


# --------------------------
# Small helpers
# --------------------------
def _is_number(x) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, bool) and math.isfinite(x)


def _check_range(errors: list[str], label: str, value, bounds, unit: str) -> None:
    lo, hi = bounds
    if not _is_number(value) or not (lo <= value <= hi):
        errors.append(f"{label} must be between {lo:g} and {hi:g} {unit} (got {value!r})")

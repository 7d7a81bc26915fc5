# src/remipk/errors.py
"""
Exception hierarchy for the simulation engine.

RemiPKError (base)
├── ValidationError
│   └── InvalidInputError
├── EmptyScheduleError
├── ParameterOutOfRangeError
└── NumericalInstabilityError

The engine raises these and never reports them itself; presentation is the
caller's job. A failed simulation produces no partial result.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence


class RemiPKError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(RemiPKError):
    """
    Caller-supplied patient or dose data broke one or more rules.

    All violations are collected in ``errors``, not only the first.
    """

    def __init__(self, errors: Iterable[str], prefix: str = "Invalid input"):
        self.errors = list(errors)
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


class InvalidInputError(ValidationError):
    """
    Structural problem with an input: missing or non-finite values, unknown
    category codes, mismatched array lengths, unparseable clock strings.
    """

    def __init__(self, errors: Iterable[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__(errors, prefix="Malformed input")


class EmptyScheduleError(RemiPKError):
    """No dose events were supplied."""

    def __init__(self, message: str = "At least one dose event is required"):
        super().__init__(message)


class ParameterOutOfRangeError(RemiPKError):
    """A derived PK parameter fell outside its plausibility envelope."""

    def __init__(self, name: str, value: float, lower: float, upper: float):
        self.name = name
        self.value = value
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"{name}={value:.6g} is outside the plausible range ({lower:g}, {upper:g})"
        )


class NumericalInstabilityError(RemiPKError):
    """Integration produced a non-finite state or the solver failed."""

    def __init__(self, time_min: float, state: Optional[Sequence[float]] = None,
                 reason: str = "non-finite state"):
        self.time_min = time_min
        self.state = None if state is None else tuple(float(x) for x in state)
        detail = f" (state={self.state})" if self.state is not None else ""
        super().__init__(f"Integration failed at t={time_min:g} min: {reason}{detail}")

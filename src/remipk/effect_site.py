# src/remipk/effect_site.py
"""
Alternative effect-site estimators.

Each takes a sampled plasma trace and ke0 and rebuilds Ce without touching the
compartment model, so they can be compared against the Ce produced by the
integrator for the same plasma trace. All start from Ce = 0 at the first sample.

  discrete     sub-stepped Euler on dCe/dt = ke0*(Cp - Ce), Cp interpolated linearly
  exponential  superposition of step responses: every change in Cp contributes
               dCp * (1 - exp(-ke0 * elapsed))
  hybrid       exact per-interval solution for constant or linearly changing Cp,
               with a Taylor expansion when ke0*dt is tiny
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Iterable, Optional, Union

import numpy as np

from .errors import InvalidInputError


class EffectSiteMethod(str, Enum):
    DISCRETE = "discrete"
    EXPONENTIAL = "exponential"
    HYBRID = "hybrid"


def resolve_methods(selection: Union[None, str, EffectSiteMethod, Iterable]) -> tuple[EffectSiteMethod, ...]:
    """
    Turn "all", a single name or an iterable of names into a tuple of methods.
    None selects nothing.
    """
    if selection is None:
        return ()
    if isinstance(selection, (str, EffectSiteMethod)):
        if selection == "all":
            return tuple(EffectSiteMethod)
        selection = [selection]
    try:
        return tuple(dict.fromkeys(EffectSiteMethod(s) for s in selection))
    except ValueError as exc:
        raise InvalidInputError(f"Unknown effect-site method in {selection!r}") from exc


def _check_inputs(cp, t, ke0) -> tuple[np.ndarray, np.ndarray]:
    cp = np.asarray(cp, dtype=float)
    t = np.asarray(t, dtype=float)
    errors = []
    if cp.ndim != 1 or t.ndim != 1:
        errors.append("plasma concentrations and time points must be 1-D")
    elif cp.shape != t.shape:
        errors.append(f"plasma concentrations ({cp.size}) and time points ({t.size}) differ in length")
    elif cp.size == 0:
        errors.append("at least one sample is required")
    elif np.any(np.diff(t) <= 0):
        errors.append("time points must be strictly increasing")
    if not (ke0 > 0):
        errors.append(f"ke0 must be positive (got {ke0})")
    if errors:
        raise InvalidInputError(errors)
    return cp, t


def effect_site_discrete(cp, t, ke0: float, dt: float = 0.1) -> np.ndarray:
    cp, t = _check_inputs(cp, t, ke0)
    ce = np.zeros_like(cp)
    for i in range(1, len(t)):
        span = t[i] - t[i - 1]
        n = max(1, int(math.ceil(span / dt)))
        h = span / n
        cp0, cp1 = cp[i - 1], cp[i]
        c = ce[i - 1]
        for step in range(n):
            # midpoint of the sub-step
            frac = (step + 0.5) / n
            cp_mid = cp0 + frac * (cp1 - cp0)
            c += h * ke0 * (cp_mid - c)
        ce[i] = c
    return ce


def effect_site_exponential(cp, t, ke0: float) -> np.ndarray:
    cp, t = _check_inputs(cp, t, ke0)
    steps = np.diff(cp, prepend=0.0)
    ce = np.zeros_like(cp)
    # one row at a time keeps memory linear in the number of samples
    for i in range(1, len(t)):
        ce[i] = np.dot(steps[:i], 1.0 - np.exp(-ke0 * (t[i] - t[:i])))
    return ce


def effect_site_hybrid(cp, t, ke0: float, taylor_threshold: float = 1e-3,
                       flat_tolerance: float = 1e-6) -> np.ndarray:
    cp, t = _check_inputs(cp, t, ke0)
    ce = np.zeros_like(cp)
    for i in range(1, len(t)):
        dt = t[i] - t[i - 1]
        cp0, cp1 = cp[i - 1], cp[i]
        c0 = ce[i - 1]
        x = ke0 * dt
        if abs(cp1 - cp0) < flat_tolerance:
            ce[i] = cp1 + (c0 - cp1) * math.exp(-x)
            continue
        slope = (cp1 - cp0) / dt
        if abs(x) < taylor_threshold:
            # second-order expansion of the exact ramp solution
            ce[i] = c0 + dt * ke0 * (cp0 - c0) + 0.5 * dt * dt * ke0 * (slope - ke0 * (cp0 - c0))
        else:
            ce[i] = cp1 - slope / ke0 + (c0 - cp0 + slope / ke0) * math.exp(-x)
    return ce


def estimate_effect_site(method: EffectSiteMethod, cp, t, ke0: float,
                         discrete_dt: float = 0.1, taylor_threshold: float = 1e-3) -> np.ndarray:
    method = EffectSiteMethod(method)
    if method == EffectSiteMethod.DISCRETE:
        return effect_site_discrete(cp, t, ke0, dt=discrete_dt)
    if method == EffectSiteMethod.EXPONENTIAL:
        return effect_site_exponential(cp, t, ke0)
    return effect_site_hybrid(cp, t, ke0, taylor_threshold=taylor_threshold)


def estimate_all(cp, t, ke0: float, methods: Optional[Iterable[EffectSiteMethod]] = None,
                 discrete_dt: float = 0.1, taylor_threshold: float = 1e-3) -> dict[EffectSiteMethod, np.ndarray]:
    chosen = tuple(EffectSiteMethod) if methods is None else resolve_methods(methods)
    return {m: estimate_effect_site(m, cp, t, ke0, discrete_dt, taylor_threshold) for m in chosen}

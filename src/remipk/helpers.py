from collections import defaultdict
from .types import BolusEntry, InfusionStep
from typing import Sequence


def bolus_totals_by_time(boluses: Sequence[BolusEntry]) -> dict[float, float]:
    """
    Sum same-instant boluses into one jump per timestamp.
    """
    totals: dict[float, float] = defaultdict(float)
    for b in boluses:
        totals[b.time_min] += b.amount_mg
    return dict(totals)


def segment_boundaries(start: float, end: float, boluses: Sequence[BolusEntry],
                       steps: Sequence[InfusionStep]) -> list[float]:
    """
    Times at which the right-hand side or the state jumps, clipped to [start, end],
    always including both ends. Unique and sorted.
    """
    boundaries = {float(start), float(end)}
    for b in boluses:
        if start <= b.time_min <= end:
            boundaries.add(float(b.time_min))
    for s in steps:
        if start <= s.time_min <= end:
            boundaries.add(float(s.time_min))
    return sorted(boundaries)

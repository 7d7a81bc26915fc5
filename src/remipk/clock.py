# src/remipk/clock.py
"""
Wall-clock <-> elapsed-minute translation around an anesthesia start instant.

User-entered clock strings ("HH:MM") are placed on the start's calendar date;
when that lands before the start they are moved to the next day, so a case
starting at 22:37 with a dose entered as "00:34" gives +117 min. Only one
rollover is attempted, so schedules spanning more than 24 h are not supported.
Absolute timestamps go through instant_to_minutes and are never adjusted.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from .errors import InvalidInputError


def parse_clock_string(clock: str) -> time:
    """Parse "H:MM" / "HH:MM" into a time of day."""
    try:
        return datetime.strptime(clock.strip(), "%H:%M").time()
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError(f"Clock time must look like HH:MM (got {clock!r})") from exc


@dataclass(frozen=True)
class ClockTranslator:
    anesthesia_start: datetime

    def clock_string_to_minutes(self, clock: str, allow_rollover: bool = True) -> float:
        """
        Elapsed minutes for a time-of-day string.

        With allow_rollover=False the naive same-date difference is returned,
        which may be negative.
        """
        tod = parse_clock_string(clock)
        candidate = datetime.combine(self.anesthesia_start.date(), tod, tzinfo=self.anesthesia_start.tzinfo)
        minutes = self._minutes_between(candidate)
        if minutes < 0 and allow_rollover:
            minutes = self._minutes_between(candidate + timedelta(days=1))
        return minutes

    def instant_to_minutes(self, instant: datetime) -> float:
        """Signed minutes from anesthesia start to an absolute instant."""
        return self._minutes_between(instant)

    def minutes_to_clock(self, minutes: float) -> datetime:
        return self.anesthesia_start + timedelta(minutes=float(minutes))

    def format_clock(self, minutes: float, fmt: str = "%H:%M") -> str:
        return self.minutes_to_clock(minutes).strftime(fmt)

    def format_start_time(self, fmt: str = "%H:%M") -> str:
        return self.anesthesia_start.strftime(fmt)

    def _minutes_between(self, instant: datetime) -> float:
        return (instant - self.anesthesia_start).total_seconds() / 60.0


def clock_to_minutes(clock_time: str, anesthesia_start: datetime) -> float:
    """Elapsed minutes for an HH:MM string, with single-day rollover."""
    return ClockTranslator(anesthesia_start).clock_string_to_minutes(clock_time)


def minutes_to_clock(minutes: float, anesthesia_start: datetime) -> datetime:
    return ClockTranslator(anesthesia_start).minutes_to_clock(minutes)

"""
Regular calendar-interval time axes.

A temporal reference anchors integer array indexes to absolute instants:
``instant(i) = t0 + dt * i`` where ``dt`` is an ISO-8601 period whose
absolute length may vary (months, years).
"""

import logging
import re
from datetime import datetime
from typing import Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ScalarError, TemporalIndexError

logger = logging.getLogger(__name__)

InstantLike = Union[str, datetime, pd.Timestamp]

# Indexes beyond this magnitude are rejected before any calendar arithmetic
MAX_TEMPORAL_INDEX = 2**31 - 1

_PERIOD_RE = re.compile(
    r"^P(?:(?P<years>\d+)Y)?(?:(?P<months>\d+)M)?(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:[.,]\d+)?)S)?)?$",
    re.IGNORECASE,
)


def to_instant(value: InstantLike) -> pd.Timestamp:
    """
    Convert an ISO-8601 string or datetime to a UTC timestamp.

    Naive values are interpreted as UTC.

    Raises:
        ScalarError: If the value cannot be parsed
    """
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError) as exc:
        raise ScalarError(f"Invalid ISO-8601 instant: {value!r}", str(value)) from exc
    if ts is pd.NaT:
        raise ScalarError(f"Invalid ISO-8601 instant: {value!r}", str(value))
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


class Period(BaseModel):
    """ISO-8601 duration kept as calendar components."""

    model_config = ConfigDict(frozen=True)

    years: int = Field(0, ge=0)
    months: int = Field(0, ge=0)
    weeks: int = Field(0, ge=0)
    days: int = Field(0, ge=0)
    hours: int = Field(0, ge=0)
    minutes: int = Field(0, ge=0)
    seconds: float = Field(0.0, ge=0)

    @classmethod
    def parse(cls, text: str) -> "Period":
        """
        Parse an ISO-8601 duration such as ``P1M``, ``P1D`` or ``PT1h2m``.

        Raises:
            ScalarError: If `text` is not a duration
        """
        match = _PERIOD_RE.match(text.strip())
        if match is None or not any(match.groupdict().values()):
            raise ScalarError(f"Invalid ISO-8601 period: {text!r}", text)
        parts = {k: v for k, v in match.groupdict().items() if v is not None}
        seconds = float(parts.pop("seconds", "0").replace(",", "."))
        return cls(seconds=seconds, **{k: int(v) for k, v in parts.items()})

    def isoformat(self) -> str:
        date_part = "".join(
            f"{value}{unit}"
            for value, unit in ((self.years, "Y"), (self.months, "M"), (self.weeks, "W"), (self.days, "D"))
            if value
        )
        seconds = f"{self.seconds:g}" if self.seconds else ""
        time_part = "".join(
            f"{value}{unit}"
            for value, unit in ((self.hours, "H"), (self.minutes, "M"), (seconds, "S"))
            if value
        )
        if not date_part and not time_part:
            return "PT0S"
        return "P" + date_part + ("T" + time_part if time_part else "")

    def is_zero(self) -> bool:
        return not any((self.years, self.months, self.weeks, self.days, self.hours, self.minutes, self.seconds))

    def to_offset(self, n: int = 1) -> pd.DateOffset:
        """
        Return this period multiplied by `n` as a calendar-aware offset.

        Each component is scaled separately, so adding ``P1M * 13`` moves the
        calendar month by 13 rather than by a fixed number of days.
        """
        total_us = round(self.seconds * 1_000_000) * n
        seconds, microseconds = divmod(total_us, 1_000_000)
        return pd.DateOffset(
            years=self.years * n,
            months=self.months * n,
            weeks=self.weeks * n,
            days=self.days * n,
            hours=self.hours * n,
            minutes=self.minutes * n,
            seconds=seconds,
            microseconds=microseconds,
        )


class TemporalReference:
    """
    Time axis of an array: dimension name, reference instant and period.
    """

    def __init__(self, tdim: str, t0: InstantLike, dt: Union[str, Period]) -> None:
        self.tdim = tdim
        self.t0 = to_instant(t0)
        self.dt = dt if isinstance(dt, Period) else Period.parse(dt)
        if self.dt.is_zero():
            raise ScalarError(f"Temporal period must be positive: {self.dt.isoformat()}", self.dt.isoformat())

    def __repr__(self) -> str:
        return f"TemporalReference(tdim={self.tdim!r}, t0={self.t0.isoformat()!r}, dt={self.dt.isoformat()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TemporalReference):
            return NotImplemented
        return (self.tdim, self.t0, self.dt) == (other.tdim, other.t0, other.dt)

    def __hash__(self) -> int:
        return hash((self.tdim, self.t0, self.dt))

    def instant_at_index(self, index: int) -> pd.Timestamp:
        """
        Instant of array index `index` along the time axis.

        Raises:
            TemporalIndexError: If the index is outside the supported range or
                the resulting instant cannot be represented
        """
        index = int(index)
        if abs(index) > MAX_TEMPORAL_INDEX:
            raise TemporalIndexError(f"Temporal index {index} exceeds ±{MAX_TEMPORAL_INDEX}")
        try:
            return self.t0 + self.dt.to_offset(index)
        except (OverflowError, ValueError) as exc:
            raise TemporalIndexError(
                f"Instant at index {index} of axis '{self.tdim}' is out of range", exc
            ) from exc

    def average_period_ms(self) -> float:
        return (self.instant_at_index(1) - self.t0) / pd.Timedelta(1, "ms")

    def index_at_instant(self, t: InstantLike) -> int:
        """
        Largest index ``i`` with ``instant_at_index(i) <= t``.

        The period has no fixed length, so the index is estimated from the
        length of the first period and then corrected step by step.
        """
        t = to_instant(t)
        estimate = ((t - self.t0) / pd.Timedelta(1, "ms")) / self.average_period_ms()
        i = int(round(estimate))

        current = self.instant_at_index(i)
        if current > t:
            while current > t:
                i -= 1
                current = self.instant_at_index(i)
        elif current < t:
            while current < t:
                i += 1
                current = self.instant_at_index(i)
        if self.instant_at_index(i) > t:
            i -= 1
        logger.debug("Resolved %s on axis '%s' to index %d", t.isoformat(), self.tdim, i)
        return i

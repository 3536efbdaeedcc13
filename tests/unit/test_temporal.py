from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest
from hypothesis import given
from hypothesis import strategies as st

from arraymeta.errors import ScalarError, TemporalIndexError
from arraymeta.md.temporal import MAX_TEMPORAL_INDEX, Period, TemporalReference, to_instant


def ts(text: str) -> pd.Timestamp:
    return pd.Timestamp(text, tz="UTC")


def test_period_parse_components() -> None:
    p = Period.parse("P1Y2M3W4DT5H6M7.5S")
    assert (p.years, p.months, p.weeks, p.days, p.hours, p.minutes) == (1, 2, 3, 4, 5, 6)
    assert p.seconds == 7.5


def test_period_parse_is_case_insensitive() -> None:
    p = Period.parse("PT1h2m")
    assert (p.hours, p.minutes) == (1, 2)
    assert p.isoformat() == "PT1H2M"


@pytest.mark.parametrize("text", ["", "P", "1D", "PT", "P1X", "P-1D"])
def test_period_parse_rejects_invalid(text: str) -> None:
    with pytest.raises(ScalarError):
        Period.parse(text)


def test_zero_period_is_rejected() -> None:
    with pytest.raises(ScalarError):
        TemporalReference("t", "2001-01-01", "PT0S")


def test_naive_instants_are_utc() -> None:
    assert to_instant("2001-01-01T00:00:00") == ts("2001-01-01")
    assert to_instant(datetime(2001, 1, 1, 2, tzinfo=timezone(timedelta(hours=2)))) == ts("2001-01-01")


def test_to_instant_rejects_garbage() -> None:
    with pytest.raises(ScalarError):
        to_instant("not a date")


def test_daily_axis_indexes() -> None:
    trs = TemporalReference("t", "2001-01-01T00:00:00", "P1D")
    assert trs.index_at_instant("2001-01-03T00:00:00") == 2
    assert trs.index_at_instant("2000-12-30T00:00:00") == -2
    assert trs.instant_at_index(2) == ts("2001-01-03")


def test_index_floors_between_steps() -> None:
    trs = TemporalReference("t", "2001-01-01T00:00:00", "P1D")
    assert trs.index_at_instant("2001-01-03T23:59:59") == 2
    assert trs.index_at_instant("2000-12-31T12:00:00") == -1


def test_monthly_axis_uses_calendar_arithmetic() -> None:
    trs = TemporalReference("t", "2001-01-01T00:00:00", "P1M")
    assert trs.instant_at_index(1) == ts("2001-02-01")
    assert trs.instant_at_index(13) == ts("2002-02-01")
    assert trs.index_at_instant("2002-01-31T00:00:00") == 12


def test_sub_daily_period() -> None:
    trs = TemporalReference("t", "2001-01-01T00:00:00", "PT1h2m")
    assert trs.instant_at_index(2) == ts("2001-01-01T02:04:00")
    assert trs.index_at_instant("2001-01-01T02:05:00") == 2


def test_index_bound_is_enforced() -> None:
    trs = TemporalReference("t", "2001-01-01", "PT1S")
    with pytest.raises(TemporalIndexError):
        trs.instant_at_index(MAX_TEMPORAL_INDEX + 1)


def test_unrepresentable_instant_raises() -> None:
    trs = TemporalReference("t", "2001-01-01", "P1Y")
    with pytest.raises(TemporalIndexError):
        trs.instant_at_index(MAX_TEMPORAL_INDEX)


def test_equality_and_hash() -> None:
    a = TemporalReference("t", "2001-01-01", "P1D")
    b = TemporalReference("t", datetime(2001, 1, 1), Period(days=1))
    assert a == b
    assert hash(a) == hash(b)


@pytest.mark.property
@given(
    st.sampled_from(["P1D", "P1M", "P1Y", "PT6H", "P2W", "P1M15D"]),
    st.datetimes(min_value=datetime(1950, 1, 1), max_value=datetime(2100, 1, 1)),
)
def test_index_at_instant_is_floor(period: str, instant: datetime) -> None:
    trs = TemporalReference("t", "2001-01-31T00:00:00", period)
    i = trs.index_at_instant(instant)
    t = to_instant(instant)
    assert trs.instant_at_index(i) <= t
    assert trs.instant_at_index(i + 1) > t

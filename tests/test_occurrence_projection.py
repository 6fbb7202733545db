import pytest
from datetime import datetime, time, timezone

from eventpulse.errors import InvalidAnchor, InvalidWindow
from eventpulse.occurrences import (
    AnchorDate, AnchorRecord, OccurrenceKind, QueryWindow, days_between,
    project_instants, project_occurrences,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def window(start, end):
    return QueryWindow(start, end, 'UTC')


@pytest.mark.parametrize('start,end,expected', [
    (utc(2024, 12, 1), utc(2024, 12, 31), 1),
    (utc(2024, 12, 25), utc(2024, 12, 25), 1),   # single-instant window on the anchor
    (utc(2025, 1, 1), utc(2025, 12, 31), 0),     # same month/day a year later
    (utc(2020, 1, 1), utc(2030, 1, 1), 1),
    (utc(2024, 12, 25, 0, 0, 1), utc(2025, 1, 1), 0),
])
def test_non_recurring_occurs_at_most_once(start, end, expected):
    anchor = AnchorDate(month=12, day=25, year=2024, recurring=False)
    res = project_instants(anchor, window(start, end))
    assert len(res) == expected
    if res:
        assert res[0] == utc(2024, 12, 25)


def test_recurring_one_per_year():
    anchor = AnchorDate(month=6, day=15, recurring=True)
    res = project_instants(anchor, window(utc(2025, 1, 1), utc(2029, 12, 31, 23, 59)))
    assert [d.year for d in res] == [2025, 2026, 2027, 2028, 2029]
    assert all((d.month, d.day) == (6, 15) for d in res)


def test_recurring_ignores_original_year():
    anchor = AnchorDate(month=6, day=15, year=1990, recurring=True)
    res = project_instants(anchor, window(utc(2025, 1, 1), utc(2025, 12, 31)))
    assert res == [utc(2025, 6, 15)]


def test_leap_day_falls_back_to_feb_28():
    anchor = AnchorDate(month=2, day=29, recurring=True)
    res = project_instants(anchor, window(utc(2027, 1, 1), utc(2028, 12, 31)))
    assert res == [utc(2027, 2, 28), utc(2028, 2, 29)]


def test_window_wrapping_year_boundary():
    w = window(utc(2025, 12, 20), utc(2026, 1, 10))
    xmas = project_instants(AnchorDate(month=12, day=25, recurring=True), w)
    jan5 = project_instants(AnchorDate(month=1, day=5, recurring=True), w)
    assert xmas == [utc(2025, 12, 25)]
    assert jan5 == [utc(2026, 1, 5)]


def test_local_timezone_window_wrap():
    # the window is in New York; a Jan 1 anchor lands on local midnight
    w = QueryWindow(utc(2025, 12, 31, 12), utc(2026, 1, 1, 12), 'America/New_York')
    res = project_instants(AnchorDate(month=1, day=1, recurring=True), w)
    assert len(res) == 1
    assert res[0].astimezone(timezone.utc) == utc(2026, 1, 1, 5)


def test_time_of_day_is_kept():
    anchor = AnchorDate(month=3, day=1, recurring=True, time_of_day=time(9, 30))
    res = project_instants(anchor, window(utc(2025, 1, 1), utc(2025, 12, 31)))
    assert res == [utc(2025, 3, 1, 9, 30)]


def test_from_instant_reads_local_date():
    # 03:00 UTC on Mar 18 is still Mar 17 in New York
    a = AnchorDate.from_instant(utc(2025, 3, 18, 3), recurring=True, tz_name='America/New_York')
    assert (a.year, a.month, a.day) == (2025, 3, 17)
    assert a.time_of_day == time(23, 0)
    assert a.recurring is True


@pytest.mark.parametrize('anchor', [
    AnchorDate(month=13, day=1, recurring=True),
    AnchorDate(month=0, day=1, recurring=True),
    AnchorDate(month=1, day=32, recurring=True),
    AnchorDate(month=4, day=31, recurring=True),
    AnchorDate(month=2, day=30, recurring=True),
    AnchorDate(month=5, day=1, recurring=False),          # no year
    AnchorDate(month=2, day=29, year=2025, recurring=False),
])
def test_malformed_anchor_fails_fast(anchor):
    with pytest.raises(InvalidAnchor):
        project_instants(anchor, window(utc(2025, 1, 1), utc(2025, 12, 31)))


def test_window_start_after_end():
    with pytest.raises(InvalidWindow) as ei:
        QueryWindow(utc(2025, 2, 1), utc(2025, 1, 1))
    assert ei.value.to_dict()['error'] == 'invalid_window'


def test_naive_window_bounds_are_utc():
    w = QueryWindow(datetime(2025, 1, 1), datetime(2025, 1, 2))
    assert w.start == utc(2025, 1, 1)


def test_project_occurrences_builds_occurrences():
    rec = AnchorRecord('recipient:1', OccurrenceKind.BIRTHDAY, 'Ada', AnchorDate(month=6, day=15, recurring=True))
    res = project_occurrences(rec, window(utc(2025, 1, 1), utc(2025, 12, 31)), now=utc(2025, 6, 10))
    assert len(res) == 1
    o = res[0]
    assert (o.kind, o.label, o.source_id, o.recurring) == (OccurrenceKind.BIRTHDAY, 'Ada', 'recipient:1', True)
    assert o.days_until == 5
    assert o.timestamp_ms == int(utc(2025, 6, 15).timestamp() * 1000)


@pytest.mark.parametrize('occurs_at,now,expected', [
    (utc(2025, 6, 15), utc(2025, 6, 15), 0),
    (utc(2025, 6, 15), utc(2025, 6, 14, 23), 1),
    (utc(2025, 6, 15), utc(2025, 6, 13, 12), 2),
    (utc(2025, 6, 15, 0, 0, 1), utc(2025, 6, 15), 1),
])
def test_days_between_rounds_up(occurs_at, now, expected):
    assert days_between(occurs_at, now) == expected


def test_timeframe_windows():
    now = utc(2025, 1, 31)
    assert QueryWindow.for_timeframe('week', now).end == utc(2025, 2, 7)
    assert QueryWindow.for_timeframe('month', now).end == utc(2025, 2, 28)
    assert QueryWindow.for_timeframe('quarter', now).end == utc(2025, 4, 30)
    assert QueryWindow.for_timeframe('year', now).end == utc(2026, 1, 31)
    assert QueryWindow.for_timeframe('all', now).end == utc(2035, 1, 31)
    with pytest.raises(ValueError):
        QueryWindow.for_timeframe('decade', now)

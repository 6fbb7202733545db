from datetime import date, datetime, timezone

from eventpulse.holidays import holidays_for_year, holiday_records, to_record
from eventpulse.occurrences import OccurrenceKind, QueryWindow
from eventpulse.upcoming import aggregate_upcoming


def test_2024_calendar():
    days = {h.slug: h.day for h in holidays_for_year(2024)}
    assert days['new-years-day'] == date(2024, 1, 1)
    assert days['valentines-day'] == date(2024, 2, 14)
    assert days['easter'] == date(2024, 3, 31)
    assert days['mothers-day'] == date(2024, 5, 12)
    assert days['fathers-day'] == date(2024, 6, 16)
    assert days['thanksgiving'] == date(2024, 11, 28)
    assert days['new-years-eve'] == date(2024, 12, 31)
    assert len(days) == 12


def test_floating_holidays_move_each_year():
    days = {h.slug: h.day for h in holidays_for_year(2025)}
    assert days['easter'] == date(2025, 4, 20)
    assert days['mothers-day'] == date(2025, 5, 11)
    assert days['fathers-day'] == date(2025, 6, 15)
    assert days['thanksgiving'] == date(2025, 11, 27)


def test_year_is_sorted():
    days = [h.day for h in holidays_for_year(2026)]
    assert days == sorted(days)


def test_record_is_one_off():
    h = holidays_for_year(2024)[0]
    rec = to_record(h)
    assert rec.kind == OccurrenceKind.HOLIDAY
    assert rec.source_id == 'holiday:new-years-day'
    assert rec.anchor.recurring is False
    assert rec.anchor.year == 2024


def test_records_cover_every_year_in_window():
    w = QueryWindow(datetime(2024, 12, 20, tzinfo=timezone.utc), datetime(2025, 1, 10, tzinfo=timezone.utc), 'UTC')
    years = {r.anchor.year for r in holiday_records(w)}
    assert years == {2024, 2025}

    res = aggregate_upcoming(w, holidays=holiday_records(w), now=w.start)
    assert [o.label for o in res.occurrences] == [
        'Christmas Eve', 'Christmas Day', "New Year's Eve", "New Year's Day",
    ]

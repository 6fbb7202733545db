"""Holiday reference data, computed for any calendar year.

Fixed-date holidays keep their month/day every year; floating ones
(Easter, Mother's Day, Father's Day, Thanksgiving) are derived per year
with dateutil. Each year's holiday is a separate, non-recurring anchor.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterator

from dateutil.easter import easter
from dateutil.relativedelta import relativedelta, SU, TH

from .occurrences import AnchorDate, AnchorRecord, OccurrenceKind, QueryWindow


@dataclass(frozen=True)
class Holiday:
    slug: str
    name: str
    description: str
    day: date

    @property
    def source_id(self) -> str:
        return f'holiday:{self.slug}'


# slug, name, description, month, day
FIXED_HOLIDAYS = [
    ('new-years-day', "New Year's Day", 'The first day of the year', 1, 1),
    ('valentines-day', "Valentine's Day", 'A celebration of love', 2, 14),
    ('st-patricks-day', "St. Patrick's Day", 'Irish cultural celebration', 3, 17),
    ('independence-day', 'Independence Day', 'US Independence Day', 7, 4),
    ('halloween', 'Halloween', 'Spooky celebration', 10, 31),
    ('christmas-eve', 'Christmas Eve', 'Day before Christmas', 12, 24),
    ('christmas-day', 'Christmas Day', 'Christian holiday celebrating birth of Jesus', 12, 25),
    ('new-years-eve', "New Year's Eve", 'Last day of the year', 12, 31),
]


def _floating(year: int) -> list[Holiday]:
    return [
        Holiday('easter', 'Easter', 'Christian holiday celebrating resurrection', easter(year)),
        # 2nd Sunday of May
        Holiday('mothers-day', "Mother's Day", 'Honoring mothers', date(year, 5, 1) + relativedelta(weekday=SU(+2))),
        # 3rd Sunday of June
        Holiday('fathers-day', "Father's Day", 'Honoring fathers', date(year, 6, 1) + relativedelta(weekday=SU(+3))),
        # 4th Thursday of November
        Holiday('thanksgiving', 'Thanksgiving', 'Day of gratitude', date(year, 11, 1) + relativedelta(weekday=TH(+4))),
    ]


def holidays_for_year(year: int) -> list[Holiday]:
    """All holidays of a year in date order."""
    out = [Holiday(slug, name, desc, date(year, m, d)) for slug, name, desc, m, d in FIXED_HOLIDAYS]
    out.extend(_floating(year))
    out.sort(key=lambda h: (h.day, h.name))
    return out


def to_record(h: Holiday) -> AnchorRecord:
    return AnchorRecord(
        source_id=h.source_id,
        kind=OccurrenceKind.HOLIDAY,
        label=h.name,
        anchor=AnchorDate(month=h.day.month, day=h.day.day, year=h.day.year, recurring=False),
    )


def holiday_records(window: QueryWindow) -> Iterator[AnchorRecord]:
    """Yield a non-recurring record per holiday for every year the window touches.

    Holidays just outside the window are still yielded; the projector drops
    them.
    """
    tz = window.tz
    first = window.start.astimezone(tz).year
    last = window.end.astimezone(tz).year
    for y in range(first, last + 1):
        for h in holidays_for_year(y):
            yield to_record(h)

"""Project anchor dates onto calendar occurrences inside a query window.

An anchor is a (month, day) pair with an optional year, a time of day and a
recurrence flag. Non-recurring anchors happen exactly once, on their
original date. Recurring anchors happen every year on the same month/day;
a Feb 29 anchor falls on Feb 28 in non-leap years.
"""
from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from enum import Enum
import calendar
import math

from dateutil.relativedelta import relativedelta

from .errors import InvalidAnchor, InvalidWindow
from .utils import now_utc, ensure_aware, get_tz, clamp_leap_day, to_epoch_ms

DAY = timedelta(days=1)

# timeframe name -> window length, as offered by the upcoming-events tool
TIMEFRAMES = {
    'week': relativedelta(days=7),
    'month': relativedelta(months=1),
    'quarter': relativedelta(months=3),
    'year': relativedelta(years=1),
    'all': relativedelta(years=10),
}


class OccurrenceKind(str, Enum):
    BIRTHDAY = 'birthday'
    CUSTOM_EVENT = 'custom_event'
    HOLIDAY = 'holiday'


# Lower sorts first when two occurrences share an instant.
KIND_PRIORITY = {
    OccurrenceKind.CUSTOM_EVENT: 0,
    OccurrenceKind.BIRTHDAY: 1,
    OccurrenceKind.HOLIDAY: 2,
}


@dataclass(frozen=True)
class QueryWindow:
    start: datetime
    end: datetime
    tz_name: str | None = None

    def __post_init__(self):
        object.__setattr__(self, 'start', ensure_aware(self.start))
        object.__setattr__(self, 'end', ensure_aware(self.end))
        if self.start > self.end:
            raise InvalidWindow(self.start, self.end)

    @property
    def tz(self):
        return get_tz(self.tz_name)

    def contains(self, dt: datetime) -> bool:
        return self.start <= dt <= self.end

    @classmethod
    def for_timeframe(cls, timeframe: str, now: datetime | None = None, tz_name: str | None = None) -> 'QueryWindow':
        """Window from now to now + timeframe ('week', 'month', ... 'all')."""
        try:
            delta = TIMEFRAMES[timeframe]
        except KeyError:
            raise ValueError(f'unknown timeframe {timeframe!r}; expected one of {sorted(TIMEFRAMES)}')
        start = ensure_aware(now or now_utc())
        return cls(start, start + delta, tz_name)

    @classmethod
    def for_days(cls, days: int, now: datetime | None = None, tz_name: str | None = None) -> 'QueryWindow':
        start = ensure_aware(now or now_utc())
        return cls(start, start + timedelta(days=days), tz_name)


@dataclass(frozen=True)
class AnchorDate:
    month: int
    day: int
    year: int | None = None
    recurring: bool = False
    time_of_day: time = field(default=time(0, 0))

    @classmethod
    def from_instant(cls, dt: datetime, recurring: bool = False, tz_name: str | None = None) -> 'AnchorDate':
        """Derive an anchor from a stored timestamp, read in local time."""
        local = ensure_aware(dt).astimezone(get_tz(tz_name))
        return cls(month=local.month, day=local.day, year=local.year,
                   recurring=recurring, time_of_day=local.time().replace(tzinfo=None))


@dataclass(frozen=True)
class AnchorRecord:
    """An anchor plus the identity of the entity it came from."""
    source_id: str
    kind: OccurrenceKind
    label: str
    anchor: AnchorDate


@dataclass(frozen=True)
class Occurrence:
    kind: OccurrenceKind
    label: str
    source_id: str
    occurs_at: datetime
    recurring: bool
    days_until: int

    @property
    def timestamp_ms(self) -> int:
        return to_epoch_ms(self.occurs_at)


def days_between(occurs_at: datetime, now: datetime) -> int:
    """ceil((occurs_at - now) / 1 day); 0 when occurs_at == now."""
    delta = ensure_aware(occurs_at) - ensure_aware(now)
    return math.ceil(delta / DAY)


def _check_anchor(anchor: AnchorDate) -> None:
    if not 1 <= anchor.month <= 12:
        raise InvalidAnchor(f'month {anchor.month} out of range 1..12')
    # leap year 2000 so Feb 29 counts as valid month/day
    max_day = calendar.monthrange(2000, anchor.month)[1]
    if not 1 <= anchor.day <= max_day:
        raise InvalidAnchor(f'day {anchor.day} out of range 1..{max_day} for month {anchor.month}')
    if not anchor.recurring:
        if anchor.year is None:
            raise InvalidAnchor('non-recurring anchor requires a year')
        try:
            date(anchor.year, anchor.month, anchor.day)
        except ValueError:
            raise InvalidAnchor(f'{anchor.year:04d}-{anchor.month:02d}-{anchor.day:02d} does not exist')


def project_instants(anchor: AnchorDate, window: QueryWindow) -> list[datetime]:
    """Return the anchor's instants inside the window, ascending."""
    _check_anchor(anchor)
    tz = window.tz
    if not anchor.recurring:
        d = date(anchor.year, anchor.month, anchor.day)
        cand = datetime.combine(d, anchor.time_of_day, tzinfo=tz)
        return [cand] if window.contains(cand) else []

    # one year of slack each side so windows crossing Dec 31 in either
    # direction (after the local conversion) still see every candidate
    first = window.start.astimezone(tz).year - 1
    last = window.end.astimezone(tz).year + 1
    out = []
    for y in range(first, last + 1):
        d = clamp_leap_day(y, anchor.month, anchor.day)
        cand = datetime.combine(d, anchor.time_of_day, tzinfo=tz)
        if window.contains(cand):
            out.append(cand)
    return out


def project_occurrences(record: AnchorRecord, window: QueryWindow, now: datetime | None = None) -> list[Occurrence]:
    now = ensure_aware(now or now_utc())
    return [
        Occurrence(
            kind=record.kind,
            label=record.label,
            source_id=record.source_id,
            occurs_at=inst,
            recurring=record.anchor.recurring,
            days_until=days_between(inst, now),
        )
        for inst in project_instants(record.anchor, window)
    ]

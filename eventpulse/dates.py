"""Resolve free-form date expressions into absolute local-midnight instants.

The same resolver serves form input and assistant tool-call arguments, so it
tries several conventions in a fixed order:

1. explicit numeric ``MM/DD/YYYY`` (and ISO ``YYYY-MM-DD``), validated
   component by component so ``13/40/2024`` is rejected instead of rolling
   over;
2. a natural-language parser (dateparser by default, injectable);
3. a generic absolute parse (dateutil) that refuses to invent a missing
   month or day.

The resolved year is then checked against the policy for the purpose
(birthday or future event).
"""
from datetime import datetime, date, time
from enum import Enum
from functools import partial
from typing import Callable, Optional
import logging
import re

from dateutil import parser as du_parser
from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU
from dateparser.date import DateDataParser

from . import config
from .errors import InvalidDateFormat, DateOutOfRange
from .occurrences import QueryWindow
from .utils import now_utc, ensure_aware, get_tz, sanitize_input

logger = logging.getLogger(__name__)

MONTHS_EN = [
    'January', 'February', 'March', 'April', 'May', 'June', 'July', 'August',
    'September', 'October', 'November', 'December',
]

# Common English number-words that dateparser happily reads as a month or a
# day in isolation (e.g. 'eight' -> August). A bare one is never a date.
NUMBER_WORDS = {
    w: i for i, w in enumerate(
        ['zero', 'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine', 'ten', 'eleven', 'twelve']
    )
}

WEEKDAYS = {
    'monday': MO, 'tuesday': TU, 'wednesday': WE, 'thursday': TH,
    'friday': FR, 'saturday': SA, 'sunday': SU,
}

# dateparser returns None for 'next tuesday' and reads 'two weeks from today'
# as two weeks ago, so both shapes are computed here.
_NEXT_WEEKDAY_RE = re.compile(r'^(?:next|coming)\s+(' + '|'.join(WEEKDAYS) + r')$')
_FROM_NOW_RE = re.compile(
    r'^(\d+|an?|' + '|'.join(NUMBER_WORDS) + r')\s+(day|week|month|year)s?\s+from\s+(?:today|now)$'
)

# 'next week', 'this month', 'from June 1 to July 15', 'between X and Y'
_NAMED_RANGE_RE = re.compile(r'^(this|next)\s+(week|month|year)$')
_BETWEEN_RE = re.compile(r'^between\s+(.+?)\s+and\s+(.+)$', flags=re.IGNORECASE)
_SPAN_RE = re.compile(r'^(?:from\s+)?(.+?)\s+(?:to|until|through|thru)\s+(.+)$', flags=re.IGNORECASE)

_MDY_RE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_ISO_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')

_MONTH_ALTS = '|'.join(
    sorted({m.lower() for m in MONTHS_EN} | {m[:3].lower() for m in MONTHS_EN} | {'sept'}, key=len, reverse=True)
)
# 'March', 'Mar.', 'March 2025', '2025', 'March, 2025': a month and/or a year
# with no day.
_PARTIAL_RE = re.compile(
    r'^(?:(?:' + _MONTH_ALTS + r')\.?(?:,?\s+\d{4})?|\d{4})$',
    flags=re.IGNORECASE,
)

NaturalParser = Callable[[str], Optional[datetime]]


class DatePurpose(str, Enum):
    BIRTHDAY = 'birthday'
    FUTURE_EVENT = 'future_event'


def year_bounds(purpose: DatePurpose | str, current_year: int) -> tuple[int, int]:
    """Inclusive (min, max) year allowed for a purpose."""
    purpose = DatePurpose(purpose)
    if purpose is DatePurpose.BIRTHDAY:
        return config.BIRTHDAY_MIN_YEAR, current_year
    return current_year, current_year + config.FUTURE_EVENT_MAX_YEARS_AHEAD


def _is_partial(text: str) -> bool:
    token = text.strip().lower()
    if token in NUMBER_WORDS or re.fullmatch(r'\d{1,2}', token):
        return True
    return bool(_PARTIAL_RE.match(token))


def _parse_structured(text: str) -> date | None:
    """Parse MM/DD/YYYY or YYYY-MM-DD from explicit components.

    Returns None when the text has neither shape. Raises InvalidDateFormat
    when it has the shape but the components do not form a real date.
    """
    m = _MDY_RE.match(text)
    if m:
        month, day, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    else:
        m = _ISO_RE.match(text)
        if not m:
            return None
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
    try:
        return date(year, month, day)
    except ValueError:
        raise InvalidDateFormat(text, f'{month:02d}/{day:02d}/{year} does not exist')


def parse_natural_language_date(text: str, now: datetime | None = None,
                                prefer_dates_from: str = 'current_period',
                                tz_name: str | None = None) -> datetime | None:
    """Parse phrases like 'next Tuesday', 'in 3 months' or 'March 18, 2025'.

    Relative phrases are anchored at ``now`` expressed in local wall time.
    Returns a naive local datetime, or None when dateparser finds nothing.
    A fresh DateDataParser is built per call so concurrent callers never
    share parser state.
    """
    tz = get_tz(tz_name)
    base = ensure_aware(now or now_utc()).astimezone(tz).replace(tzinfo=None)
    relative = _parse_relative(text, base)
    if relative is not None:
        return relative
    settings = {
        'RELATIVE_BASE': base,
        'PREFER_DATES_FROM': prefer_dates_from,
        'DATE_ORDER': config.DATE_ORDER,
        # absolute dates must name at least a day and a month
        'REQUIRE_PARTS': ['day', 'month'],
        'RETURN_AS_TIMEZONE_AWARE': False,
    }
    ddp = DateDataParser(languages=['en'], settings=settings)
    res = ddp.get_date_data(text)
    dt = getattr(res, 'date_obj', None) if res is not None else None
    # bare years never get here (REQUIRE_PARTS); 'in 2 years' comes back
    # with period 'year' and is a real date
    return dt


def _parse_relative(text: str, base: datetime) -> datetime | None:
    t = ' '.join(text.lower().split())
    m = _NEXT_WEEKDAY_RE.match(t)
    if m:
        # first such weekday strictly after today
        return base + relativedelta(days=+1, weekday=WEEKDAYS[m.group(1)](+1))
    m = _FROM_NOW_RE.match(t)
    if m:
        count, unit = m.group(1), m.group(2)
        if count.isdigit():
            n = int(count)
        else:
            n = NUMBER_WORDS.get(count, 1)
        return base + relativedelta(**{unit + 's': n})
    return None


def _parse_generic(text: str, current_year: int) -> date | None:
    """Generic absolute parse; None when month or day would be invented.

    dateutil fills missing fields from its default, so parsing against two
    different defaults reveals which fields were actually in the text.
    """
    dayfirst = config.DATE_ORDER == 'DMY'
    try:
        a = du_parser.parse(text, default=datetime(2000, 1, 1), dayfirst=dayfirst)
        b = du_parser.parse(text, default=datetime(2004, 2, 2), dayfirst=dayfirst)
    except (ValueError, OverflowError):
        return None
    if a.month != b.month or a.day != b.day:
        return None
    year = a.year if a.year == b.year else current_year
    try:
        return date(year, a.month, a.day)
    except ValueError:
        return None


def _local_date(dt: datetime, tz) -> date:
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(tz).date()


def resolve_date_expression(text: str, purpose: DatePurpose | str,
                            now: datetime | None = None,
                            natural_parser: NaturalParser | None = None,
                            tz_name: str | None = None) -> datetime:
    """Resolve text to an aware datetime at local midnight.

    Raises InvalidDateFormat when no strategy produces a date and
    DateOutOfRange when the year breaks the purpose's policy.
    """
    purpose = DatePurpose(purpose)
    tz = get_tz(tz_name)
    now_local = ensure_aware(now or now_utc()).astimezone(tz)
    clean = sanitize_input(text)
    if not clean:
        raise InvalidDateFormat(text or '', 'empty input')
    if _is_partial(clean):
        raise InvalidDateFormat(clean, 'a day and a month are required')

    strategy = 'structured'
    resolved = _parse_structured(clean)

    if resolved is None:
        strategy = 'natural'
        if natural_parser is None:
            prefer = 'past' if purpose is DatePurpose.BIRTHDAY else 'future'
            natural_parser = partial(parse_natural_language_date, now=now_local,
                                     prefer_dates_from=prefer, tz_name=tz_name)
        try:
            parsed = natural_parser(clean)
        except Exception:
            # the parser is an outside capability; its failure only means
            # this strategy produced nothing
            logger.debug('natural language parse failed for %r', clean, exc_info=True)
            parsed = None
        if parsed is not None:
            resolved = _local_date(parsed, tz)

    if resolved is None:
        strategy = 'generic'
        resolved = _parse_generic(clean, now_local.year)

    if resolved is None:
        logger.debug('no strategy resolved %r', clean)
        raise InvalidDateFormat(clean)

    min_year, max_year = year_bounds(purpose, now_local.year)
    if not (min_year <= resolved.year <= max_year):
        raise DateOutOfRange(resolved.year, min_year, max_year, purpose.value)

    logger.debug('resolved %r via %s -> %s (%s)', clean, strategy, resolved.isoformat(), purpose.value)
    return datetime.combine(resolved, time(0, 0), tzinfo=tz)


def _named_range(which: str, unit: str, today: date) -> tuple[date, date]:
    if unit == 'week':
        first = today + relativedelta(weekday=MO(-1))
        if which == 'next':
            first += relativedelta(weeks=1)
        return first, first + relativedelta(days=6)
    if unit == 'month':
        first = today.replace(day=1)
        if which == 'next':
            first += relativedelta(months=1)
        return first, first + relativedelta(months=1, days=-1)
    year = today.year + (1 if which == 'next' else 0)
    return date(year, 1, 1), date(year, 12, 31)


def resolve_date_range(text: str, now: datetime | None = None,
                       natural_parser: NaturalParser | None = None,
                       tz_name: str | None = None) -> QueryWindow:
    """Turn 'next week', 'this month' or 'from June 1 to July 15' into a window.

    Calendar ranges run Monday to Sunday, or first to last day of the month
    or year. Explicit bounds are resolved as future-event dates and the end
    bound covers its whole local day.
    """
    tz = get_tz(tz_name)
    now_local = ensure_aware(now or now_utc()).astimezone(tz)
    clean = ' '.join(sanitize_input(text).split())
    if not clean:
        raise InvalidDateFormat(text or '', 'empty input')

    m = _NAMED_RANGE_RE.match(clean.lower())
    if m:
        first, last = _named_range(m.group(1), m.group(2), now_local.date())
    else:
        m = _BETWEEN_RE.match(clean) or _SPAN_RE.match(clean)
        if not m:
            raise InvalidDateFormat(clean, 'expected a range like "next week" or "from June 1 to July 15"')
        first, last = (
            resolve_date_expression(part, DatePurpose.FUTURE_EVENT, now=now_local,
                                    natural_parser=natural_parser, tz_name=tz_name).date()
            for part in m.groups()
        )
    logger.debug('range %r -> %s..%s', clean, first.isoformat(), last.isoformat())
    return QueryWindow(datetime.combine(first, time(0, 0), tzinfo=tz),
                       datetime.combine(last, time.max, tzinfo=tz), tz_name)

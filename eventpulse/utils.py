from datetime import datetime, date, timezone
import calendar
import logging
import re
import urllib.parse
import zoneinfo

from . import config

logger = logging.getLogger(__name__)

# Characters stripped from user and assistant tool input.
_UNSAFE_INPUT_CHARS = re.compile(r'[<>"\'&]')


def now_utc() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(timezone.utc)


def get_tz(tz_name: str | None = None) -> zoneinfo.ZoneInfo:
    """Return the ZoneInfo for tz_name, or the configured default zone.

    Tolerates URL-encoded names (e.g. America%2FNew_York) since they arrive
    from query strings.
    """
    name = urllib.parse.unquote(tz_name) if tz_name else config.DEFAULT_TIMEZONE
    try:
        return zoneinfo.ZoneInfo(name)
    except zoneinfo.ZoneInfoNotFoundError:
        logger.exception("failed to find timezone %s; using UTC", name)
        return zoneinfo.ZoneInfo('UTC')


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and return an aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    return int(ensure_aware(dt).timestamp() * 1000)


def parse_iso_to_utc(s: str | None) -> datetime | None:
    """Parse an ISO string (naive assumed UTC, trailing Z allowed).

    Raises ValueError on malformed input.
    """
    if not s:
        return None
    return ensure_aware(datetime.fromisoformat(s.strip().replace('Z', '+00:00')))


def sanitize_input(text: str | None) -> str:
    """Trim and drop characters that have no place in a date or a name."""
    if not text:
        return ''
    return _UNSAFE_INPUT_CHARS.sub('', text.strip())


def is_leap_day(month: int, day: int) -> bool:
    return month == 2 and day == 29


def clamp_leap_day(year: int, month: int, day: int) -> date:
    """Build a date, moving Feb 29 to Feb 28 in non-leap years."""
    if is_leap_day(month, day) and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, month, day)


def format_event_date(dt: datetime, tz_name: str | None = None) -> str:
    """Render an instant as e.g. 'Tuesday, March 18, 2025' in local time."""
    local = ensure_aware(dt).astimezone(get_tz(tz_name))
    return f"{local.strftime('%A')}, {local.strftime('%B')} {local.day}, {local.year}"


def days_until_birthday(birthday: datetime, now: datetime | None = None, tz_name: str | None = None) -> int:
    """Days from today until the next anniversary of birthday (0 if today).

    Both values are compared as local calendar dates. A Feb 29 birthday is
    celebrated on Feb 28 in non-leap years.
    """
    tz = get_tz(tz_name)
    today = ensure_aware(now or now_utc()).astimezone(tz).date()
    born = ensure_aware(birthday).astimezone(tz).date()
    nxt = clamp_leap_day(today.year, born.month, born.day)
    if nxt < today:
        nxt = clamp_leap_day(today.year + 1, born.month, born.day)
    return (nxt - today).days


def is_within_days(birthday: datetime, days: int, now: datetime | None = None, tz_name: str | None = None) -> bool:
    """True when the next anniversary is 1..days days away (today excluded)."""
    d = days_until_birthday(birthday, now=now, tz_name=tz_name)
    return 0 < d <= days

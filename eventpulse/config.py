"""Runtime configuration for the EventPulse date engine and service.

Values are read from environment variables so they can be changed in
development or production without code changes.
"""
import os


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _int_or_none(v: str | None) -> int | None:
    if v is None or not v.strip():
        return None
    return int(v)


# Default timezone name (IANA). Stored timestamps are converted to this zone
# before month/day are extracted, and resolved dates land on local midnight.
DEFAULT_TIMEZONE = os.getenv('DEFAULT_TIMEZONE', 'America/New_York')

# Date ordering passed to dateparser for ambiguous numeric input: 'MDY'
# (month-day-year) or 'DMY'. EventPulse is US-first so MDY is the default.
DATE_ORDER = os.getenv('DATE_ORDER', 'MDY').upper()

# Year policy for resolved dates. Birthdays must fall in
# [BIRTHDAY_MIN_YEAR, current year]; future events in
# [current year, current year + FUTURE_EVENT_MAX_YEARS_AHEAD].
BIRTHDAY_MIN_YEAR = int(os.getenv('BIRTHDAY_MIN_YEAR', '1900'))
FUTURE_EVENT_MAX_YEARS_AHEAD = int(os.getenv('FUTURE_EVENT_MAX_YEARS_AHEAD', '10'))

# Window used by the upcoming view when the caller gives neither a
# timeframe nor explicit bounds.
DEFAULT_EVENT_LOOK_AHEAD_DAYS = int(os.getenv('DEFAULT_EVENT_LOOK_AHEAD_DAYS', '30'))

# Result ceilings per subscription tier. An unset PRO value means unlimited.
FREE_MAX_UPCOMING_EVENTS = int(os.getenv('FREE_MAX_UPCOMING_EVENTS', '5'))
PRO_MAX_UPCOMING_EVENTS = _int_or_none(os.getenv('PRO_MAX_UPCOMING_EVENTS'))

# Whether holidays are merged into the upcoming view by default.
SHOW_HOLIDAYS = _trueish(os.getenv('SHOW_HOLIDAYS', '1'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# Optional local overrides: define variables in eventpulse/local_config.py to
# override the defaults above without changing versioned config.
try:
    from .local_config import *  # type: ignore  # noqa: F401,F403
except ImportError:
    # No local overrides present; proceed with defaults.
    pass

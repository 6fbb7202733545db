"""Merge birthdays, custom events and holidays into one upcoming timeline."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable
import logging

from . import config
from .occurrences import (
    AnchorRecord, Occurrence, OccurrenceKind, QueryWindow, KIND_PRIORITY, project_occurrences,
)
from .utils import now_utc, ensure_aware

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    FREE = 'free'
    PRO = 'pro'


def ceiling_for_tier(tier: Tier | str) -> int | None:
    """Max occurrences a tier may see; None means unlimited."""
    if Tier(tier) is Tier.FREE:
        return config.FREE_MAX_UPCOMING_EVENTS
    return config.PRO_MAX_UPCOMING_EVENTS


@dataclass
class UpcomingResult:
    occurrences: list[Occurrence] = field(default_factory=list)
    summary: str = ''
    total_matches: int = 0
    truncated: bool = False


def _sort_key(o: Occurrence):
    return (o.occurs_at, KIND_PRIORITY[o.kind], o.label)


def _as_kind(records: Iterable[AnchorRecord], kind: OccurrenceKind, recurring: bool | None) -> list[AnchorRecord]:
    out = []
    for r in records:
        anchor = r.anchor if recurring is None else replace(r.anchor, recurring=recurring)
        out.append(replace(r, kind=kind, anchor=anchor))
    return out


def describe_window(window: QueryWindow, timeframe: str | None = None) -> str:
    if timeframe:
        return f'in the next {timeframe}'
    tz = window.tz
    return f'between {window.start.astimezone(tz).date().isoformat()} and {window.end.astimezone(tz).date().isoformat()}'


def build_summary(count: int, window: QueryWindow, search_term: str | None = None,
                  timeframe: str | None = None, total_matches: int | None = None) -> str:
    noun = 'event' if count == 1 else 'events'
    s = f'Found {count} upcoming {noun} {describe_window(window, timeframe)}'
    if search_term:
        s += f' matching "{search_term}"'
    if total_matches is not None and total_matches > count:
        s += f' (showing {count} of {total_matches})'
    return s


def aggregate_upcoming(window: QueryWindow,
                       recipients: Iterable[AnchorRecord] = (),
                       events: Iterable[AnchorRecord] = (),
                       holidays: Iterable[AnchorRecord] = (),
                       ceiling: int | None = None,
                       search_term: str | None = None,
                       now: datetime | None = None,
                       timeframe: str | None = None) -> UpcomingResult:
    """Project every record, then sort, dedupe, filter and truncate.

    - recipients are birthdays and always recur; holidays never recur;
      custom events keep their own flag.
    - ties on the instant order custom_event, birthday, holiday, then label.
    - one occurrence per (source_id, calendar year); the first in sort
      order wins.
    - search is a case-insensitive substring match on the label and runs
      before the ceiling is applied.
    """
    if ceiling is not None and ceiling < 0:
        raise ValueError('ceiling must be >= 0')
    now = ensure_aware(now or now_utc())
    records = (
        _as_kind(events, OccurrenceKind.CUSTOM_EVENT, None)
        + _as_kind(recipients, OccurrenceKind.BIRTHDAY, True)
        + _as_kind(holidays, OccurrenceKind.HOLIDAY, False)
    )

    projected: list[Occurrence] = []
    for r in records:
        projected.extend(project_occurrences(r, window, now=now))
    projected.sort(key=_sort_key)

    tz = window.tz
    seen: set[tuple[str, int]] = set()
    unique: list[Occurrence] = []
    for o in projected:
        key = (o.source_id, o.occurs_at.astimezone(tz).year)
        if key in seen:
            continue
        seen.add(key)
        unique.append(o)

    term = (search_term or '').strip()
    if term:
        needle = term.lower()
        unique = [o for o in unique if needle in o.label.lower()]

    total = len(unique)
    truncated = ceiling is not None and total > ceiling
    if truncated:
        unique = unique[:ceiling]

    summary = build_summary(len(unique), window, search_term=term or None,
                            timeframe=timeframe, total_matches=total)
    logger.info('aggregate_upcoming records=%d projected=%d unique=%d returned=%d truncated=%s',
                len(records), len(projected), total, len(unique), truncated)
    return UpcomingResult(occurrences=unique, summary=summary, total_matches=total, truncated=truncated)

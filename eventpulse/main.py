from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import re
import sys

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlmodel import select

from . import config
from .db import async_session, init_db
from .models import Recipient, CustomEvent
from .dates import DatePurpose, resolve_date_expression, resolve_date_range
from .errors import DateEngineError
from .holidays import holiday_records
from .occurrences import AnchorDate, AnchorRecord, Occurrence, OccurrenceKind, QueryWindow
from .upcoming import Tier, aggregate_upcoming, ceiling_for_tier
from .utils import days_until_birthday, ensure_aware, format_event_date, parse_iso_to_utc, sanitize_input, to_epoch_ms, now_utc

logger = logging.getLogger(__name__)
# Ensure INFO-level messages from this module appear on the server console when
# no handlers are configured (safe fallback for development/testing).
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(config.LOG_LEVEL)

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info('eventpulse starting (timezone=%s date_order=%s)', config.DEFAULT_TIMEZONE, config.DATE_ORDER)
    yield


app = FastAPI(lifespan=lifespan)


@app.exception_handler(DateEngineError)
async def _date_engine_error_handler(request: Request, exc: DateEngineError):
    logger.info('date engine error on %s: %s', request.url.path, exc.code)
    return JSONResponse(status_code=422, content={'detail': exc.to_dict()})


def _parse_iso_to_utc(s: Optional[str]) -> Optional[datetime]:
    try:
        return parse_iso_to_utc(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid datetime: {s}")


class ResolveRequest(BaseModel):
    text: str
    purpose: DatePurpose = DatePurpose.FUTURE_EVENT


class RecipientIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=5, max_length=254)
    birthday: Optional[str] = None

    @field_validator('name')
    @classmethod
    def _clean_name(cls, v: str) -> str:
        v = sanitize_input(v)
        if not v:
            raise ValueError('Name is required')
        return v

    @field_validator('email')
    @classmethod
    def _check_email(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError('Please provide a valid email address')
        return v


class EventIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    date: str
    is_recurring: bool = False

    @field_validator('name')
    @classmethod
    def _clean_name(cls, v: str) -> str:
        v = sanitize_input(v)
        if not v:
            raise ValueError('Event name is required')
        return v


def _iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return ensure_aware(dt).isoformat().replace('+00:00', 'Z')


def _recipient_out(r: Recipient) -> dict:
    out = {'id': r.id, 'name': r.name, 'email': r.email, 'birthday': _iso(r.birthday)}
    if r.birthday is not None:
        out['days_until_birthday'] = days_until_birthday(r.birthday)
    return out


def _event_out(e: CustomEvent) -> dict:
    return {
        'id': e.id,
        'name': e.name,
        'date': _iso(e.date),
        'formatted_date': format_event_date(e.date),
        'is_recurring': e.is_recurring,
    }


def _occurrence_out(o: Occurrence, tz_name: Optional[str]) -> dict:
    return {
        'id': o.source_id,
        'kind': o.kind.value,
        'name': o.label,
        'date': _iso(o.occurs_at),
        'timestamp': o.timestamp_ms,
        'formatted_date': format_event_date(o.occurs_at, tz_name),
        'recurring': o.recurring,
        'days_until': o.days_until,
    }


# SQLite hands datetimes back naive; they were stored as UTC.
def recipient_record(r: Recipient, tz_name: Optional[str] = None) -> Optional[AnchorRecord]:
    if r.birthday is None:
        return None
    return AnchorRecord(
        source_id=f'recipient:{r.id}',
        kind=OccurrenceKind.BIRTHDAY,
        label=r.name,
        anchor=AnchorDate.from_instant(ensure_aware(r.birthday), recurring=True, tz_name=tz_name),
    )


def event_record(e: CustomEvent, tz_name: Optional[str] = None) -> AnchorRecord:
    return AnchorRecord(
        source_id=f'event:{e.id}',
        kind=OccurrenceKind.CUSTOM_EVENT,
        label=e.name,
        anchor=AnchorDate.from_instant(ensure_aware(e.date), recurring=e.is_recurring, tz_name=tz_name),
    )


@app.post('/dates/resolve')
async def resolve_date(body: ResolveRequest, tz: Optional[str] = None):
    dt = resolve_date_expression(body.text, body.purpose, tz_name=tz)
    return {
        'input': body.text,
        'purpose': body.purpose.value,
        'timestamp': to_epoch_ms(dt),
        'iso': dt.isoformat(),
        'formatted': format_event_date(dt, tz),
    }


@app.post('/recipients')
async def create_recipient(body: RecipientIn):
    birthday = None
    if body.birthday and body.birthday.strip():
        birthday = ensure_aware(resolve_date_expression(body.birthday, DatePurpose.BIRTHDAY))
    async with async_session() as sess:
        r = Recipient(name=body.name, email=body.email, birthday=birthday)
        sess.add(r)
        await sess.commit()
        await sess.refresh(r)
    logger.info('created recipient id=%s has_birthday=%s', r.id, birthday is not None)
    return _recipient_out(r)


@app.get('/recipients')
async def list_recipients():
    async with async_session() as sess:
        q = await sess.exec(select(Recipient).order_by(Recipient.name))
        rows = q.all()
    return {'recipients': [_recipient_out(r) for r in rows]}


@app.post('/events')
async def create_event(body: EventIn):
    when = ensure_aware(resolve_date_expression(body.date, DatePurpose.FUTURE_EVENT))
    async with async_session() as sess:
        e = CustomEvent(name=body.name, date=when, is_recurring=body.is_recurring)
        sess.add(e)
        await sess.commit()
        await sess.refresh(e)
    logger.info('created event id=%s recurring=%s', e.id, e.is_recurring)
    out = _event_out(e)
    recurring_text = ' (recurring annually)' if e.is_recurring else ''
    out['message'] = f"Successfully created event {e.name} for {out['formatted_date']}{recurring_text}!"
    return out


@app.get('/events')
async def list_events():
    async with async_session() as sess:
        q = await sess.exec(select(CustomEvent).order_by(CustomEvent.date))
        rows = q.all()
    return {'events': [_event_out(e) for e in rows]}


def _window_from_params(start: Optional[str], end: Optional[str], timeframe: Optional[str],
                        tz: Optional[str], date_range: Optional[str] = None) -> tuple[QueryWindow, Optional[str]]:
    """Build the query window and the label used in the summary.

    Explicit bounds win over a natural-language range, which wins over a
    timeframe. With none of them, the configured look-ahead is used.
    """
    start_dt = _parse_iso_to_utc(start)
    end_dt = _parse_iso_to_utc(end)
    if start_dt or end_dt:
        if not start_dt:
            start_dt = now_utc()
        if not end_dt:
            end_dt = QueryWindow.for_days(config.DEFAULT_EVENT_LOOK_AHEAD_DAYS, now=start_dt).end
        # InvalidWindow propagates to the 422 handler
        return QueryWindow(start_dt, end_dt, tz), None
    if date_range and date_range.strip():
        # InvalidDateFormat and DateOutOfRange also go to the 422 handler
        return resolve_date_range(date_range, tz_name=tz), None
    if timeframe:
        try:
            return QueryWindow.for_timeframe(timeframe, tz_name=tz), timeframe
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    days = config.DEFAULT_EVENT_LOOK_AHEAD_DAYS
    return QueryWindow.for_days(days, tz_name=tz), f'{days} days'


@app.get('/holidays')
async def list_holidays(start: Optional[str] = None, end: Optional[str] = None, tz: Optional[str] = None):
    window, _ = _window_from_params(start, end, None if (start or end) else 'year', tz)
    res = aggregate_upcoming(window, holidays=holiday_records(window))
    return {'holidays': [_occurrence_out(o, tz) for o in res.occurrences]}


@app.get('/upcoming')
async def upcoming(start: Optional[str] = None,
                   end: Optional[str] = None,
                   timeframe: Optional[str] = None,
                   date_range: Optional[str] = Query(None, alias='range'),
                   search: Optional[str] = None,
                   tier: Tier = Tier.FREE,
                   limit: Optional[int] = None,
                   include_birthdays: bool = True,
                   include_events: bool = True,
                   include_holidays: Optional[bool] = None,
                   tz: Optional[str] = None):
    """Birthdays, custom events and holidays inside the window, soonest first.

    The result count is capped by the tier ceiling and, when given, by
    `limit` (whichever is lower).
    """
    if limit is not None and limit < 0:
        raise HTTPException(status_code=400, detail='limit must be >= 0')
    window, label = _window_from_params(start, end, timeframe, tz, date_range)
    if include_holidays is None:
        include_holidays = config.SHOW_HOLIDAYS

    recipients: list[AnchorRecord] = []
    events: list[AnchorRecord] = []
    async with async_session() as sess:
        if include_birthdays:
            q = await sess.exec(select(Recipient).where(Recipient.birthday != None))  # noqa: E711
            recipients = [rec for rec in (recipient_record(r, tz) for r in q.all()) if rec is not None]
        if include_events:
            q = await sess.exec(select(CustomEvent))
            events = [event_record(e, tz) for e in q.all()]
    holidays = list(holiday_records(window)) if include_holidays else []

    ceiling = ceiling_for_tier(tier)
    if limit is not None:
        ceiling = limit if ceiling is None else min(ceiling, limit)

    logger.info('upcoming start=%s end=%s tier=%s ceiling=%s recipients=%d events=%d holidays=%d',
                window.start.isoformat(), window.end.isoformat(), tier.value, ceiling,
                len(recipients), len(events), len(holidays))
    res = aggregate_upcoming(window, recipients=recipients, events=events, holidays=holidays,
                             ceiling=ceiling, search_term=search, timeframe=label)
    return {
        'events': [_occurrence_out(o, tz) for o in res.occurrences],
        'summary': res.summary,
        'total_matches': res.total_matches,
        'truncated': res.truncated,
        'window': {'start': _iso(window.start), 'end': _iso(window.end)},
    }

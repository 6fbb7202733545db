import os
import sys
import pathlib
import tempfile
import logging as _logging

import pytest
import pytest_asyncio

# Point the service at a throwaway SQLite file and pin the zone/order the
# assertions below are written against. This must happen before any
# eventpulse module is imported because config and db read the environment
# at import time.
_TMP_DIR = tempfile.mkdtemp(prefix='eventpulse-tests-')
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///' + os.path.join(_TMP_DIR, 'test.db')
os.environ['DEFAULT_TIMEZONE'] = 'America/New_York'
os.environ['DATE_ORDER'] = 'MDY'
os.environ['FREE_MAX_UPCOMING_EVENTS'] = '5'
os.environ.pop('PRO_MAX_UPCOMING_EVENTS', None)

# Reduce SQLAlchemy logger verbosity during tests
for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlmodel'):
    _logging.getLogger(_name).setLevel(_logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from datetime import datetime, timedelta, timezone  # noqa: E402

from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from eventpulse.main import app  # noqa: E402
from eventpulse.db import init_db, async_session  # noqa: E402
from eventpulse.models import Recipient, CustomEvent  # noqa: E402


# --- Test helpers for stubbing natural-language parsing ---
# Usage:
# - Tests that must not depend on dateparser's phrase coverage pass
#   `fake_natural_parser` as the resolver's natural_parser:
#
#     def test_x(fake_natural_parser):
#         resolve_date_expression('next tuesday', 'future_event',
#                                 now=..., natural_parser=fake_natural_parser)
#
# - `no_natural_parser` always returns None, forcing the generic fallback.
FAKE_BASE = datetime(2025, 6, 1, 12, 0)  # a Sunday


def _default_fake_natural_parser(text: str):
    """Deterministic stand-in for the dateparser-backed parser.

    Knows a handful of relative phrases anchored at FAKE_BASE (naive local
    time) and returns None for anything else.
    """
    t = (text or '').strip().lower()
    table = {
        'tomorrow': FAKE_BASE + timedelta(days=1),
        'next tuesday': FAKE_BASE + timedelta(days=2),
        'two weeks from today': FAKE_BASE + timedelta(days=14),
        'in 3 months': datetime(2025, 9, 1, 12, 0),
        'yesterday': FAKE_BASE - timedelta(days=1),
    }
    return table.get(t)


@pytest.fixture
def fake_natural_parser():
    return _default_fake_natural_parser


@pytest.fixture
def no_natural_parser():
    return lambda text: None


@pytest.fixture
def fake_now():
    """Mid-2025 evaluation time used by resolver tests (UTC)."""
    return datetime(2025, 6, 1, 16, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def ensure_db():
    await init_db()
    async with async_session() as sess:
        await sess.exec(delete(Recipient))
        await sess.exec(delete(CustomEvent))
        await sess.commit()


@pytest_asyncio.fixture
async def client(ensure_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def pytest_sessionfinish(session, exitstatus):
    """Dispose the async engine so pooled connections close before shutdown."""
    try:
        import asyncio
        from eventpulse import db as app_db
        asyncio.run(app_db.engine.dispose())
    except Exception:
        # best-effort: if disposal fails, don't crash pytest teardown
        pass

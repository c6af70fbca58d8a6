import os
import pathlib
import sys
from datetime import timedelta

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

import anyio
import pytest

from siteledger.domain.errors import PersistenceError
from siteledger.infrastructure.database import (
    create_database_engine,
    create_session_factory,
    initialize_database,
)
from siteledger.infrastructure.models import ProfileModel, ProjectModel, UserModel
from siteledger.infrastructure.notifications import ChangeFeed
from siteledger.infrastructure.record_store import RecordStore, SqlRecordStore
from siteledger.utils import now_in_app_timezone

ADMIN_ID = "A1"
OTHER_ADMIN_ID = "A2"
ACTOR_ID = "U1"
PROJECT_ID = "P1"
ORPHAN_PROJECT_ID = "P2"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def record_store(session_factory, feed):
    return SqlRecordStore(session_factory, feed, max_workers=1)


def seed_rows(session_factory, *instances):
    with session_factory() as session:
        session.add_all(instances)
        session.commit()


def seed_defaults(session_factory):
    """Admins A1/A2, a user U1 created by A1, a profile-only user and two projects."""

    seed_rows(
        session_factory,
        UserModel(id=ADMIN_ID, auth_user_id=ADMIN_ID, name="Asha Admin", role="admin"),
        UserModel(id=OTHER_ADMIN_ID, auth_user_id=OTHER_ADMIN_ID, name="Bala Admin", role="admin"),
        UserModel(
            id="row-u1",
            auth_user_id=ACTOR_ID,
            name="Umesh",
            role="site_engineer",
            created_by=ADMIN_ID,
        ),
        ProfileModel(id="U9", full_name="Priya Profile", role="admin"),
        ProjectModel(id=PROJECT_ID, name="Riverside Villa", created_by=ADMIN_ID),
        ProjectModel(id=ORPHAN_PROJECT_ID, name="Old Warehouse", created_by=None),
    )


@pytest.fixture
def seeded(session_factory):
    seed_defaults(session_factory)


def notification_row(notification_id, recipient_id=ADMIN_ID, *, minutes_ago=0, is_read=False):
    stamp = now_in_app_timezone() - timedelta(minutes=minutes_ago)
    return {
        "id": notification_id,
        "recipient_id": recipient_id,
        "actor_id": ACTOR_ID,
        "subject_id": PROJECT_ID,
        "kind": "expense_added",
        "title": "Expense Added",
        "message": f"Umesh added an expense of ₹{minutes_ago} in Riverside Villa",
        "payload": {},
        "is_read": is_read,
        "created_at": stamp,
        "updated_at": stamp,
    }


async def wait_for(predicate, *, attempts=200, delay=0.01):
    """Yield to the event loop until ``predicate`` holds."""

    for _ in range(attempts):
        if predicate():
            return True
        await anyio.sleep(delay)
    return predicate()


class FailingRecordStore(RecordStore):
    """Store whose selected operations raise :class:`PersistenceError`."""

    def __init__(self, inner=None, *, fail=("query", "insert", "update", "subscribe")):
        self.inner = inner
        self.fail = set(fail)
        self.calls = []

    async def _call(self, name, *args, **kwargs):
        self.calls.append((name, args))
        if name in self.fail or self.inner is None:
            raise PersistenceError(f"{name} is unavailable")
        return await getattr(self.inner, name)(*args, **kwargs)

    async def query(self, table, filters=None, *, order=(), limit=None):
        return await self._call("query", table, filters, order=order, limit=limit)

    async def insert(self, table, record):
        return await self._call("insert", table, record)

    async def update(self, table, filters, patch):
        return await self._call("update", table, filters, patch)

    async def subscribe(self, table, filters=None, kinds=("insert", "update")):
        return await self._call("subscribe", table, filters, kinds)


class GatedRecordStore(RecordStore):
    """Delegating store whose notification queries wait for ``release``."""

    def __init__(self, inner):
        self.inner = inner
        self.query_started = anyio.Event()
        self.release = anyio.Event()

    async def query(self, table, filters=None, *, order=(), limit=None):
        if table == "notifications":
            rows = await self.inner.query(table, filters, order=order, limit=limit)
            self.query_started.set()
            await self.release.wait()
            return rows
        return await self.inner.query(table, filters, order=order, limit=limit)

    async def insert(self, table, record):
        return await self.inner.insert(table, record)

    async def update(self, table, filters, patch):
        return await self.inner.update(table, filters, patch)

    async def subscribe(self, table, filters=None, kinds=("insert", "update")):
        return await self.inner.subscribe(table, filters, kinds)

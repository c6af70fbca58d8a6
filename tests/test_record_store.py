import pytest

from conftest import ADMIN_ID, OTHER_ADMIN_ID, notification_row
from siteledger.domain.entities import ChangeKind
from siteledger.domain.errors import PersistenceError
from siteledger.infrastructure.database import Base
from siteledger.infrastructure.record_store import SqlRecordStore, StoreAccess


@pytest.mark.anyio
async def test_query_applies_filters_order_and_limit(record_store):
    await record_store.insert("notifications", notification_row("old", minutes_ago=10))
    await record_store.insert("notifications", notification_row("new", minutes_ago=1))
    await record_store.insert("notifications", notification_row("else", OTHER_ADMIN_ID))

    rows = await record_store.query(
        "notifications", {"recipient_id": ADMIN_ID}, order=("-created_at",), limit=5
    )
    limited = await record_store.query(
        "notifications", {"recipient_id": ADMIN_ID}, order=("created_at",), limit=1
    )

    assert [row["id"] for row in rows] == ["new", "old"]
    assert [row["id"] for row in limited] == ["old"]
    assert rows[0]["created_at"].tzinfo is not None


@pytest.mark.anyio
async def test_writes_are_published_on_the_feed(record_store, feed):
    subscription = feed.subscribe("notifications", {"recipient_id": ADMIN_ID})

    await record_store.insert("notifications", notification_row("n1"))
    await record_store.update("notifications", {"id": "n1"}, {"is_read": True})

    inserted = await subscription.__anext__()
    updated = await subscription.__anext__()
    subscription.close()
    assert inserted.kind is ChangeKind.INSERT
    assert updated.kind is ChangeKind.UPDATE
    assert updated.row["is_read"] is True


@pytest.mark.anyio
async def test_normal_access_is_scoped_to_the_viewer(record_store):
    await record_store.insert("notifications", notification_row("mine", ADMIN_ID))
    await record_store.insert("notifications", notification_row("theirs", OTHER_ADMIN_ID))
    viewer = record_store.as_viewer(ADMIN_ID)

    assert viewer.access is StoreAccess.NORMAL
    assert [row["id"] for row in await viewer.query("notifications")] == ["mine"]
    assert await viewer.query("notifications", {"recipient_id": OTHER_ADMIN_ID}) == []
    assert await viewer.update("notifications", {"id": "theirs"}, {"is_read": True}) == []

    theirs = await record_store.query("notifications", {"id": "theirs"})
    assert theirs[0]["is_read"] is False


@pytest.mark.anyio
async def test_normal_access_cannot_subscribe_to_other_recipients(record_store):
    viewer = record_store.as_viewer(ADMIN_ID)

    with pytest.raises(PersistenceError):
        await viewer.subscribe("notifications", {"recipient_id": OTHER_ADMIN_ID})

    subscription = await viewer.subscribe("notifications")
    assert subscription.filters == {"recipient_id": ADMIN_ID}
    subscription.close()


@pytest.mark.anyio
async def test_anonymous_normal_access_is_rejected(session_factory, feed):
    store = SqlRecordStore(session_factory, feed, access=StoreAccess.NORMAL)

    with pytest.raises(PersistenceError):
        await store.query("notifications")


@pytest.mark.anyio
async def test_identity_columns_cannot_be_updated(record_store):
    await record_store.insert("notifications", notification_row("n1"))

    with pytest.raises(ValueError, match="recipient_id"):
        await record_store.update("notifications", {"id": "n1"}, {"recipient_id": "A2"})


@pytest.mark.anyio
async def test_unknown_tables_and_columns_are_rejected(record_store):
    with pytest.raises(ValueError):
        await record_store.query("invoices")
    with pytest.raises(ValueError):
        await record_store.query("notifications", {"colour": "red"})


@pytest.mark.anyio
async def test_database_errors_surface_as_persistence_errors(record_store, engine):
    Base.metadata.drop_all(bind=engine)

    with pytest.raises(PersistenceError):
        await record_store.query("notifications")

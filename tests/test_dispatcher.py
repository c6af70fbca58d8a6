from datetime import date
from decimal import Decimal

import pytest

from conftest import (
    ACTOR_ID,
    ADMIN_ID,
    ORPHAN_PROJECT_ID,
    PROJECT_ID,
    FailingRecordStore,
)
from siteledger.application.use_cases.notifications import (
    TRUNCATED_ID_FALLBACK,
    BulkExpenseEntry,
    ExpenseEventData,
    MaterialEventData,
    NotificationDispatcher,
    PhaseEventData,
    ProjectFieldChange,
)
from siteledger.domain.entities import ChangeKind, NotificationType
from siteledger.domain.errors import (
    PersistenceError,
    RecipientNotFoundError,
    UnsupportedEventError,
)
from siteledger.infrastructure.record_store import RecordStore


class CountingRecordStore(RecordStore):
    """Record which tables the dispatcher reads."""

    def __init__(self, inner):
        self.inner = inner
        self.queried = []

    async def query(self, table, filters=None, *, order=(), limit=None):
        self.queried.append(table)
        return await self.inner.query(table, filters, order=order, limit=limit)

    async def insert(self, table, record):
        return await self.inner.insert(table, record)

    async def update(self, table, filters, patch):
        return await self.inner.update(table, filters, patch)

    async def subscribe(self, table, filters=None, kinds=("insert", "update")):
        return await self.inner.subscribe(table, filters, kinds)


async def _stored(record_store, **filters):
    return await record_store.query("notifications", filters)


@pytest.mark.anyio
async def test_expense_added_notifies_project_admin(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    result = await dispatcher.dispatch_expense_event(
        ACTOR_ID,
        PROJECT_ID,
        NotificationType.EXPENSE_ADDED,
        ExpenseEventData(amount=500, category="Cement"),
    )

    assert result.ok
    notification = result.notification
    assert notification.recipient_id == ADMIN_ID
    assert notification.actor_id == ACTOR_ID
    assert notification.subject_id == PROJECT_ID
    assert notification.kind is NotificationType.EXPENSE_ADDED
    assert notification.title == "Expense Added"
    assert notification.message == "Umesh added an expense of ₹500 in Riverside Villa"
    assert notification.is_read is False
    assert notification.payload["category"] == "Cement"
    assert notification.payload["project_name"] == "Riverside Villa"
    assert notification.payload["actor_name"] == "Umesh"

    rows = await _stored(record_store, recipient_id=ADMIN_ID)
    assert [row["id"] for row in rows] == [notification.id]


@pytest.mark.anyio
async def test_income_message_keeps_fractional_amount(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    result = await dispatcher.dispatch_expense_event(
        ACTOR_ID, PROJECT_ID, "income_updated", ExpenseEventData(amount=1250.5, category="Sale")
    )

    assert result.notification.title == "Income Updated"
    assert result.notification.message == "Umesh updated income of ₹1250.5 in Riverside Villa"


@pytest.mark.anyio
async def test_phase_and_material_messages_quote_the_item(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    phase = await dispatcher.dispatch_phase_event(
        ACTOR_ID, PROJECT_ID, "phase_added", PhaseEventData(name="Foundation", status="planned")
    )
    material = await dispatcher.dispatch_material_event(
        ACTOR_ID,
        PROJECT_ID,
        "material_deleted",
        MaterialEventData(name="Steel rods", quantity=40, unit="pcs"),
    )

    assert phase.notification.message == 'Umesh added phase "Foundation" in Riverside Villa'
    assert phase.notification.payload["phase_name"] == "Foundation"
    assert material.notification.title == "Material Deleted"
    assert material.notification.message == (
        'Umesh deleted material "Steel rods" in Riverside Villa'
    )
    assert material.notification.payload["unit"] == "pcs"


@pytest.mark.anyio
async def test_project_update_and_creation(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    updated = await dispatcher.dispatch_project_update(
        ACTOR_ID, PROJECT_ID, ProjectFieldChange(field="budget", old_value=10, new_value=12)
    )
    created = await dispatcher.dispatch_project_created(ACTOR_ID, PROJECT_ID)

    assert updated.notification.kind is NotificationType.PROJECT_UPDATED
    assert updated.notification.message == "Umesh updated budget in Riverside Villa"
    assert updated.notification.payload["new_value"] == 12
    assert created.notification.title == "Project Created"
    assert created.notification.message == "Umesh created project Riverside Villa"


_PROJECT_EVENTS = {
    "expense": lambda d: d.dispatch_expense_event(
        ACTOR_ID, ORPHAN_PROJECT_ID, "expense_added", ExpenseEventData(amount=1, category="x")
    ),
    "phase": lambda d: d.dispatch_phase_event(
        ACTOR_ID, ORPHAN_PROJECT_ID, "phase_updated", PhaseEventData(name="Roof")
    ),
    "material": lambda d: d.dispatch_material_event(
        ACTOR_ID, ORPHAN_PROJECT_ID, "material_added", MaterialEventData(name="Sand")
    ),
    "update": lambda d: d.dispatch_project_update(
        ACTOR_ID, ORPHAN_PROJECT_ID, ProjectFieldChange(field="name")
    ),
    "created": lambda d: d.dispatch_project_created(ACTOR_ID, ORPHAN_PROJECT_ID),
}


@pytest.mark.anyio
@pytest.mark.parametrize("event", sorted(_PROJECT_EVENTS))
async def test_project_without_admin_creates_nothing(record_store, seeded, event):
    counting = CountingRecordStore(record_store)
    dispatcher = NotificationDispatcher(counting)

    result = await _PROJECT_EVENTS[event](dispatcher)

    assert not result.ok
    assert isinstance(result.error, RecipientNotFoundError)
    assert result.error.subject_id == ORPHAN_PROJECT_ID
    assert await _stored(record_store) == []
    # recipient lookup short-circuits before any name is resolved
    assert counting.queried == ["projects"]


@pytest.mark.anyio
async def test_persistence_failure_is_reported_not_raised(record_store, seeded):
    failing = FailingRecordStore(record_store, fail={"insert"})
    dispatcher = NotificationDispatcher(failing)

    result = await dispatcher.dispatch_expense_event(
        ACTOR_ID, PROJECT_ID, "expense_added", ExpenseEventData(amount=500, category="Cement")
    )

    assert not result.ok
    assert isinstance(result.error, PersistenceError)
    assert await _stored(record_store) == []


@pytest.mark.anyio
async def test_kind_outside_the_helper_family_is_unsupported(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    wrong_family = await dispatcher.dispatch_phase_event(
        ACTOR_ID, PROJECT_ID, "expense_added", PhaseEventData(name="Roof")
    )
    unknown = await dispatcher.dispatch(ADMIN_ID, ACTOR_ID, "payment_received", "T", "M")

    assert isinstance(wrong_family.error, UnsupportedEventError)
    assert isinstance(unknown.error, UnsupportedEventError)
    assert await _stored(record_store) == []


@pytest.mark.anyio
async def test_unknown_actor_gets_fallback_name(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store, fallback=TRUNCATED_ID_FALLBACK)

    result = await dispatcher.dispatch_expense_event(
        "0123456789abcdef", PROJECT_ID, "expense_added", ExpenseEventData(amount=2, category="x")
    )

    assert result.notification.message.startswith("User 01234567... added an expense")


@pytest.mark.anyio
async def test_bulk_upload_is_summarized_for_the_users_admin(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)
    entries = [
        BulkExpenseEntry(amount=100000, type="expense", project_id=PROJECT_ID),
        BulkExpenseEntry(amount=23456, type="expense", project_id=PROJECT_ID),
        BulkExpenseEntry(amount=500, type="income", project_id=PROJECT_ID),
    ]

    result = await dispatcher.dispatch_bulk_expense_upload(ACTOR_ID, entries)

    notification = result.notification
    assert notification.recipient_id == ADMIN_ID
    assert notification.title == "Bulk Expenses Uploaded"
    assert notification.message == (
        "Umesh uploaded 3 transactions (2 expenses, 1 income) totaling ₹1,23,956"
    )
    assert notification.payload["count"] == 3
    assert notification.payload["income_count"] == 1
    assert notification.payload["total_amount"] == 123956


@pytest.mark.anyio
async def test_empty_bulk_upload_is_rejected(record_store, seeded):
    result = await NotificationDispatcher(record_store).dispatch_bulk_expense_upload(ACTOR_ID, [])

    assert isinstance(result.error, UnsupportedEventError)


@pytest.mark.anyio
async def test_user_events_reach_the_admin_who_created_the_user(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    joined = await dispatcher.dispatch_user_event(ACTOR_ID, NotificationType.USER_JOINED)
    orphan = await dispatcher.dispatch_user_event("U9", NotificationType.USER_UPDATED)

    assert joined.notification.recipient_id == ADMIN_ID
    assert joined.notification.message == "Umesh joined the team"
    assert joined.notification.subject_id is None
    assert isinstance(orphan.error, RecipientNotFoundError)


@pytest.mark.anyio
async def test_dispatch_announces_the_insert(record_store, seeded, feed):
    subscription = feed.subscribe("notifications", {"recipient_id": ADMIN_ID})

    result = await NotificationDispatcher(record_store).dispatch_project_created(
        ACTOR_ID, PROJECT_ID
    )

    event = await subscription.__anext__()
    subscription.close()
    assert event.kind is ChangeKind.INSERT
    assert event.row["id"] == result.notification.id


@pytest.mark.anyio
async def test_normal_privilege_dispatch_writes_through_viewer_handle(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store.as_viewer(ACTOR_ID))

    result = await dispatcher.dispatch_project_created(ACTOR_ID, PROJECT_ID)

    assert result.ok
    assert len(await _stored(record_store, recipient_id=ADMIN_ID)) == 1


@pytest.mark.anyio
async def test_project_update_with_dates_and_decimals_is_stored(record_store, seeded):
    dispatcher = NotificationDispatcher(record_store)

    result = await dispatcher.dispatch_project_update(
        ACTOR_ID,
        PROJECT_ID,
        ProjectFieldChange(field="end_date", old_value=date(2026, 1, 1), new_value=date(2026, 3, 1)),
    )
    budget = await dispatcher.dispatch_project_update(
        ACTOR_ID,
        PROJECT_ID,
        ProjectFieldChange(field="budget", old_value=Decimal("2500.50"), new_value=None),
    )

    assert result.ok
    assert result.notification.payload["old_value"] == "2026-01-01"
    assert result.notification.payload["new_value"] == "2026-03-01"
    assert budget.ok
    assert budget.notification.payload["old_value"] == 2500.5
    rows = await _stored(record_store, id=result.notification.id)
    assert rows[0]["payload"]["new_value"] == "2026-03-01"

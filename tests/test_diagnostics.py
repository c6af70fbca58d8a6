import pytest

from conftest import ACTOR_ID, ADMIN_ID, ORPHAN_PROJECT_ID, PROJECT_ID
from siteledger.application.use_cases.notifications import run_notification_diagnostics
from siteledger.infrastructure.database import Base


@pytest.mark.anyio
async def test_healthy_pipeline_creates_a_test_notification(record_store, seeded):
    report = await run_notification_diagnostics(
        record_store, project_id=PROJECT_ID, actor_id=ACTOR_ID
    )

    assert report.passed
    assert [step.name for step in report.steps] == [
        "notifications_table",
        "project_admin",
        "actor_lookup",
        "create_notification",
    ]
    rows = await record_store.query("notifications", {"recipient_id": ADMIN_ID})
    assert rows[0]["title"] == "Test Notification"
    assert rows[0]["payload"] == {"test": True}


@pytest.mark.anyio
async def test_skip_create_leaves_no_rows(record_store, seeded):
    report = await run_notification_diagnostics(
        record_store,
        project_id=PROJECT_ID,
        actor_id=ACTOR_ID,
        create_test_notification=False,
    )

    assert report.passed
    assert report.steps[-1].data == {"actor_name": "Umesh"}
    assert await record_store.query("notifications") == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("project_id", "actor_id", "failed_step"),
    [
        (ORPHAN_PROJECT_ID, ACTOR_ID, "project_admin"),
        (PROJECT_ID, "ghost", "actor_lookup"),
    ],
)
async def test_run_stops_at_first_failure(record_store, seeded, project_id, actor_id, failed_step):
    report = await run_notification_diagnostics(
        record_store, project_id=project_id, actor_id=actor_id
    )

    assert not report.passed
    assert report.failed_step.name == failed_step
    assert report.steps[-1] is report.failed_step


@pytest.mark.anyio
async def test_missing_table_is_reported(record_store, engine):
    Base.metadata.drop_all(bind=engine)

    report = await run_notification_diagnostics(
        record_store, project_id=PROJECT_ID, actor_id=ACTOR_ID
    )

    assert [step.name for step in report.steps] == ["notifications_table"]
    assert not report.passed

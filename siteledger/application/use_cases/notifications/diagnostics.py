"""Step-by-step health check of the notification pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from siteledger.domain.entities import NotificationType
from siteledger.domain.errors import NameResolutionFailure, PersistenceError
from siteledger.infrastructure.record_store import RecordStore
from siteledger.infrastructure.repositories import NotificationRepository

from .names import NameResolver
from .recipients import RecipientResolver

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticStep:
    name: str
    passed: bool
    detail: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosticsReport:
    steps: list[DiagnosticStep] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return bool(self.steps) and all(step.passed for step in self.steps)

    @property
    def failed_step(self) -> DiagnosticStep | None:
        return next((step for step in self.steps if not step.passed), None)

    def add(self, name: str, passed: bool, detail: str, **data: Any) -> DiagnosticStep:
        step = DiagnosticStep(name=name, passed=passed, detail=detail, data=data)
        self.steps.append(step)
        log = logger.info if passed else logger.error
        log("Diagnostic %s: %s", name, detail)
        return step


async def run_notification_diagnostics(
    store: RecordStore,
    *,
    project_id: str,
    actor_id: str,
    create_test_notification: bool = True,
) -> DiagnosticsReport:
    """Check every stage a project notification goes through.

    The run stops at the first failing stage, because later stages depend on
    it. The last stage writes a real, clearly labelled test notification to
    the project's admin unless ``create_test_notification`` is ``False``.
    """

    report = DiagnosticsReport()

    try:
        await store.query("notifications", limit=1)
    except PersistenceError as exc:
        report.add("notifications_table", False, f"Notifications table unreachable: {exc}")
        return report
    report.add("notifications_table", True, "Notifications table is reachable")

    recipient_id = await RecipientResolver(store).resolve_recipient(project_id)
    if recipient_id is None:
        report.add("project_admin", False, f"No admin found for project {project_id}")
        return report
    report.add("project_admin", True, f"Project {project_id} is owned by {recipient_id}",
               recipient_id=recipient_id)

    try:
        actor_name = await NameResolver(store).lookup_user_name(actor_id)
    except NameResolutionFailure as exc:
        report.add("actor_lookup", False, str(exc))
        return report
    report.add("actor_lookup", True, f"Actor {actor_id} is {actor_name}", actor_name=actor_name)

    if not create_test_notification:
        return report

    try:
        notification = await NotificationRepository(store).create(
            recipient_id=recipient_id,
            actor_id=actor_id,
            subject_id=project_id,
            kind=NotificationType.EXPENSE_ADDED,
            title="Test Notification",
            message="This is a test notification",
            payload={"test": True},
        )
    except PersistenceError as exc:
        report.add("create_notification", False, f"Test notification failed: {exc}")
        return report
    report.add("create_notification", True, f"Created test notification {notification.id}",
               notification_id=notification.id)
    return report


__all__ = ["DiagnosticStep", "DiagnosticsReport", "run_notification_diagnostics"]

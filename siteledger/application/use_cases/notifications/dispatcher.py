"""Create notifications for admins when project data changes.

:class:`NotificationDispatcher` is the only writer of notification records.
Domain editors call one of its typed helpers after their own write has
succeeded; every helper resolves the recipient first, then the names it
needs, composes a fixed title and message, and funnels into
:meth:`NotificationDispatcher.dispatch`. Helpers report failures through
:class:`DispatchResult` instead of raising, so a notification problem never
undoes the change that triggered it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from siteledger.domain.entities import Notification, NotificationType
from siteledger.domain.errors import (
    DispatchError,
    PersistenceError,
    RecipientNotFoundError,
    UnsupportedEventError,
)
from siteledger.infrastructure.record_store import RecordStore
from siteledger.infrastructure.repositories import NotificationRepository
from siteledger.utils import format_amount, format_indian_grouping, now_in_app_timezone

from .names import SENTINEL_FALLBACK, FallbackNames, NameResolver
from .recipients import RecipientResolver

logger = logging.getLogger(__name__)

EXPENSE_KINDS = frozenset(
    {
        NotificationType.EXPENSE_ADDED,
        NotificationType.EXPENSE_UPDATED,
        NotificationType.EXPENSE_DELETED,
        NotificationType.INCOME_ADDED,
        NotificationType.INCOME_UPDATED,
        NotificationType.INCOME_DELETED,
    }
)
PHASE_KINDS = frozenset(
    {
        NotificationType.PHASE_ADDED,
        NotificationType.PHASE_UPDATED,
        NotificationType.PHASE_DELETED,
    }
)
MATERIAL_KINDS = frozenset(
    {
        NotificationType.MATERIAL_ADDED,
        NotificationType.MATERIAL_UPDATED,
        NotificationType.MATERIAL_DELETED,
    }
)
USER_KINDS = frozenset({NotificationType.USER_JOINED, NotificationType.USER_UPDATED})


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a dispatch: the stored notification or the error."""

    notification: Notification | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.notification is not None

    @classmethod
    def success(cls, notification: Notification) -> DispatchResult:
        return cls(notification=notification)

    @classmethod
    def failure(cls, error: DispatchError) -> DispatchResult:
        return cls(error=error)


@dataclass(frozen=True)
class ExpenseEventData:
    amount: float
    category: str
    description: str | None = None


@dataclass(frozen=True)
class PhaseEventData:
    name: str
    status: str | None = None
    estimated_cost: float | None = None


@dataclass(frozen=True)
class MaterialEventData:
    name: str
    quantity: float | None = None
    unit: str | None = None


@dataclass(frozen=True)
class ProjectFieldChange:
    field: str
    old_value: Any = None
    new_value: Any = None


@dataclass(frozen=True)
class BulkExpenseEntry:
    amount: float
    type: Literal["expense", "income"]
    project_id: str | None = None


Composer = Callable[[str, str], tuple[str, str, dict[str, Any]]]


class NotificationDispatcher:
    """Compose and persist notifications for a project's admin.

    The privilege level is whatever ``store`` carries, and the fallback
    policy only affects the names resolved when lookups fail.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        names: NameResolver | None = None,
        recipients: RecipientResolver | None = None,
        fallback: FallbackNames = SENTINEL_FALLBACK,
        currency_symbol: str = "₹",
    ) -> None:
        self.store = store
        self.repository = NotificationRepository(store)
        self.names = names or NameResolver(store, fallback=fallback)
        self.recipients = recipients or RecipientResolver(store)
        self.currency_symbol = currency_symbol

    async def dispatch(
        self,
        recipient_id: str,
        actor_id: str,
        kind: NotificationType | str,
        title: str,
        message: str,
        *,
        project_id: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        """Persist one unread notification for ``recipient_id``."""

        try:
            kind = NotificationType(kind)
        except ValueError:
            return self._fail(UnsupportedEventError(f"Unknown notification kind '{kind}'"))

        try:
            notification = await self.repository.create(
                recipient_id=recipient_id,
                actor_id=actor_id,
                subject_id=project_id,
                kind=kind,
                title=title,
                message=message,
                payload=payload,
            )
        except PersistenceError as exc:
            logger.exception(
                "Failed to persist %s notification for %s", kind.value, recipient_id
            )
            return DispatchResult.failure(exc)

        logger.info(
            "Created %s notification %s for %s", kind.value, notification.id, recipient_id
        )
        return DispatchResult.success(notification)

    async def dispatch_expense_event(
        self,
        actor_id: str,
        project_id: str,
        kind: NotificationType | str,
        data: ExpenseEventData,
    ) -> DispatchResult:
        """Notify the admin that an expense or income entry changed."""

        checked = self._check_kind(kind, EXPENSE_KINDS, "expense")
        if isinstance(checked, DispatchResult):
            return checked

        is_income = checked.subject == "income"
        amount = f"{self.currency_symbol}{format_amount(data.amount)}"

        def compose(actor_name: str, project_name: str) -> tuple[str, str, dict[str, Any]]:
            noun = "income" if is_income else "an expense"
            message = f"{actor_name} {checked.action} {noun} of {amount} in {project_name}"
            payload = {
                "amount": data.amount,
                "category": data.category,
                "description": data.description,
            }
            return _title(checked), message, payload

        return await self._dispatch_project_event(actor_id, project_id, checked, compose)

    async def dispatch_phase_event(
        self,
        actor_id: str,
        project_id: str,
        kind: NotificationType | str,
        data: PhaseEventData,
    ) -> DispatchResult:
        checked = self._check_kind(kind, PHASE_KINDS, "phase")
        if isinstance(checked, DispatchResult):
            return checked

        def compose(actor_name: str, project_name: str) -> tuple[str, str, dict[str, Any]]:
            message = f'{actor_name} {checked.action} phase "{data.name}" in {project_name}'
            payload = {
                "phase_name": data.name,
                "status": data.status,
                "estimated_cost": data.estimated_cost,
            }
            return _title(checked), message, payload

        return await self._dispatch_project_event(actor_id, project_id, checked, compose)

    async def dispatch_material_event(
        self,
        actor_id: str,
        project_id: str,
        kind: NotificationType | str,
        data: MaterialEventData,
    ) -> DispatchResult:
        checked = self._check_kind(kind, MATERIAL_KINDS, "material")
        if isinstance(checked, DispatchResult):
            return checked

        def compose(actor_name: str, project_name: str) -> tuple[str, str, dict[str, Any]]:
            message = f'{actor_name} {checked.action} material "{data.name}" in {project_name}'
            payload = {
                "material_name": data.name,
                "quantity": data.quantity,
                "unit": data.unit,
            }
            return _title(checked), message, payload

        return await self._dispatch_project_event(actor_id, project_id, checked, compose)

    async def dispatch_project_update(
        self, actor_id: str, project_id: str, change: ProjectFieldChange
    ) -> DispatchResult:
        def compose(actor_name: str, project_name: str) -> tuple[str, str, dict[str, Any]]:
            message = f"{actor_name} updated {change.field} in {project_name}"
            payload = {
                "field": change.field,
                "old_value": change.old_value,
                "new_value": change.new_value,
            }
            return "Project Updated", message, payload

        return await self._dispatch_project_event(
            actor_id, project_id, NotificationType.PROJECT_UPDATED, compose
        )

    async def dispatch_project_created(self, actor_id: str, project_id: str) -> DispatchResult:
        def compose(actor_name: str, project_name: str) -> tuple[str, str, dict[str, Any]]:
            return "Project Created", f"{actor_name} created project {project_name}", {}

        return await self._dispatch_project_event(
            actor_id, project_id, NotificationType.PROJECT_CREATED, compose
        )

    async def dispatch_bulk_expense_upload(
        self, actor_id: str, entries: Sequence[BulkExpenseEntry]
    ) -> DispatchResult:
        """Summarize a spreadsheet upload of expenses in one notification.

        The recipient is the admin who created the uploading user, since a
        single upload may span several projects.
        """

        if not entries:
            return self._fail(UnsupportedEventError("A bulk upload needs at least one entry"))

        recipient_id = await self.recipients.resolve_user_admin(actor_id)
        if recipient_id is None:
            return self._fail(RecipientNotFoundError(actor_id))
        actor_name = await self.names.resolve_user_name(actor_id)

        total = sum(float(entry.amount or 0) for entry in entries)
        count = len(entries)
        incomes = sum(1 for entry in entries if entry.type == "income")
        expenses = count - incomes
        message = (
            f"{actor_name} uploaded {count} transaction{'s' if count > 1 else ''} "
            f"({expenses} expense{'s' if expenses != 1 else ''}, "
            f"{incomes} income{'s' if incomes != 1 else ''}) "
            f"totaling {self.currency_symbol}{format_indian_grouping(total)}"
        )
        payload = {
            "count": count,
            "expense_count": expenses,
            "income_count": incomes,
            "total_amount": total,
            "actor_name": actor_name,
            "uploaded_at": now_in_app_timezone().isoformat(),
        }
        return await self.dispatch(
            recipient_id,
            actor_id,
            NotificationType.EXPENSE_ADDED,
            "Bulk Expenses Uploaded",
            message,
            project_id=entries[0].project_id,
            payload=payload,
        )

    async def dispatch_user_event(
        self, actor_id: str, kind: NotificationType | str
    ) -> DispatchResult:
        """Tell the admin that one of their users joined or changed their profile."""

        checked = self._check_kind(kind, USER_KINDS, "user")
        if isinstance(checked, DispatchResult):
            return checked

        recipient_id = await self.recipients.resolve_user_admin(actor_id)
        if recipient_id is None:
            return self._fail(RecipientNotFoundError(actor_id))
        actor_name = await self.names.resolve_user_name(actor_id)

        if checked is NotificationType.USER_JOINED:
            message = f"{actor_name} joined the team"
        else:
            message = f"{actor_name} updated their profile"
        return await self.dispatch(
            recipient_id,
            actor_id,
            checked,
            _title(checked),
            message,
            payload={"actor_name": actor_name},
        )

    async def _dispatch_project_event(
        self,
        actor_id: str,
        project_id: str,
        kind: NotificationType,
        compose: Composer,
    ) -> DispatchResult:
        recipient_id = await self.recipients.resolve_recipient(project_id)
        if recipient_id is None:
            return self._fail(RecipientNotFoundError(project_id))

        actor_name = await self.names.resolve_user_name(actor_id)
        project_name = await self.names.resolve_project_name(project_id)

        title, message, payload = compose(actor_name, project_name)
        payload.update(project_name=project_name, actor_name=actor_name)
        return await self.dispatch(
            recipient_id,
            actor_id,
            kind,
            title,
            message,
            project_id=project_id,
            payload=payload,
        )

    def _check_kind(
        self,
        kind: NotificationType | str,
        family: frozenset[NotificationType],
        label: str,
    ) -> NotificationType | DispatchResult:
        try:
            checked = NotificationType(kind)
        except ValueError:
            checked = None
        if checked not in family:
            return self._fail(
                UnsupportedEventError(f"'{kind}' is not a {label} notification kind")
            )
        return checked

    @staticmethod
    def _fail(error: DispatchError) -> DispatchResult:
        logger.warning("Notification not dispatched: %s", error)
        return DispatchResult.failure(error)


def _title(kind: NotificationType) -> str:
    return f"{kind.subject.capitalize()} {kind.action.capitalize()}"


__all__ = [
    "BulkExpenseEntry",
    "DispatchResult",
    "ExpenseEventData",
    "MaterialEventData",
    "NotificationDispatcher",
    "PhaseEventData",
    "ProjectFieldChange",
]

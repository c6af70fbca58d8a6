"""Schemas exposed by the HTTP interface."""

from .events import (
    BulkExpenseEntryRequest,
    BulkExpenseUploadRequest,
    DispatchResponse,
    ExpenseEventRequest,
    MaterialEventRequest,
    PhaseEventRequest,
    ProjectUpdateRequest,
)
from .notification import (
    NotificationMarkReadResponse,
    NotificationRead,
    NotificationUnreadCount,
)

__all__ = [
    "BulkExpenseEntryRequest",
    "BulkExpenseUploadRequest",
    "DispatchResponse",
    "ExpenseEventRequest",
    "MaterialEventRequest",
    "NotificationMarkReadResponse",
    "NotificationRead",
    "NotificationUnreadCount",
    "PhaseEventRequest",
    "ProjectUpdateRequest",
]

"""Public helpers for creating and following notifications."""

from .diagnostics import DiagnosticsReport, DiagnosticStep, run_notification_diagnostics
from .dispatcher import (
    BulkExpenseEntry,
    DispatchResult,
    ExpenseEventData,
    MaterialEventData,
    NotificationDispatcher,
    PhaseEventData,
    ProjectFieldChange,
)
from .names import (
    SENTINEL_FALLBACK,
    TRUNCATED_ID_FALLBACK,
    FallbackNames,
    NameResolver,
    fallback_names,
)
from .recipients import RecipientResolver
from .store import NotificationStore

__all__ = [
    "BulkExpenseEntry",
    "DiagnosticStep",
    "DiagnosticsReport",
    "DispatchResult",
    "ExpenseEventData",
    "FallbackNames",
    "MaterialEventData",
    "NameResolver",
    "NotificationDispatcher",
    "NotificationStore",
    "PhaseEventData",
    "ProjectFieldChange",
    "RecipientResolver",
    "SENTINEL_FALLBACK",
    "TRUNCATED_ID_FALLBACK",
    "fallback_names",
    "run_notification_diagnostics",
]

"""Pydantic models for the domain events that trigger notifications."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from siteledger.application.use_cases.notifications import DispatchResult


class ExpenseEventRequest(BaseModel):
    kind: Literal[
        "expense_added",
        "expense_updated",
        "expense_deleted",
        "income_added",
        "income_updated",
        "income_deleted",
    ]
    amount: float
    category: str = Field(..., min_length=1)
    description: str | None = None


class PhaseEventRequest(BaseModel):
    kind: Literal["phase_added", "phase_updated", "phase_deleted"]
    name: str = Field(..., min_length=1)
    status: str | None = None
    estimated_cost: float | None = None


class MaterialEventRequest(BaseModel):
    kind: Literal["material_added", "material_updated", "material_deleted"]
    name: str = Field(..., min_length=1)
    quantity: float | None = None
    unit: str | None = None


class ProjectUpdateRequest(BaseModel):
    field: str = Field(..., min_length=1)
    old_value: Any = None
    new_value: Any = None


class BulkExpenseEntryRequest(BaseModel):
    amount: float
    type: Literal["expense", "income"]
    project_id: str | None = None


class BulkExpenseUploadRequest(BaseModel):
    entries: list[BulkExpenseEntryRequest] = Field(..., min_length=1)


class DispatchResponse(BaseModel):
    """Outcome of a notification dispatch, reported without failing the caller."""

    dispatched: bool
    notification_id: str | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def from_result(cls, result: DispatchResult) -> DispatchResponse:
        if result.ok and result.notification is not None:
            return cls(dispatched=True, notification_id=result.notification.id)
        return cls(
            dispatched=False,
            error=str(result.error) if result.error else None,
            error_type=type(result.error).__name__ if result.error else None,
        )


__all__ = [
    "BulkExpenseEntryRequest",
    "BulkExpenseUploadRequest",
    "DispatchResponse",
    "ExpenseEventRequest",
    "MaterialEventRequest",
    "PhaseEventRequest",
    "ProjectUpdateRequest",
]

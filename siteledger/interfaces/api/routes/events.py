"""Entry points used by domain editors after their own write succeeded.

Every endpoint answers ``202 Accepted``: a notification that cannot be
created is reported in the body, never as a failed request.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from siteledger.application.use_cases.notifications import (
    BulkExpenseEntry,
    ExpenseEventData,
    MaterialEventData,
    NotificationDispatcher,
    PhaseEventData,
    ProjectFieldChange,
)
from siteledger.domain.entities import NotificationType, SessionIdentity
from siteledger.interfaces.api.dependencies import get_dispatcher, get_session_identity
from siteledger.interfaces.api.schemas import (
    BulkExpenseUploadRequest,
    DispatchResponse,
    ExpenseEventRequest,
    MaterialEventRequest,
    PhaseEventRequest,
    ProjectUpdateRequest,
)

router = APIRouter(tags=["events"])


@router.post(
    "/projects/{project_id}/events/expenses",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def expense_event(
    project_id: str,
    payload: ExpenseEventRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_expense_event(
        identity.user_id,
        project_id,
        payload.kind,
        ExpenseEventData(
            amount=payload.amount,
            category=payload.category,
            description=payload.description,
        ),
    )
    return DispatchResponse.from_result(result)


@router.post(
    "/projects/{project_id}/events/phases",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def phase_event(
    project_id: str,
    payload: PhaseEventRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_phase_event(
        identity.user_id,
        project_id,
        payload.kind,
        PhaseEventData(
            name=payload.name,
            status=payload.status,
            estimated_cost=payload.estimated_cost,
        ),
    )
    return DispatchResponse.from_result(result)


@router.post(
    "/projects/{project_id}/events/materials",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def material_event(
    project_id: str,
    payload: MaterialEventRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_material_event(
        identity.user_id,
        project_id,
        payload.kind,
        MaterialEventData(name=payload.name, quantity=payload.quantity, unit=payload.unit),
    )
    return DispatchResponse.from_result(result)


@router.post(
    "/projects/{project_id}/events/updates",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def project_update_event(
    project_id: str,
    payload: ProjectUpdateRequest,
    identity: SessionIdentity = Depends(get_session_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_project_update(
        identity.user_id,
        project_id,
        ProjectFieldChange(
            field=payload.field,
            old_value=payload.old_value,
            new_value=payload.new_value,
        ),
    )
    return DispatchResponse.from_result(result)


@router.post(
    "/projects/{project_id}/events/created",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def project_created_event(
    project_id: str,
    identity: SessionIdentity = Depends(get_session_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_project_created(identity.user_id, project_id)
    return DispatchResponse.from_result(result)


@router.post(
    "/users/{user_id}/events/bulk-expenses",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def bulk_expense_upload_event(
    user_id: str,
    payload: BulkExpenseUploadRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    entries = [
        BulkExpenseEntry(amount=entry.amount, type=entry.type, project_id=entry.project_id)
        for entry in payload.entries
    ]
    result = await dispatcher.dispatch_bulk_expense_upload(user_id, entries)
    return DispatchResponse.from_result(result)


@router.post(
    "/users/{user_id}/events/joined",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def user_joined_event(
    user_id: str,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_user_event(user_id, NotificationType.USER_JOINED)
    return DispatchResponse.from_result(result)


@router.post(
    "/users/{user_id}/events/updated",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def user_updated_event(
    user_id: str,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DispatchResponse:
    result = await dispatcher.dispatch_user_event(user_id, NotificationType.USER_UPDATED)
    return DispatchResponse.from_result(result)

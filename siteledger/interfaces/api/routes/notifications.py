"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging

import anyio
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from siteledger.config import Settings, get_settings
from siteledger.domain.entities import Notification, SessionIdentity
from siteledger.domain.errors import PersistenceError, SubscriptionError
from siteledger.infrastructure.notifications import ChangeSubscription
from siteledger.infrastructure.notifications.publisher import (
    change_event_message,
    serialize_notification,
)
from siteledger.infrastructure.record_store import SqlRecordStore
from siteledger.infrastructure.repositories import NotificationRepository
from siteledger.interfaces.api.dependencies import (
    get_record_store,
    require_notification_recipient,
)
from siteledger.interfaces.api.schemas import (
    NotificationMarkReadResponse,
    NotificationRead,
    NotificationUnreadCount,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id,
        seq=notification.seq,
        recipient_id=notification.recipient_id,
        actor_id=notification.actor_id,
        subject_id=notification.subject_id,
        kind=notification.kind.value,
        title=notification.title,
        message=notification.message,
        payload=notification.payload or {},
        is_read=notification.is_read,
        created_at=notification.created_at,
        updated_at=notification.updated_at,
    )


def _repository_for(store: SqlRecordStore, identity: SessionIdentity) -> NotificationRepository:
    return NotificationRepository(store.as_viewer(identity.user_id))


def _unavailable(exc: PersistenceError) -> HTTPException:
    logger.error("Notification request failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notifications are temporarily unavailable",
    )


@router.get("/", response_model=list[NotificationRead])
async def list_notifications(
    identity: SessionIdentity = Depends(require_notification_recipient),
    store: SqlRecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> list[NotificationRead]:
    """Return the most recent notifications for the authenticated admin."""

    try:
        notifications = await _repository_for(store, identity).list_for_recipient(
            identity.user_id, limit=settings.notification_window
        )
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return [_notification_to_schema(notification) for notification in notifications]


@router.get("/unread-count", response_model=NotificationUnreadCount)
async def count_unread_notifications(
    identity: SessionIdentity = Depends(require_notification_recipient),
    store: SqlRecordStore = Depends(get_record_store),
) -> NotificationUnreadCount:
    try:
        unread = await _repository_for(store, identity).list_unread_for_recipient(
            identity.user_id, limit=None
        )
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return NotificationUnreadCount(unread=len(unread))


@router.post("/read-all", response_model=NotificationMarkReadResponse)
async def mark_all_notifications_as_read(
    identity: SessionIdentity = Depends(require_notification_recipient),
    store: SqlRecordStore = Depends(get_record_store),
) -> NotificationMarkReadResponse:
    """Mark every unread notification of the admin as read."""

    try:
        updated = await _repository_for(store, identity).mark_all_as_read(identity.user_id)
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return NotificationMarkReadResponse(updated=len(updated))


@router.post("/{notification_id}/read", response_model=NotificationMarkReadResponse)
async def mark_notification_as_read(
    notification_id: str,
    identity: SessionIdentity = Depends(require_notification_recipient),
    store: SqlRecordStore = Depends(get_record_store),
) -> NotificationMarkReadResponse:
    """Mark one notification as read; already-read notifications report 0."""

    try:
        updated = await _repository_for(store, identity).mark_as_read(
            [notification_id], recipient_id=identity.user_id
        )
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return NotificationMarkReadResponse(updated=len(updated))


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notification changes to an admin."""

    settings = get_settings()
    user_id = websocket.query_params.get("user_id")
    identity = SessionIdentity(
        user_id=user_id or "", role=websocket.query_params.get("role") or ""
    )
    if not user_id or not identity.has_any_role(settings.notification_privileged_roles):
        await websocket.close(code=1008)
        return

    store = websocket.app.state.record_store.as_viewer(user_id)
    repository = NotificationRepository(store)
    subscription: ChangeSubscription | None = None
    try:
        subscription = await store.subscribe("notifications", {"recipient_id": user_id})
        recent = await repository.list_for_recipient(
            user_id, limit=settings.notification_window
        )
    except PersistenceError:
        logger.exception("Could not open the notification stream for %s", user_id)
        if subscription is not None:
            subscription.close()
        await websocket.close(code=1011)
        return

    await websocket.accept()
    async with subscription:
        await websocket.send_json(
            {"type": "init", "data": [serialize_notification(n) for n in recent]}
        )
        async with anyio.create_task_group() as task_group:
            task_group.start_soon(_forward_changes, websocket, subscription, task_group.cancel_scope)
            await _receive_messages(websocket, repository, user_id)
            task_group.cancel_scope.cancel()


async def _forward_changes(
    websocket: WebSocket, subscription: ChangeSubscription, scope: anyio.CancelScope
) -> None:
    try:
        async for event in subscription:
            await websocket.send_json(change_event_message(event))
    except SubscriptionError as exc:
        # the client reconnects and receives a fresh init frame
        logger.warning("Notification stream dropped: %s", exc)
        await websocket.close(code=1012)
        scope.cancel()


async def _receive_messages(
    websocket: WebSocket, repository: NotificationRepository, user_id: str
) -> None:
    while True:
        try:
            message = await websocket.receive_json()
        except WebSocketDisconnect:
            return
        except RuntimeError:
            # socket already closed by the forwarding task
            return
        except ValueError:
            continue

        if not isinstance(message, dict):
            continue

        message_type = message.get("type")
        if message_type == "ping":
            await websocket.send_json({"type": "pong"})
            continue

        if message_type == "ack":
            ids = message.get("ids", [])
            if isinstance(ids, list) and ids:
                try:
                    await repository.mark_as_read(
                        [str(notification_id) for notification_id in ids],
                        recipient_id=user_id,
                    )
                except PersistenceError:
                    logger.exception("Failed to acknowledge notifications for %s", user_id)
            continue

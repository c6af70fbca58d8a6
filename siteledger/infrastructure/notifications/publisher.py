"""Serialization of notifications and change events for websocket clients."""

from __future__ import annotations

from typing import Any

from siteledger.domain.entities import ChangeEvent, Notification
from siteledger.infrastructure.repositories import NotificationRepository


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "seq": notification.seq,
        "recipient_id": notification.recipient_id,
        "actor_id": notification.actor_id,
        "subject_id": notification.subject_id,
        "kind": notification.kind.value,
        "title": notification.title,
        "message": notification.message,
        "payload": notification.payload or {},
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
        "updated_at": notification.updated_at.isoformat()
        if notification.updated_at
        else None,
    }


def change_event_message(event: ChangeEvent) -> dict[str, Any]:
    """Wrap a notification change event into a websocket frame."""

    notification = NotificationRepository.to_entity(event.row)
    return {
        "type": f"notification.{event.kind.value}",
        "data": serialize_notification(notification),
    }


__all__ = ["change_event_message", "serialize_notification"]

"""Persistence helpers for notification entities."""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from fastapi.encoders import jsonable_encoder

from siteledger.domain.entities import Notification, NotificationType
from siteledger.infrastructure.record_store import RecordStore
from siteledger.utils import ensure_app_timezone, now_in_app_timezone

TABLE = "notifications"
NEWEST_FIRST = ("-created_at", "-seq")


class NotificationRepository:
    """Provide the notification operations used by the pipeline."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def list_for_recipient(
        self, recipient_id: str, *, limit: int | None = 50
    ) -> Sequence[Notification]:
        rows = await self.store.query(
            TABLE, {"recipient_id": recipient_id}, order=NEWEST_FIRST, limit=limit
        )
        return [self.to_entity(row) for row in rows]

    async def list_unread_for_recipient(
        self, recipient_id: str, *, limit: int | None = 50
    ) -> Sequence[Notification]:
        rows = await self.store.query(
            TABLE,
            {"recipient_id": recipient_id, "is_read": False},
            order=NEWEST_FIRST,
            limit=limit,
        )
        return [self.to_entity(row) for row in rows]

    async def create(
        self,
        *,
        recipient_id: str,
        actor_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        subject_id: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> Notification:
        now = now_in_app_timezone()
        row = await self.store.insert(
            TABLE,
            {
                "id": uuid.uuid4().hex,
                "recipient_id": recipient_id,
                "actor_id": actor_id,
                "subject_id": subject_id,
                "kind": NotificationType(kind).value,
                "title": title,
                "message": message,
                "payload": jsonable_encoder(dict(payload or {})),
                "is_read": False,
                "created_at": now,
                "updated_at": now,
            },
        )
        return self.to_entity(row)

    async def mark_as_read(
        self, notification_ids: Sequence[str], *, recipient_id: str
    ) -> Sequence[Notification]:
        """Mark the unread ``notification_ids`` of ``recipient_id`` as read.

        Rows that are already read are left untouched, so repeated calls do
        not bump ``updated_at``.
        """

        updated: list[Notification] = []
        for notification_id in dict.fromkeys(i for i in notification_ids if i):
            rows = await self.store.update(
                TABLE,
                {"id": notification_id, "recipient_id": recipient_id, "is_read": False},
                {"is_read": True, "updated_at": now_in_app_timezone()},
            )
            updated.extend(self.to_entity(row) for row in rows)
        return updated

    async def mark_all_as_read(self, recipient_id: str) -> Sequence[Notification]:
        rows = await self.store.update(
            TABLE,
            {"recipient_id": recipient_id, "is_read": False},
            {"is_read": True, "updated_at": now_in_app_timezone()},
        )
        return [self.to_entity(row) for row in rows]

    @staticmethod
    def to_entity(row: Mapping[str, Any]) -> Notification:
        return Notification(
            id=str(row["id"]),
            recipient_id=str(row["recipient_id"]),
            actor_id=str(row["actor_id"]),
            subject_id=row.get("subject_id"),
            kind=NotificationType(row["kind"]),
            title=row["title"],
            message=row["message"],
            payload=dict(row.get("payload") or {}),
            is_read=bool(row.get("is_read")),
            created_at=_as_datetime(row.get("created_at")),
            updated_at=_as_datetime(row.get("updated_at")),
            seq=row.get("seq"),
        )


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return ensure_app_timezone(value)


__all__ = ["NotificationRepository"]

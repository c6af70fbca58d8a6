"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: str
    seq: int | None = None
    recipient_id: str
    actor_id: str
    subject_id: str | None = None
    kind: str
    title: str
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime
    updated_at: datetime


class NotificationMarkReadResponse(BaseModel):
    """Number of notifications whose state changed."""

    updated: int


class NotificationUnreadCount(BaseModel):
    unread: int


__all__ = ["NotificationMarkReadResponse", "NotificationRead", "NotificationUnreadCount"]

"""Domain entities exposed by the application."""

from .identity import SessionIdentity
from .notification import ChangeEvent, ChangeKind, Notification, NotificationType

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "Notification",
    "NotificationType",
    "SessionIdentity",
]

"""Error taxonomy of the notification pipeline."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification pipeline failures."""


class DispatchError(NotificationError):
    """A notification could not be created."""


class RecipientNotFoundError(DispatchError):
    """The event has no resolvable admin, so nobody can be notified."""

    def __init__(self, subject_id: str) -> None:
        super().__init__(f"No admin found for '{subject_id}'")
        self.subject_id = subject_id


class PersistenceError(DispatchError):
    """A read or write against the record store failed."""


class UnsupportedEventError(DispatchError):
    """A typed dispatch helper received a kind outside its family."""


class NameResolutionFailure(NotificationError):
    """Every lookup source for a display name was exhausted."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"Could not resolve a name for {entity} '{identifier}'")
        self.entity = entity
        self.identifier = identifier


class SubscriptionError(NotificationError):
    """A change-event stream was dropped before it was closed."""


__all__ = [
    "DispatchError",
    "NameResolutionFailure",
    "NotificationError",
    "PersistenceError",
    "RecipientNotFoundError",
    "SubscriptionError",
    "UnsupportedEventError",
]

"""Live view of a recipient's notifications for one client session."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from siteledger.config import Settings
from siteledger.domain.entities import ChangeEvent, Notification
from siteledger.domain.errors import PersistenceError, SubscriptionError
from siteledger.infrastructure.notifications import DEFAULT_CHANGE_KINDS, ChangeSubscription
from siteledger.infrastructure.record_store import RecordStore
from siteledger.infrastructure.repositories import NotificationRepository
from siteledger.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

TABLE = "notifications"

Listener = Callable[["NotificationStore"], None]


class NotificationStore:
    """Cache of the most recent notifications of the signed-in admin.

    :meth:`activate` opens a change subscription scoped to the recipient and
    performs a bulk fetch. Both run independently, so realtime events may
    arrive before, during or after the fetch; records are merged by id and
    ``is_read`` never reverts from ``True`` to ``False`` through a merge.

    Each activation gets a generation number. Work started by an older
    generation (a slow fetch, a queued event) is discarded once the store is
    deactivated or re-activated for somebody else.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        window: int = 50,
        privileged_roles: Iterable[str] = ("admin",),
        rollback_on_failure: bool = True,
        resubscribe_delay: float = 1.0,
        max_resubscribe_attempts: int = 5,
    ) -> None:
        self.store = store
        self.repository = NotificationRepository(store)
        self.window = window
        self.privileged_roles = frozenset(role.lower() for role in privileged_roles)
        self.rollback_on_failure = rollback_on_failure
        self.resubscribe_delay = resubscribe_delay
        self.max_resubscribe_attempts = max_resubscribe_attempts

        self._records: dict[str, Notification] = {}
        self._recipient_id: str | None = None
        self._generation = 0
        self._subscription: ChangeSubscription | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._loading = 0
        self._fetch_tokens = itertools.count()
        self._touched_during_fetch: dict[int, set[str]] = {}
        # optimistic reads not yet confirmed -> updated_at before the change
        self._pending_reads: dict[str, datetime | None] = {}
        self._listeners: list[Listener] = []

    @classmethod
    def from_settings(cls, store: RecordStore, settings: Settings) -> NotificationStore:
        return cls(
            store,
            window=settings.notification_window,
            privileged_roles=settings.notification_privileged_roles,
            rollback_on_failure=settings.notification_rollback_on_failure,
            resubscribe_delay=settings.notification_resubscribe_delay,
            max_resubscribe_attempts=settings.notification_max_resubscribe_attempts,
        )

    @property
    def recipient_id(self) -> str | None:
        return self._recipient_id

    @property
    def is_active(self) -> bool:
        return self._recipient_id is not None

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    @property
    def notifications(self) -> list[Notification]:
        """Cached notifications, newest first."""

        return sorted(self._records.values(), key=Notification.sort_key, reverse=True)

    @property
    def unread_count(self) -> int:
        return sum(1 for notification in self._records.values() if not notification.is_read)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change; returns a remover."""

        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def activate(self, recipient_id: str, *, role: str) -> None:
        """Start following ``recipient_id``'s notifications.

        Any previous activation is torn down first. Sessions whose role may
        not receive notifications leave the store inactive.
        """

        await self.deactivate()
        if role.lower() not in self.privileged_roles:
            logger.debug("Role %s does not receive notifications; store stays inactive", role)
            return

        self._generation += 1
        generation = self._generation
        self._recipient_id = recipient_id
        self._records = {}
        self._notify()

        subscription = await self._open_subscription(recipient_id)
        if generation != self._generation:
            if subscription is not None:
                subscription.close()
            return
        self._subscription = subscription
        self._consumer = asyncio.create_task(self._listen(generation, subscription))
        await self.fetch()

    async def deactivate(self) -> None:
        """Close the subscription and forget the recipient's notifications."""

        consumer, subscription = self._consumer, self._subscription
        was_active = self._recipient_id is not None
        self._consumer = None
        self._subscription = None
        self._generation += 1
        self._recipient_id = None
        self._records = {}
        self._pending_reads.clear()

        if subscription is not None:
            subscription.close()
        if consumer is not None and not consumer.done():
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
        if was_active:
            self._notify()

    async def fetch(self) -> None:
        """Reload the most recent notifications from the record store.

        Server rows replace the cache, except rows that realtime events
        touched while the query was in flight; those are merged so a newer
        event is never lost to an older snapshot.
        """

        recipient_id = self._recipient_id
        if recipient_id is None:
            return
        generation = self._generation
        token = next(self._fetch_tokens)
        touched: set[str] = set()
        self._touched_during_fetch[token] = touched
        self._loading += 1
        self._notify()
        try:
            fetched = await self.repository.list_for_recipient(recipient_id, limit=self.window)
        except PersistenceError:
            logger.exception("Failed to fetch notifications for %s", recipient_id)
            return
        finally:
            del self._touched_during_fetch[token]
            self._loading -= 1
            self._notify()

        if generation != self._generation:
            return

        records = {notification.id: notification for notification in fetched}
        for notification_id in touched:
            local = self._records.get(notification_id)
            if local is None:
                continue
            server = records.get(notification_id)
            records[notification_id] = local if server is None else _merge(server, local)
        for notification_id in self._pending_reads:
            record = records.get(notification_id)
            if record is not None and not record.is_read:
                records[notification_id] = replace(record, is_read=True)

        self._records = records
        self._trim()
        self._notify()

    async def mark_as_read(self, notification_id: str) -> bool:
        """Mark one notification as read, optimistically.

        Returns ``False`` when the store is inactive or the update failed.
        Notifications that are already read are left alone.
        """

        recipient_id = self._recipient_id
        if recipient_id is None:
            return False
        current = self._records.get(notification_id)
        if current is not None and current.is_read:
            return True

        generation = self._generation
        if current is not None:
            self._mark_locally([current])
        try:
            await self.repository.mark_as_read([notification_id], recipient_id=recipient_id)
        except PersistenceError:
            logger.exception("Failed to mark notification %s as read", notification_id)
            if generation == self._generation:
                self._settle([notification_id], failed=True)
            return False
        if generation == self._generation:
            self._settle([notification_id], failed=False)
        return True

    async def mark_all_as_read(self) -> bool:
        """Mark every unread notification of the recipient as read."""

        recipient_id = self._recipient_id
        if recipient_id is None:
            return False

        generation = self._generation
        unread = [n for n in self._records.values() if not n.is_read]
        self._mark_locally(unread)
        ids = [notification.id for notification in unread]
        try:
            await self.repository.mark_all_as_read(recipient_id)
        except PersistenceError:
            logger.exception("Failed to mark notifications of %s as read", recipient_id)
            if generation == self._generation:
                self._settle(ids, failed=True)
            return False
        if generation == self._generation:
            self._settle(ids, failed=False)
        return True

    def clear(self) -> None:
        """Drop cached notifications without touching the subscription."""

        self._records = {}
        self._pending_reads.clear()
        self._notify()

    async def __aenter__(self) -> NotificationStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.deactivate()

    async def _listen(
        self, generation: int, subscription: ChangeSubscription | None
    ) -> None:
        try:
            while generation == self._generation:
                if subscription is None:
                    subscription = await self._resubscribe(generation)
                    if subscription is None:
                        return
                    await self.fetch()
                try:
                    async for event in subscription:
                        if generation != self._generation:
                            return
                        self._apply(event)
                    return
                except SubscriptionError as exc:
                    if generation != self._generation:
                        return
                    logger.warning(
                        "Notification stream for %s dropped: %s", self._recipient_id, exc
                    )
                    subscription = None
        finally:
            if subscription is not None:
                subscription.close()

    async def _resubscribe(self, generation: int) -> ChangeSubscription | None:
        recipient_id = self._recipient_id
        if recipient_id is None:
            return None
        for attempt in range(1, self.max_resubscribe_attempts + 1):
            await asyncio.sleep(self.resubscribe_delay)
            if generation != self._generation:
                return None
            subscription = await self._open_subscription(recipient_id)
            if subscription is None:
                continue
            if generation != self._generation:
                subscription.close()
                return None
            self._subscription = subscription
            logger.info(
                "Re-subscribed to notifications for %s (attempt %d)", recipient_id, attempt
            )
            return subscription
        logger.error(
            "Giving up on notifications for %s after %d attempts",
            recipient_id,
            self.max_resubscribe_attempts,
        )
        return None

    async def _open_subscription(self, recipient_id: str) -> ChangeSubscription | None:
        try:
            return await self.store.subscribe(
                TABLE, {"recipient_id": recipient_id}, DEFAULT_CHANGE_KINDS
            )
        except (PersistenceError, SubscriptionError) as exc:
            logger.error("Could not subscribe to notifications for %s: %s", recipient_id, exc)
            return None

    def _apply(self, event: ChangeEvent) -> None:
        try:
            incoming = NotificationRepository.to_entity(event.row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed %s event: %s", event.kind.value, exc)
            return
        if incoming.recipient_id != self._recipient_id:
            return

        for touched in self._touched_during_fetch.values():
            touched.add(incoming.id)
        if incoming.is_read:
            self._pending_reads.pop(incoming.id, None)

        current = self._records.get(incoming.id)
        self._records[incoming.id] = incoming if current is None else _merge(current, incoming)
        self._trim()
        self._notify()

    def _mark_locally(self, notifications: list[Notification]) -> None:
        if not notifications:
            return
        now = now_in_app_timezone()
        for notification in notifications:
            self._pending_reads.setdefault(notification.id, notification.updated_at)
            self._records[notification.id] = replace(notification, is_read=True, updated_at=now)
        self._notify()

    def _settle(self, ids: list[str], *, failed: bool) -> None:
        """Resolve optimistic reads once the store answered."""

        reverted = False
        for notification_id in ids:
            if notification_id not in self._pending_reads:
                continue
            previous_updated_at = self._pending_reads.pop(notification_id)
            if not (failed and self.rollback_on_failure):
                continue
            record = self._records.get(notification_id)
            if record is not None and record.is_read:
                self._records[notification_id] = replace(
                    record, is_read=False, updated_at=previous_updated_at
                )
                reverted = True
        if reverted:
            self._notify()

    def _trim(self) -> None:
        if len(self._records) <= self.window:
            return
        newest = sorted(self._records.values(), key=Notification.sort_key, reverse=True)
        self._records = {n.id: n for n in newest[: self.window]}

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Notification store listener %r failed", listener)


def _merge(current: Notification, incoming: Notification) -> Notification:
    """Keep the most recently updated copy; reads are sticky."""

    current_stamp = current.updated_at or current.created_at
    incoming_stamp = incoming.updated_at or incoming.created_at
    if current_stamp is not None and incoming_stamp is not None and current_stamp > incoming_stamp:
        newest = current
    else:
        newest = incoming
    return replace(newest, is_read=current.is_read or incoming.is_read)


__all__ = ["NotificationStore"]
